from __future__ import annotations

"""
Tools package for storecheck.

This package contains the deterministic tools used by the pipeline:
- compliance: rule registry, rule engine, error classification
- github: repository file collection
"""

from storecheck.tools import compliance, github

__all__ = [
    "compliance",
    "github",
]
