from __future__ import annotations

"""
Check run lifecycle: state machine, document builders, result projection.
"""

from storecheck.runs import run_builder, run_manager

__all__ = [
    "run_builder",
    "run_manager",
]
