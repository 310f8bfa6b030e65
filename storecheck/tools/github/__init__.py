from __future__ import annotations

"""
GitHub access: repository file fetching.
"""

from storecheck.tools.github import files

__all__ = [
    "files",
]
