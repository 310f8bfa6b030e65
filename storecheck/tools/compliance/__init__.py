from __future__ import annotations

from storecheck.tools.compliance import checks, error_classifier, error_messages, store_rules

__all__ = [
    "checks",
    "error_classifier",
    "error_messages",
    "store_rules",
]
