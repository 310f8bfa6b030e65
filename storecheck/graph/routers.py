from __future__ import annotations
from typing import Any, Dict, Literal

Route = Literal["augment", "end"]


def _pending_issue_count(state: Dict[str, Any]) -> int:
    return len(state.get("rule_issues") or []) + len(state.get("content_issues") or [])


def route_after_validation(state: Dict[str, Any]) -> Route:
    """
    After content validation:
    - issues found -> "augment"
    - nothing to augment -> "end"
    """
    if _pending_issue_count(state) > 0:
        return "augment"
    return "end"
