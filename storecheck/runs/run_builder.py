from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from storecheck.core.clock import utc_now
from storecheck.db.schemas import CheckRun
from storecheck.schemas.compliance_schema import ComplianceError, ComplianceIssue
from storecheck.tools.compliance.checks import summarize_severity
from storecheck.tools.compliance.error_classifier import (
    format_error_details,
    get_primary_error,
    is_error_retryable,
)
from storecheck.tools.compliance.error_messages import get_run_error_message


def build_run_doc(
    *,
    owner: str,
    repo: str,
    branch_name: str,
    check_type: str,
    ruleset_version: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Initial check run document. Written once, before any file is fetched.
    """
    return {
        "repository_id": f"{owner}/{repo}",
        "owner": owner,
        "repo": repo,
        "branch_name": branch_name,
        "check_type": check_type,
        "status": "IN_PROGRESS",
        "ruleset_version": ruleset_version,
        "issues": [],
        "warnings": [],
        "error_type": None,
        "error_message": None,
        "error_details": None,
        "retryable": False,
        "created_at": created_at or utc_now(),
        "completed_at": None,
    }


def build_completed_patch(
    issues: Sequence[ComplianceIssue],
    warnings: Sequence[ComplianceError] = (),
) -> Dict[str, Any]:
    return {
        "status": "COMPLETED",
        "issues": [i.model_dump(mode="json") for i in issues],
        "warnings": [w.model_dump(mode="json") for w in warnings],
        "completed_at": utc_now(),
    }


def build_failed_patch(errors: Sequence[ComplianceError]) -> Dict[str, Any]:
    primary = get_primary_error(errors)
    return {
        "status": "FAILED",
        "error_type": primary.type.value if primary else None,
        "error_message": primary.message if primary else None,
        "error_details": format_error_details(errors) if errors else None,
        "retryable": is_error_retryable(primary) if primary else False,
        "completed_at": utc_now(),
    }


def build_result_projection(run: CheckRun) -> Dict[str, Any]:
    """Caller-facing view of a finished run. FAILED runs also carry the classified error."""
    issues: List[ComplianceIssue] = list(run.issues)
    summary = summarize_severity(issues)
    out: Dict[str, Any] = {
        "status": run.status.lower(),
        "repository": run.repository_id,
        "checkType": run.check_type,
        "checkRunId": run.id,
        "summary": summary.model_dump(by_alias=True),
        "issues": [i.to_public() for i in issues],
    }

    if run.status == "FAILED":
        out["errorType"] = run.error_type
        out["errorMessage"] = run.error_message
        out["errorDetails"] = run.error_details
        out["retryable"] = run.retryable
        friendly = get_run_error_message(run.error_type, run.error_message, run.error_details)
        if friendly is not None:
            out["userMessage"] = {
                "title": friendly.title,
                "message": friendly.message,
                "actionableGuidance": friendly.actionable_guidance,
                "retryInfo": friendly.retry_info,
            }
    return out
