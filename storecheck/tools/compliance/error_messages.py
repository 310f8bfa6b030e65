from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from storecheck.schemas.compliance_schema import ComplianceError, ComplianceErrorType as T
from storecheck.tools.compliance.error_classifier import get_primary_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserFriendlyError:
    title: str
    message: str
    actionable_guidance: Optional[str] = None
    retry_info: Optional[str] = None


_RETRY_LATER = "Please try again. If the problem persists, contact support with the error details."


def get_error_message(error: ComplianceError) -> UserFriendlyError:
    details = error.details or ""

    if error.type == T.MISSING_FILE:
        if error.file:
            return UserFriendlyError(
                "Required File Missing",
                f"The file '{error.file}' was not found in your repository.",
                f"Please add the '{error.file}' file to your repository and try again.",
            )
        return UserFriendlyError(
            "Required File Missing",
            "A required file was not found in your repository.",
            "Please ensure all required files are present in your repository.",
        )

    if error.type == T.GITHUB_API_ERROR:
        if "Permission denied" in error.message or "403" in details:
            return UserFriendlyError(
                "Permission Denied",
                "Unable to access your repository due to insufficient permissions.",
                "Check that the GitHub App can read repository contents. You may need to reinstall it "
                "or grant additional permissions.",
            )
        if any(code in details for code in ("500", "502", "503")):
            return UserFriendlyError(
                "GitHub Service Error",
                "GitHub is experiencing technical difficulties.",
                "This is a temporary issue with GitHub's servers. Please try again in a few minutes.",
            )
        if "Network error" in error.message:
            return UserFriendlyError(
                "Connection Error",
                "Unable to connect to GitHub.",
                "Check your internet connection and try again. If the problem persists, GitHub may be "
                "experiencing an outage.",
            )
        return UserFriendlyError(
            "GitHub API Error",
            "An error occurred while accessing your repository.",
            _RETRY_LATER,
        )

    if error.type == T.RATE_LIMIT:
        minutes = math.ceil(error.retry_after / 60) if error.retry_after else 60
        return UserFriendlyError(
            "Rate Limit Exceeded",
            "An upstream API rate limit has been reached.",
            "We've made too many requests. Please wait before trying again.",
            f"You can retry in approximately {minutes} minute{'s' if minutes != 1 else ''}.",
        )

    if error.type == T.INVALID_CONTENT:
        if error.file:
            return UserFriendlyError(
                "Invalid Content",
                f"The file '{error.file}' contains invalid or malformed content.",
                f"Please check the '{error.file}' file for syntax errors or formatting issues.",
            )
        return UserFriendlyError(
            "Invalid Content",
            "Invalid or malformed content was detected.",
            "Please check your repository files for syntax errors or formatting issues.",
        )

    if error.type == T.AI_SERVICE_ERROR:
        return UserFriendlyError(
            "Analysis Service Unavailable",
            "The compliance analysis service is temporarily unavailable.",
            "This is a temporary issue with our analysis service. Please try again in a few minutes.",
        )

    return UserFriendlyError(
        "Unexpected Error",
        "An unexpected error occurred during the compliance check.",
        _RETRY_LATER,
    )


def get_run_error_message(
    error_type: Optional[str],
    error_message: Optional[str],
    error_details: Optional[str],
) -> Optional[UserFriendlyError]:
    """User-facing message from the error fields stored on a FAILED run."""
    if not error_type or not error_message:
        return None

    kind = T(error_type) if error_type in T.__members__ else T.UNKNOWN
    error = ComplianceError(type=kind, message=error_message, details=error_details)
    if error_details:
        try:
            stored = [ComplianceError.model_validate(e) for e in json.loads(error_details)]
        except ValueError:
            logger.warning("Failed to parse stored error details")
            stored = []
        if stored:
            error = error.model_copy(update={"retry_after": stored[0].retry_after, "file": stored[0].file})

    return get_error_message(error)


def format_multiple_errors(errors: List[ComplianceError]) -> UserFriendlyError:
    primary = get_primary_error(errors)
    if primary is None:
        return UserFriendlyError("Unknown Error", "An error occurred but no details are available.")
    return get_error_message(primary)
