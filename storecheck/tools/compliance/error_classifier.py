from __future__ import annotations

import json
import re
from typing import Any, Iterable, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from storecheck.app.errors import LLMProviderError
from storecheck.schemas.compliance_schema import ComplianceError, ComplianceErrorType as T

DEFAULT_RETRY_AFTER_S = 3600

NETWORK_ERRNOS = {"ENOTFOUND", "ECONNREFUSED", "ETIMEDOUT", "ECONNRESET"}
AI_MARKERS = ("gemini", "genai", "cerebras", "api key", "generativelanguage")
PARSE_MARKERS = ("parse", "invalid", "json")

PRIORITY: Sequence[T] = (
    T.RATE_LIMIT,
    T.GITHUB_API_ERROR,
    T.AI_SERVICE_ERROR,
    T.INVALID_CONTENT,
    T.MISSING_FILE,
    T.UNKNOWN,
)

_SERVER_STATUS_RE = re.compile(r"\b5\d\d\b")


def _field(obj: Any, name: str) -> Any:
    """Read `name` from an attribute or a mapping key."""
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _status(err: Any) -> Optional[int]:
    for name in ("status", "status_code"):
        v = _field(err, name)
        if isinstance(v, int):
            return v
        if isinstance(v, str) and v.isdigit():
            return int(v)
    response = _field(err, "response")
    if response is not None:
        v = _field(response, "status_code")
        if isinstance(v, int):
            return v
    return None


def _header(err: Any, name: str) -> Optional[str]:
    response = _field(err, "response")
    if response is None:
        return None
    headers = _field(response, "headers")
    if headers is None:
        return None
    try:
        return headers.get(name) or headers.get(name.title())
    except AttributeError:
        return None


def _message(err: Any) -> str:
    if isinstance(err, BaseException):
        return str(err)
    msg = _field(err, "message")
    return str(msg) if msg is not None else str(err)


def _retry_after(err: Any) -> int:
    explicit = _field(err, "retry_after")
    if isinstance(explicit, int):
        return explicit
    raw = _header(err, "retry-after")
    if raw is not None:
        try:
            return int(str(raw).strip())
        except ValueError:
            pass
    return DEFAULT_RETRY_AFTER_S


def _is_network_error(err: Any) -> bool:
    if isinstance(err, (httpx.TransportError, ConnectionError)):
        return True
    if isinstance(getattr(err, "__cause__", None), httpx.TransportError):
        return True
    code = _field(err, "code")
    return isinstance(code, str) and code in NETWORK_ERRNOS


def _from_status(status: int, err: Any, file: Optional[str]) -> ComplianceError:
    msg = _message(err)
    if status == 403:
        return ComplianceError(
            type=T.GITHUB_API_ERROR,
            message="Permission denied to access repository",
            details=msg or "GitHub API returned 403 Forbidden",
            file=file,
        )
    if status == 404:
        return ComplianceError(
            type=T.MISSING_FILE,
            message=f"File '{file}' not found in repository" if file else "Resource not found",
            details=msg,
            file=file,
        )
    if status == 429:
        retry_after = _retry_after(err)
        return ComplianceError(
            type=T.RATE_LIMIT,
            message="Rate limit exceeded",
            details=f"Rate limit reached. Retry after {-(-retry_after // 60)} minutes",
            retry_after=retry_after,
            file=file,
        )
    if 500 <= status < 600:
        return ComplianceError(
            type=T.GITHUB_API_ERROR,
            message="GitHub API server error",
            details=f"GitHub API returned {status}: {msg}" if msg else f"GitHub API returned {status}",
            file=file,
        )
    return ComplianceError(
        type=T.GITHUB_API_ERROR,
        message="GitHub API error",
        details=msg or f"Status: {status}",
        file=file,
    )


def categorize_error(err: Any, file: Optional[str] = None) -> ComplianceError:
    """
    Map a raw failure (exception or mapping) onto the compliance error taxonomy.
    """
    if isinstance(err, ComplianceError):
        return err

    status = _status(err)

    if isinstance(err, LLMProviderError):
        if status == 429:
            return _from_status(429, err, file)
        return ComplianceError(
            type=T.AI_SERVICE_ERROR,
            message="AI service error",
            details=f"{_message(err)} (status {status})" if status else _message(err),
            file=file,
        )

    if status is not None:
        return _from_status(status, err, file)

    msg = _message(err)

    if _is_network_error(err):
        return ComplianceError(
            type=T.GITHUB_API_ERROR,
            message="Network error connecting to GitHub",
            details=msg or str(_field(err, "code")),
            file=file,
        )

    lowered = msg.lower()
    if any(m in lowered for m in AI_MARKERS):
        return ComplianceError(type=T.AI_SERVICE_ERROR, message="AI service error", details=msg, file=file)

    if isinstance(err, (json.JSONDecodeError, SyntaxError, ValidationError)) or any(
        m in lowered for m in PARSE_MARKERS
    ):
        return ComplianceError(
            type=T.INVALID_CONTENT,
            message="Invalid or malformed content",
            details=msg,
            file=file,
        )

    return ComplianceError(
        type=T.UNKNOWN,
        message="An unexpected error occurred",
        details=msg or type(err).__name__,
        file=file,
    )


def is_error_retryable(error: ComplianceError) -> bool:
    if error.type in {T.RATE_LIMIT, T.AI_SERVICE_ERROR}:
        return True
    if error.type == T.GITHUB_API_ERROR:
        return bool(_SERVER_STATUS_RE.search(error.details or "")) or "server error" in error.message.lower()
    return False


def get_primary_error(errors: Iterable[ComplianceError]) -> Optional[ComplianceError]:
    errors = list(errors)
    if not errors:
        return None
    for t in PRIORITY:
        for e in errors:
            if e.type == t:
                return e
    return errors[0]


def format_error_details(errors: Iterable[ComplianceError]) -> str:
    payload: List[dict] = [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in errors]
    return json.dumps(payload, indent=2)
