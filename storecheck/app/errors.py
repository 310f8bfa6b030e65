from __future__ import annotations

from typing import Any, Optional


class AppError(Exception):
    """Base application error"""


class ConfigError(AppError):
    """Missing or invalid configuration"""


class DatabaseError(AppError):
    """MongoDB connection or query failure"""


class RunNotFoundError(AppError):
    """Check run ID not found in the run store"""


class RunStateError(AppError):
    """Illegal check run status transition (e.g. a second terminal write)"""


class RunPersistenceError(AppError):
    """Failed to persist a check run"""


class PipelineTimeoutError(AppError):
    """Analysis pipeline exceeded its overall deadline"""


class GitHubAPIError(AppError):
    """
    GitHub request failed with a non-404 status or a transport error.
    `status` is None for transport failures.
    """

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        response: Any = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.response = response
        self.code = code


class LLMProviderError(AppError):
    """
    LLM provider call failed. Carries enough detail for the error
    classifier and the retry policy to tell transient from permanent.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status: Optional[int] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status = status
        self.retry_after = retry_after
