from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Severity = Literal["high", "medium", "low"]


class _CamelModel(BaseModel):
    """snake_case in Python/Mongo, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PinpointLocation(_CamelModel):
    file_path: str
    line_numbers: List[int] = Field(default_factory=list)


class SuggestedFix(_CamelModel):
    explanation: str = ""
    code_snippet: str = ""


class ContentValidation(_CamelModel):
    is_legitimate: bool
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class ComplianceIssue(_CamelModel):
    """
    One rule violation or content-validation finding.
    Deterministic fields are frozen; later stages may only add ai_* fields
    through `with_augmentation`.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    rule_id: str
    severity: Severity
    category: str
    description: str
    solution: str
    file: Optional[str] = None

    ai_pinpoint_location: Optional[PinpointLocation] = None
    ai_suggested_fix: Optional[SuggestedFix] = None
    ai_content_validation: Optional[ContentValidation] = None

    @property
    def is_augmented(self) -> bool:
        return self.ai_pinpoint_location is not None or self.ai_suggested_fix is not None

    def with_augmentation(
        self,
        *,
        pinpoint: Optional[PinpointLocation] = None,
        fix: Optional[SuggestedFix] = None,
        content_validation: Optional[ContentValidation] = None,
    ) -> "ComplianceIssue":
        update: Dict[str, Any] = {}
        if pinpoint is not None:
            update["ai_pinpoint_location"] = pinpoint
        if fix is not None:
            update["ai_suggested_fix"] = fix
        if content_validation is not None:
            update["ai_content_validation"] = content_validation
        if not update:
            return self
        return self.model_copy(update=update)

    def to_public(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ContentValidationResult(_CamelModel):
    is_valid: bool
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class ComplianceErrorType(str, Enum):
    MISSING_FILE = "MISSING_FILE"
    GITHUB_API_ERROR = "GITHUB_API_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    INVALID_CONTENT = "INVALID_CONTENT"
    AI_SERVICE_ERROR = "AI_SERVICE_ERROR"
    UNKNOWN = "UNKNOWN"


class ComplianceError(_CamelModel):
    type: ComplianceErrorType
    message: str
    details: Optional[str] = None
    file: Optional[str] = None
    retry_after: Optional[int] = None  # seconds


class SeveritySummary(_CamelModel):
    total_issues: int = 0
    high_severity: int = 0
    medium_severity: int = 0
    low_severity: int = 0
