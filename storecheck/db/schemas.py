from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Any, Literal, Optional, List, Dict
from datetime import datetime

from storecheck.schemas.compliance_schema import ComplianceError, ComplianceIssue

RunStatus = Literal["IN_PROGRESS", "COMPLETED", "FAILED"]
TERMINAL_STATUSES = frozenset({"COMPLETED", "FAILED"})


class CheckRun(BaseModel):
    id: str = Field(alias="_id")
    repository_id: str
    owner: str
    repo: str
    branch_name: str
    check_type: str
    status: RunStatus = "IN_PROGRESS"
    ruleset_version: Optional[str] = None

    issues: List[ComplianceIssue] = Field(default_factory=list)
    warnings: List[ComplianceError] = Field(default_factory=list)

    error_type: Optional[str] = None
    error_message: Optional[str] = None
    error_details: Optional[str] = None
    retryable: bool = False

    created_at: datetime
    completed_at: Optional[datetime] = None

    model_config = {"populate_by_name": True}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "CheckRun":
        return cls.model_validate(doc)
