from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import ValidationError

from storecheck.app.settings import ModelConfig
from storecheck.core.ids import content_rule_id
from storecheck.llms.prompt_registry import CONTENT_TYPE_GUIDANCE, render_prompt
from storecheck.llms.providers.base import LLMClient
from storecheck.llms.retry import Sleep, retry_with_backoff
from storecheck.llms.structured import decode_json
from storecheck.schemas.compliance_schema import (
    ComplianceIssue,
    ContentValidation,
    ContentValidationResult,
    Severity,
)
from storecheck.tools.compliance.checks import FileSnapshot

logger = logging.getLogger(__name__)

ContentType = Literal["privacy-policy", "manifest", "readme", "config"]

MAX_CONTENT_CHARS = 8000

# (path, expected type), in validation order
CONTENT_VALIDATION_TARGETS: Sequence[Tuple[str, ContentType]] = (
    ("README.md", "readme"),
    ("PRIVACY.md", "privacy-policy"),
    ("privacy-policy.md", "privacy-policy"),
    ("AndroidManifest.xml", "manifest"),
    ("Info.plist", "manifest"),
    ("manifest.json", "manifest"),
    ("package.json", "config"),
    ("app.json", "config"),
)

SEVERITY_BY_TYPE: Dict[str, Severity] = {
    "privacy-policy": "high",
    "manifest": "medium",
    "readme": "low",
    "config": "low",
}

PARSE_ERROR_RESULT = ContentValidationResult(is_valid=False, issues=["parse error"], suggestions=[])


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None and str(v).strip()]


def parse_validation_response(raw: str) -> ContentValidationResult:
    """Decode a validator response; any decode failure yields the parse-error result."""
    data = decode_json(raw)
    if data is None or "isValid" not in data:
        return PARSE_ERROR_RESULT
    try:
        return ContentValidationResult(
            is_valid=data["isValid"],
            issues=_str_list(data.get("issues")),
            suggestions=_str_list(data.get("suggestions")),
        )
    except ValidationError:
        return PARSE_ERROR_RESULT


class ContentValidator:
    """
    LLM legitimacy check of the key repository files
    (privacy policy, manifest, readme, package metadata).
    """

    def __init__(
        self,
        llm: LLMClient,
        model_config: ModelConfig,
        *,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        call_timeout: Optional[float] = 60.0,
        sleep: Optional[Sleep] = None,
    ):
        self.llm = llm
        self.model_config = model_config
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.call_timeout = call_timeout
        self.sleep = sleep or asyncio.sleep

    async def _generate(self, prompt: str) -> str:
        call = self.llm.generate(prompt, self.model_config)
        if self.call_timeout:
            return await asyncio.wait_for(call, timeout=self.call_timeout)
        return await call

    async def validate_file_content(
        self,
        path: str,
        content: str,
        expected_type: ContentType,
        platform: str,
    ) -> ContentValidationResult:
        """
        One LLM call for one file. Decode failures return the parse-error result;
        provider failures (after retries) propagate.
        """
        prompt = render_prompt(
            "content_validation",
            platform=platform,
            expected_type=expected_type,
            type_guidance=CONTENT_TYPE_GUIDANCE[expected_type],
            path=path,
            content=content[:MAX_CONTENT_CHARS],
        )
        raw = await retry_with_backoff(
            lambda: self._generate(prompt),
            self.max_retries,
            self.initial_delay,
            sleep=self.sleep,
            label=f"content validation of {path}",
        )
        return parse_validation_response(raw)

    async def validate_key_files(self, files: FileSnapshot, platform: str) -> List[ComplianceIssue]:
        """
        Validate present target files one at a time and return one synthetic
        issue per file that fails validation.
        """
        issues: List[ComplianceIssue] = []
        for path, expected_type in CONTENT_VALIDATION_TARGETS:
            content = files.get(path)
            if not content:
                continue
            try:
                result = await self.validate_file_content(path, content, expected_type, platform)
            except Exception as e:
                logger.warning("Content validation skipped for %s: %s", path, e, extra={"file": path})
                continue

            if result.is_valid:
                continue
            issues.append(build_content_issue(path, expected_type, result))

        logger.info("Content validation produced %d issue(s)", len(issues))
        return issues


def build_content_issue(path: str, expected_type: str, result: ContentValidationResult) -> ComplianceIssue:
    problems = "; ".join(result.issues) or "content could not be validated"
    solution = " ".join(result.suggestions) or f"Review {path} and replace placeholder or incomplete content."
    return ComplianceIssue(
        rule_id=content_rule_id(path),
        severity=SEVERITY_BY_TYPE.get(expected_type, "low"),
        category="Content Validation",
        description=f"{path} failed {expected_type} content validation: {problems}",
        solution=solution,
        file=path,
        ai_content_validation=ContentValidation(
            is_legitimate=False,
            issues=result.issues,
            suggestions=result.suggestions,
        ),
    )
