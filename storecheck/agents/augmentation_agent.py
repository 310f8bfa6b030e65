from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from storecheck.app.settings import ModelConfig
from storecheck.core.utils import chunked, numbered_lines
from storecheck.llms.prompt_registry import render_prompt
from storecheck.llms.providers.base import LLMClient
from storecheck.llms.retry import Sleep, retry_with_backoff
from storecheck.llms.structured import decode_json
from storecheck.schemas.compliance_schema import (
    ComplianceIssue,
    ContentValidation,
    PinpointLocation,
    SuggestedFix,
)
from storecheck.tools.compliance.checks import FileSnapshot

logger = logging.getLogger(__name__)

BATCH_SIZE = 5
BATCH_DELAY_S = 1.0
MAX_FILE_LINES = 50


@dataclass(frozen=True)
class BatchOk:
    issues: List[ComplianceIssue]


@dataclass(frozen=True)
class BatchDegraded:
    reason: str


BatchResult = Union[BatchOk, BatchDegraded]


# ---------- prompt building ----------

def describe_issue(issue: ComplianceIssue, files: FileSnapshot, max_lines: int = MAX_FILE_LINES) -> str:
    path = issue.file or "README.md"
    content = files.get(path)
    common = dict(
        rule_id=issue.rule_id,
        category=issue.category,
        severity=issue.severity,
        description=issue.description,
        file=path,
    )
    if content:
        return render_prompt(
            "issue_with_file",
            max_lines=max_lines,
            numbered_content=numbered_lines(content, max_lines),
            **common,
        )
    return render_prompt("issue_file_missing", **common)


def build_batch_prompt(batch: Sequence[ComplianceIssue], files: FileSnapshot, check_type: str) -> str:
    blocks = [
        f"### Violation {n}\n{describe_issue(issue, files)}" for n, issue in enumerate(batch, start=1)
    ]
    return render_prompt(
        "augment_batch",
        check_type=check_type,
        count=len(batch),
        issues_block="\n\n".join(blocks),
    )


def build_single_prompt(issue: ComplianceIssue, files: FileSnapshot, check_type: str) -> str:
    return render_prompt("augment_single", check_type=check_type, issue_block=describe_issue(issue, files))


# ---------- response handling ----------

def _line_numbers(value: Any) -> List[int]:
    if not isinstance(value, list):
        return []
    out: List[int] = []
    for v in value:
        if isinstance(v, bool):
            continue
        if isinstance(v, int):
            out.append(v)
        elif isinstance(v, str) and v.strip().isdigit():
            out.append(int(v.strip()))
    return out


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def apply_augmentation(issue: ComplianceIssue, data: Dict[str, Any]) -> ComplianceIssue:
    """
    Merge one decoded model object onto `issue`. Only ai_* fields are added;
    an existing content-validation verdict is kept.
    """
    lines = _line_numbers(data.get("lineNumbers"))
    explanation = data.get("explanation")
    snippet = data.get("codeSnippet")

    pinpoint = None
    fix = None
    if lines or explanation or snippet:
        pinpoint = PinpointLocation(file_path=issue.file or "README.md", line_numbers=lines)
        fix = SuggestedFix(
            explanation=str(explanation or ""),
            code_snippet=str(snippet or ""),
        )

    content_validation = None
    if issue.ai_content_validation is None and isinstance(data.get("isLegitimate"), bool):
        content_validation = ContentValidation(
            is_legitimate=data["isLegitimate"],
            issues=_str_list(data.get("contentIssues")),
            suggestions=_str_list(data.get("suggestions")),
        )

    return issue.with_augmentation(pinpoint=pinpoint, fix=fix, content_validation=content_validation)


def match_batch_results(batch: Sequence[ComplianceIssue], entries: Sequence[Any]) -> List[ComplianceIssue]:
    """
    Pair model objects with issues by ruleId. An object without a ruleId is
    used for the issue at the same position; an object naming a different
    ruleId is never applied by position.
    """
    by_rule: Dict[str, Dict[str, Any]] = {}
    for entry in entries:
        if isinstance(entry, dict) and isinstance(entry.get("ruleId"), str):
            by_rule.setdefault(entry["ruleId"], entry)

    out: List[ComplianceIssue] = []
    for idx, issue in enumerate(batch):
        entry = by_rule.get(issue.rule_id)
        if entry is None and idx < len(entries):
            positional = entries[idx]
            if isinstance(positional, dict) and not positional.get("ruleId"):
                entry = positional
        out.append(apply_augmentation(issue, entry) if entry else issue)
    return out


# ---------- orchestrator ----------

class AugmentationOrchestrator:
    """
    Enriches issues with LLM pinpoint locations and fixes.
    Batches run strictly one after another with a fixed pause between them;
    a failed batch degrades to one call per issue.
    """

    def __init__(
        self,
        llm: LLMClient,
        batch_config: ModelConfig,
        individual_config: ModelConfig,
        *,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_S,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        call_timeout: Optional[float] = 60.0,
        sleep: Optional[Sleep] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.llm = llm
        self.batch_config = batch_config
        self.individual_config = individual_config
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.call_timeout = call_timeout
        self.sleep = sleep or asyncio.sleep

    async def _call(self, prompt: str, config: ModelConfig, label: str) -> str:
        async def attempt() -> str:
            call = self.llm.generate(prompt, config)
            if self.call_timeout:
                return await asyncio.wait_for(call, timeout=self.call_timeout)
            return await call

        return await retry_with_backoff(
            attempt,
            self.max_retries,
            self.initial_delay,
            sleep=self.sleep,
            label=label,
        )

    async def augment_issues_in_batches(
        self,
        issues: Sequence[ComplianceIssue],
        files: FileSnapshot,
        check_type: str,
    ) -> List[ComplianceIssue]:
        """Same length and order as `issues`; entries are augmented or returned as-is."""
        batches = list(chunked(issues, self.batch_size))
        out: List[ComplianceIssue] = []

        for idx, batch in enumerate(batches, start=1):
            logger.info("Augmenting batch %d/%d (%d issues)", idx, len(batches), len(batch))
            result = await self.process_batch(batch, files, check_type)

            if isinstance(result, BatchOk):
                out.extend(result.issues)
            else:
                logger.warning(
                    "Batch %d degraded, processing %d issues individually: %s",
                    idx, len(batch), result.reason,
                )
                out.extend(await self.process_individually(batch, files, check_type))

            if idx < len(batches):
                await self.sleep(self.batch_delay)

        augmented = sum(1 for i in out if i.is_augmented)
        logger.info("Augmentation complete: %d/%d issues augmented", augmented, len(out))
        return out

    async def process_batch(
        self,
        batch: Sequence[ComplianceIssue],
        files: FileSnapshot,
        check_type: str,
    ) -> BatchResult:
        prompt = build_batch_prompt(batch, files, check_type)
        try:
            raw = await self._call(prompt, self.batch_config, f"batch augmentation ({len(batch)} issues)")
        except Exception as e:
            return BatchDegraded(f"batch call failed: {e}")

        entries = decode_json(raw, array=True)
        if entries is None:
            return BatchDegraded("undecodable batch response")
        return BatchOk(match_batch_results(batch, entries))

    async def process_individually(
        self,
        batch: Sequence[ComplianceIssue],
        files: FileSnapshot,
        check_type: str,
    ) -> List[ComplianceIssue]:
        # sequential on purpose: same rate-limit budget as the batches
        out: List[ComplianceIssue] = []
        for issue in batch:
            out.append(await self.augment_single_issue(issue, files, check_type))
        return out

    async def augment_single_issue(
        self,
        issue: ComplianceIssue,
        files: FileSnapshot,
        check_type: str,
    ) -> ComplianceIssue:
        """One call for one issue; any failure returns the issue unaugmented."""
        prompt = build_single_prompt(issue, files, check_type)
        try:
            raw = await self._call(prompt, self.individual_config, f"augmentation of {issue.rule_id}")
        except Exception as e:
            logger.warning("Augmentation failed for %s: %s", issue.rule_id, e, extra={"rule_id": issue.rule_id})
            return issue

        data = decode_json(raw)
        if data is None:
            logger.warning("Undecodable augmentation response for %s", issue.rule_id)
            return issue
        return apply_augmentation(issue, data)
