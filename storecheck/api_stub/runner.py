from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from dotenv import load_dotenv

from storecheck.agents.augmentation_agent import AugmentationOrchestrator
from storecheck.agents.content_validator_agent import ContentValidator
from storecheck.app.errors import PipelineTimeoutError, RunPersistenceError
from storecheck.app.logging import setup_logging
from storecheck.app.settings import Settings, load_settings
from storecheck.db.mongo import connect_mongo, ensure_indexes
from storecheck.db.repositories import CheckRunRepo, RunStore
from storecheck.graph.build_graph import build_graph
from storecheck.llms.providers import build_llm_client
from storecheck.llms.providers.base import LLMClient
from storecheck.llms.retry import Sleep
from storecheck.runs.run_builder import build_result_projection
from storecheck.runs.run_manager import RunLifecycleManager
from storecheck.schemas.compliance_schema import ComplianceError, ComplianceIssue
from storecheck.tools.compliance.checks import (
    ComplianceRule,
    evaluate_check,
    freeze_snapshot,
    platform_label,
    platforms_for_check_type,
    rule_to_issue,
)
from storecheck.tools.compliance.error_classifier import categorize_error
from storecheck.tools.compliance.store_rules import COMPLIANCE_RULES, RULESET_VERSION
from storecheck.tools.github.files import FileCollector, GitHubFileSource

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    issues: List[ComplianceIssue] = field(default_factory=list)
    warnings: List[ComplianceError] = field(default_factory=list)


class CompliancePipeline:
    """
    Hybrid compliance analysis: deterministic rules, LLM content validation,
    batched LLM augmentation, and the check run lifecycle around them.
    The LLM client is injected and owned by this controller.
    """

    def __init__(
        self,
        *,
        run_store: RunStore,
        collector: FileCollector,
        llm: LLMClient,
        settings: Settings,
        registry: Sequence[ComplianceRule] = COMPLIANCE_RULES,
        sleep: Optional[Sleep] = None,
    ):
        self.lifecycle = RunLifecycleManager(run_store)
        self.collector = collector
        self.llm = llm
        self.registry = registry
        self.deadline_s = settings.pipeline_deadline_s

        self.validator = ContentValidator(
            llm,
            settings.validation_model,
            max_retries=settings.llm_max_retries,
            initial_delay=settings.llm_initial_delay_s,
            call_timeout=settings.llm_call_timeout_s,
            sleep=sleep,
        )
        self.augmenter = AugmentationOrchestrator(
            llm,
            settings.batch_model,
            settings.individual_model,
            batch_size=settings.augment_batch_size,
            batch_delay=settings.augment_batch_delay_s,
            max_retries=settings.llm_max_retries,
            initial_delay=settings.llm_initial_delay_s,
            call_timeout=settings.llm_call_timeout_s,
            sleep=sleep,
        )
        self._graph = build_graph(self).compile()

    # ---------- graph nodes ----------
    async def collect_files_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        collected = await self.collector.collect(
            state["owner"], state["repo"], state.get("branch"), state.get("credentials"),
        )
        state["files"] = collected.files
        state["fetch_errors"] = collected.errors
        return state

    async def evaluate_rules_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        files = state["files"]
        violations = evaluate_check(files, state["check_type"], self.registry)
        state["rule_issues"] = [rule_to_issue(rule, files) for rule in violations]
        logger.info("Found %d deterministic violations", len(violations))
        return state

    async def validate_content_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        state["content_issues"] = await self.validator.validate_key_files(
            state["files"], platform_label(state["check_type"]),
        )
        state["issues"] = list(state["rule_issues"]) + list(state["content_issues"])
        return state

    async def augment_node(self, state: Dict[str, Any]) -> Dict[str, Any]:
        state["issues"] = await self.augmenter.augment_issues_in_batches(
            state["issues"], state["files"], state["check_type"],
        )
        return state

    # ---------- entry points ----------
    async def analyze(
        self,
        owner: str,
        repo: str,
        check_type: str,
        branch: Optional[str] = None,
        credentials: Optional[str] = None,
    ) -> AnalysisResult:
        platforms_for_check_type(check_type)
        logger.info("Starting analysis for %s/%s@%s (%s)", owner, repo, branch or "default", check_type)

        state: Dict[str, Any] = {
            "owner": owner,
            "repo": repo,
            "branch": branch,
            "credentials": credentials,
            "check_type": check_type,
        }
        try:
            final = await asyncio.wait_for(self._graph.ainvoke(state), timeout=self.deadline_s)
        except asyncio.TimeoutError as e:
            raise PipelineTimeoutError(f"Pipeline deadline of {self.deadline_s}s exceeded") from e

        return AnalysisResult(
            issues=list(final.get("issues") or []),
            warnings=list(final.get("fetch_errors") or []),
        )

    async def analyze_and_persist(
        self,
        owner: str,
        repo: str,
        check_type: str,
        branch: str = "main",
        credentials: Optional[str] = None,
    ) -> str:
        """
        Create the run, analyze, and write exactly one terminal status.
        Returns the run id once the run is COMPLETED or FAILED.
        """
        platforms_for_check_type(check_type)
        run_id = await self.lifecycle.create_run(
            owner, repo, check_type, branch, ruleset_version=RULESET_VERSION,
        )

        try:
            result = await self.analyze(owner, repo, check_type, branch, credentials)
        except Exception as e:
            logger.exception("Analysis failed for run %s", run_id, extra={"run_id": run_id})
            await self.lifecycle.fail_run(run_id, [categorize_error(e)])
            return run_id

        try:
            await self.lifecycle.complete_run(run_id, result.issues, result.warnings)
        except RunPersistenceError as e:
            logger.exception("Could not persist results for run %s", run_id, extra={"run_id": run_id})
            await self.lifecycle.fail_run(run_id, [categorize_error(e)])
        return run_id

    async def get_result(self, run_id: str) -> Dict[str, Any]:
        run = await self.lifecycle.load_run(run_id)
        return build_result_projection(run)

    async def augment_stored_issue(
        self,
        run_id: str,
        rule_id: str,
        credentials: Optional[str] = None,
    ) -> Optional[ComplianceIssue]:
        """
        On-demand augmentation of one issue of a stored run. The stored run is
        not modified; returns None when the run has no such issue.
        """
        run = await self.lifecycle.load_run(run_id)
        issue = next((i for i in run.issues if i.rule_id == rule_id), None)
        if issue is None:
            return None

        files: Dict[str, Optional[str]] = {}
        if issue.file:
            try:
                files[issue.file] = await self.collector.source.fetch_file(
                    run.owner, run.repo, issue.file, run.branch_name, credentials,
                )
            except Exception as e:
                logger.warning("Could not refetch %s: %s", issue.file, e)
                files[issue.file] = None

        return await self.augmenter.augment_single_issue(issue, freeze_snapshot(files), run.check_type)


@asynccontextmanager
async def open_pipeline() -> AsyncIterator[CompliancePipeline]:
    """
    Wire a pipeline from the environment:
    - load settings, connect Mongo
    - build the LLM client + GitHub collector
    Clients are closed on exit.
    """
    load_dotenv()
    s = load_settings()
    setup_logging(s.log_level)

    handles = connect_mongo(s.mongo_uri, s.mongo_db)
    source = GitHubFileSource(api_url=s.github_api_url, default_token=s.github_token)
    try:
        await ensure_indexes(handles)
        yield CompliancePipeline(
            run_store=CheckRunRepo(handles["check_runs"]),
            collector=FileCollector(source),
            llm=build_llm_client(s),
            settings=s,
        )
    finally:
        await source.aclose()
        await handles["client"].close()


async def analyze_and_persist_compliance(
    owner: str,
    repo: str,
    check_type: str,
    branch: str = "main",
    credentials: Optional[str] = None,
) -> str:
    """Run the pipeline and persist the check run; returns the check run id."""
    async with open_pipeline() as pipeline:
        return await pipeline.analyze_and_persist(owner, repo, check_type, branch, credentials)


def run_check(
    *,
    owner: str,
    repo: str,
    check_type: str,
    branch: str = "main",
    credentials: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Blocking wrapper for scripts: runs a check and returns the result projection.
    """

    async def _run() -> Dict[str, Any]:
        async with open_pipeline() as pipeline:
            run_id = await pipeline.analyze_and_persist(owner, repo, check_type, branch, credentials)
            return await pipeline.get_result(run_id)

    return asyncio.run(_run())
