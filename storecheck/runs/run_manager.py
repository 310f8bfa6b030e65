from __future__ import annotations

import logging
from typing import Optional, Sequence

from storecheck.app.errors import RunNotFoundError, RunPersistenceError, RunStateError
from storecheck.db.repositories import RunStore
from storecheck.db.schemas import CheckRun
from storecheck.runs.run_builder import build_completed_patch, build_failed_patch, build_run_doc
from storecheck.schemas.compliance_schema import ComplianceError, ComplianceIssue

logger = logging.getLogger(__name__)


class RunLifecycleManager:
    """
    Owns the check run state machine: IN_PROGRESS -> COMPLETED | FAILED,
    exactly one terminal write per run, enforced by a conditional
    update on the stored status.
    """

    def __init__(self, store: RunStore):
        self.store = store

    async def create_run(
        self,
        owner: str,
        repo: str,
        check_type: str,
        branch_name: str = "main",
        *,
        ruleset_version: Optional[str] = None,
    ) -> str:
        doc = build_run_doc(
            owner=owner,
            repo=repo,
            branch_name=branch_name,
            check_type=check_type,
            ruleset_version=ruleset_version,
        )
        run_id = await self.store.create(doc)
        logger.info("Created check run %s for %s/%s@%s", run_id, owner, repo, branch_name, extra={"run_id": run_id})
        return run_id

    async def load_run(self, run_id: str) -> CheckRun:
        doc = await self.store.find_by_id(run_id)
        if not doc:
            raise RunNotFoundError(f"Check run not found: {run_id}")
        return CheckRun.from_doc(doc)

    async def complete_run(
        self,
        run_id: str,
        issues: Sequence[ComplianceIssue],
        warnings: Sequence[ComplianceError] = (),
    ) -> None:
        await self._finish(run_id, build_completed_patch(issues, warnings))
        logger.info(
            "Check run %s COMPLETED: %d issues, %d warnings", run_id, len(issues), len(warnings),
            extra={"run_id": run_id},
        )

    async def fail_run(self, run_id: str, errors: Sequence[ComplianceError]) -> None:
        patch = build_failed_patch(errors)
        await self._finish(run_id, patch)
        logger.error(
            "Check run %s FAILED: %s - %s", run_id, patch["error_type"], patch["error_message"],
            extra={"run_id": run_id},
        )

    async def _finish(self, run_id: str, patch: dict) -> None:
        try:
            matched = await self.store.update(run_id, patch, expected_status="IN_PROGRESS")
        except Exception as e:
            raise RunPersistenceError(str(e)) from e
        if not matched:
            raise RunStateError(f"Check run {run_id} is missing or no longer IN_PROGRESS")
