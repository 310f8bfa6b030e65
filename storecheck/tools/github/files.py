from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import httpx

from storecheck.app.errors import GitHubAPIError
from storecheck.schemas.compliance_schema import ComplianceError, ComplianceErrorType
from storecheck.tools.compliance.checks import FileSnapshot, freeze_snapshot
from storecheck.tools.compliance.error_classifier import categorize_error

logger = logging.getLogger(__name__)

CANDIDATE_FILES: Sequence[str] = (
    "README.md",
    "package.json",
    "app.json",
    "app.config.js",
    "AndroidManifest.xml",
    "Info.plist",
    "manifest.json",
    "privacy-policy.md",
    "PRIVACY.md",
    "LICENSE",
    "terms-of-service.md",
)


class GitHubFileSource:
    """
    Reads files through the GitHub contents API.
    `credentials` is an OAuth / installation access token.
    """

    def __init__(
        self,
        *,
        api_url: str = "https://api.github.com",
        default_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.default_token = default_token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, credentials: Optional[str]) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        token = credentials or self.default_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def fetch_file(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: Optional[str] = None,
        credentials: Optional[str] = None,
    ) -> Optional[str]:
        """
        Return decoded file content, or None when the path does not exist.
        Raises GitHubAPIError for any other failure.
        """
        url = f"{self.api_url}/repos/{owner}/{repo}/contents/{path}"
        params = {"ref": ref} if ref else None
        try:
            resp = await self._client.get(url, params=params, headers=self._headers(credentials))
        except httpx.TransportError as e:
            raise GitHubAPIError(f"Network error fetching {path}: {e}", code=type(e).__name__) from e

        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API returned {resp.status_code} for {path}",
                status=resp.status_code,
                response=resp,
            )

        data = resp.json()
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            return None  # directory listing
        content = data.get("content")
        if content is None:
            return None
        return base64.b64decode(content).decode("utf-8", errors="replace")


@dataclass
class CollectedFiles:
    files: FileSnapshot
    errors: List[ComplianceError] = field(default_factory=list)

    @property
    def present_count(self) -> int:
        return sum(1 for v in self.files.values() if v is not None)


class FileCollector:
    """Fetches the fixed candidate set concurrently; one failure never aborts its siblings."""

    def __init__(self, source: GitHubFileSource, candidates: Sequence[str] = CANDIDATE_FILES):
        self.source = source
        self.candidates = tuple(candidates)

    async def collect(
        self,
        owner: str,
        repo: str,
        branch: Optional[str] = None,
        credentials: Optional[str] = None,
    ) -> CollectedFiles:
        results = await asyncio.gather(
            *(self.source.fetch_file(owner, repo, p, branch, credentials) for p in self.candidates),
            return_exceptions=True,
        )

        files: Dict[str, Optional[str]] = {}
        errors: List[ComplianceError] = []
        for path, res in zip(self.candidates, results):
            if isinstance(res, BaseException):
                if not isinstance(res, Exception):
                    raise res  # cancellation
                err = categorize_error(res, file=path)
                if err.type != ComplianceErrorType.MISSING_FILE:
                    logger.warning(
                        "Error fetching %s: %s", path, err.message,
                        extra={"error_type": err.type.value, "details": err.details},
                    )
                    errors.append(err)
                files[path] = None
            else:
                files[path] = res

        collected = CollectedFiles(files=freeze_snapshot(files), errors=errors)
        logger.info(
            "Fetched %d/%d files for %s/%s", collected.present_count, len(self.candidates), owner, repo,
        )
        return collected
