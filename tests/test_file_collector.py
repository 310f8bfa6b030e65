import asyncio
import base64

import httpx
import pytest

from storecheck.app.errors import GitHubAPIError
from storecheck.schemas.compliance_schema import ComplianceErrorType as T
from storecheck.tools.github.files import CANDIDATE_FILES, FileCollector, GitHubFileSource


def _contents(text):
    return {"type": "file", "encoding": "base64", "content": base64.b64encode(text.encode()).decode()}


def make_source(routes, seen=None):
    """routes: path -> (status, json) or an exception to raise."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        path = request.url.path.split("/contents/", 1)[1]
        route = routes.get(path, (404, {"message": "Not Found"}))
        if isinstance(route, Exception):
            raise route
        status, body = route
        return httpx.Response(status, json=body)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitHubFileSource(api_url="https://api.github.test", default_token="app-token", client=client)


def test_fetch_decodes_content_and_sends_auth():
    seen = []
    source = make_source({"README.md": (200, _contents("# Hello"))}, seen)

    text = asyncio.run(source.fetch_file("acme", "app", "README.md", "main", credentials="user-token"))

    assert text == "# Hello"
    assert seen[0].headers["Authorization"] == "Bearer user-token"
    assert seen[0].url.params["ref"] == "main"


def test_missing_file_and_directory_are_absent():
    source = make_source({"docs": (200, [{"name": "a.md"}]), "LICENSE": (200, {"type": "dir"})})

    assert asyncio.run(source.fetch_file("acme", "app", "README.md")) is None
    assert asyncio.run(source.fetch_file("acme", "app", "docs")) is None
    assert asyncio.run(source.fetch_file("acme", "app", "LICENSE")) is None


def test_error_status_raises_with_status():
    source = make_source({"README.md": (403, {"message": "Forbidden"})})

    with pytest.raises(GitHubAPIError) as info:
        asyncio.run(source.fetch_file("acme", "app", "README.md"))
    assert info.value.status == 403


def test_collector_absorbs_per_file_failures():
    routes = {
        "README.md": (200, _contents("# App")),
        "package.json": (200, _contents('{"name": "app"}')),
        "LICENSE": (502, {"message": "Bad Gateway"}),
        "Info.plist": httpx.ConnectError("connection reset"),
    }
    collector = FileCollector(make_source(routes))

    collected = asyncio.run(collector.collect("acme", "app", "main"))

    assert set(collected.files) == set(CANDIDATE_FILES)
    assert collected.files["README.md"] == "# App"
    assert collected.files["LICENSE"] is None
    assert collected.files["Info.plist"] is None
    assert collected.present_count == 2

    by_file = {e.file: e for e in collected.errors}
    assert set(by_file) == {"LICENSE", "Info.plist"}
    assert by_file["LICENSE"].type == T.GITHUB_API_ERROR
    assert "502" in by_file["LICENSE"].details
    assert by_file["Info.plist"].message == "Network error connecting to GitHub"


def test_rate_limited_fetch_is_reported():
    routes = {"README.md": (429, {"message": "API rate limit exceeded"})}
    collected = asyncio.run(FileCollector(make_source(routes)).collect("acme", "app"))

    assert [e.type for e in collected.errors] == [T.RATE_LIMIT]
    assert collected.present_count == 0
