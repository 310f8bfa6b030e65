import asyncio
import dataclasses
import json
import re

import pytest

from conftest import COMPLIANT_README, FakeLLM
from storecheck.api_stub.runner import CompliancePipeline
from storecheck.app.errors import GitHubAPIError
from storecheck.db.repositories import InMemoryCheckRunRepo
from storecheck.graph.routers import route_after_validation
from storecheck.tools.github.files import FileCollector

VALID = json.dumps({"isValid": True, "issues": [], "suggestions": []})


class DictSource:
    def __init__(self, files, errors=None):
        self.files = files
        self.errors = errors or {}
        self.fetched = []

    async def fetch_file(self, owner, repo, path, ref=None, credentials=None):
        self.fetched.append(path)
        if path in self.errors:
            raise self.errors[path]
        return self.files.get(path)


class FailingCollector:
    def __init__(self, exc):
        self.exc = exc

    async def collect(self, owner, repo, branch=None, credentials=None):
        raise self.exc


class SlowLLM:
    provider = "slow"

    async def generate(self, prompt, config):
        await asyncio.sleep(5)
        return VALID


def llm_for(settings):
    """Validation says every file is fine; augmentation pinpoints line 1 of each issue."""

    def handler(prompt, config):
        if config == settings.validation_model:
            return VALID
        ids = re.findall(r"^Rule ID: (\S+)$", prompt, re.MULTILINE)
        if config == settings.batch_model:
            return json.dumps([{"ruleId": rid, "lineNumbers": [1], "explanation": "e"} for rid in ids])
        return json.dumps({"lineNumbers": [1], "explanation": "single"})

    return FakeLLM(handler=handler)


def make_pipeline(settings, sleep, *, files=None, errors=None, llm=None, collector=None):
    source = DictSource(files or {}, errors)
    return CompliancePipeline(
        run_store=InMemoryCheckRunRepo(),
        collector=collector or FileCollector(source),
        llm=llm or llm_for(settings),
        settings=settings,
        sleep=sleep,
    )


def test_run_completes_with_augmented_issues(settings, sleep):
    files = {"README.md": "# MyApp\nNo privacy info here."}
    errors = {"LICENSE": GitHubAPIError("GitHub API returned 500 for LICENSE", status=500)}
    pipeline = make_pipeline(settings, sleep, files=files, errors=errors)

    async def scenario():
        run_id = await pipeline.analyze_and_persist("acme", "app", "APPLE_APP_STORE")
        return await pipeline.lifecycle.load_run(run_id), await pipeline.get_result(run_id)

    run, result = asyncio.run(scenario())

    assert run.status == "COMPLETED"
    assert run.ruleset_version == "store_rules_v1"
    assert [w.file for w in run.warnings] == ["LICENSE"]

    ids = [i["ruleId"] for i in result["issues"]]
    assert ids[0] == "AAS-001"
    assert "GEN-001" in ids
    assert all("aiPinpointLocation" in i for i in result["issues"])
    assert result["status"] == "completed"
    assert result["summary"]["totalIssues"] == len(ids)


def test_issue_order_is_rules_then_content(settings, sleep):
    def handler(prompt, config):
        if config == settings.validation_model:
            return json.dumps({"isValid": False, "issues": ["placeholder"], "suggestions": []})
        return "no json"

    files = {"README.md": "# MyApp\nNo privacy info here."}
    pipeline = make_pipeline(settings, sleep, files=files, llm=FakeLLM(handler=handler))

    result = asyncio.run(pipeline.analyze("acme", "app", "APPLE_APP_STORE"))

    ids = [i.rule_id for i in result.issues]
    assert ids[-1] == "CONTENT-README-MD"
    assert all(not rid.startswith("CONTENT-") for rid in ids[:-1])
    assert not any(i.is_augmented for i in result.issues)


def test_clean_repository_skips_augmentation(settings, sleep):
    llm = llm_for(settings)
    files = {"README.md": COMPLIANT_README, "LICENSE": "MIT License"}
    pipeline = make_pipeline(settings, sleep, files=files, llm=llm)

    result = asyncio.run(pipeline.analyze("acme", "app", "BOTH"))

    assert result.issues == []
    assert [c for _, c in llm.calls] == [settings.validation_model]
    assert sleep.waits == []


def test_content_validation_prompt_names_the_store_platforms(settings, sleep):
    llm = llm_for(settings)
    files = {"README.md": COMPLIANT_README, "LICENSE": "MIT License"}

    asyncio.run(make_pipeline(settings, sleep, files=files, llm=llm).analyze("acme", "app", "MOBILE_PLATFORMS"))

    prompt = llm.calls[0][0]
    assert "APPLE_APP_STORE and GOOGLE_PLAY_STORE compliance reviewer" in prompt
    assert "MOBILE_PLATFORMS" not in prompt


def test_collection_failure_marks_run_failed(settings, sleep):
    collector = FailingCollector(GitHubAPIError("GitHub API returned 403", status=403))
    pipeline = make_pipeline(settings, sleep, collector=collector)

    async def scenario():
        run_id = await pipeline.analyze_and_persist("acme", "app", "GOOGLE_PLAY_STORE")
        return await pipeline.lifecycle.load_run(run_id), await pipeline.get_result(run_id)

    run, result = asyncio.run(scenario())

    assert run.status == "FAILED"
    assert run.error_type == "GITHUB_API_ERROR"
    assert run.error_message == "Permission denied to access repository"
    assert run.retryable is False
    assert result["status"] == "failed"
    assert result["issues"] == []
    assert result["errorType"] == "GITHUB_API_ERROR"
    assert result["errorMessage"] == "Permission denied to access repository"
    assert result["retryable"] is False
    assert json.loads(result["errorDetails"])[0]["type"] == "GITHUB_API_ERROR"
    assert result["userMessage"]["title"] == "Permission Denied"


def test_failed_server_error_is_reported_as_retryable(settings, sleep):
    collector = FailingCollector(GitHubAPIError("GitHub API returned 503", status=503))
    pipeline = make_pipeline(settings, sleep, collector=collector)

    async def scenario():
        run_id = await pipeline.analyze_and_persist("acme", "app", "BOTH")
        return await pipeline.get_result(run_id)

    result = asyncio.run(scenario())

    assert result["errorType"] == "GITHUB_API_ERROR"
    assert result["errorMessage"] == "GitHub API server error"
    assert result["retryable"] is True
    assert result["userMessage"]["title"] == "GitHub Service Error"


def test_completed_result_has_no_error_fields(settings, sleep):
    files = {"README.md": COMPLIANT_README, "LICENSE": "MIT License"}
    pipeline = make_pipeline(settings, sleep, files=files)

    async def scenario():
        return await pipeline.get_result(await pipeline.analyze_and_persist("acme", "app", "BOTH"))

    result = asyncio.run(scenario())

    assert result["status"] == "completed"
    assert not {"errorType", "errorMessage", "errorDetails", "retryable", "userMessage"} & set(result)


def test_deadline_marks_run_failed(settings, sleep):
    fast_deadline = dataclasses.replace(settings, pipeline_deadline_s=0.05)
    pipeline = make_pipeline(fast_deadline, sleep, files={"README.md": "# App"}, llm=SlowLLM())

    async def scenario():
        run_id = await pipeline.analyze_and_persist("acme", "app", "APPLE_APP_STORE")
        return await pipeline.lifecycle.load_run(run_id)

    run = asyncio.run(scenario())
    assert run.status == "FAILED"
    assert "deadline" in run.error_details


def test_unknown_check_type_creates_no_run(settings, sleep):
    pipeline = make_pipeline(settings, sleep)
    with pytest.raises(ValueError):
        asyncio.run(pipeline.analyze_and_persist("acme", "app", "WINDOWS_STORE"))
    assert pipeline.lifecycle.store.docs == {}


def test_on_demand_augmentation_leaves_stored_run_alone(settings, sleep):
    files = {"README.md": "# MyApp\nNo privacy info here."}
    pipeline = make_pipeline(settings, sleep, files=files)

    async def scenario():
        run_id = await pipeline.analyze_and_persist("acme", "app", "APPLE_APP_STORE")
        before = await pipeline.lifecycle.store.find_by_id(run_id)
        issue = await pipeline.augment_stored_issue(run_id, "AAS-001")
        missing = await pipeline.augment_stored_issue(run_id, "NOPE-001")
        after = await pipeline.lifecycle.store.find_by_id(run_id)
        return issue, missing, before, after

    issue, missing, before, after = asyncio.run(scenario())

    assert issue.rule_id == "AAS-001"
    assert issue.ai_suggested_fix.explanation == "single"
    assert missing is None
    assert before == after


def test_router_only_augments_when_there_are_issues():
    assert route_after_validation({"rule_issues": [], "content_issues": []}) == "end"
    assert route_after_validation({"rule_issues": ["x"], "content_issues": []}) == "augment"
    assert route_after_validation({"content_issues": ["y"]}) == "augment"


def test_entrypoint_wires_from_settings_and_closes_clients(settings, monkeypatch):
    from storecheck.api_stub import runner

    closed = []

    class FakeMongoClient:
        async def close(self):
            closed.append("mongo")

    class FakeSource(DictSource):
        def __init__(self, *, api_url, default_token):
            super().__init__({"README.md": COMPLIANT_README, "LICENSE": "MIT License"})

        async def aclose(self):
            closed.append("github")

    async def no_indexes(handles):
        return None

    store = InMemoryCheckRunRepo()
    monkeypatch.setattr(runner, "load_dotenv", lambda: None)
    monkeypatch.setattr(runner, "setup_logging", lambda level: None)
    monkeypatch.setattr(runner, "load_settings", lambda: settings)
    monkeypatch.setattr(runner, "connect_mongo", lambda uri, db: {"client": FakeMongoClient(), "check_runs": None})
    monkeypatch.setattr(runner, "ensure_indexes", no_indexes)
    monkeypatch.setattr(runner, "CheckRunRepo", lambda collection: store)
    monkeypatch.setattr(runner, "GitHubFileSource", FakeSource)
    monkeypatch.setattr(runner, "build_llm_client", lambda s: llm_for(s))

    run_id = asyncio.run(runner.analyze_and_persist_compliance("acme", "app", "BOTH"))

    assert store.docs[run_id]["status"] == "COMPLETED"
    assert sorted(closed) == ["github", "mongo"]

    result = runner.run_check(owner="acme", repo="app", check_type="BOTH")
    assert result["status"] == "completed"
    assert len(store.docs) == 2
    assert sorted(closed) == ["github", "github", "mongo", "mongo"]
