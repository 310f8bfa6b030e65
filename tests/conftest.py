from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple

import pytest

from storecheck.app.settings import ModelConfig, Settings
from storecheck.tools.compliance.checks import freeze_snapshot
from storecheck.tools.github.files import CANDIDATE_FILES

COMPLIANT_README = """# MyApp
MyApp is a habit tracker that helps people build routines with reminders, streaks and weekly progress summaries.

Privacy policy: https://example.com/privacy
We describe our data collection practices and the third-party services we rely on in the privacy policy.
Data safety: all data is encrypted at rest.
Permissions: the app requests the notification permission to send reminders.
Content rating: suitable for all ages.
Terms of service: https://example.com/terms
"""


class FakeLLM:
    """
    Scripted LLM client. Either pops `responses` in order or delegates to
    `handler(prompt, config)`. Exceptions in the script are raised.
    """

    provider = "fake"

    def __init__(self, responses: Optional[List[Any]] = None, handler: Optional[Callable[..., Any]] = None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls: List[Tuple[str, ModelConfig]] = []

    async def generate(self, prompt: str, config: ModelConfig) -> str:
        self.calls.append((prompt, config))
        if self.handler is not None:
            result = self.handler(prompt, config)
        elif self.responses:
            result = self.responses.pop(0)
        else:
            raise RuntimeError("no scripted response left")
        if isinstance(result, BaseException):
            raise result
        return result


class RecordingSleep:
    def __init__(self) -> None:
        self.waits: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


def snapshot(present: Optional[dict] = None):
    """Every candidate path, absent unless given in `present`."""
    files = {p: None for p in CANDIDATE_FILES}
    files.update(present or {})
    return freeze_snapshot(files)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        mongo_uri="mongodb://localhost:27017",
        mongo_db="storecheck_test",
        llm_call_timeout_s=5.0,
        pipeline_deadline_s=30.0,
    )


@pytest.fixture
def model_config() -> ModelConfig:
    return ModelConfig("fake-model", 0.0, 512)
