import json
import logging

import pytest

from storecheck.app.errors import ConfigError
from storecheck.app.logging import JsonFormatter
from storecheck.app.settings import load_settings


def test_defaults(monkeypatch):
    monkeypatch.setenv("MONGO_URI", "mongodb://localhost:27017")
    for name in ("LLM_PROVIDER", "AUGMENT_BATCH_SIZE", "AUGMENT_BATCH_MODEL", "LLM_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)

    s = load_settings()

    assert s.llm_provider == "gemini"
    assert s.augment_batch_size == 5
    assert s.augment_batch_delay_s == 1.0
    assert s.llm_max_retries == 3
    assert s.batch_model.model == "gemini-2.5-flash"


def test_per_call_site_model_overrides(monkeypatch):
    monkeypatch.setenv("MONGO_URI", "mongodb://localhost:27017")
    monkeypatch.setenv("LLM_PROVIDER", "cerebras")
    monkeypatch.setenv("AUGMENT_INDIVIDUAL_MODEL", "llama-3.3-70b")
    monkeypatch.setenv("CONTENT_VALIDATION_TEMPERATURE", "0")

    s = load_settings()

    assert s.individual_model.model == "llama-3.3-70b"
    assert s.batch_model.model == "llama3.1-8b"
    assert s.validation_model.temperature == 0.0


def test_invalid_configuration(monkeypatch):
    monkeypatch.delenv("MONGO_URI", raising=False)
    with pytest.raises(ConfigError):
        load_settings()

    monkeypatch.setenv("MONGO_URI", "mongodb://localhost:27017")
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    with pytest.raises(ConfigError):
        load_settings()

    monkeypatch.setenv("LLM_PROVIDER", "gemini")
    monkeypatch.setenv("AUGMENT_BATCH_SIZE", "five")
    with pytest.raises(ConfigError):
        load_settings()


def test_json_formatter_includes_extra_fields():
    record = logging.makeLogRecord({
        "name": "storecheck.test",
        "levelname": "WARNING",
        "msg": "Error fetching %s",
        "args": ("LICENSE",),
        "run_id": "run_abc",
    })
    payload = json.loads(JsonFormatter().format(record))

    assert payload["msg"] == "Error fetching LICENSE"
    assert payload["level"] == "WARNING"
    assert payload["run_id"] == "run_abc"
