from __future__ import annotations
import os
from dataclasses import dataclass, field

from storecheck.app.errors import ConfigError


def _get_env(name: str, default: str | None = None) -> str:
    v = os.getenv(name, default)
    if v is None or v == "":
        raise ConfigError(f"Missing required env var: {name}")
    return v


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"Env var {name} must be a number, got {raw!r}") from e


def _get_int(name: str, default: int) -> int:
    return int(_get_float(name, float(default)))


@dataclass(frozen=True)
class ModelConfig:
    """Model + sampling settings for one LLM call-site."""
    model: str
    temperature: float = 0.2
    max_output_tokens: int = 4096


@dataclass(frozen=True)
class Settings:
    # Mongo
    mongo_uri: str
    mongo_db: str

    # LLM provider ("gemini" | "cerebras")
    llm_provider: str = "gemini"
    gemini_api_key: str | None = None
    cerebras_api_key: str | None = None

    # Per call-site model configs
    batch_model: ModelConfig = field(default_factory=lambda: ModelConfig("gemini-2.5-flash", 0.2, 8192))
    individual_model: ModelConfig = field(default_factory=lambda: ModelConfig("gemini-2.5-flash", 0.3, 2048))
    validation_model: ModelConfig = field(default_factory=lambda: ModelConfig("gemini-2.5-flash", 0.1, 1024))

    # GitHub
    github_token: str | None = None
    github_api_url: str = "https://api.github.com"

    # Augmentation / retry discipline
    augment_batch_size: int = 5
    augment_batch_delay_s: float = 1.0
    llm_max_retries: int = 3
    llm_initial_delay_s: float = 1.0
    llm_call_timeout_s: float = 60.0
    pipeline_deadline_s: float = 600.0

    log_level: str = "INFO"


def _model_config(prefix: str, default_model: str, default_temp: float, default_tokens: int) -> ModelConfig:
    return ModelConfig(
        model=os.getenv(f"{prefix}_MODEL", default_model),
        temperature=_get_float(f"{prefix}_TEMPERATURE", default_temp),
        max_output_tokens=_get_int(f"{prefix}_MAX_TOKENS", default_tokens),
    )


def load_settings() -> Settings:
    provider = os.getenv("LLM_PROVIDER", "gemini").lower().strip()
    if provider not in {"gemini", "cerebras"}:
        raise ConfigError(f"Unsupported LLM_PROVIDER: {provider}")

    default_model = "gemini-2.5-flash" if provider == "gemini" else "llama3.1-8b"

    return Settings(
        mongo_uri=_get_env("MONGO_URI"),
        mongo_db=os.getenv("MONGO_DB", "storecheck"),
        llm_provider=provider,
        gemini_api_key=os.getenv("GEMINI_API_KEY"),
        cerebras_api_key=os.getenv("CEREBRAS_API_KEY"),
        batch_model=_model_config("AUGMENT_BATCH", default_model, 0.2, 8192),
        individual_model=_model_config("AUGMENT_INDIVIDUAL", default_model, 0.3, 2048),
        validation_model=_model_config("CONTENT_VALIDATION", default_model, 0.1, 1024),
        github_token=os.getenv("GITHUB_TOKEN"),
        github_api_url=os.getenv("GITHUB_API_URL", "https://api.github.com"),
        augment_batch_size=_get_int("AUGMENT_BATCH_SIZE", 5),
        augment_batch_delay_s=_get_float("AUGMENT_BATCH_DELAY_S", 1.0),
        llm_max_retries=_get_int("LLM_MAX_RETRIES", 3),
        llm_initial_delay_s=_get_float("LLM_INITIAL_DELAY_S", 1.0),
        llm_call_timeout_s=_get_float("LLM_CALL_TIMEOUT_S", 60.0),
        pipeline_deadline_s=_get_float("PIPELINE_DEADLINE_S", 600.0),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
