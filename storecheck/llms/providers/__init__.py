from __future__ import annotations

"""
Providers (Gemini / Cerebras)
"""

from typing import TYPE_CHECKING

from storecheck.llms.providers import base, cerebras_client, gemini_client

if TYPE_CHECKING:
    from storecheck.app.settings import Settings
    from storecheck.llms.providers.base import LLMClient


def build_llm_client(settings: "Settings") -> "LLMClient":
    if settings.llm_provider == "cerebras":
        return cerebras_client.CerebrasLLM(api_key=settings.cerebras_api_key)
    return gemini_client.GeminiTextClient(api_key=settings.gemini_api_key)


__all__ = [
    "base",
    "build_llm_client",
    "cerebras_client",
    "gemini_client",
]
