from __future__ import annotations

from typing import Protocol

from storecheck.app.settings import ModelConfig


class LLMClient(Protocol):
    """Text-generation contract shared by every provider wrapper."""

    provider: str

    async def generate(self, prompt: str, config: ModelConfig) -> str:
        ...
