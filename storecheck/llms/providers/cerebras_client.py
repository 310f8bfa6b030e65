from __future__ import annotations

import os
from typing import Optional

from cerebras.cloud.sdk import APIConnectionError, APIStatusError, AsyncCerebras

from storecheck.app.errors import LLMProviderError
from storecheck.app.settings import ModelConfig


def _retry_after(e: APIStatusError) -> Optional[int]:
    raw = e.response.headers.get("retry-after") if e.response is not None else None
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None


class CerebrasLLM:
    """
    Wrapper around the async Cerebras Cloud SDK.
    SDK-level retries are disabled; the augmentation retry policy owns them.
    """

    provider = "cerebras"

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncCerebras] = None):
        self.api_key = api_key or os.environ.get("CEREBRAS_API_KEY")
        self.client = client or AsyncCerebras(api_key=self.api_key, max_retries=0)

    async def generate(self, prompt: str, config: ModelConfig) -> str:
        """
        Non-streaming chat completion with a single user message.
        """
        try:
            resp = await self.client.chat.completions.create(
                model=config.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=config.temperature,
                max_completion_tokens=config.max_output_tokens,
                stream=False,
            )
        except APIStatusError as e:
            raise LLMProviderError(
                f"Cerebras API error {e.status_code}: {e.message}",
                provider=self.provider,
                status=e.status_code,
                retry_after=_retry_after(e),
            ) from e
        except APIConnectionError as e:
            raise LLMProviderError(
                f"Cerebras service unavailable: {e}",
                provider=self.provider,
            ) from e
        return resp.choices[0].message.content or ""
