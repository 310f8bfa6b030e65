# storecheck/llms/providers/gemini_client.py
from __future__ import annotations

import os
from typing import Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from storecheck.app.errors import ConfigError, LLMProviderError
from storecheck.app.settings import ModelConfig


class GeminiTextClient:
    """
    Async Gemini text generation wrapper.
    Uses the Gemini API with an API key, or Vertex AI with ADC when only PROJECT_ID is set.
    """

    provider = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        project_id: Optional[str] = None,
        location: Optional[str] = None,
        client: Optional[genai.Client] = None,
    ):
        if client is not None:
            self.client = client
            return

        self.api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        self.project_id = project_id or os.getenv("PROJECT_ID")
        self.location = location or os.getenv("VERTEX_LOCATION", "us-central1")

        if self.api_key:
            self.client = genai.Client(api_key=self.api_key)
        elif self.project_id:
            self.client = genai.Client(
                vertexai=True,
                project=self.project_id,
                location=self.location,
            )
        else:
            raise ConfigError("Either GEMINI_API_KEY or PROJECT_ID (Vertex AI with ADC) must be set")

    async def generate(self, prompt: str, config: ModelConfig) -> str:
        gen_config = types.GenerateContentConfig(
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
        )
        try:
            resp = await self.client.aio.models.generate_content(
                model=config.model,
                contents=prompt,
                config=gen_config,
            )
        except genai_errors.APIError as e:
            raise LLMProviderError(
                f"Gemini API error {e.code} {e.status or ''}: {e.message or e}".strip(),
                provider=self.provider,
                status=e.code,
            ) from e
        except httpx.TransportError as e:
            raise LLMProviderError(
                f"Gemini service unavailable: {e}",
                provider=self.provider,
            ) from e

        return resp.text or ""
