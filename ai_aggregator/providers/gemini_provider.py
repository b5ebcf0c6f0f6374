"""
Google Provider – Gemini
=========================
Async wrapper around the ``google-generativeai`` SDK.
"""

from __future__ import annotations

import asyncio
from typing import Any

import google.generativeai as genai

from ai_aggregator.providers.base import ProviderAdapter
from ai_aggregator.providers.factory import register
from ai_aggregator.schemas import GenerationOptions, ProviderId


@register(ProviderId.GEMINI)
class GeminiAdapter(ProviderAdapter):
    """Strategy implementation for Google Gemini.

    Parameters
    ----------
    api_key : str, optional
        Falls back to ``GOOGLE_GEMINI_API_KEY`` then ``GOOGLE_API_KEY``.
    model : str
        Model identifier (default ``"gemini-2.5-flash"``).
    """

    api_key_env = ("GOOGLE_GEMINI_API_KEY", "GOOGLE_API_KEY")

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        super().__init__(api_key=api_key, model=model or "gemini-2.5-flash")
        if self._api_key:
            genai.configure(api_key=self._api_key)
        self._client = genai.GenerativeModel(self._model)

    async def _call(
        self, prompt: str, options: GenerationOptions
    ) -> tuple[str, dict[str, Any]]:
        # google-generativeai uses a sync API; run in a thread executor.
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(
            None,
            lambda: self._client.generate_content(
                prompt,
                generation_config=genai.GenerationConfig(
                    temperature=options.temperature,
                    max_output_tokens=options.max_tokens,
                ),
            ),
        )
        text = response.text or ""
        meta: dict[str, Any] = {
            "model": self._model,
            "candidates": len(response.candidates) if response.candidates else 0,
        }
        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            meta["usage"] = {
                "input": getattr(usage, "prompt_token_count", 0),
                "output": getattr(usage, "candidates_token_count", 0),
                "total": getattr(usage, "total_token_count", 0),
            }
        return text, meta
