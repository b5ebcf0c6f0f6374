"""
OpenAI-Compatible Adapter
==========================
Mistral and the Hugging Face inference router both expose an
OpenAI-compatible ``/chat/completions`` endpoint, so they share one async
wrapper around the ``openai`` Python SDK with a vendor ``base_url``.
"""

from __future__ import annotations

import os
from typing import Any

import openai

from ai_aggregator.providers.base import ProviderAdapter
from ai_aggregator.schemas import GenerationOptions


class OpenAICompatibleAdapter(ProviderAdapter):
    """Chat-completions adapter for any OpenAI-compatible vendor.

    Subclasses set :attr:`default_base_url`, :attr:`base_url_env` and
    :attr:`default_model`.

    Parameters
    ----------
    api_key : str, optional
        Falls back to the subclass's ``api_key_env`` variables.
    model : str, optional
        Model identifier (default :attr:`default_model`).
    base_url : str, optional
        Falls back to ``base_url_env`` then :attr:`default_base_url`.
    """

    default_base_url: str = ""
    base_url_env: str = ""
    default_model: str = ""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        super().__init__(api_key=api_key, model=model or self.default_model)
        self._base_url = (
            base_url
            or (os.getenv(self.base_url_env, "") if self.base_url_env else "")
            or self.default_base_url
        )
        self._client = openai.AsyncOpenAI(
            api_key=self._api_key or "unset",
            base_url=self._base_url,
        )

    async def _call(
        self, prompt: str, options: GenerationOptions
    ) -> tuple[str, dict[str, Any]]:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            temperature=options.temperature,
            max_tokens=options.max_tokens,
        )
        if not response.choices:
            return "", {"model": response.model}
        choice = response.choices[0]
        meta: dict[str, Any] = {
            "finish_reason": choice.finish_reason,
            "model": response.model,
        }
        if response.usage:
            meta["usage"] = {
                "input": response.usage.prompt_tokens,
                "output": response.usage.completion_tokens,
                "total": response.usage.total_tokens,
            }
        return choice.message.content or "", meta
