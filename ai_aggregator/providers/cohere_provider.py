"""
Cohere Provider – Command R
============================
Async wrapper around Cohere's ``/v1/chat`` HTTP API via ``httpx``.
"""

from __future__ import annotations

import os
from typing import Any

import httpx

from ai_aggregator.providers.base import ProviderAdapter
from ai_aggregator.providers.factory import register
from ai_aggregator.schemas import GenerationOptions, ProviderId


def _cohere_base_url() -> str:
    """Resolve the Cohere base URL from env or default."""
    return os.getenv("COHERE_BASE_URL", "https://api.cohere.com")


@register(ProviderId.COHERE)
class CohereAdapter(ProviderAdapter):
    """Strategy implementation for Cohere Command models.

    Parameters
    ----------
    api_key : str, optional
        Falls back to the ``COHERE_API_KEY`` environment variable.
    model : str
        Model tag (default ``"command-r-08-2024"``).
    base_url : str, optional
        Cohere endpoint (default from ``COHERE_BASE_URL`` or the public API).
    transport : httpx.AsyncBaseTransport, optional
        Custom transport, mainly for tests.
    """

    api_key_env = ("COHERE_API_KEY",)

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(api_key=api_key, model=model or "command-r-08-2024")
        self._base_url = (base_url or _cohere_base_url()).rstrip("/")
        self._transport = transport

    async def _call(
        self, prompt: str, options: GenerationOptions
    ) -> tuple[str, dict[str, Any]]:
        payload = {
            "message": prompt,
            "model": self._model,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
        }
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.post(
                f"{self._base_url}/v1/chat", json=payload, headers=headers
            )
            resp.raise_for_status()
            data = resp.json()

        text = data.get("text", "")
        tokens = (data.get("meta") or {}).get("tokens") or {}
        meta: dict[str, Any] = {
            "model": self._model,
            "finish_reason": data.get("finish_reason"),
        }
        if tokens:
            tokens_in = tokens.get("input_tokens") or 0
            tokens_out = tokens.get("output_tokens") or 0
            meta["usage"] = {
                "input": tokens_in,
                "output": tokens_out,
                "total": tokens_in + tokens_out,
            }
        return text, meta
