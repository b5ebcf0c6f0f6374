"""
Provider Adapter – Strategy Interface (Abstract Base)
======================================================
Every LLM vendor is wrapped behind this interface so the orchestrator can
treat them interchangeably (Strategy Pattern).
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Any

from ai_aggregator.errors import ProviderError
from ai_aggregator.schemas import GenerationOptions, GenerationResult, ProviderId, TokenUsage


class ProviderAdapter(ABC):
    """Abstract async LLM provider adapter.

    Subclasses must implement :meth:`_call`, which performs the raw vendor
    request.  The public :meth:`generate_response` wraps ``_call`` with
    uniform error conversion and token accounting.

    Attributes
    ----------
    provider_id : ProviderId
        Canonical provider id; set by the ``@register`` decorator.
    api_key_env : tuple[str, ...]
        Environment variables searched, in order, for the credential.
    """

    provider_id: ProviderId
    api_key_env: tuple[str, ...] = ()

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self._api_key = api_key or self._key_from_env()
        self._model = model

    def _key_from_env(self) -> str:
        for var in self.api_key_env:
            value = os.getenv(var, "")
            if value:
                return value
        return ""

    @property
    def is_configured(self) -> bool:
        """Whether a credential is available for this adapter."""
        return bool(self._api_key)

    @property
    def model(self) -> str | None:
        return self._model

    @abstractmethod
    async def _call(
        self, prompt: str, options: GenerationOptions
    ) -> tuple[str, dict[str, Any]]:
        """Perform the actual vendor call.

        Returns
        -------
        tuple[str, dict]
            ``(generated_text, metadata)``.  ``metadata["usage"]`` may hold
            vendor counts as ``{"input": .., "output": .., "total": ..}``.
        """
        ...

    async def generate_response(
        self, prompt: str, options: GenerationOptions | None = None
    ) -> GenerationResult:
        """Generate a completion for *prompt*.

        Raises
        ------
        ProviderError
            On any vendor-side failure, or when the vendor returns no text.
        """
        options = options or GenerationOptions()
        try:
            text, meta = await self._call(prompt, options)
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(self.provider_id.value, str(exc) or type(exc).__name__) from exc

        if not text or not text.strip():
            raise ProviderError(self.provider_id.value, "empty completion")

        usage = meta.get("usage") or {}
        tokens = TokenUsage.from_counts(
            prompt,
            text,
            input=usage.get("input"),
            output=usage.get("output"),
            total=usage.get("total"),
        )
        return GenerationResult(text=text, tokens=tokens, metadata=meta)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self._model!r}, configured={self.is_configured})"
