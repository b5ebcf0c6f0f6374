"""
Provider Factory – Registration & Creation
===========================================
Uses a class-level registry so each concrete adapter can self-register
with a ``@register(ProviderId.X)`` decorator.  Callers build the adapter map
once at start-up with :meth:`ProviderFactory.create_configured` instead of
dispatching on provider names per call.
"""

from __future__ import annotations

import logging
from typing import Any, Type

from ai_aggregator.providers.base import ProviderAdapter
from ai_aggregator.registry import ProviderRegistry
from ai_aggregator.schemas import ProviderId

logger = logging.getLogger(__name__)

_REGISTRY: dict[ProviderId, Type[ProviderAdapter]] = {}


def register(provider_id: ProviderId):
    """Class decorator that registers a :class:`ProviderAdapter` subclass."""

    def decorator(cls: Type[ProviderAdapter]):
        cls.provider_id = provider_id
        _REGISTRY[provider_id] = cls
        return cls

    return decorator


class ProviderFactory:
    """Factory for constructing :class:`ProviderAdapter` instances by id."""

    @staticmethod
    def available_ids() -> list[ProviderId]:
        """Return the ids of all registered adapter classes."""
        return list(_REGISTRY.keys())

    @staticmethod
    def create(provider_id: ProviderId | str, **kwargs: Any) -> ProviderAdapter:
        """Instantiate a registered adapter.

        Raises
        ------
        KeyError
            If *provider_id* has no registered adapter.
        """
        try:
            key = ProviderId(provider_id)
        except ValueError:
            key = None
        if key not in _REGISTRY:
            raise KeyError(
                f"Unknown provider '{provider_id}'. "
                f"Available: {[p.value for p in ProviderFactory.available_ids()]}"
            )
        return _REGISTRY[key](**kwargs)

    @staticmethod
    def create_configured(
        registry: ProviderRegistry | None = None,
        **provider_configs: dict[str, Any],
    ) -> dict[ProviderId, ProviderAdapter]:
        """Create every registered adapter that has a credential.

        Parameters
        ----------
        registry : ProviderRegistry, optional
            Supplies the default model identifier for each adapter.
        **provider_configs
            Mapping of ``provider_id -> {kwarg: value, …}``.

        Returns
        -------
        dict[ProviderId, ProviderAdapter]
            Adapters without a credential are skipped, so the result may be
            empty.
        """
        adapters: dict[ProviderId, ProviderAdapter] = {}
        for provider_id, cls in _REGISTRY.items():
            cfg = dict(provider_configs.get(provider_id.value, {}))
            profile = registry.get(provider_id) if registry is not None else None
            if profile is not None:
                cfg.setdefault("model", profile.model.model_identifier)
            try:
                adapter = cls(**cfg)
            except Exception:
                logger.warning(
                    "Skipping provider '%s' (instantiation failed)",
                    provider_id.value, exc_info=True,
                )
                continue
            if not adapter.is_configured:
                logger.info("Provider '%s' has no API key; not registered", provider_id.value)
                continue
            adapters[provider_id] = adapter
        logger.info("Active AI providers: %s", [p.value for p in adapters])
        return adapters
