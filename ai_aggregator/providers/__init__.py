"""
Providers package – auto-imports all concrete adapters to trigger
``@register(...)`` decorators.
"""

from ai_aggregator.providers.base import ProviderAdapter
from ai_aggregator.providers.factory import ProviderFactory, register

# Import concrete adapters so they self-register via @register(...)
from ai_aggregator.providers import (  # noqa: F401
    gemini_provider,
    mistral_provider,
    huggingface_provider,
    cohere_provider,
)

__all__ = ["ProviderAdapter", "ProviderFactory", "register"]
