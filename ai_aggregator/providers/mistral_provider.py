"""
Mistral Provider
=================
Mistral's La Plateforme API through the shared OpenAI-compatible adapter.
"""

from __future__ import annotations

from ai_aggregator.providers.factory import register
from ai_aggregator.providers.openai_compat import OpenAICompatibleAdapter
from ai_aggregator.schemas import ProviderId


@register(ProviderId.MISTRAL)
class MistralAdapter(OpenAICompatibleAdapter):
    """Strategy implementation for Mistral AI (``MISTRAL_API_KEY``)."""

    api_key_env = ("MISTRAL_API_KEY",)
    base_url_env = "MISTRAL_BASE_URL"
    default_base_url = "https://api.mistral.ai/v1"
    default_model = "mistral-small-latest"
