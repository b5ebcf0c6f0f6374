"""
Hugging Face Provider
======================
Open-weights models served by the Hugging Face inference router, which
speaks the OpenAI chat-completions protocol.
"""

from __future__ import annotations

from ai_aggregator.providers.factory import register
from ai_aggregator.providers.openai_compat import OpenAICompatibleAdapter
from ai_aggregator.schemas import ProviderId


@register(ProviderId.HUGGINGFACE)
class HuggingFaceAdapter(OpenAICompatibleAdapter):
    """Strategy implementation for Hugging Face (``HUGGINGFACE_API_KEY``).

    The router does not always report usage; missing counts are estimated
    by :meth:`ProviderAdapter.generate_response`.
    """

    api_key_env = ("HUGGINGFACE_API_KEY", "HF_TOKEN")
    base_url_env = "HUGGINGFACE_BASE_URL"
    default_base_url = "https://router.huggingface.co/v1"
    default_model = "meta-llama/Llama-3.2-3B-Instruct"
