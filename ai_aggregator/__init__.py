"""
AI Aggregator Package
=====================
Sends one prompt to several LLM providers at once, then scores and ranks
the answers on relevance, agreement, speed, data sovereignty and carbon
footprint.
"""

from ai_aggregator.errors import (
    AggregatorError,
    NoProvidersAvailable,
    ProviderError,
    ProviderTimeout,
    ValidationError,
)
from ai_aggregator.orchestrator import Orchestrator
from ai_aggregator.registry import ProviderRegistry, build_default_registry
from ai_aggregator.schemas import ComparisonReport, ProviderId, ProviderResult
from ai_aggregator.scoring import ScoringEngine

__all__ = [
    "AggregatorError",
    "ComparisonReport",
    "NoProvidersAvailable",
    "Orchestrator",
    "ProviderError",
    "ProviderId",
    "ProviderRegistry",
    "ProviderResult",
    "ProviderTimeout",
    "ScoringEngine",
    "ValidationError",
    "build_default_registry",
]
