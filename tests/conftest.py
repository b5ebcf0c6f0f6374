"""
Shared fixtures for the AI Aggregator test suite.
"""
from __future__ import annotations

import asyncio
from typing import Any

import pytest

from ai_aggregator.observer import Event, EventBus, EventRecorder
from ai_aggregator.orchestrator import Orchestrator
from ai_aggregator.providers.base import ProviderAdapter
from ai_aggregator.registry import ProviderRegistry, build_default_registry
from ai_aggregator.schemas import GenerationOptions, ProviderId


# ---------------------------------------------------------------------------
# Mock adapters – canned behaviour, no network calls
# ---------------------------------------------------------------------------

class MockAdapter(ProviderAdapter):
    """A deterministic adapter for testing. Returns pre-set text."""

    def __init__(
        self,
        provider_id: ProviderId,
        response_text: str = "Mock response.",
        latency: float = 0.01,
        usage: dict[str, int] | None = None,
    ) -> None:
        super().__init__(api_key="test-key", model=f"mock-{provider_id.value}")
        self.provider_id = provider_id
        self._response_text = response_text
        self._latency = latency
        self._usage = usage
        self.call_count = 0
        self.last_prompt: str | None = None
        self.last_options: GenerationOptions | None = None

    async def _call(self, prompt: str, options: GenerationOptions) -> tuple[str, dict[str, Any]]:
        self.call_count += 1
        self.last_prompt = prompt
        self.last_options = options
        await asyncio.sleep(self._latency)
        meta: dict[str, Any] = {"mock": True}
        if self._usage:
            meta["usage"] = self._usage
        return self._response_text, meta


class FailingAdapter(ProviderAdapter):
    """Raises mid-call, like a vendor returning an HTTP error."""

    def __init__(self, provider_id: ProviderId, message: str = "boom", latency: float = 0.0) -> None:
        super().__init__(api_key="test-key")
        self.provider_id = provider_id
        self._message = message
        self._latency = latency
        self.call_count = 0

    async def _call(self, prompt: str, options: GenerationOptions) -> tuple[str, dict[str, Any]]:
        self.call_count += 1
        await asyncio.sleep(self._latency)
        raise RuntimeError(self._message)


class HangingAdapter(ProviderAdapter):
    """Never answers; records whether the deadline cancelled it."""

    def __init__(self, provider_id: ProviderId) -> None:
        super().__init__(api_key="test-key")
        self.provider_id = provider_id
        self.cancelled = False

    async def _call(self, prompt: str, options: GenerationOptions) -> tuple[str, dict[str, Any]]:
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return "never", {}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def registry() -> ProviderRegistry:
    return build_default_registry()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def captured_events(event_bus: EventBus) -> list[Event]:
    recorder = EventRecorder()
    event_bus.subscribe_all(recorder)
    return recorder.events


@pytest.fixture
def make_orchestrator(registry: ProviderRegistry, event_bus: EventBus):
    """Build an orchestrator from adapter instances keyed by their own id."""

    def _make(*adapters: ProviderAdapter) -> Orchestrator:
        return Orchestrator(
            {a.provider_id: a for a in adapters},
            registry,
            event_bus=event_bus,
            enable_logging_observer=False,
        )

    return _make


@pytest.fixture
def quantum_answers() -> dict[ProviderId, str]:
    """Realistic answers to "Explain quantum computing"."""
    return {
        ProviderId.GEMINI: (
            "Quantum computing uses qubits, which can exist in a superposition of "
            "states. By exploiting superposition and entanglement, a quantum "
            "computer can explore many computational paths at once and solve "
            "certain problems much faster than classical computers."
        ),
        ProviderId.MISTRAL: (
            "Quantum computing is a model of computation based on qubits. Unlike "
            "classical bits, qubits use superposition and entanglement, which lets "
            "quantum algorithms such as Shor's algorithm solve specific problems "
            "far more efficiently than classical computing."
        ),
        ProviderId.COHERE: (
            "A quantum computer manipulates qubits with quantum gates. Measurement "
            "collapses the superposition into a classical result."
        ),
    }
