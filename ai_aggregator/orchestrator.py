"""
AI Aggregator Orchestrator – The Async Fan-Out
===============================================
The :class:`Orchestrator` sends one validated prompt to every requested
provider at once and hands back exactly one :class:`ProviderResult` per
provider, in request order.

Pipeline
--------
1. **Validation** — the raw prompt, provider ids and options become a
   :class:`PromptRequest`; nothing is sent if that fails.
2. **Resolution** — requested ids are matched against the adapters that
   were configured at start-up.  Ids without an adapter are dropped.
3. **Parallel Inference** — ``asyncio.gather()`` runs every call under its
   own ``asyncio.wait_for`` deadline.  The gather is a full join: it only
   returns once every call has succeeded, failed or timed out.
4. **Scoring** (:meth:`Orchestrator.compare` only) — the
   :class:`ScoringEngine` scores, ranks and summarises the results.

Isolation
---------
A provider failure never escapes its own task.  Exceptions are turned into
``failed`` results and deadline expiry into ``timeout`` results, so one slow
or broken vendor cannot affect its siblings.  There is no retry.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from ai_aggregator.errors import NoProvidersAvailable, ProviderTimeout
from ai_aggregator.observer import Event, EventBus, EventType, LoggingObserver
from ai_aggregator.providers.base import ProviderAdapter
from ai_aggregator.registry import ProviderRegistry
from ai_aggregator.schemas import (
    ComparisonReport,
    GenerationOptions,
    PromptRequest,
    ProviderId,
    ProviderResult,
    ResultStatus,
    TokenUsage,
)
from ai_aggregator.scoring import ScoringEngine

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


class Orchestrator:
    """Concurrent multi-provider prompt dispatcher.

    Parameters
    ----------
    adapters : Mapping[ProviderId, ProviderAdapter]
        Configured adapters, usually from
        :meth:`ProviderFactory.create_configured`.  Frozen at construction.
    registry : ProviderRegistry
        Static model and sovereignty metadata.
    event_bus : EventBus, optional
        Bus for pipeline events.  A private bus is created if omitted.
    enable_logging_observer : bool
        Attach a :class:`LoggingObserver` to the event bus (default ``True``).
    """

    def __init__(
        self,
        adapters: Mapping[ProviderId, ProviderAdapter],
        registry: ProviderRegistry,
        event_bus: EventBus | None = None,
        enable_logging_observer: bool = True,
    ) -> None:
        self._adapters: Mapping[ProviderId, ProviderAdapter] = MappingProxyType(dict(adapters))
        self._registry = registry

        self._bus = event_bus or EventBus()
        if enable_logging_observer:
            self._bus.subscribe_all(LoggingObserver())

    @property
    def event_bus(self) -> EventBus:
        """Expose the bus so callers can subscribe to pipeline events."""
        return self._bus

    @property
    def adapters(self) -> Mapping[ProviderId, ProviderAdapter]:
        return self._adapters

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    # ------------------------------------------------------------------ #
    #  Model catalogue                                                    #
    # ------------------------------------------------------------------ #

    def get_available_models(self) -> list[dict[str, Any]]:
        """Describe every configured provider that has a registry profile."""
        models: list[dict[str, Any]] = []
        for provider_id, profile in self._registry.items():
            if provider_id not in self._adapters:
                continue
            models.append({
                "id": provider_id.value,
                "name": profile.model.description or provider_id.value,
                "config": profile.config_dict(),
                "sovereignty": profile.sovereignty_dict(),
            })
        return models

    # ------------------------------------------------------------------ #
    #  Stage helpers                                                      #
    # ------------------------------------------------------------------ #

    def _resolve(self, request: PromptRequest) -> list[ProviderId]:
        """Keep the requested ids that have a configured adapter."""
        resolved = [pid for pid in request.providers if pid in self._adapters]
        missing = [pid.value for pid in request.providers if pid not in self._adapters]
        if missing:
            logger.warning("Requested providers not configured (skipped): %s", missing)
        if not resolved:
            raise NoProvidersAvailable(requested=[p.value for p in request.providers])
        return resolved

    async def _call_with_deadline(
        self,
        provider_id: ProviderId,
        prompt: str,
        options: GenerationOptions,
        run_id: str,
    ) -> ProviderResult:
        """Call one adapter under its deadline; never raises."""
        adapter = self._adapters[provider_id]
        started = time.perf_counter()
        try:
            try:
                generated = await asyncio.wait_for(
                    adapter.generate_response(prompt, options),
                    timeout=options.timeout_seconds,
                )
            except asyncio.TimeoutError:
                raise ProviderTimeout(provider_id.value, options.timeout_ms) from None
        except ProviderTimeout as exc:
            result = ProviderResult(
                provider_id=provider_id,
                text=None,
                token_usage=TokenUsage(),
                latency_ms=_elapsed_ms(started),
                status=ResultStatus.TIMEOUT,
                error_message=exc.raw_message,
            )
            self._publish(
                EventType.PROVIDER_TIMEOUT,
                f"{provider_id.value} timed out after {options.timeout_ms} ms",
                {"provider": provider_id.value, "timeout_ms": options.timeout_ms},
                run_id,
            )
            return result
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            result = ProviderResult(
                provider_id=provider_id,
                text=None,
                token_usage=TokenUsage(),
                latency_ms=_elapsed_ms(started),
                status=ResultStatus.FAILED,
                error_message=message,
            )
            self._publish(
                EventType.PROVIDER_FAILED,
                f"{provider_id.value} failed: {type(exc).__name__}: {message[:120]}",
                {"provider": provider_id.value, "error": message[:200]},
                run_id,
            )
            return result

        result = ProviderResult(
            provider_id=provider_id,
            text=generated.text,
            token_usage=generated.tokens,
            latency_ms=_elapsed_ms(started),
            status=ResultStatus.SUCCESS,
        )
        self._publish(
            EventType.PROVIDER_RESPONSE,
            f"Got response from {provider_id.value} "
            f"({len(generated.text)} chars, {result.latency_ms} ms)",
            {
                "provider": provider_id.value,
                "chars": len(generated.text),
                "latency_ms": result.latency_ms,
                "tokens": generated.tokens.total,
            },
            run_id,
        )
        return result

    async def _fan_out(self, request: PromptRequest, run_id: str) -> list[ProviderResult]:
        provider_ids = self._resolve(request)

        logger.info(
            "Aggregation run_id=%s started for prompt=%r",
            run_id, request.text[:80],
        )
        self._publish(
            EventType.AGGREGATION_STARTED,
            f"Querying {len(provider_ids)} providers",
            {
                "providers": [p.value for p in provider_ids],
                "options": request.options.to_dict(),
            },
            run_id,
        )

        t0 = time.perf_counter()
        results = await asyncio.gather(
            *(
                self._call_with_deadline(pid, request.text, request.options, run_id)
                for pid in provider_ids
            )
        )
        elapsed = _elapsed_ms(t0)

        ok = sum(1 for r in results if r.status is ResultStatus.SUCCESS)
        if ok == 0:
            logger.error(
                "All %d providers failed. Errors:\n  %s",
                len(results),
                "\n  ".join(f"{r.provider_id.value}: {r.error_message}" for r in results),
            )
        self._publish(
            EventType.AGGREGATION_COMPLETE,
            f"{ok}/{len(results)} providers succeeded in {elapsed} ms",
            {"successful": ok, "total": len(results), "elapsed_ms": elapsed},
            run_id,
        )
        return list(results)

    def _publish(
        self, event_type: EventType, message: str, payload: dict[str, Any], run_id: str
    ) -> None:
        if self._bus:
            self._bus.publish(Event(event_type, payload=payload, message=message, run_id=run_id))

    # ------------------------------------------------------------------ #
    #  Main entry points                                                  #
    # ------------------------------------------------------------------ #

    async def aggregate(
        self,
        prompt_text: str,
        provider_ids: Iterable[str | ProviderId],
        options: dict[str, Any] | GenerationOptions | None = None,
    ) -> list[ProviderResult]:
        """Send *prompt_text* to every requested provider concurrently.

        Parameters
        ----------
        prompt_text : str
            The user's prompt; stripped before validation.
        provider_ids : iterable of str or ProviderId
            Providers to query.  Duplicates are collapsed.
        options : dict or GenerationOptions, optional
            ``temperature``, ``max_tokens`` and ``timeout_ms``.

        Returns
        -------
        list[ProviderResult]
            One result per resolved provider, in request order.

        Raises
        ------
        ValidationError
            Invalid prompt, options or provider id.  Nothing is sent.
        NoProvidersAvailable
            None of the requested providers is configured.
        """
        request = PromptRequest.create(prompt_text, provider_ids, options)
        return await self._fan_out(request, uuid.uuid4().hex[:12])

    async def compare(
        self,
        prompt_text: str,
        provider_ids: Iterable[str | ProviderId],
        options: dict[str, Any] | GenerationOptions | None = None,
        scoring_engine: ScoringEngine | None = None,
    ) -> ComparisonReport:
        """Aggregate, then score, rank and summarise the responses."""
        t0 = time.perf_counter()
        request = PromptRequest.create(prompt_text, provider_ids, options)
        run_id = uuid.uuid4().hex[:12]

        results = await self._fan_out(request, run_id)

        engine = scoring_engine or ScoringEngine(self._registry, event_bus=self._bus)
        scored = engine.score_all_responses(results, request.text)
        summary = engine.generate_comparative_summary(scored)
        matrix = engine.calculate_similarity_matrix(scored)

        return ComparisonReport(
            prompt=request,
            responses=tuple(scored),
            summary=summary,
            similarity_matrix=matrix,
            processing_time_ms=_elapsed_ms(t0),
            run_id=run_id,
        )
