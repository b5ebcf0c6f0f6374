"""
Scoring Engine – Multi-Metric Ranking
======================================
Turns the orchestrator's raw :class:`ProviderResult` list into ranked,
explainable :class:`ScoredResponse` values.

Metrics (each 0–100)
--------------------
* **Relevance** — lexical overlap with the prompt (40 pts), a response
  length band (20 pts), and coverage of the prompt's top-5 keywords (40 pts).
* **Similarity** — mean Jaccard similarity with every *other* successful
  response; a lone response has no peers to disagree with and scores 100.
* **Speed** — ``100 × (1 − latency / slowest latency in the batch)``.
* **Sovereignty** — the provider's :class:`SovereigntyScore` total.
* **Composite** — ``0.45·relevance + 0.25·sovereignty + 0.20·similarity +
  0.10·speed``.

Failure policy
--------------
Failed and timed-out results are never dropped: they come back with every
metric set to ``None``.  A metric that raises while scoring one response
degrades to its neutral default (relevance / similarity / speed → 50,
composite → 0) and the rest of the batch is scored normally.

All rounding is half-up so scores do not depend on Python's banker's
rounding.
"""

from __future__ import annotations

import logging
import math
from types import MappingProxyType
from typing import Callable, Mapping, Sequence, TypeVar

import numpy as np
from numpy.typing import NDArray

from ai_aggregator.errors import ScoringError
from ai_aggregator.green_it import GreenITEstimator
from ai_aggregator.observer import Event, EventBus, EventType
from ai_aggregator.registry import ProviderRegistry
from ai_aggregator.schemas import (
    ComparativeSummary,
    GreenImpact,
    ProviderId,
    ProviderResult,
    RankedResponse,
    ResultStatus,
    ScoredResponse,
    SovereigntyScore,
    TextAnalysis,
)
from ai_aggregator.sovereignty import SovereigntyScorer
from ai_aggregator.text_analyzer import TextAnalyzer

logger = logging.getLogger(__name__)

T = TypeVar("T")

COMPOSITE_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "relevance": 0.45,
    "sovereignty": 0.25,
    "similarity": 0.20,
    "speed": 0.10,
})

RELEVANCE_SIMILARITY_POINTS = 40
RELEVANCE_LENGTH_POINTS = 20
RELEVANCE_SHORT_POINTS = 10
RELEVANCE_KEYWORD_POINTS = 40
PROMPT_KEYWORD_LIMIT = 5

DEFAULT_RELEVANCE = 50
DEFAULT_SIMILARITY = 50
DEFAULT_SPEED = 50
DEFAULT_COMPOSITE = 0

UNKNOWN_LOCATION = "UNKNOWN"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def _clamp_score(value: float) -> int:
    return round_half_up(max(0.0, min(100.0, value)))


class ScoringEngine:
    """Score, compare and summarise one request's provider results.

    Parameters
    ----------
    registry : ProviderRegistry
        Provider profiles used for sovereignty and energy lookups.
    analyzer : TextAnalyzer, optional
    sovereignty_scorer : SovereigntyScorer, optional
    green_estimator : GreenITEstimator, optional
        Defaults to an estimator bound to *registry*.
    event_bus : EventBus, optional
        Receives ``RESPONSES_SCORED`` and ``SCORING_DEGRADED`` events.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        analyzer: TextAnalyzer | None = None,
        sovereignty_scorer: SovereigntyScorer | None = None,
        green_estimator: GreenITEstimator | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._registry = registry
        self._analyzer = analyzer or TextAnalyzer()
        self._sovereignty = sovereignty_scorer or SovereigntyScorer()
        self._green = green_estimator or GreenITEstimator(registry)
        self._bus = event_bus

    # ------------------------------------------------------------------ #
    #  Individual metrics                                                 #
    # ------------------------------------------------------------------ #

    def calculate_relevance_score(self, response: str, prompt: str) -> int:
        """Relevance of *response* to *prompt*, 0–100."""
        if not isinstance(response, str) or not isinstance(prompt, str):
            raise ScoringError("relevance needs response and prompt text")

        score = self._analyzer.calculate_similarity(response, prompt) * RELEVANCE_SIMILARITY_POINTS

        words = self._analyzer.count_words(response)
        if 20 < words < 500:
            score += RELEVANCE_LENGTH_POINTS
        elif words >= 10:
            score += RELEVANCE_SHORT_POINTS

        keywords = self._analyzer.extract_keywords(prompt, PROMPT_KEYWORD_LIMIT)
        if keywords:
            lowered = response.lower()
            matches = sum(1 for kw in keywords if kw.word.lower() in lowered)
            score += matches / len(keywords) * RELEVANCE_KEYWORD_POINTS

        return _clamp_score(score)

    def calculate_average_similarity(self, response: str, others: Sequence[str]) -> int:
        """Mean similarity of *response* to its peers, 0–100."""
        if not others:
            return 100
        if not isinstance(response, str):
            raise ScoringError("similarity needs response text")
        sims = [self._analyzer.calculate_similarity(response, other) for other in others]
        return _clamp_score(sum(sims) / len(sims) * 100)

    @staticmethod
    def calculate_speed_score(latency_ms: int, max_latency_ms: int) -> int:
        """Inverse-normalised latency: the slowest call in the batch scores 0."""
        if max_latency_ms <= 0:
            return DEFAULT_SPEED
        if latency_ms < 0:
            raise ScoringError(f"negative latency {latency_ms}")
        return _clamp_score(100 * (1 - latency_ms / max_latency_ms))

    @staticmethod
    def calculate_composite_score(
        relevance: float, sovereignty: float, similarity: float, speed: float
    ) -> int:
        """Fixed-weight blend of the four metrics, 0–100."""
        value = (
            relevance * COMPOSITE_WEIGHTS["relevance"]
            + sovereignty * COMPOSITE_WEIGHTS["sovereignty"]
            + similarity * COMPOSITE_WEIGHTS["similarity"]
            + speed * COMPOSITE_WEIGHTS["speed"]
        )
        return _clamp_score(value)

    # ------------------------------------------------------------------ #
    #  Batch scoring                                                      #
    # ------------------------------------------------------------------ #

    def _guarded(
        self, metric: str, provider_id: ProviderId, fn: Callable[[], T], default: T
    ) -> T:
        try:
            return fn()
        except Exception as exc:
            logger.warning(
                "Scoring %s for %s failed; using default %s",
                metric, provider_id.value, default, exc_info=True,
            )
            if self._bus:
                self._bus.publish(
                    Event(
                        EventType.SCORING_DEGRADED,
                        message=f"{metric} for {provider_id.value} degraded to {default}",
                        payload={
                            "provider": provider_id.value,
                            "metric": metric,
                            "default": default,
                            "error": str(exc)[:200],
                        },
                    )
                )
            return default

    def _sovereignty_for(self, provider_id: ProviderId) -> SovereigntyScore | None:
        profile = self._registry.get(provider_id)
        if profile is None:
            return None
        return self._sovereignty.calculate_sovereignty(profile.sovereignty)

    def _impact_for(self, result: ProviderResult) -> GreenImpact:
        profile = self._registry.get(result.provider_id)
        hosting = profile.sovereignty.hosting_country if profile else "Other"
        return self._green.calculate_impact(result.token_usage, result.provider_id, hosting)

    def score_all_responses(
        self, results: Sequence[ProviderResult], original_prompt: str
    ) -> list[ScoredResponse]:
        """Score every result; output order and length match *results*."""
        success_idx = [i for i, r in enumerate(results) if r.is_success]
        max_latency = max((r.latency_ms for r in results), default=0)

        scored: list[ScoredResponse] = []
        for i, result in enumerate(results):
            pid = result.provider_id
            sovereignty = self._sovereignty_for(pid)
            impact = self._impact_for(result)

            if i not in success_idx:
                scored.append(
                    ScoredResponse(
                        result=result,
                        sovereignty=sovereignty,
                        green_impact=impact,
                        text_analysis=TextAnalysis.empty(),
                    )
                )
                continue

            text = result.text or ""
            peers = [results[j].text or "" for j in success_idx if j != i]

            relevance = self._guarded(
                "relevance", pid,
                lambda: self.calculate_relevance_score(text, original_prompt),
                DEFAULT_RELEVANCE,
            )
            similarity = self._guarded(
                "similarity", pid,
                lambda: self.calculate_average_similarity(text, peers),
                DEFAULT_SIMILARITY,
            )
            speed = self._guarded(
                "speed", pid,
                lambda: self.calculate_speed_score(result.latency_ms, max_latency),
                DEFAULT_SPEED,
            )
            sovereignty_total = sovereignty.total if sovereignty else 0
            composite = self._guarded(
                "composite", pid,
                lambda: self.calculate_composite_score(
                    relevance, sovereignty_total, similarity, speed
                ),
                DEFAULT_COMPOSITE,
            )

            scored.append(
                ScoredResponse(
                    result=result,
                    relevance=relevance,
                    similarity=similarity,
                    speed=speed,
                    composite=composite,
                    sovereignty=sovereignty,
                    green_impact=impact,
                    text_analysis=self._analyzer.analyze(text),
                )
            )

        if self._bus:
            self._bus.publish(
                Event(
                    EventType.RESPONSES_SCORED,
                    message=f"Scored {len(scored)} responses ({len(success_idx)} successful)",
                    payload={
                        "composite": {
                            s.provider_id.value: s.composite for s in scored
                        },
                    },
                )
            )
        return scored

    # ------------------------------------------------------------------ #
    #  Cross-response views                                               #
    # ------------------------------------------------------------------ #

    def _pairwise_similarity(self, texts: Sequence[str]) -> NDArray[np.float64]:
        """Symmetric ``n × n`` Jaccard matrix with a unit diagonal."""
        n = len(texts)
        sims = np.eye(n, dtype=np.float64)
        for i in range(n):
            for j in range(i + 1, n):
                sims[i, j] = sims[j, i] = self._analyzer.calculate_similarity(texts[i], texts[j])
        return sims

    def calculate_similarity_matrix(self, scored: Sequence[ScoredResponse]) -> list[list[int]]:
        """Pairwise similarity (0–100) over successful responses only.

        The diagonal is always 100 and ``matrix[i][j] == matrix[j][i]``.
        """
        texts = [s.text or "" for s in scored if s.is_success]
        if not texts:
            return []
        sims = self._pairwise_similarity(texts)
        matrix = [[_clamp_score(v * 100) for v in row] for row in sims.tolist()]
        for i in range(len(matrix)):
            matrix[i][i] = 100
        return matrix

    def _consensus_level(self, texts: Sequence[str]) -> int:
        n = len(texts)
        if n == 0:
            return 0
        if n == 1:
            return 100
        sims = self._pairwise_similarity(texts)
        upper = sims[np.triu_indices(n, k=1)]
        return _clamp_score(float(upper.mean()) * 100)

    def generate_comparative_summary(self, scored: Sequence[ScoredResponse]) -> ComparativeSummary:
        """Counts, averages, best / worst and consensus for one batch."""
        ok = [s for s in scored if s.is_success]
        total = len(scored)

        distribution: dict[str, int] = {}
        for s in scored:
            location = s.sovereignty.location if s.sovereignty else UNKNOWN_LOCATION
            distribution[location] = distribution.get(location, 0) + 1

        avg_time = round_half_up(sum(s.latency_ms for s in scored) / total) if total else 0
        carbon = round(sum(s.green_impact.carbon_grams for s in scored), 4)
        energy = round(sum(s.green_impact.energy_kwh for s in scored), 6)
        timed_out = sum(1 for s in scored if s.status is ResultStatus.TIMEOUT)

        if not ok:
            return ComparativeSummary(
                total_responses=total,
                successful_responses=0,
                failed_responses=total,
                timed_out_responses=timed_out,
                average_relevance=0,
                average_similarity=0,
                average_sovereignty=0,
                average_composite=0,
                average_response_time_ms=avg_time,
                best_response=None,
                worst_response=None,
                consensus_level=0,
                sovereignty_distribution=distribution,
                total_carbon_grams=carbon,
                total_energy_kwh=energy,
            )

        def mean(values: list[float]) -> int:
            return round_half_up(sum(values) / len(values))

        def composite_of(s: ScoredResponse) -> int:
            return s.composite or 0

        # max()/min() return the first item on ties.
        best = max(ok, key=composite_of)
        worst = min(ok, key=composite_of)

        return ComparativeSummary(
            total_responses=total,
            successful_responses=len(ok),
            failed_responses=total - len(ok),
            timed_out_responses=timed_out,
            average_relevance=mean([s.relevance or 0 for s in ok]),
            average_similarity=mean([s.similarity or 0 for s in ok]),
            average_sovereignty=mean([s.sovereignty.total if s.sovereignty else 0 for s in ok]),
            average_composite=mean([composite_of(s) for s in ok]),
            average_response_time_ms=avg_time,
            best_response=_ranked(best),
            worst_response=_ranked(worst),
            consensus_level=self._consensus_level([s.text or "" for s in ok]),
            sovereignty_distribution=distribution,
            total_carbon_grams=carbon,
            total_energy_kwh=energy,
        )


def _ranked(s: ScoredResponse) -> RankedResponse:
    return RankedResponse(
        provider_id=s.provider_id,
        composite=s.composite,
        relevance=s.relevance,
        sovereignty=s.sovereignty.total if s.sovereignty else None,
    )
