"""
Green-IT Estimator – Energy & Carbon
=====================================
Table-driven estimate of the ecological cost of one LLM response:

1. Energy (kWh) = tokens / 1000 × the provider's kWh-per-1k-token
   coefficient.
2. Carbon (g CO₂) = energy × the hosting location's grid intensity ×
   a time-of-day factor (×1.2 between 18:00 and 22:00 server time).
3. Eco-grade A–E from grams of CO₂ per token, like a nutrition label.
4. Everyday equivalences (car km, phone charges, streaming minutes,
   tree-years) as fixed linear conversions.

These figures are deterministic heuristics, not measurements.
"""

from __future__ import annotations

from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from ai_aggregator.registry import DEFAULT_ENERGY_PER_KTOKEN_KWH, ProviderRegistry
from ai_aggregator.schemas import Equivalences, GreenImpact, ProviderId, TokenUsage

# g CO₂ per kWh by hosting location; "Other" is deliberately conservative.
CARBON_INTENSITY: Mapping[str, float] = MappingProxyType({
    "France": 50.0,
    "EU": 250.0,
    "USA": 380.0,
    "Other": 500.0,
})

PEAK_HOURS = range(18, 22)
TIME_FACTOR_PEAK = 1.2
TIME_FACTOR_NORMAL = 1.0

# (max g CO₂ per token, grade), checked top-down
ECO_GRADES: tuple[tuple[float, str], ...] = (
    (0.0001, "A"),
    (0.0005, "B"),
    (0.001, "C"),
    (0.002, "D"),
)

CAR_G_PER_KM = 120.0
PHONE_CHARGE_G = 8.22
STREAMING_G_PER_MIN = 2.4
TREE_G_PER_YEAR = 21000.0


class GreenITEstimator:
    """Estimate energy and carbon per response.

    Parameters
    ----------
    registry : ProviderRegistry, optional
        Source of per-provider energy coefficients.  Without it every
        provider uses the default coefficient.
    clock : callable, optional
        Returns the current server-local time; injectable for tests.
    """

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._registry = registry
        self._clock = clock

    def energy_coefficient(self, provider_id: ProviderId | str) -> float:
        if self._registry is None:
            return DEFAULT_ENERGY_PER_KTOKEN_KWH
        return self._registry.energy_coefficient(provider_id)

    def time_factor(self) -> float:
        return TIME_FACTOR_PEAK if self._clock().hour in PEAK_HOURS else TIME_FACTOR_NORMAL

    @staticmethod
    def eco_grade(carbon_grams: float, tokens: int) -> str:
        if tokens <= 0:
            return "N/A"
        per_token = carbon_grams / tokens
        for ceiling, grade in ECO_GRADES:
            if per_token <= ceiling:
                return grade
        return "E"

    @staticmethod
    def equivalences(carbon_grams: float) -> Equivalences:
        return Equivalences(
            car_km=round(carbon_grams / CAR_G_PER_KM, 4),
            phone_charges=round(carbon_grams / PHONE_CHARGE_G, 4),
            streaming_minutes=round(carbon_grams / STREAMING_G_PER_MIN, 2),
            trees_per_year=round(carbon_grams / TREE_G_PER_YEAR, 6),
        )

    def calculate_impact(
        self,
        token_usage: TokenUsage,
        provider_id: ProviderId | str,
        hosting_country: str,
    ) -> GreenImpact:
        """Estimate the impact of one response.

        Zero tokens (failed or timed-out calls) yield
        :meth:`GreenImpact.empty` rather than an error.
        """
        tokens = token_usage.total if token_usage else 0
        if tokens <= 0:
            return GreenImpact.empty()

        energy_kwh = tokens / 1000 * self.energy_coefficient(provider_id)
        factor = self.time_factor()
        intensity = CARBON_INTENSITY.get(hosting_country, CARBON_INTENSITY["Other"])
        carbon_grams = energy_kwh * intensity * factor

        return GreenImpact(
            tokens_total=tokens,
            energy_kwh=round(energy_kwh, 6),
            carbon_grams=round(carbon_grams, 4),
            eco_grade=self.eco_grade(carbon_grams, tokens),
            equivalences=self.equivalences(carbon_grams),
            carbon_intensity=intensity,
            time_factor=factor,
            location=hosting_country,
        )

    # ------------------------------------------------------------------ #
    #  Aggregates                                                         #
    # ------------------------------------------------------------------ #

    @staticmethod
    def compare_impacts(first: GreenImpact, second: GreenImpact) -> dict[str, Any]:
        """How much carbon switching from *first* to *second* would save."""
        energy_saved = first.energy_kwh - second.energy_kwh
        carbon_saved = first.carbon_grams - second.carbon_grams
        percentage = (
            round(carbon_saved / first.carbon_grams * 100, 2)
            if first.carbon_grams > 0 else 0.0
        )
        if carbon_saved > 0:
            recommendation = f"Use {second.location}-based model for better eco-score"
        else:
            recommendation = "Current model is more eco-friendly"
        return {
            "energy_saved_kwh": round(energy_saved, 6),
            "carbon_saved_grams": round(carbon_saved, 4),
            "percentage_saved": percentage,
            "recommendation": recommendation,
        }

    @staticmethod
    def total_impact(impacts: Iterable[GreenImpact]) -> dict[str, Any]:
        impacts = list(impacts)
        carbon = sum(i.carbon_grams for i in impacts)
        energy = sum(i.energy_kwh for i in impacts)
        tokens = sum(i.tokens_total for i in impacts)
        return {
            "total_carbon_grams": round(carbon, 4),
            "total_energy_kwh": round(energy, 6),
            "total_tokens": tokens,
            "average_carbon_per_token": round(carbon / tokens, 6) if tokens > 0 else 0.0,
            "models_count": len(impacts),
        }
