"""
Sovereignty Scorer – Weighted Tables
=====================================
Scores a provider's data-sovereignty posture from three looked-up
components:

* **Hosting** (max 50) — where the servers are.
* **Company** (max 30) — the vendor's nationality.
* **License** (max 20) — how open the model is.

The three maxima sum to 100, so the total needs no normalisation.  The
result is a pure function of :class:`SovereigntyMeta` and the tables
below; it can always be recomputed and is never authoritative on its own.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, Mapping

from ai_aggregator.registry import SovereigntyMeta
from ai_aggregator.schemas import (
    Recommendation,
    RgpdStatus,
    ScoreComponent,
    SovereigntyScore,
)


HOSTING_MAX = 50
COMPANY_MAX = 30
LICENSE_MAX = 20

HOSTING_SCORES: Mapping[str, int] = MappingProxyType({
    "France": 50,
    "EU": 40,
    "USA": 20,
    "China": 10,
    "Other": 15,
})

COMPANY_SCORES: Mapping[str, int] = MappingProxyType({
    "France": 30,
    "EU": 25,
    "USA": 15,
    "China": 5,
    "Other": 10,
})

LICENSE_SCORES: Mapping[str, int] = MappingProxyType({
    "Open Source": 20,
    "Open Weights": 15,
    "Proprietary": 5,
    "Unknown": 0,
})

CLOUD_ACT_THRESHOLD = 50
EU_LOCATIONS = frozenset({"France", "EU"})
FOREIGN_JURISDICTIONS = frozenset({"USA", "China"})

# (minimum total, level), checked top-down
LEVELS: tuple[tuple[int, str], ...] = (
    (80, "Excellent"),
    (60, "Good"),
    (40, "Medium"),
    (20, "Low"),
)


def _component(table: Mapping[str, int], key: str, fallback: str, max_score: int) -> ScoreComponent:
    value = key if key in table else fallback
    score = table[value]
    return ScoreComponent(
        score=score,
        max_score=max_score,
        percentage=round(score / max_score * 100, 1),
        value=key,
    )


class SovereigntyScorer:
    """Deterministic sovereignty scoring for provider metadata."""

    def calculate_sovereignty(self, meta: SovereigntyMeta) -> SovereigntyScore:
        """Score *meta* and explain the result.

        Unknown hosting countries and nationalities score as ``Other``;
        unknown license classes score as ``Unknown``.
        """
        hosting = _component(HOSTING_SCORES, meta.hosting_country, "Other", HOSTING_MAX)
        company = _component(COMPANY_SCORES, meta.company_nationality, "Other", COMPANY_MAX)
        license_ = _component(LICENSE_SCORES, meta.license_type, "Unknown", LICENSE_MAX)

        total = hosting.score + company.score + license_.score
        cloud_act_risk = total < CLOUD_ACT_THRESHOLD

        return SovereigntyScore(
            total=total,
            hosting=hosting,
            company=company,
            license=license_,
            rgpd=self.rgpd_status(meta.rgpd_compliant, meta.hosting_country),
            cloud_act_risk=cloud_act_risk,
            level=self.sovereignty_level(total),
            recommendations=tuple(self._recommendations(meta, total, cloud_act_risk)),
            metadata={
                "cloud_provider": meta.cloud_provider,
                "retention_policy": meta.retention_policy,
                "hosting_country": meta.hosting_country,
                "company_nationality": meta.company_nationality,
                "license_type": meta.license_type,
            },
        )

    @staticmethod
    def rgpd_status(rgpd_compliant: bool, location: str) -> RgpdStatus:
        is_eu = location in EU_LOCATIONS
        if rgpd_compliant and is_eu:
            status = "Full Compliance"
        elif rgpd_compliant:
            status = "Partial Compliance (Non-EU)"
        elif is_eu:
            status = "EU Location but Non-Compliant"
        else:
            status = "Non-Compliant"
        return RgpdStatus(
            compliant=rgpd_compliant,
            location=location,
            status=status,
            risk="Low" if rgpd_compliant else "High",
        )

    @staticmethod
    def sovereignty_level(total: int) -> str:
        for minimum, level in LEVELS:
            if total >= minimum:
                return level
        return "Critical"

    @staticmethod
    def _recommendations(
        meta: SovereigntyMeta, total: int, cloud_act_risk: bool
    ) -> list[Recommendation]:
        # Order of checks is part of the output contract.
        recs: list[Recommendation] = []
        if cloud_act_risk:
            recs.append(Recommendation(
                type="Security",
                priority="High",
                message="Cloud Act Risk detected. Consider using EU-based alternatives for sensitive data.",
                action="Switch to Mistral (France) or EU-based models",
            ))
        if not meta.rgpd_compliant:
            recs.append(Recommendation(
                type="Compliance",
                priority="High",
                message="Model is not RGPD compliant. Avoid processing personal data.",
                action="Use only for non-personal data or switch to compliant model",
            ))
        if meta.hosting_country in FOREIGN_JURISDICTIONS:
            recs.append(Recommendation(
                type="Sovereignty",
                priority="Medium",
                message=(
                    f"Servers located in {meta.hosting_country}. "
                    "Data may be subject to foreign jurisdiction."
                ),
                action="Prefer EU/France-based models for data sovereignty",
            ))
        if meta.license_type == "Proprietary":
            recs.append(Recommendation(
                type="Transparency",
                priority="Low",
                message="Proprietary model with limited transparency.",
                action="Consider Open Source alternatives for auditability",
            ))
        if total >= 80:
            recs.append(Recommendation(
                type="Success",
                priority="Info",
                message="Excellent sovereignty score. Model respects data sovereignty principles.",
                action="No action required",
            ))
        return recs

    # ------------------------------------------------------------------ #
    #  Comparisons                                                        #
    # ------------------------------------------------------------------ #

    @staticmethod
    def compare_sovereignty(first: SovereigntyScore, second: SovereigntyScore) -> dict[str, Any]:
        """Explain the gap between two sovereignty scores."""
        diff = first.total - second.total
        if diff > 0:
            winner = "first"
        elif diff < 0:
            winner = "second"
        else:
            winner = "equal"

        if abs(diff) > 20:
            recommendation = (
                f"Significant difference ({abs(diff)} pts). "
                "Prefer the higher-scored model for sensitive data."
            )
        else:
            recommendation = (
                f"Minor difference ({abs(diff)} pts). "
                "Both models have similar sovereignty levels."
            )
        return {
            "score_difference": diff,
            "winner": winner,
            "hosting_diff": first.hosting.score - second.hosting.score,
            "company_diff": first.company.score - second.company.score,
            "license_diff": first.license.score - second.license.score,
            "recommendation": recommendation,
        }

    @staticmethod
    def average_sovereignty(scores: Iterable[SovereigntyScore]) -> dict[str, Any] | None:
        """Aggregate statistics over several scores; ``None`` when empty."""
        scores = list(scores)
        if not scores:
            return None

        n = len(scores)
        totals = [s.total for s in scores]
        return {
            "average_score": round(sum(totals) / n, 2),
            "cloud_act_risk_percentage": round(sum(s.cloud_act_risk for s in scores) / n * 100, 1),
            "rgpd_compliance_percentage": round(sum(s.rgpd.compliant for s in scores) / n * 100, 1),
            "model_count": n,
            "distribution": {
                "excellent": sum(1 for t in totals if t >= 80),
                "good": sum(1 for t in totals if 60 <= t < 80),
                "medium": sum(1 for t in totals if 40 <= t < 60),
                "low": sum(1 for t in totals if t < 40),
            },
        }
