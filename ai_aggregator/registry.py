"""
Metadata Registry – Provider Profiles
======================================
Static, read-only description of every supported provider: model
configuration, sovereignty / location metadata, and the energy coefficient
used by the Green-IT estimator.

The registry is built once at start-up with :func:`build_default_registry`
and passed by reference into the orchestrator and the scorers.  It is never
mutated; :meth:`ProviderRegistry.with_profile` returns a new registry.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from ai_aggregator.schemas import ProviderId

DEFAULT_ENERGY_PER_KTOKEN_KWH = 0.005


@dataclass(frozen=True)
class ModelConfig:
    """Model selection and quota limits for one provider."""

    model_identifier: str
    max_tokens: int
    default_temperature: float
    rate_limit_per_window: int
    rate_limit_window: str = "minute"
    description: str = ""


@dataclass(frozen=True)
class SovereigntyMeta:
    """Where and under which terms a provider processes data."""

    hosting_country: str = "Other"
    company_nationality: str = "Other"
    license_type: str = "Unknown"
    cloud_provider: str = "Unknown"
    retention_policy: str = "Unknown"
    rgpd_compliant: bool = False
    description: str = ""


@dataclass(frozen=True)
class ProviderProfile:
    provider_id: ProviderId
    model: ModelConfig
    sovereignty: SovereigntyMeta
    energy_per_ktoken_kwh: float = DEFAULT_ENERGY_PER_KTOKEN_KWH

    def config_dict(self) -> dict[str, Any]:
        return asdict(self.model)

    def sovereignty_dict(self) -> dict[str, Any]:
        return asdict(self.sovereignty)


class ProviderRegistry(Mapping[ProviderId, ProviderProfile]):
    """Immutable ``ProviderId -> ProviderProfile`` mapping.

    Lookups accept either a :class:`ProviderId` or its string value.  The
    registry may hold profiles for providers that have no configured
    adapter; callers must tolerate that.
    """

    def __init__(self, profiles: Mapping[ProviderId, ProviderProfile] | None = None) -> None:
        self._profiles: Mapping[ProviderId, ProviderProfile] = MappingProxyType(
            dict(profiles or {})
        )

    def __getitem__(self, key: ProviderId | str) -> ProviderProfile:
        return self._profiles[ProviderId(key)]

    def __iter__(self) -> Iterator[ProviderId]:
        return iter(self._profiles)

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, key: object) -> bool:
        try:
            return ProviderId(key) in self._profiles  # type: ignore[arg-type]
        except ValueError:
            return False

    def get(self, key: ProviderId | str, default: Any = None) -> Any:  # type: ignore[override]
        try:
            return self[key]
        except (KeyError, ValueError):
            return default

    def energy_coefficient(self, provider_id: ProviderId | str) -> float:
        """kWh per 1000 tokens for *provider_id*, or the default coefficient."""
        profile = self.get(provider_id)
        return profile.energy_per_ktoken_kwh if profile else DEFAULT_ENERGY_PER_KTOKEN_KWH

    def with_profile(self, profile: ProviderProfile) -> ProviderRegistry:
        """Return a new registry with *profile* added or replaced."""
        merged = dict(self._profiles)
        merged[profile.provider_id] = profile
        return ProviderRegistry(merged)


# ──────────────────────────────────────────────────────────────────────
# Default profiles
# ──────────────────────────────────────────────────────────────────────

_DEFAULT_PROFILES: tuple[ProviderProfile, ...] = (
    ProviderProfile(
        provider_id=ProviderId.GEMINI,
        model=ModelConfig(
            model_identifier="gemini-2.5-flash",
            max_tokens=2048,
            default_temperature=0.7,
            rate_limit_per_window=60,
            description="Google Gemini 2.5 Flash",
        ),
        sovereignty=SovereigntyMeta(
            hosting_country="USA",
            company_nationality="USA",
            license_type="Proprietary",
            cloud_provider="Google Cloud",
            retention_policy="30 days",
            rgpd_compliant=True,
            description="Servers mainly in the USA, partial RGPD compliance",
        ),
        energy_per_ktoken_kwh=0.005,
    ),
    ProviderProfile(
        provider_id=ProviderId.MISTRAL,
        model=ModelConfig(
            model_identifier="mistral-small-latest",
            max_tokens=2048,
            default_temperature=0.7,
            rate_limit_per_window=10,
            description="Mistral Small",
        ),
        sovereignty=SovereigntyMeta(
            hosting_country="France",
            company_nationality="France",
            license_type="Open Weights",
            cloud_provider="European Cloud (Scaleway)",
            retention_policy="No retention",
            rgpd_compliant=True,
            description="European sovereign option, servers in France, full RGPD",
        ),
        energy_per_ktoken_kwh=0.002,
    ),
    ProviderProfile(
        provider_id=ProviderId.HUGGINGFACE,
        model=ModelConfig(
            model_identifier="meta-llama/Llama-3.2-3B-Instruct",
            max_tokens=1024,
            default_temperature=0.7,
            rate_limit_per_window=100,
            description="Meta Llama 3.2 3B via Hugging Face",
        ),
        sovereignty=SovereigntyMeta(
            hosting_country="USA",
            company_nationality="USA",
            license_type="Open Source",
            cloud_provider="AWS/Azure (Multi-cloud)",
            retention_policy="Variable",
            rgpd_compliant=True,
            description="Open source, location depends on the hosted model",
        ),
        energy_per_ktoken_kwh=0.004,
    ),
    ProviderProfile(
        provider_id=ProviderId.COHERE,
        model=ModelConfig(
            model_identifier="command-r-08-2024",
            max_tokens=2048,
            default_temperature=0.7,
            rate_limit_per_window=5000,
            rate_limit_window="month",
            description="Cohere Command R",
        ),
        sovereignty=SovereigntyMeta(
            hosting_country="USA",
            company_nationality="USA",
            license_type="Proprietary",
            cloud_provider="AWS",
            retention_policy="90 days",
            rgpd_compliant=False,
            description="USA/Canada servers, limited RGPD compliance, closed model",
        ),
        energy_per_ktoken_kwh=0.006,
    ),
)


def build_default_registry() -> ProviderRegistry:
    """Return the registry of built-in provider profiles."""
    return ProviderRegistry({p.provider_id: p for p in _DEFAULT_PROFILES})
