"""
AI Aggregator Data Schemas
==========================
Typed dataclasses that carry data between every pipeline stage.
Each stage builds new frozen values from the previous stage's output, so a
:class:`ProviderResult` is never mutated once the orchestrator returns it
and a :class:`ScoredResponse` is never mutated once scored.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Iterable, Mapping

from ai_aggregator.errors import ValidationError

PROMPT_MIN_CHARS = 3
PROMPT_MAX_CHARS = 2000
CHARS_PER_TOKEN = 4


def _jsonable(value: Any) -> Any:
    """Recursively convert enums and tuples for JSON output."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {_jsonable(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class _Serializable:
    """Mixin giving dataclasses a JSON-friendly ``to_dict``."""

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))  # type: ignore[call-overload]


class ProviderId(str, Enum):
    """Canonical identifiers of the supported LLM vendors."""

    GEMINI = "gemini"
    MISTRAL = "mistral"
    HUGGINGFACE = "huggingface"
    COHERE = "cohere"

    @classmethod
    def parse(cls, value: str | ProviderId) -> ProviderId:
        """Return the member for *value* or raise :class:`ValidationError`."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown provider '{value}'. "
                f"Supported: {[p.value for p in cls]}"
            ) from None


class ResultStatus(str, Enum):
    """Outcome of one provider call."""

    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class TokenUsage(_Serializable):
    """Prompt / completion / total token counts for one call."""

    input: int = 0
    output: int = 0
    total: int = 0

    @staticmethod
    def estimate_count(text: str) -> int:
        """Approximate token count: one token per 4 characters, rounded up."""
        return math.ceil(len(text) / CHARS_PER_TOKEN)

    @classmethod
    def estimate(cls, prompt: str, text: str) -> TokenUsage:
        """Estimate usage for vendors that report no counts."""
        tokens_in = cls.estimate_count(prompt)
        tokens_out = cls.estimate_count(text)
        return cls(input=tokens_in, output=tokens_out, total=tokens_in + tokens_out)

    @classmethod
    def from_counts(
        cls,
        prompt: str,
        text: str,
        input: int | None = None,
        output: int | None = None,
        total: int | None = None,
    ) -> TokenUsage:
        """Build usage from vendor counts, estimating any count that is missing."""
        tokens_in = input if input else cls.estimate_count(prompt)
        tokens_out = output if output else cls.estimate_count(text)
        return cls(
            input=tokens_in,
            output=tokens_out,
            total=total if total else tokens_in + tokens_out,
        )


@dataclass(frozen=True)
class GenerationOptions(_Serializable):
    """Sampling and deadline options shared by every provider in a request.

    Attributes:
        temperature: Sampling temperature in ``[0, 1]``.
        max_tokens:  Completion budget in ``[50, 2000]``.
        timeout_ms:  Per-provider deadline in milliseconds.
    """

    temperature: float = 0.7
    max_tokens: int = 500
    timeout_ms: int = 30000

    def __post_init__(self) -> None:
        if isinstance(self.temperature, bool) or not isinstance(self.temperature, (int, float)):
            raise ValidationError(f"temperature must be a number, got {self.temperature!r}")
        for name in ("max_tokens", "timeout_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{name} must be an integer, got {value!r}")
        if not 0.0 <= self.temperature <= 1.0:
            raise ValidationError(f"temperature must be in [0, 1], got {self.temperature}")
        if not 50 <= self.max_tokens <= 2000:
            raise ValidationError(f"max_tokens must be in [50, 2000], got {self.max_tokens}")
        if self.timeout_ms <= 0:
            raise ValidationError(f"timeout_ms must be positive, got {self.timeout_ms}")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @classmethod
    def from_mapping(cls, options: dict[str, Any] | GenerationOptions | None) -> GenerationOptions:
        """Accept an options object, a plain dict, or ``None`` for defaults."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if not isinstance(options, Mapping):
            raise ValidationError(f"Options must be a mapping, got {type(options).__name__}")
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in options.items() if k in known and v is not None})


@dataclass(frozen=True)
class PromptRequest(_Serializable):
    """A validated comparison request.  Immutable once built."""

    text: str
    providers: tuple[ProviderId, ...]
    options: GenerationOptions = field(default_factory=GenerationOptions)

    @classmethod
    def create(
        cls,
        text: str,
        providers: Iterable[str | ProviderId],
        options: dict[str, Any] | GenerationOptions | None = None,
    ) -> PromptRequest:
        """Validate raw caller input and build a request.

        Raises
        ------
        ValidationError
            On a missing/short/long prompt, an empty provider list, an
            unknown provider id, or out-of-range options.
        """
        if not isinstance(text, str):
            raise ValidationError("Prompt text must be a string")
        cleaned = text.strip()
        if len(cleaned) < PROMPT_MIN_CHARS:
            raise ValidationError(
                f"Prompt must be at least {PROMPT_MIN_CHARS} characters long"
            )
        if len(cleaned) > PROMPT_MAX_CHARS:
            raise ValidationError(
                f"Prompt must not exceed {PROMPT_MAX_CHARS} characters"
            )

        if isinstance(providers, str):
            raise ValidationError(
                f"Providers must be a list of provider ids, got the single value {providers!r}"
            )
        ordered: list[ProviderId] = []
        for raw in providers or ():
            pid = ProviderId.parse(raw)
            if pid not in ordered:
                ordered.append(pid)
        if not ordered:
            raise ValidationError("At least one AI model is required")

        return cls(
            text=cleaned,
            providers=tuple(ordered),
            options=GenerationOptions.from_mapping(options),
        )


@dataclass(frozen=True)
class GenerationResult(_Serializable):
    """What a provider adapter returns on success."""

    text: str
    tokens: TokenUsage
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderResult(_Serializable):
    """Outcome of one (request, provider) pair.

    Attributes:
        provider_id:   Which provider was queried.
        text:          Generated text, ``None`` unless ``status`` is success.
        token_usage:   Token counts (all zero on failure).
        latency_ms:    Wall-clock milliseconds until the call settled.
        status:        ``success``, ``failed`` or ``timeout``.
        error_message: Vendor / timeout message, ``None`` on success.
    """

    provider_id: ProviderId
    text: str | None
    token_usage: TokenUsage
    latency_ms: int
    status: ResultStatus
    error_message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status is ResultStatus.SUCCESS and bool(self.text)


@dataclass(frozen=True)
class Keyword(_Serializable):
    word: str
    count: int
    relevance: float


@dataclass(frozen=True)
class TextAnalysis(_Serializable):
    """Lexical statistics for one response text."""

    keywords: tuple[Keyword, ...] = ()
    sentiment: str = "neutral"
    sentiment_score: float = 0.0
    topics: tuple[str, ...] = ()
    word_count: int = 0
    sentence_count: int = 0
    readability: float = 0.0

    @classmethod
    def empty(cls) -> TextAnalysis:
        return cls()


@dataclass(frozen=True)
class ScoreComponent(_Serializable):
    """One weighted-table component of the sovereignty score."""

    score: int
    max_score: int
    percentage: float
    value: str


@dataclass(frozen=True)
class RgpdStatus(_Serializable):
    compliant: bool
    location: str
    status: str
    risk: str


@dataclass(frozen=True)
class Recommendation(_Serializable):
    type: str
    priority: str
    message: str
    action: str


@dataclass(frozen=True)
class SovereigntyScore(_Serializable):
    """Explainable 0-100 data-sovereignty score for one provider.

    ``total`` is always exactly ``hosting.score + company.score +
    license.score``.
    """

    total: int
    hosting: ScoreComponent
    company: ScoreComponent
    license: ScoreComponent
    rgpd: RgpdStatus
    cloud_act_risk: bool
    level: str
    recommendations: tuple[Recommendation, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def location(self) -> str:
        return self.hosting.value


@dataclass(frozen=True)
class Equivalences(_Serializable):
    car_km: float = 0.0
    phone_charges: float = 0.0
    streaming_minutes: float = 0.0
    trees_per_year: float = 0.0


@dataclass(frozen=True)
class GreenImpact(_Serializable):
    """Estimated energy and carbon cost of one response."""

    tokens_total: int = 0
    energy_kwh: float = 0.0
    carbon_grams: float = 0.0
    eco_grade: str = "N/A"
    equivalences: Equivalences = field(default_factory=Equivalences)
    carbon_intensity: float = 0.0
    time_factor: float = 1.0
    location: str = "Unknown"

    @classmethod
    def empty(cls) -> GreenImpact:
        return cls()


@dataclass(frozen=True)
class ScoredResponse(_Serializable):
    """A :class:`ProviderResult` enriched with every score.

    Metric scores are ``None`` whenever the underlying call did not succeed.
    """

    result: ProviderResult
    relevance: int | None = None
    similarity: int | None = None
    speed: int | None = None
    composite: int | None = None
    sovereignty: SovereigntyScore | None = None
    green_impact: GreenImpact = field(default_factory=GreenImpact)
    text_analysis: TextAnalysis = field(default_factory=TextAnalysis)

    @property
    def provider_id(self) -> ProviderId:
        return self.result.provider_id

    @property
    def status(self) -> ResultStatus:
        return self.result.status

    @property
    def text(self) -> str | None:
        return self.result.text

    @property
    def latency_ms(self) -> int:
        return self.result.latency_ms

    @property
    def is_success(self) -> bool:
        return self.result.is_success


@dataclass(frozen=True)
class RankedResponse(_Serializable):
    """Best / worst entry of a comparative summary."""

    provider_id: ProviderId
    composite: int | None
    relevance: int | None
    sovereignty: int | None


@dataclass(frozen=True)
class ComparativeSummary(_Serializable):
    """Aggregate view over one request's scored responses.

    ``failed_responses`` counts every response that did not succeed, so
    ``successful_responses + failed_responses == total_responses``.
    ``timed_out_responses`` is the subset of those that hit their deadline;
    ``failed_responses - timed_out_responses`` is the number that errored.
    """

    total_responses: int
    successful_responses: int
    failed_responses: int
    timed_out_responses: int
    average_relevance: int
    average_similarity: int
    average_sovereignty: int
    average_composite: int
    average_response_time_ms: int
    best_response: RankedResponse | None
    worst_response: RankedResponse | None
    consensus_level: int
    sovereignty_distribution: dict[str, int] = field(default_factory=dict)
    total_carbon_grams: float = 0.0
    total_energy_kwh: float = 0.0


@dataclass(frozen=True)
class ComparisonReport(_Serializable):
    """Everything one comparison run produces, ready for a caller to render."""

    prompt: PromptRequest
    responses: tuple[ScoredResponse, ...]
    summary: ComparativeSummary
    similarity_matrix: list[list[int]]
    processing_time_ms: int
    run_id: str = ""
