"""
Unit tests for AI Aggregator core components.
Run with:  pytest tests/test_unit.py -v
"""
from __future__ import annotations

import dataclasses
from datetime import datetime

import pytest

from ai_aggregator.errors import (
    AggregatorError,
    NoProvidersAvailable,
    ProviderError,
    ProviderTimeout,
    ScoringError,
    ValidationError,
)
from ai_aggregator.green_it import CARBON_INTENSITY, GreenITEstimator
from ai_aggregator.observer import Event, EventBus, EventRecorder, EventType, LoggingObserver
from ai_aggregator.registry import (
    DEFAULT_ENERGY_PER_KTOKEN_KWH,
    ModelConfig,
    ProviderProfile,
    ProviderRegistry,
    SovereigntyMeta,
)
from ai_aggregator.schemas import (
    GenerationOptions,
    GreenImpact,
    PromptRequest,
    ProviderId,
    ProviderResult,
    ResultStatus,
    TextAnalysis,
    TokenUsage,
)
from ai_aggregator.scoring import ScoringEngine, round_half_up
from ai_aggregator.sovereignty import SovereigntyScorer
from ai_aggregator.text_analyzer import TextAnalyzer


def fixed_clock(hour: int):
    return lambda: datetime(2024, 6, 1, hour, 30)


# =====================================================================
# Schema tests
# =====================================================================


class TestTokenUsage:
    def test_estimate_rounds_up(self):
        assert TokenUsage.estimate_count("abcde") == 2
        assert TokenUsage.estimate_count("abcd") == 1
        assert TokenUsage.estimate_count("") == 0

    def test_estimate_total_is_sum(self):
        usage = TokenUsage.estimate("abcd", "abcdefghi")
        assert usage == TokenUsage(input=1, output=3, total=4)

    def test_from_counts_keeps_vendor_counts(self):
        usage = TokenUsage.from_counts("prompt", "text", input=12, output=30, total=42)
        assert usage == TokenUsage(input=12, output=30, total=42)

    def test_from_counts_estimates_missing(self):
        usage = TokenUsage.from_counts("abcdefgh", "abcd", input=None, output=0)
        assert usage.input == 2
        assert usage.output == 1
        assert usage.total == 3

    def test_frozen(self):
        usage = TokenUsage(1, 2, 3)
        with pytest.raises(dataclasses.FrozenInstanceError):
            usage.total = 10  # type: ignore[misc]


class TestGenerationOptions:
    def test_defaults(self):
        opts = GenerationOptions()
        assert opts.temperature == 0.7
        assert opts.max_tokens == 500
        assert opts.timeout_ms == 30000
        assert opts.timeout_seconds == 30.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"temperature": 1.5},
            {"temperature": -0.1},
            {"max_tokens": 10},
            {"max_tokens": 5000},
            {"timeout_ms": 0},
        ],
    )
    def test_out_of_range_rejected(self, kwargs):
        with pytest.raises(ValidationError):
            GenerationOptions(**kwargs)

    def test_from_mapping_ignores_none_and_unknown(self):
        opts = GenerationOptions.from_mapping(
            {"temperature": 0.2, "max_tokens": None, "stream": True}
        )
        assert opts.temperature == 0.2
        assert opts.max_tokens == 500

    def test_from_mapping_none(self):
        assert GenerationOptions.from_mapping(None) == GenerationOptions()

    @pytest.mark.parametrize(
        "options",
        [
            {"temperature": "0.5"},
            {"temperature": True},
            {"max_tokens": "500"},
            {"max_tokens": 500.0},
            {"timeout_ms": False},
        ],
    )
    def test_wrong_types_rejected(self, options):
        with pytest.raises(ValidationError, match="must be an? (number|integer)"):
            GenerationOptions.from_mapping(options)

    def test_integer_temperature_accepted(self):
        assert GenerationOptions(temperature=1).temperature == 1

    def test_from_mapping_rejects_non_mapping(self):
        with pytest.raises(ValidationError, match="mapping"):
            GenerationOptions.from_mapping([("temperature", 0.5)])  # type: ignore[arg-type]


class TestPromptRequest:
    def test_strips_and_dedupes(self):
        req = PromptRequest.create("  Explain RGPD  ", ["Gemini", "gemini", "mistral"])
        assert req.text == "Explain RGPD"
        assert req.providers == (ProviderId.GEMINI, ProviderId.MISTRAL)

    def test_too_short(self):
        with pytest.raises(ValidationError, match="at least 3"):
            PromptRequest.create("X", ["gemini"])

    def test_short_after_strip(self):
        with pytest.raises(ValidationError):
            PromptRequest.create("   hi   ", ["gemini"])

    def test_length_bounds(self):
        assert len(PromptRequest.create("a" * 2000, ["gemini"]).text) == 2000
        with pytest.raises(ValidationError):
            PromptRequest.create("a" * 2001, ["gemini"])

    def test_empty_provider_list(self):
        with pytest.raises(ValidationError, match="At least one"):
            PromptRequest.create("Explain gravity", [])

    def test_unknown_provider(self):
        with pytest.raises(ValidationError, match="Unknown provider"):
            PromptRequest.create("Explain gravity", ["gemini", "openai"])

    @pytest.mark.parametrize("providers", ["gemini", ProviderId.MISTRAL])
    def test_bare_string_providers_rejected(self, providers):
        with pytest.raises(ValidationError, match="list of provider ids"):
            PromptRequest.create("Explain gravity", providers)

    def test_non_string_prompt(self):
        with pytest.raises(ValidationError):
            PromptRequest.create(None, ["gemini"])  # type: ignore[arg-type]


class TestProviderResult:
    def test_is_success(self):
        ok = ProviderResult(ProviderId.GEMINI, "hi", TokenUsage(1, 1, 2), 10, ResultStatus.SUCCESS)
        failed = ProviderResult(
            ProviderId.GEMINI, None, TokenUsage(), 10, ResultStatus.FAILED, "boom"
        )
        assert ok.is_success
        assert not failed.is_success

    def test_to_dict_is_json_friendly(self):
        r = ProviderResult(ProviderId.COHERE, "hi", TokenUsage(1, 1, 2), 10, ResultStatus.SUCCESS)
        d = r.to_dict()
        assert d["provider_id"] == "cohere"
        assert d["status"] == "success"
        assert d["token_usage"] == {"input": 1, "output": 1, "total": 2}


class TestProviderIdParse:
    def test_case_and_whitespace(self):
        assert ProviderId.parse(" MISTRAL ") is ProviderId.MISTRAL

    def test_passthrough(self):
        assert ProviderId.parse(ProviderId.COHERE) is ProviderId.COHERE

    def test_unknown(self):
        with pytest.raises(ValidationError):
            ProviderId.parse("claude")


# =====================================================================
# Error taxonomy tests
# =====================================================================


class TestErrors:
    def test_provider_error_message(self):
        err = ProviderError("cohere", "invalid api token")
        assert str(err) == "cohere API error: invalid api token"
        assert err.provider_id == "cohere"
        assert err.raw_message == "invalid api token"

    def test_timeout_is_provider_error(self):
        err = ProviderTimeout("gemini", 500)
        assert isinstance(err, ProviderError)
        assert err.raw_message == "Request timeout after 500 ms"
        assert err.timeout_ms == 500

    def test_no_providers_is_validation_error(self):
        err = NoProvidersAvailable(requested=["cohere"])
        assert isinstance(err, ValidationError)
        assert isinstance(err, AggregatorError)
        assert err.requested == ["cohere"]

    def test_scoring_error_base(self):
        assert issubclass(ScoringError, AggregatorError)


# =====================================================================
# Registry tests
# =====================================================================


class TestRegistry:
    def test_default_registry_order(self, registry):
        assert list(registry) == [
            ProviderId.GEMINI,
            ProviderId.MISTRAL,
            ProviderId.HUGGINGFACE,
            ProviderId.COHERE,
        ]

    def test_string_lookup(self, registry):
        assert registry["mistral"].sovereignty.hosting_country == "France"
        assert "cohere" in registry
        assert "openai" not in registry
        assert registry.get("openai") is None

    def test_energy_coefficient(self, registry):
        assert registry.energy_coefficient(ProviderId.MISTRAL) == 0.002
        assert ProviderRegistry().energy_coefficient("gemini") == DEFAULT_ENERGY_PER_KTOKEN_KWH

    def test_with_profile_returns_new_registry(self, registry):
        profile = ProviderProfile(
            provider_id=ProviderId.COHERE,
            model=ModelConfig("command-a", 1000, 0.3, 10),
            sovereignty=SovereigntyMeta(hosting_country="EU", company_nationality="EU"),
            energy_per_ktoken_kwh=0.001,
        )
        updated = registry.with_profile(profile)
        assert updated["cohere"].model.model_identifier == "command-a"
        assert registry["cohere"].model.model_identifier == "command-r-08-2024"
        assert len(updated) == len(registry)

    def test_profile_dicts(self, registry):
        profile = registry["gemini"]
        assert profile.config_dict()["model_identifier"] == "gemini-2.5-flash"
        assert profile.sovereignty_dict()["hosting_country"] == "USA"


# =====================================================================
# EventBus tests
# =====================================================================


class TestEventBus:
    def test_subscribe_and_publish(self):
        bus = EventBus()
        captured: list[Event] = []
        bus.subscribe(EventType.PROVIDER_RESPONSE, captured.append)

        bus.publish(Event(EventType.PROVIDER_RESPONSE, message="test"))
        assert len(captured) == 1
        assert captured[0].message == "test"

    def test_subscribe_all(self):
        bus = EventBus()
        captured: list[Event] = []
        bus.subscribe_all(captured.append)

        for et in EventType:
            bus.publish(Event(et, message=et.name))

        assert len(captured) == len(EventType)

    def test_publish_wrong_type_not_received(self):
        bus = EventBus()
        captured: list[Event] = []
        bus.subscribe(EventType.AGGREGATION_COMPLETE, captured.append)

        bus.publish(Event(EventType.AGGREGATION_STARTED))
        assert captured == []

    def test_faulty_subscriber_does_not_break_publish(self):
        bus = EventBus()
        captured: list[Event] = []

        def broken(event: Event) -> None:
            raise RuntimeError("subscriber bug")

        bus.subscribe(EventType.PROVIDER_FAILED, broken)
        bus.subscribe(EventType.PROVIDER_FAILED, captured.append)
        bus.publish(Event(EventType.PROVIDER_FAILED))
        assert len(captured) == 1

    def test_observer_object(self, caplog):
        bus = EventBus()
        bus.subscribe_all(LoggingObserver())
        with caplog.at_level("INFO", logger="ai_aggregator.observer"):
            bus.publish(Event(EventType.PROVIDER_TIMEOUT, message="gemini timed out"))
        assert "PROVIDER_TIMEOUT" in caplog.text
        assert caplog.records[-1].levelname == "WARNING"

    def test_unsubscribe(self):
        bus = EventBus()
        recorder = EventRecorder()
        bus.subscribe_all(recorder)
        bus.subscribe(EventType.PROVIDER_RESPONSE, recorder)

        bus.publish(Event(EventType.PROVIDER_RESPONSE))
        assert len(recorder.events) == 2

        bus.unsubscribe(recorder)
        bus.publish(Event(EventType.PROVIDER_RESPONSE))
        assert len(recorder.events) == 2

    def test_recorder_filters_by_run(self):
        recorder = EventRecorder()
        recorder.on_event(Event(EventType.AGGREGATION_STARTED, run_id="a"))
        recorder.on_event(Event(EventType.AGGREGATION_STARTED, run_id="b"))
        recorder.on_event(Event(EventType.AGGREGATION_COMPLETE, run_id="a"))

        assert [e.event_type for e in recorder.for_run("a")] == [
            EventType.AGGREGATION_STARTED, EventType.AGGREGATION_COMPLETE,
        ]
        recorder.clear()
        assert recorder.types() == []

    def test_event_to_dict(self):
        d = Event(EventType.RESPONSES_SCORED, payload={"n": 2}, message="ok", run_id="r1").to_dict()
        assert d["type"] == "RESPONSES_SCORED"
        assert d["payload"] == {"n": 2}
        assert d["run_id"] == "r1"
        assert d["timestamp"] > 0


# =====================================================================
# Text analyzer tests
# =====================================================================


class TestTextAnalyzer:
    @pytest.fixture
    def analyzer(self) -> TextAnalyzer:
        return TextAnalyzer()

    def test_counts(self, analyzer):
        text = "Hello, world! How are you?"
        assert analyzer.count_words(text) == 5
        assert analyzer.count_sentences(text) == 2

    def test_readability(self, analyzer):
        assert analyzer.calculate_readability("Hello, world! How are you?") == 96.25
        assert analyzer.calculate_readability("") == 0.0

    def test_keywords_frequency_and_order(self, analyzer):
        keywords = analyzer.extract_keywords("Python python PYTHON code code data the and")
        assert [k.word for k in keywords] == ["python", "code", "data"]
        assert keywords[0].count == 3
        assert keywords[0].relevance == pytest.approx(3 / 6)

    def test_keywords_limit(self, analyzer):
        text = "alpha bravo charlie delta echoes foxtrot"
        assert len(analyzer.extract_keywords(text, limit=2)) == 2

    def test_sentiment_positive(self, analyzer):
        label, score = analyzer.analyze_sentiment("This is a great and excellent product")
        assert label == "positive"
        assert score == pytest.approx(0.8571, abs=1e-4)

    def test_sentiment_negative_is_clamped(self, analyzer):
        label, score = analyzer.analyze_sentiment("terrible awful")
        assert label == "negative"
        assert score == -1.0

    def test_sentiment_uses_full_afinn_list(self, analyzer):
        label, score = analyzer.analyze_sentiment("This is a brilliant, delightful and joyful result")
        assert label == "positive"
        assert score > 0.2

        label, score = analyzer.analyze_sentiment("The outcome was disappointing, tragic and miserable")
        assert label == "negative"
        assert score < -0.2

    def test_sentiment_neutral_text(self, analyzer):
        assert analyzer.analyze_sentiment("The table has four legs") == ("neutral", 0.0)

    def test_sentiment_empty(self, analyzer):
        assert analyzer.analyze_sentiment("") == ("neutral", 0.0)

    def test_topics(self, analyzer):
        topics = analyzer.extract_topics("Yesterday Marie Curie visited Paris.")
        assert topics[:2] == ["Marie Curie", "Paris"]
        assert len({t.lower() for t in topics}) == len(topics)

    def test_similarity(self, analyzer):
        assert analyzer.calculate_similarity("a b c", "b c d") == 0.5
        assert analyzer.calculate_similarity("Same Words", "same words") == 1.0
        assert analyzer.calculate_similarity("", "") == 0.0

    def test_analyze_empty(self, analyzer):
        assert analyzer.analyze("   ") == TextAnalysis.empty()
        assert analyzer.analyze(None) == TextAnalysis.empty()  # type: ignore[arg-type]

    def test_analyze_full(self, analyzer):
        analysis = analyzer.analyze("Solar panels are efficient. They are a great benefit!")
        assert analysis.word_count == 9
        assert analysis.sentence_count == 2
        assert analysis.sentiment == "positive"
        assert analysis.keywords


# =====================================================================
# Sovereignty scorer tests
# =====================================================================


class TestSovereigntyScorer:
    @pytest.fixture
    def scorer(self) -> SovereigntyScorer:
        return SovereigntyScorer()

    def test_french_open_weights_provider(self, scorer, registry):
        score = scorer.calculate_sovereignty(registry["mistral"].sovereignty)
        assert score.hosting.score == 50
        assert score.company.score == 30
        assert score.license.score == 15
        assert score.total == 95
        assert score.level == "Excellent"
        assert score.cloud_act_risk is False
        assert score.rgpd.status == "Full Compliance"
        assert [r.type for r in score.recommendations] == ["Success"]

    def test_us_proprietary_provider(self, scorer, registry):
        score = scorer.calculate_sovereignty(registry["gemini"].sovereignty)
        assert score.total == 40
        assert score.level == "Medium"
        assert score.cloud_act_risk is True
        assert score.rgpd.status == "Partial Compliance (Non-EU)"
        assert [r.type for r in score.recommendations] == [
            "Security", "Sovereignty", "Transparency",
        ]

    def test_non_compliant_adds_compliance_recommendation(self, scorer, registry):
        score = scorer.calculate_sovereignty(registry["cohere"].sovereignty)
        assert score.rgpd.risk == "High"
        assert [r.type for r in score.recommendations] == [
            "Security", "Compliance", "Sovereignty", "Transparency",
        ]

    def test_unknown_values_fall_back(self, scorer):
        score = scorer.calculate_sovereignty(
            SovereigntyMeta(hosting_country="Atlantis", company_nationality="Mars", license_type="???")
        )
        assert score.hosting.score == 15
        assert score.company.score == 10
        assert score.license.score == 0
        assert score.total == 25
        assert score.level == "Low"
        assert score.location == "Atlantis"

    def test_total_is_sum_of_components(self, scorer, registry):
        for profile in registry.values():
            s = scorer.calculate_sovereignty(profile.sovereignty)
            assert s.total == s.hosting.score + s.company.score + s.license.score
            assert 0 <= s.total <= 100

    def test_idempotent(self, scorer, registry):
        meta = registry["huggingface"].sovereignty
        assert scorer.calculate_sovereignty(meta) == scorer.calculate_sovereignty(meta)

    @pytest.mark.parametrize(
        "total, level",
        [(100, "Excellent"), (80, "Excellent"), (79, "Good"), (60, "Good"),
         (40, "Medium"), (20, "Low"), (19, "Critical"), (0, "Critical")],
    )
    def test_levels(self, total, level):
        assert SovereigntyScorer.sovereignty_level(total) == level

    def test_compare(self, scorer, registry):
        mistral = scorer.calculate_sovereignty(registry["mistral"].sovereignty)
        gemini = scorer.calculate_sovereignty(registry["gemini"].sovereignty)
        result = scorer.compare_sovereignty(mistral, gemini)
        assert result["score_difference"] == 55
        assert result["winner"] == "first"
        assert result["hosting_diff"] == 30
        assert result["recommendation"].startswith("Significant")
        assert scorer.compare_sovereignty(gemini, gemini)["winner"] == "equal"

    def test_average(self, scorer, registry):
        scores = [scorer.calculate_sovereignty(p.sovereignty) for p in registry.values()]
        avg = scorer.average_sovereignty(scores)
        assert avg["model_count"] == 4
        assert avg["average_score"] == pytest.approx((40 + 95 + 55 + 40) / 4)
        assert avg["cloud_act_risk_percentage"] == 50.0
        assert avg["distribution"]["excellent"] == 1
        assert scorer.average_sovereignty([]) is None


# =====================================================================
# Green-IT estimator tests
# =====================================================================


class TestGreenITEstimator:
    def test_off_peak_us_provider(self, registry):
        est = GreenITEstimator(registry, clock=fixed_clock(10))
        impact = est.calculate_impact(TokenUsage(200, 300, 500), ProviderId.GEMINI, "USA")
        assert impact.tokens_total == 500
        assert impact.energy_kwh == pytest.approx(0.0025)
        assert impact.carbon_grams == pytest.approx(0.95)
        assert impact.time_factor == 1.0
        assert impact.carbon_intensity == CARBON_INTENSITY["USA"]
        assert impact.eco_grade == "D"
        assert impact.location == "USA"

    def test_peak_hours_multiplier(self, registry):
        est = GreenITEstimator(registry, clock=fixed_clock(19))
        impact = est.calculate_impact(TokenUsage(200, 300, 500), ProviderId.GEMINI, "USA")
        assert impact.time_factor == 1.2
        assert impact.carbon_grams == pytest.approx(1.14)
        assert impact.eco_grade == "E"

    def test_peak_window_bounds(self):
        assert GreenITEstimator(clock=fixed_clock(18)).time_factor() == 1.2
        assert GreenITEstimator(clock=fixed_clock(21)).time_factor() == 1.2
        assert GreenITEstimator(clock=fixed_clock(22)).time_factor() == 1.0
        assert GreenITEstimator(clock=fixed_clock(17)).time_factor() == 1.0

    def test_french_provider_is_greener(self, registry):
        est = GreenITEstimator(registry, clock=fixed_clock(19))
        impact = est.calculate_impact(TokenUsage(500, 500, 1000), ProviderId.MISTRAL, "France")
        assert impact.carbon_grams == pytest.approx(0.12)
        assert impact.eco_grade == "B"

    def test_unknown_location_uses_other(self, registry):
        est = GreenITEstimator(registry, clock=fixed_clock(10))
        impact = est.calculate_impact(TokenUsage(0, 1000, 1000), ProviderId.COHERE, "Narnia")
        assert impact.carbon_intensity == CARBON_INTENSITY["Other"]

    def test_zero_tokens_is_empty(self, registry):
        est = GreenITEstimator(registry)
        assert est.calculate_impact(TokenUsage(), ProviderId.GEMINI, "USA") == GreenImpact.empty()

    def test_equivalences(self):
        eq = GreenITEstimator.equivalences(12.0)
        assert eq.car_km == 0.1
        assert eq.phone_charges == pytest.approx(1.4599)
        assert eq.streaming_minutes == 5.0
        assert eq.trees_per_year == pytest.approx(0.000571)

    def test_eco_grade_no_tokens(self):
        assert GreenITEstimator.eco_grade(1.0, 0) == "N/A"

    def test_compare_and_total(self, registry):
        est = GreenITEstimator(registry, clock=fixed_clock(10))
        us = est.calculate_impact(TokenUsage(0, 1000, 1000), ProviderId.COHERE, "USA")
        fr = est.calculate_impact(TokenUsage(0, 1000, 1000), ProviderId.MISTRAL, "France")
        cmp_ = est.compare_impacts(us, fr)
        assert cmp_["carbon_saved_grams"] > 0
        assert cmp_["recommendation"] == "Use France-based model for better eco-score"

        total = est.total_impact([us, fr, GreenImpact.empty()])
        assert total["total_tokens"] == 2000
        assert total["models_count"] == 3
        assert total["total_carbon_grams"] == pytest.approx(us.carbon_grams + fr.carbon_grams)


# =====================================================================
# Scoring helper tests
# =====================================================================


class TestScoringHelpers:
    @pytest.fixture
    def engine(self, registry) -> ScoringEngine:
        return ScoringEngine(registry)

    def test_round_half_up(self):
        assert round_half_up(76.5) == 77
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2

    @pytest.mark.parametrize(
        "latency, slowest, expected",
        [(0, 1000, 100), (1000, 1000, 0), (500, 1000, 50), (250, 1000, 75), (0, 0, 50)],
    )
    def test_speed(self, latency, slowest, expected):
        assert ScoringEngine.calculate_speed_score(latency, slowest) == expected

    def test_speed_negative_latency(self):
        with pytest.raises(ScoringError):
            ScoringEngine.calculate_speed_score(-5, 100)

    def test_composite_formula(self):
        assert ScoringEngine.calculate_composite_score(100, 100, 100, 100) == 100
        assert ScoringEngine.calculate_composite_score(0, 0, 0, 0) == 0
        # 80*.45 + 95*.25 + 60*.20 + 50*.10 = 76.75
        assert ScoringEngine.calculate_composite_score(80, 95, 60, 50) == 77

    def test_relevance(self, engine):
        # jaccard 2/5 -> 16, no length band, 2 of 3 prompt keywords -> 26.67
        score = engine.calculate_relevance_score(
            "Quantum computing uses qubits.", "Explain quantum computing"
        )
        assert score == 43

    def test_relevance_rejects_non_text(self, engine):
        with pytest.raises(ScoringError):
            engine.calculate_relevance_score(None, "Explain quantum computing")  # type: ignore[arg-type]

    def test_similarity_without_peers(self, engine):
        assert engine.calculate_average_similarity("anything", []) == 100

    def test_similarity_with_peers(self, engine):
        assert engine.calculate_average_similarity("a b c", ["b c d", "a b c"]) == 75
