"""
Error Taxonomy
==============
Only :class:`ValidationError` (and its :class:`NoProvidersAvailable`
subclass) ever leaves the core.  Provider and scoring errors are raised
internally, caught at the stage boundary and recorded as data on the
result objects.
"""

from __future__ import annotations


class AggregatorError(Exception):
    """Base class for every error raised by the aggregation pipeline."""


class ValidationError(AggregatorError):
    """The request is malformed (prompt length, provider list, options)."""


class NoProvidersAvailable(ValidationError):
    """None of the requested providers resolves to a configured adapter."""

    def __init__(self, requested: list[str] | None = None) -> None:
        self.requested = list(requested or [])
        super().__init__(
            "No AI models available for "
            f"{self.requested or 'this request'}. Please configure API keys."
        )


class ProviderError(AggregatorError):
    """A vendor call failed or returned unusable data.

    Attributes
    ----------
    provider_id : str
        The provider that failed.
    raw_message : str
        The vendor's own error message, kept verbatim.
    """

    def __init__(self, provider_id: str, raw_message: str) -> None:
        self.provider_id = provider_id
        self.raw_message = raw_message
        super().__init__(f"{provider_id} API error: {raw_message}")


class ProviderTimeout(ProviderError):
    """A provider did not answer before its deadline."""

    def __init__(self, provider_id: str, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(provider_id, f"Request timeout after {timeout_ms} ms")


class ScoringError(AggregatorError):
    """A scoring helper could not evaluate one response."""
