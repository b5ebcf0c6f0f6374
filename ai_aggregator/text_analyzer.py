"""
Text Analyzer – Lexical Statistics
===================================
Deterministic text statistics used by the scoring engine: word / sentence
counts, keyword frequency, sentiment over the AFINN word list, coarse topic
extraction, a simplified readability score and Jaccard similarity.

Everything here is a lexical approximation: there are no embeddings and no
trained models, so the same text always produces the same analysis.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from functools import lru_cache
from typing import Any, Callable, TypeVar

from afinn import Afinn

from ai_aggregator.schemas import Keyword, TextAnalysis

logger = logging.getLogger(__name__)

T = TypeVar("T")

_WORD_RE = re.compile(r"\w+", re.UNICODE)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_PROPER_NOUN_RE = re.compile(r"\b[A-Z][a-zA-Z]+(?:\s+[A-Z][a-zA-Z]+)*")

POSITIVE_THRESHOLD = 0.2
NEGATIVE_THRESHOLD = -0.2

STOP_WORDS: frozenset[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "is", "was", "are", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "should", "could", "may",
    "might", "must", "can", "this", "that", "these", "those", "i", "you", "he",
    "she", "it", "we", "they", "what", "which", "who", "when", "where", "why",
    "how", "there", "their", "them", "then", "than", "into", "from", "also",
    "very", "more", "most", "such", "some", "your", "about", "each", "other",
})


@lru_cache(maxsize=1)
def _sentiment_lexicon() -> Afinn:
    """AFINN-165 English valence list, -5 (very negative) .. +5 (very positive)."""
    return Afinn(language="en")


def _tokenize(text: Any) -> list[str]:
    if not isinstance(text, str):
        return []
    return _WORD_RE.findall(text)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class TextAnalyzer:
    """Lexical analysis of LLM responses.

    Stateless: every method is a pure function of its arguments and the
    AFINN word list and the stop-word table.
    """

    # ------------------------------------------------------------------ #
    #  Counting                                                           #
    # ------------------------------------------------------------------ #

    def count_words(self, text: str) -> int:
        return len(_tokenize(text))

    def count_sentences(self, text: str) -> int:
        """Number of non-blank segments between ``.``, ``!`` or ``?`` runs."""
        if not isinstance(text, str):
            return 0
        return sum(1 for s in _SENTENCE_SPLIT_RE.split(text) if s.strip())

    def calculate_readability(self, text: str) -> float:
        """Simplified Flesch reading ease: ``100 - 1.5 × words/sentence``."""
        sentences = self.count_sentences(text)
        if sentences == 0:
            return 0.0
        avg_words = self.count_words(text) / sentences
        return round(_clamp(100 - avg_words * 1.5, 0.0, 100.0), 2)

    # ------------------------------------------------------------------ #
    #  Keywords, sentiment, topics                                        #
    # ------------------------------------------------------------------ #

    def extract_keywords(self, text: str, limit: int = 10) -> list[Keyword]:
        """Top *limit* content words by frequency.

        Tokens of three characters or fewer, stop words, and tokens with
        non-alphabetic characters are discarded.  Ties keep the order in
        which words first appear.
        """
        filtered = [
            tok
            for tok in (t.lower() for t in _tokenize(text))
            if len(tok) > 3 and tok not in STOP_WORDS and tok.isalpha()
        ]
        if not filtered:
            return []

        # Counter preserves insertion order and sorted() is stable.
        counts = Counter(filtered)
        ranked = sorted(counts.items(), key=lambda item: -item[1])[:limit]
        total = len(filtered)
        return [
            Keyword(word=word, count=count, relevance=count / total)
            for word, count in ranked
        ]

    def analyze_sentiment(self, text: str) -> tuple[str, float]:
        """Return ``(label, score)`` with ``score`` in ``[-1, 1]``."""
        tokens = _tokenize(text)
        if not tokens:
            return "neutral", 0.0

        raw = _sentiment_lexicon().score(text.lower()) / len(tokens)
        if raw > POSITIVE_THRESHOLD:
            label = "positive"
        elif raw < NEGATIVE_THRESHOLD:
            label = "negative"
        else:
            label = "neutral"
        return label, round(_clamp(raw, -1.0, 1.0), 4)

    def extract_topics(self, text: str, limit: int = 10) -> list[str]:
        """Proper-noun phrases (not at sentence start), then top keywords."""
        if not isinstance(text, str):
            return []

        candidates: list[str] = []
        for sentence in _SENTENCE_SPLIT_RE.split(text):
            first_word = _WORD_RE.search(sentence)
            if first_word is None:
                continue
            for match in _PROPER_NOUN_RE.finditer(sentence):
                phrase = match.group(0)
                if match.start() == first_word.start():
                    # Drop the capitalised sentence opener, keep the rest.
                    parts = phrase.split(None, 1)
                    if len(parts) < 2:
                        continue
                    phrase = parts[1]
                candidates.append(phrase)

        candidates.extend(kw.word for kw in self.extract_keywords(text, 5))

        topics: list[str] = []
        seen: set[str] = set()
        for topic in candidates:
            key = topic.lower()
            if key in seen or key in STOP_WORDS:
                continue
            seen.add(key)
            topics.append(topic)
        return topics[:limit]

    # ------------------------------------------------------------------ #
    #  Similarity                                                         #
    # ------------------------------------------------------------------ #

    def calculate_similarity(self, text_a: str, text_b: str) -> float:
        """Jaccard coefficient over unique lowercase tokens, in ``[0, 1]``."""
        tokens_a = {t.lower() for t in _tokenize(text_a)}
        tokens_b = {t.lower() for t in _tokenize(text_b)}
        union = tokens_a | tokens_b
        if not union:
            return 0.0
        return len(tokens_a & tokens_b) / len(union)

    # ------------------------------------------------------------------ #
    #  Full analysis                                                      #
    # ------------------------------------------------------------------ #

    def analyze(self, text: str) -> TextAnalysis:
        """Run every extractor on *text*.

        Empty or non-string input yields :meth:`TextAnalysis.empty`.  A
        failing extractor degrades to its empty value instead of raising.
        """
        if not isinstance(text, str) or not text.strip():
            return TextAnalysis.empty()

        keywords = _safe(lambda: self.extract_keywords(text), [], "keyword extraction")
        sentiment, score = _safe(
            lambda: self.analyze_sentiment(text), ("neutral", 0.0), "sentiment analysis"
        )
        topics = _safe(lambda: self.extract_topics(text), [], "topic extraction")

        return TextAnalysis(
            keywords=tuple(keywords),
            sentiment=sentiment,
            sentiment_score=score,
            topics=tuple(topics),
            word_count=self.count_words(text),
            sentence_count=self.count_sentences(text),
            readability=_safe(lambda: self.calculate_readability(text), 0.0, "readability"),
        )


def _safe(fn: Callable[[], T], default: T, label: str) -> T:
    try:
        return fn()
    except Exception:
        logger.warning("Text analysis step failed: %s", label, exc_info=True)
        return default
