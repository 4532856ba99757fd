"""
Payment category classifier.

Three strategies are tried in order. The first one that produces a winner
decides the category:

1. direct   - keyword substring match, one weight per keyword found
2. fuzzy    - approximate keyword match for OCR misspellings (rapidfuzz)
3. fragment - short stems, for text where OCR split words apart

Each strategy is a plain function ``(text) -> StrategyMatch | None`` so it
can be tested on its own. Ties inside a stage are resolved with
CATEGORY_PRIORITY, never by iteration order.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from rapidfuzz.distance import Levenshtein

from .categories import CATEGORY_PRIORITY, PaymentCategory
from .normalize import normalize_text
from .patterns import CATEGORY_PATTERNS, FRAGMENT_PATTERNS, CategoryPattern

logger = logging.getLogger(__name__)

# Fuzzy stage parameters
FUZZY_MAX_DISTANCE = 0.3
FUZZY_WINDOW = 50
FUZZY_MIN_MATCH_LENGTH = 4
FUZZY_MIN_SCORE = 0.5


@dataclass(frozen=True)
class StrategyMatch:
    """Winner of a single strategy."""

    category: PaymentCategory
    score: float
    scores: dict[PaymentCategory, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of a classify() call."""

    category: PaymentCategory
    strategy_used: str  # direct, fuzzy, fragment, none
    scores: dict[PaymentCategory, float] = field(default_factory=dict)

    @property
    def is_unknown(self) -> bool:
        return self.category is PaymentCategory.UNKNOWN


def pick_winner(
    scores: dict[PaymentCategory, float],
    threshold: float = 0.0,
) -> StrategyMatch | None:
    """
    Pick the top-scoring category if it clears ``threshold`` (strictly).

    Categories sharing the top score are ordered by CATEGORY_PRIORITY.
    """
    best: PaymentCategory | None = None
    best_score = 0.0
    for category in CATEGORY_PRIORITY:
        score = scores.get(category, 0.0)
        if score > best_score:
            best, best_score = category, score

    if best is None or best_score <= threshold:
        return None
    return StrategyMatch(category=best, score=best_score, scores=dict(scores))


def _fuzzy_windows(text: str) -> list[str]:
    if len(text) <= FUZZY_WINDOW:
        return [text]
    step = FUZZY_WINDOW // 2
    return [text[i : i + FUZZY_WINDOW] for i in range(0, len(text) - step, step)]


def _span_distance(keyword_tokens: Sequence[str], span: Sequence[str]) -> float:
    # Every word of the keyword must be close to its counterpart
    return max(
        Levenshtein.normalized_distance(word, candidate)
        for word, candidate in zip(keyword_tokens, span)
    )


def _best_distance(keyword: str, windows: Sequence[str]) -> float:
    """
    Smallest distance between ``keyword`` and any run of as many
    consecutive tokens inside one window.
    """
    keyword_tokens = keyword.split()
    size = len(keyword_tokens)
    best = 1.0
    for window in windows:
        tokens = window.split()
        for start in range(len(tokens) - size + 1):
            best = min(best, _span_distance(keyword_tokens, tokens[start : start + size]))
    return best


def direct_keyword_match(
    text: str,
    patterns: Sequence[CategoryPattern] = CATEGORY_PATTERNS,
) -> StrategyMatch | None:
    """Add a pattern's weight once for every keyword contained in ``text``."""
    scores: dict[PaymentCategory, float] = {}
    for pattern in patterns:
        for keyword in pattern.keywords:
            if keyword in text:
                scores[pattern.category] = scores.get(pattern.category, 0.0) + pattern.weight
                logger.debug(
                    "Keyword '%s' -> %s (+%s)", keyword, pattern.category.value, pattern.weight
                )
    return pick_winner(scores)


def fuzzy_keyword_match(
    text: str,
    patterns: Sequence[CategoryPattern] = CATEGORY_PATTERNS,
) -> StrategyMatch | None:
    """
    Approximate keyword match.

    The text is scanned in overlapping windows of FUZZY_WINDOW characters.
    A keyword of n words is compared with every run of n consecutive
    tokens in a window, word by word, using normalized Levenshtein
    distance; the worst word decides the distance of the run. A keyword
    matches when its best run is at most FUZZY_MAX_DISTANCE away and then
    contributes ``(1 - distance) * weight``. A category must total more than
    FUZZY_MIN_SCORE to win.
    """
    if len(text) < FUZZY_MIN_MATCH_LENGTH:
        return None

    windows = _fuzzy_windows(text)
    scores: dict[PaymentCategory, float] = {}
    for pattern in patterns:
        for keyword in pattern.keywords:
            if len(keyword) < FUZZY_MIN_MATCH_LENGTH:
                continue
            distance = _best_distance(keyword, windows)
            if distance <= FUZZY_MAX_DISTANCE:
                contribution = (1.0 - distance) * pattern.weight
                scores[pattern.category] = scores.get(pattern.category, 0.0) + contribution
                logger.debug(
                    "Fuzzy '%s' -> %s (distance=%.2f, +%.2f)",
                    keyword,
                    pattern.category.value,
                    distance,
                    contribution,
                )
    return pick_winner(scores, threshold=FUZZY_MIN_SCORE)


def fragment_match(
    text: str,
    patterns: Sequence[CategoryPattern] = FRAGMENT_PATTERNS,
) -> StrategyMatch | None:
    """Containment check for short category stems."""
    scores: dict[PaymentCategory, float] = {}
    for pattern in patterns:
        for stem in pattern.keywords:
            if stem in text:
                scores[pattern.category] = scores.get(pattern.category, 0.0) + pattern.weight
    return pick_winner(scores)


Strategy = Callable[[str], StrategyMatch | None]

DEFAULT_STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("direct", direct_keyword_match),
    ("fuzzy", fuzzy_keyword_match),
    ("fragment", fragment_match),
)


class TypeClassifier:
    """Assigns a PaymentCategory to receipt text."""

    def __init__(self, strategies: Sequence[tuple[str, Strategy]] = DEFAULT_STRATEGIES):
        self.strategies = tuple(strategies)

    def classify(self, normalized: str) -> ClassificationResult:
        """
        Classify already-normalized text.

        ``unknown`` is a valid result, not an error.
        """
        for name, strategy in self.strategies:
            match = strategy(normalized)
            logger.debug("Strategy %s: %s", name, match.category.value if match else None)
            if match is not None:
                return ClassificationResult(
                    category=match.category,
                    strategy_used=name,
                    scores=match.scores,
                )
        return ClassificationResult(category=PaymentCategory.UNKNOWN, strategy_used="none")

    def classify_raw(self, raw: str) -> ClassificationResult:
        """Normalize ``raw`` and classify it."""
        return self.classify(normalize_text(raw))
