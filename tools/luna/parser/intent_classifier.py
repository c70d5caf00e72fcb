"""Intent classification for typed utterances.

Scores every (category, action) pair from the weighted trigger tables in
keywords.py, then decides near-ties with context: the module the user is
in first, then what they asked about recently, then a fixed category
order. Never raises; anything unreadable comes back as general/help with
low confidence.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass

from tools.logging_config import get_logger
from tools.luna.config import ClassifierConfig
from tools.luna.models import (
    CATEGORY_ACTIONS,
    AppContext,
    Intent,
    IntentCategory,
    ResolutionSource,
)
from tools.luna.parser.keywords import (
    CATEGORY_ORDER,
    STOPWORDS,
    CompiledTables,
    Trigger,
    get_tables,
    normalize,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class Candidate:
    """Best action for one category and its combined score."""

    category: IntentCategory
    action: str
    score: float
    terms: tuple[str, ...] = ()


def _match(triggers: tuple[Trigger, ...], normalized: str, lowered: str) -> tuple[float, list[str]]:
    score = 0.0
    terms: list[str] = []
    for trigger in triggers:
        text = lowered if trigger.source == "raw" else normalized
        if trigger.pattern.search(text):
            score += trigger.weight
            terms.append(trigger.label)
    return score, terms


class IntentClassifier:
    """Deterministic keyword classifier with context tie-breaking."""

    def __init__(self, config: ClassifierConfig | None = None, tables: CompiledTables | None = None):
        self.config = config or ClassifierConfig()
        self._tables = tables or get_tables()

    def classify(self, text: str, context: AppContext | None = None) -> Intent:
        """Classify an utterance. Same text and context always give the same Intent."""
        try:
            return self._classify(text, context)
        except Exception:
            logger.exception("classification_failed", text=str(text)[:200])
            return self.fallback_intent()

    def fallback_intent(self) -> Intent:
        return Intent(
            category=IntentCategory.GENERAL,
            action="help",
            confidence=self.config.fallback_confidence,
            resolved_by=ResolutionSource.FALLBACK,
        )

    def score(self, text: str) -> list[Candidate]:
        """Score every category, best first (ties broken by category order)."""
        raw = text if isinstance(text, str) else ""
        normalized = normalize(raw)
        lowered = raw.casefold()
        candidates = [self._score_category(cat, normalized, lowered) for cat in CATEGORY_ORDER]
        return sorted(candidates, key=lambda c: (-c.score, CATEGORY_ORDER.index(c.category)))

    # ─── Internals ────────────────────────────────────────────────────

    def _classify(self, text: str, context: AppContext | None) -> Intent:
        if not isinstance(text, str):
            text = "" if text is None else str(text)

        tokens = normalize(text).split()
        if not any(token not in STOPWORDS for token in tokens):
            return self.fallback_intent()

        ranked = self.score(text)
        top = ranked[0]
        if top.score < self.config.min_signal:
            return self.fallback_intent()

        chosen, source = top, ResolutionSource.KEYWORDS
        delta = self.config.disambiguation_delta
        if top.score - ranked[1].score < delta:
            contenders = [
                c for c in ranked
                if c.score >= self.config.min_signal and top.score - c.score < delta
            ]
            if len(contenders) > 1:
                chosen, source = self._disambiguate(contenders, context)

        confidence = self._confidence(chosen, ranked, context)
        return Intent(
            category=chosen.category,
            action=chosen.action,
            confidence=confidence,
            matched_terms=chosen.terms,
            resolved_by=source,
        )

    def _score_category(self, category: IntentCategory, normalized: str, lowered: str) -> Candidate:
        cat_score, cat_terms = _match(self._tables.category[category], normalized, lowered)

        # No action evidence means the category default (first action)
        best_action = CATEGORY_ACTIONS[category][0]
        best_score = 0.0
        best_terms: list[str] = []
        for action in CATEGORY_ACTIONS[category]:
            score, terms = _match(self._tables.actions[category][action], normalized, lowered)
            if score > best_score:
                best_action, best_score, best_terms = action, score, terms

        return Candidate(
            category=category,
            action=best_action,
            score=round(cat_score + best_score, 4),
            terms=tuple(cat_terms + best_terms),
        )

    def _disambiguate(
        self,
        contenders: list[Candidate],
        context: AppContext | None,
    ) -> tuple[Candidate, ResolutionSource]:
        if context is not None:
            module_category = context.module_category
            for candidate in contenders:
                if candidate.category == module_category:
                    return candidate, ResolutionSource.MODULE

            counts = Counter(i.category for i in context.session_context.recent_intents)
            best = max(contenders, key=lambda c: counts.get(c.category, 0))
            if counts.get(best.category, 0) > 0:
                return best, ResolutionSource.HISTORY

        top = contenders[0]
        if contenders[1].score == top.score:
            return top, ResolutionSource.ORDER
        return top, ResolutionSource.KEYWORDS

    def _confidence(
        self,
        chosen: Candidate,
        ranked: list[Candidate],
        context: AppContext | None,
    ) -> float:
        cfg = self.config
        signal = 1.0 - math.exp(-chosen.score)
        runner_up = max(
            (c.score for c in ranked if c.category != chosen.category),
            default=0.0,
        )
        margin = max(0.0, min(1.0, (chosen.score - runner_up) / cfg.disambiguation_delta))
        confidence = signal * (0.75 + 0.25 * margin)

        if context is not None and context.module_category == chosen.category:
            confidence += cfg.context_bonus

        return round(max(0.0, min(cfg.max_confidence, confidence)), 4)


_default_classifier: IntentClassifier | None = None


def classify(text: str, context: AppContext | None = None) -> Intent:
    """Classify with a shared classifier built from default settings."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = IntentClassifier()
    return _default_classifier.classify(text, context)


__all__ = ["Candidate", "IntentClassifier", "classify"]
