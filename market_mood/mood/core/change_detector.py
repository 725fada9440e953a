from __future__ import annotations

import logging
from typing import Dict, Optional

from market_mood.mood.core.schema import MoodState


log = logging.getLogger(__name__)

DEFAULT_CHANGE_CONFIDENCE = 0.6


def should_update(
    previous: Optional[MoodState],
    candidate: MoodState,
    confidence: float,
    threshold: float = DEFAULT_CHANGE_CONFIDENCE,
) -> bool:
    """
    True for the first mood ever seen for a token, or for a different mood
    decided with confidence above `threshold`. Same mood never updates.
    """
    if previous is None:
        return True
    return candidate != previous and confidence > threshold


class ChangeDetector:
    """Owns the table of the last confirmed mood per token id."""

    def __init__(self, threshold: float = DEFAULT_CHANGE_CONFIDENCE) -> None:
        self.threshold = threshold
        self._previous: Dict[int, MoodState] = {}

    def previous(self, token_id: int) -> Optional[MoodState]:
        return self._previous.get(token_id)

    def evaluate(self, token_id: int, candidate: MoodState, confidence: float) -> bool:
        prev = self._previous.get(token_id)
        warranted = should_update(prev, candidate, confidence, self.threshold)
        if not warranted:
            log.debug(
                "no change token_id=%s previous=%s candidate=%s confidence=%.2f",
                token_id, prev.value if prev else None, candidate.value, confidence,
            )
        return warranted

    def commit(self, token_id: int, mood: MoodState) -> None:
        self._previous[token_id] = mood

    def snapshot(self) -> Dict[int, MoodState]:
        return dict(self._previous)
