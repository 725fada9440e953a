from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from market_mood.mood.core.schema import DispatchResult, DispatchStatus, MoodAnalysis, MoodState, utc_now

log = logging.getLogger(__name__)


class DeliveryState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    DEAD_LETTER = "dead_letter"


@dataclass
class LedgerEntry:
    token_id: int
    analysis: MoodAnalysis
    state: DeliveryState = DeliveryState.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    updated_at: datetime = field(default_factory=utc_now)


class DispatchLedger:
    """
    Delivery state per token id.

    Keeps "decided locally" apart from "delivered": failed items stay
    retryable until they run out of attempts, then move to the dead letter
    state. A fresh decision for a different mood replaces the old entry.
    """

    def __init__(self, max_attempts: int = 5) -> None:
        self.max_attempts = max_attempts
        self._entries: Dict[int, LedgerEntry] = {}

    def mark_pending(self, token_id: int, analysis: MoodAnalysis) -> LedgerEntry:
        """
        Register a fresh decision for delivery.

        A failed or dead lettered entry for the same mood keeps its attempt
        count so repeated decisions cannot reset the cap. A different mood
        starts a new entry.
        """
        entry = self._entries.get(token_id)
        if (
            entry is not None
            and entry.state in (DeliveryState.FAILED, DeliveryState.DEAD_LETTER)
            and entry.analysis.mood == analysis.mood
        ):
            entry.analysis = analysis
            entry.updated_at = utc_now()
            if entry.state is DeliveryState.FAILED:
                entry.state = DeliveryState.PENDING
            return entry

        entry = LedgerEntry(token_id=token_id, analysis=analysis)
        self._entries[token_id] = entry
        return entry

    def is_dead_letter(self, token_id: int, mood: MoodState) -> bool:
        entry = self._entries.get(token_id)
        return (
            entry is not None
            and entry.state is DeliveryState.DEAD_LETTER
            and entry.analysis.mood == mood
        )

    def record(self, result: DispatchResult) -> LedgerEntry:
        entry = self._entries[result.token_id]
        entry.updated_at = utc_now()
        entry.attempts += result.attempts

        if result.status is DispatchStatus.SENT:
            entry.state = DeliveryState.CONFIRMED
            entry.last_error = None
        elif entry.attempts >= self.max_attempts:
            entry.state = DeliveryState.DEAD_LETTER
            entry.last_error = result.error
            log.error(
                "dead letter token_id=%s mood=%s attempts=%d error=%s",
                entry.token_id, entry.analysis.mood.value, entry.attempts, result.error,
            )
        else:
            # skipped items did not use an attempt but still need delivering
            entry.state = DeliveryState.FAILED
            entry.last_error = result.error or result.status.value
        return entry

    def discard(self, token_id: int) -> None:
        self._entries.pop(token_id, None)

    def retryable(self) -> Dict[int, MoodAnalysis]:
        return {
            tid: e.analysis for tid, e in self._entries.items() if e.state is DeliveryState.FAILED
        }

    def get(self, token_id: int) -> Optional[LedgerEntry]:
        return self._entries.get(token_id)

    def entries(self) -> List[LedgerEntry]:
        return list(self._entries.values())

    def counts(self) -> Dict[str, int]:
        out = {state.value: 0 for state in DeliveryState}
        for e in self._entries.values():
            out[e.state.value] += 1
        return out
