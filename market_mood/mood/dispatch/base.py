from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

from market_mood.mood.core.schema import MoodAnalysis

log = logging.getLogger(__name__)

DEFAULT_INTER_ITEM_DELAY_MS = 100.0


def build_message(token_id: int, analysis: MoodAnalysis, contract_address: str = "") -> Dict[str, Any]:
    """Payload understood by the token contract's `update_mood(token_id, new_mood)`."""
    return {
        "tokenId": int(token_id),
        "newMood": analysis.mood.value,
        "confidence": round(float(analysis.confidence), 4),
        "symbol": analysis.symbol,
        "timestamp": int(analysis.timestamp.timestamp() * 1000),
        "contract": contract_address,
    }


class DispatchSink(ABC):
    """
    Downstream consumer of mood updates.

    `send_one` returns True only once the sink has accepted the message;
    it must not raise for ordinary delivery failures.
    """

    name = "sink"

    def __init__(self, inter_item_delay_ms: float = DEFAULT_INTER_ITEM_DELAY_MS) -> None:
        self.inter_item_delay_ms = inter_item_delay_ms
        self._stop = threading.Event()

    @abstractmethod
    def connect(self) -> None:
        ...

    @abstractmethod
    def disconnect(self) -> None:
        ...

    @abstractmethod
    def is_ready(self) -> bool:
        ...

    @abstractmethod
    def send_one(self, token_id: int, analysis: MoodAnalysis) -> bool:
        ...

    def send_batch(self, updates: Mapping[int, MoodAnalysis]) -> Dict[int, bool]:
        """Send sequentially with a fixed pause between items; no retries."""
        results: Dict[int, bool] = {}
        log.info("batch sending %d mood updates via %s", len(updates), self.name)

        for i, (token_id, analysis) in enumerate(updates.items()):
            results[token_id] = self.send_one(token_id, analysis)
            if i < len(updates) - 1 and self._stop.wait(self.inter_item_delay_ms / 1000.0):
                break

        ok = sum(1 for v in results.values() if v)
        log.info("batch complete: %d/%d successful", ok, len(updates))
        return results

    def status(self) -> Dict[str, Any]:
        return {"sink": self.name, "connected": self.is_ready()}

    def interrupt(self) -> None:
        self._stop.set()


class LoggingSink(DispatchSink):
    """Dry-run sink: logs every message and reports it delivered."""

    name = "logging"

    def __init__(self, contract_address: str = "", inter_item_delay_ms: float = DEFAULT_INTER_ITEM_DELAY_MS) -> None:
        super().__init__(inter_item_delay_ms)
        self.contract_address = contract_address
        self._connected = False
        self.sent: Dict[int, MoodAnalysis] = {}

    def connect(self) -> None:
        self._connected = True
        log.info("logging sink connected (dry run)")

    def disconnect(self) -> None:
        self._connected = False

    def is_ready(self) -> bool:
        return self._connected

    def send_one(self, token_id: int, analysis: MoodAnalysis) -> bool:
        if not self._connected:
            log.error("logging sink not connected, dropping token_id=%s", token_id)
            return False
        message = build_message(token_id, analysis, self.contract_address)
        log.info("dispatched (dry run) %s", message)
        self.sent[token_id] = analysis
        return True


def sink_status(sink: Optional[DispatchSink]) -> Dict[str, Any]:
    if sink is None:
        return {"sink": None, "connected": False}
    try:
        return sink.status()
    except Exception as e:
        log.warning("sink status failed: %s", e)
        return {"sink": sink.name, "connected": False, "error": str(e)}
