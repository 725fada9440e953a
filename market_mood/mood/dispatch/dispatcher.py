from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Mapping, Optional

from market_mood.mood.core.schema import DispatchResult, DispatchStatus, MoodAnalysis
from market_mood.mood.dispatch.base import DispatchSink

log = logging.getLogger(__name__)


class BatchDispatcher:
    """
    Sends a batch through a sink with a bounded worker pool.

    Each item is retried up to `retry_attempts` times with exponential
    backoff. Every worker pauses `inter_item_delay_ms` after a send, so
    concurrency=1 gives plain throttled sequential dispatch.
    """

    def __init__(
        self,
        sink: DispatchSink,
        concurrency: int = 1,
        inter_item_delay_ms: float = 100.0,
        retry_attempts: int = 3,
        backoff_base_seconds: float = 0.5,
        backoff_max_seconds: float = 8.0,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.sink = sink
        self.concurrency = max(1, concurrency)
        self.inter_item_delay_ms = inter_item_delay_ms
        self.retry_attempts = max(1, retry_attempts)
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.stop_event = stop_event or threading.Event()

    def backoff(self, attempt: int) -> float:
        """Delay after the `attempt`-th failure (0-based)."""
        return min(self.backoff_max_seconds, self.backoff_base_seconds * (2 ** attempt))

    def _expired(self, deadline: Optional[float]) -> bool:
        return deadline is not None and time.monotonic() >= deadline

    def _send(self, token_id: int, analysis: MoodAnalysis, deadline: Optional[float]) -> DispatchResult:
        attempts = 0
        error: Optional[str] = None

        for attempt in range(self.retry_attempts):
            if self.stop_event.is_set() or self._expired(deadline):
                break
            attempts += 1
            try:
                ok = self.sink.send_one(token_id, analysis)
                if not ok:
                    error = "rejected by sink"
            except Exception as e:
                log.warning("send raised token_id=%s attempt=%d error=%s", token_id, attempts, e)
                ok = False
                error = str(e)

            if ok:
                return DispatchResult(token_id, DispatchStatus.SENT, analysis.mood, attempts)

            if attempt < self.retry_attempts - 1:
                delay = self.backoff(attempt)
                log.info("retrying token_id=%s in %.2fs (attempt %d/%d)", token_id, delay, attempts, self.retry_attempts)
                if self.stop_event.wait(delay):
                    break

        if attempts == 0:
            reason = "stopped" if self.stop_event.is_set() else "cycle deadline reached"
            return DispatchResult(token_id, DispatchStatus.SKIPPED, analysis.mood, 0, reason)
        return DispatchResult(token_id, DispatchStatus.FAILED, analysis.mood, attempts, error)

    def _worker(self, token_id: int, analysis: MoodAnalysis, deadline: Optional[float]) -> DispatchResult:
        result = self._send(token_id, analysis, deadline)
        if result.status is not DispatchStatus.SKIPPED and self.inter_item_delay_ms > 0:
            self.stop_event.wait(self.inter_item_delay_ms / 1000.0)
        return result

    def dispatch(self, batch: Mapping[int, MoodAnalysis], deadline: Optional[float] = None) -> Dict[int, DispatchResult]:
        if not batch:
            return {}

        log.info("dispatching %d mood updates via %s (workers=%d)", len(batch), self.sink.name, self.concurrency)
        workers = min(self.concurrency, len(batch))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dispatch") as pool:
            futures = {
                tid: pool.submit(self._worker, tid, analysis, deadline) for tid, analysis in batch.items()
            }
            results = {tid: f.result() for tid, f in futures.items()}

        sent = sum(1 for r in results.values() if r.status is DispatchStatus.SENT)
        failed = sum(1 for r in results.values() if r.status is DispatchStatus.FAILED)
        skipped = len(results) - sent - failed
        log.info("dispatch complete sent=%d failed=%d skipped=%d", sent, failed, skipped)
        return results
