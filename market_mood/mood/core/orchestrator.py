from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from market_mood.mood.core.change_detector import ChangeDetector
from market_mood.mood.core.errors import DataFetchError, SinkUnavailableError
from market_mood.mood.core.mood_calculator import MoodCalculator, mood_statistics
from market_mood.mood.core.price_history import PriceHistoryStore
from market_mood.mood.core.schema import DispatchResult, MarketSnapshot, MoodAnalysis, utc_now
from market_mood.mood.core.sentiment_fusion import SentimentFusion
from market_mood.mood.core.token_registry import TokenRegistry
from market_mood.mood.dispatch.base import DispatchSink
from market_mood.mood.dispatch.dispatcher import BatchDispatcher
from market_mood.mood.dispatch.ledger import DispatchLedger
from market_mood.mood.pipelines.base import NEUTRAL_SIGNAL, MarketDataSource, SignalSource, read_signal


log = logging.getLogger(__name__)


@dataclass
class CycleReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    fetched: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    analyses: Dict[int, MoodAnalysis] = field(default_factory=dict)
    batch: List[int] = field(default_factory=list)
    retried: List[int] = field(default_factory=list)
    results: Dict[int, DispatchResult] = field(default_factory=dict)
    sink_ready: bool = False

    def summary(self) -> Dict[str, object]:
        counts = mood_statistics(self.analyses.values())
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "fetched": list(self.fetched),
            "failed": dict(self.failed),
            "batch": list(self.batch),
            "retried": list(self.retried),
            "sink_ready": self.sink_ready,
            "results": {str(tid): r.status.value for tid, r in self.results.items()},
            "moods": {m.value: n for m, n in counts.items()},
        }


class MoodOrchestrator:
    """
    One dispatch cycle end to end:
      - fetch snapshots and signals for every tracked symbol (joined)
      - record prices, compute volatility, fuse sentiment
      - decide a mood per token and keep only warranted changes
      - send the batch and retries through the sink when it is ready

    Only one cycle runs at a time; history buffers are written from the
    calling thread after the fetch barrier.
    """

    def __init__(
        self,
        registry: TokenRegistry,
        market_source: MarketDataSource,
        history: PriceHistoryStore,
        fusion: SentimentFusion,
        calculator: MoodCalculator,
        detector: ChangeDetector,
        sink: DispatchSink,
        dispatcher: BatchDispatcher,
        ledger: DispatchLedger,
        social_source: Optional[SignalSource] = None,
        onchain_source: Optional[SignalSource] = None,
        volatility_lookback_minutes: float = 60,
        fetch_timeout_seconds: float = 10,
        fetch_concurrency: int = 8,
        cycle_timeout_seconds: float = 120,
        clock: Callable[[], datetime] = utc_now,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.registry = registry
        self.market_source = market_source
        self.social_source = social_source
        self.onchain_source = onchain_source
        self.history = history
        self.fusion = fusion
        self.calculator = calculator
        self.detector = detector
        self.sink = sink
        self.dispatcher = dispatcher
        self.ledger = ledger
        self.volatility_lookback_minutes = volatility_lookback_minutes
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.fetch_concurrency = max(1, fetch_concurrency)
        self.cycle_timeout_seconds = cycle_timeout_seconds
        self.clock = clock
        self.stop_event = stop_event or dispatcher.stop_event

        self.latest_analyses: Dict[int, MoodAnalysis] = {}
        self.last_report: Optional[CycleReport] = None
        self.cycles_run = 0

    # ---------- fetch ----------

    def _guarded(self, fn: Callable, symbol: str):
        if self.stop_event.is_set():
            raise DataFetchError(symbol, "engine stopping")
        return fn(symbol)

    def fetch_all(self, symbols: List[str]) -> Tuple[Dict[str, MarketSnapshot], Dict[str, Tuple[float, float]], Dict[str, str]]:
        """
        Fan out snapshot and signal reads, then wait for all of them up to
        `fetch_timeout_seconds`. Reads still running at the deadline are
        abandoned: a missing snapshot skips the symbol, a missing signal
        counts as neutral.
        """
        snapshots: Dict[str, MarketSnapshot] = {}
        signals: Dict[str, Tuple[float, float]] = {}
        failed: Dict[str, str] = {}
        if not symbols:
            return snapshots, signals, failed

        workers = min(self.fetch_concurrency, len(symbols) * 3)
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fetch")
        try:
            snap_futures: Dict[str, Future] = {}
            social_futures: Dict[str, Future] = {}
            onchain_futures: Dict[str, Future] = {}
            for symbol in symbols:
                snap_futures[symbol] = pool.submit(self._guarded, self.market_source.fetch_snapshot, symbol)
                social_futures[symbol] = pool.submit(read_signal, self.social_source, symbol)
                onchain_futures[symbol] = pool.submit(read_signal, self.onchain_source, symbol)

            everything = [*snap_futures.values(), *social_futures.values(), *onchain_futures.values()]
            wait(everything, timeout=self.fetch_timeout_seconds)

            for symbol in symbols:
                fut = snap_futures[symbol]
                if not fut.done():
                    fut.cancel()
                    failed[symbol] = f"timed out after {self.fetch_timeout_seconds:.0f}s"
                    log.warning("snapshot timeout symbol=%s", symbol)
                    continue
                try:
                    snapshots[symbol] = fut.result()
                except DataFetchError as e:
                    failed[symbol] = e.reason
                    log.warning("snapshot failed symbol=%s reason=%s", symbol, e.reason)
                    continue
                except Exception as e:
                    failed[symbol] = str(e)
                    log.warning("snapshot failed symbol=%s error=%r", symbol, e)
                    continue

                signals[symbol] = (
                    self._signal_result(social_futures[symbol], symbol, "social"),
                    self._signal_result(onchain_futures[symbol], symbol, "on_chain"),
                )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return snapshots, signals, failed

    def _signal_result(self, fut: Future, symbol: str, kind: str) -> float:
        if not fut.done():
            fut.cancel()
            log.warning("signal timeout kind=%s symbol=%s, using neutral", kind, symbol)
            return NEUTRAL_SIGNAL
        # read_signal never raises
        return fut.result()

    # ---------- cycle ----------

    def run_cycle(self) -> CycleReport:
        report = CycleReport(started_at=self.clock())
        deadline = time.monotonic() + self.cycle_timeout_seconds

        symbols = self.registry.symbols()
        snapshots, signals, report.failed = self.fetch_all(symbols)
        report.fetched = list(snapshots.keys())

        now = self.clock()
        volatilities: Dict[str, float] = {}
        sentiments = {}
        for symbol, snap in snapshots.items():
            self.history.record_sample(symbol, snap.price, now)
            volatilities[symbol] = self.history.compute_volatility(
                symbol, self.volatility_lookback_minutes, now
            )
            social, on_chain = signals.get(symbol, (NEUTRAL_SIGNAL, NEUTRAL_SIGNAL))
            sentiments[symbol] = self.fusion.fuse(snap, social, on_chain, timestamp=now)

        fresh: Dict[int, MoodAnalysis] = {}
        for token_id, symbol in self.registry.pairs():
            snap = snapshots.get(symbol)
            if snap is None:
                continue
            fresh[token_id] = self.calculator.calculate_mood(
                snap, sentiments[symbol], volatilities[symbol], timestamp=now
            )
        report.analyses = fresh
        self.latest_analyses.update(fresh)

        batch = {
            tid: a for tid, a in fresh.items() if self.detector.evaluate(tid, a.mood, a.confidence)
        }
        for tid in [t for t, a in batch.items() if self.ledger.is_dead_letter(t, a.mood)]:
            log.debug("skipping dead lettered token_id=%s mood=%s", tid, batch[tid].mood.value)
            del batch[tid]
        retries = self._collect_retries(fresh, batch)
        report.batch = sorted(batch)
        report.retried = sorted(retries)

        if batch or retries:
            report.sink_ready = self._ensure_sink()
            if report.sink_ready:
                report.results = self._dispatch(batch, retries, deadline)
            else:
                err = SinkUnavailableError(f"sink {self.sink.name} not ready")
                for tid, a in {**retries, **batch}.items():
                    log.warning(
                        "not dispatched token_id=%s symbol=%s mood=%s confidence=%.2f: %s",
                        tid, a.symbol, a.mood.value, a.confidence, err,
                    )
        else:
            report.sink_ready = self.sink.is_ready()
            log.info("no mood changes this cycle")

        report.finished_at = self.clock()
        self.last_report = report
        self.cycles_run += 1
        log.info(
            "cycle done fetched=%d failed=%d changes=%d retries=%d",
            len(report.fetched), len(report.failed), len(batch), len(retries),
        )
        return report

    def _collect_retries(self, fresh: Dict[int, MoodAnalysis], batch: Dict[int, MoodAnalysis]) -> Dict[int, MoodAnalysis]:
        """
        Failed deliveries from earlier cycles that still stand.

        A warranted fresh decision replaces the retry. A fresh decision for a
        different mood that is not warranted makes the old one stale, so it
        is dropped.
        """
        retries: Dict[int, MoodAnalysis] = {}
        for tid, old in self.ledger.retryable().items():
            if tid in batch:
                continue
            current = fresh.get(tid)
            if current is not None and current.mood != old.mood:
                log.info(
                    "dropping stale retry token_id=%s old=%s current=%s",
                    tid, old.mood.value, current.mood.value,
                )
                self.ledger.discard(tid)
                continue
            retries[tid] = old
        return retries

    def _ensure_sink(self) -> bool:
        if self.sink.is_ready():
            return True
        try:
            self.sink.connect()
        except SinkUnavailableError as e:
            log.warning("sink reconnect failed: %s", e)
        return self.sink.is_ready()

    def _dispatch(
        self,
        batch: Dict[int, MoodAnalysis],
        retries: Dict[int, MoodAnalysis],
        deadline: float,
    ) -> Dict[int, DispatchResult]:
        for tid, analysis in batch.items():
            self.ledger.mark_pending(tid, analysis)

        results = self.dispatcher.dispatch({**retries, **batch}, deadline=deadline)
        for tid, result in results.items():
            self.ledger.record(result)
            if result.ok:
                self.detector.commit(tid, result.mood)
        return results

    def stop(self) -> None:
        self.stop_event.set()
        self.sink.interrupt()
