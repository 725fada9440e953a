"""
Shared fixtures for the market mood test suite.

Fake market/signal sources and a scriptable sink stand in for CoinGecko,
Binance and the relayer so cycles run offline and deterministically.
"""
from datetime import datetime, timedelta, timezone

import pytest

from market_mood.mood.core.change_detector import ChangeDetector
from market_mood.mood.core.errors import DataFetchError, SinkUnavailableError
from market_mood.mood.core.mood_calculator import MoodCalculator
from market_mood.mood.core.orchestrator import MoodOrchestrator
from market_mood.mood.core.price_history import PriceHistoryStore
from market_mood.mood.core.schema import MarketSnapshot, MoodAnalysis, MoodFactors, MoodState
from market_mood.mood.core.sentiment_fusion import SentimentFusion
from market_mood.mood.core.token_registry import TokenRegistry
from market_mood.mood.dispatch.base import DispatchSink
from market_mood.mood.dispatch.dispatcher import BatchDispatcher
from market_mood.mood.dispatch.ledger import DispatchLedger
from market_mood.mood.pipelines.base import MarketDataSource, SignalSource

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_snapshot(symbol="SOL", price=100.0, pct=0.0, volume=1_000_000.0, market_cap=5e9, timestamp=T0):
    return MarketSnapshot(
        symbol=symbol,
        price=price,
        volume_24h=volume,
        price_change_24h=price * pct / 100.0,
        price_change_percent_24h=pct,
        high_24h=price * 1.05,
        low_24h=price * 0.95,
        market_cap=market_cap,
        timestamp=timestamp,
    )


def make_analysis(symbol="SOL", mood=MoodState.BULLISH, confidence=0.8, timestamp=T0):
    return MoodAnalysis(
        symbol=symbol,
        mood=mood,
        confidence=confidence,
        factors=MoodFactors(price_change=6.0, volatility=10.0, sentiment=0.3, volume=1e6),
        timestamp=timestamp,
    )


class FakeClock:
    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, minutes=5):
        self.now = self.now + timedelta(minutes=minutes)


class FakeMarketSource(MarketDataSource):
    """Snapshots keyed by symbol; an Exception value is raised instead."""

    name = "fake_market"

    def __init__(self, snapshots=None):
        self.snapshots = dict(snapshots or {})
        self.calls = []

    def fetch_snapshot(self, symbol):
        self.calls.append(symbol)
        value = self.snapshots.get(symbol)
        if value is None:
            raise DataFetchError(symbol, "no data")
        if isinstance(value, Exception):
            raise value
        return value


class FakeSignalSource(SignalSource):
    name = "fake_signal"

    def __init__(self, values=None, error=None):
        self.values = dict(values or {})
        self.error = error

    def fetch(self, symbol):
        if self.error is not None:
            raise self.error
        return self.values.get(symbol, 0.0)


class FakeSink(DispatchSink):
    """
    `outcomes` maps token id -> list of booleans consumed one per send;
    tokens without scripted outcomes always succeed.
    """

    name = "fake"

    def __init__(self, ready=True, can_connect=True, outcomes=None):
        super().__init__(inter_item_delay_ms=0)
        self.ready = ready
        self.can_connect = can_connect
        self.outcomes = {k: list(v) for k, v in (outcomes or {}).items()}
        self.attempts = []
        self.sent = []
        self.connect_calls = 0

    def connect(self):
        self.connect_calls += 1
        if not self.can_connect:
            raise SinkUnavailableError("fake sink down")
        self.ready = True

    def disconnect(self):
        self.ready = False

    def is_ready(self):
        return self.ready

    def send_one(self, token_id, analysis):
        self.attempts.append((token_id, analysis.mood))
        queue = self.outcomes.get(token_id)
        ok = queue.pop(0) if queue else True
        if ok:
            self.sent.append((token_id, analysis.mood))
        return ok


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_orchestrator(clock):
    def _make(
        market,
        tokens=None,
        social=None,
        onchain=None,
        sink=None,
        retry_attempts=1,
        max_attempts=5,
    ):
        sink = sink if sink is not None else FakeSink()
        dispatcher = BatchDispatcher(
            sink,
            inter_item_delay_ms=0,
            retry_attempts=retry_attempts,
            backoff_base_seconds=0,
        )
        return MoodOrchestrator(
            registry=TokenRegistry(tokens or {1: "SOL"}),
            market_source=market,
            social_source=social,
            onchain_source=onchain,
            history=PriceHistoryStore(),
            fusion=SentimentFusion(),
            calculator=MoodCalculator(),
            detector=ChangeDetector(),
            sink=sink,
            dispatcher=dispatcher,
            ledger=DispatchLedger(max_attempts),
            fetch_timeout_seconds=5,
            clock=clock,
        )

    return _make
