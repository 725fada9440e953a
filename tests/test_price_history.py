import math
from datetime import timedelta

import pytest

from market_mood.mood.core.price_history import (
    EMPTY_MOMENTUM,
    EMPTY_VOLATILITY,
    MINUTES_PER_YEAR,
    PriceHistoryStore,
)

from conftest import T0


def _store(prices, step_minutes=1, capacity=100):
    store = PriceHistoryStore(capacity)
    for i, p in enumerate(prices):
        store.record_sample("SOL", p, T0 + timedelta(minutes=i * step_minutes))
    return store


def test_empty_and_single_sample_return_defaults():
    store = PriceHistoryStore()
    assert store.compute_volatility("SOL", 60, now=T0) == EMPTY_VOLATILITY
    assert store.compute_momentum("SOL", 60, now=T0) == EMPTY_MOMENTUM

    store.record_sample("SOL", 100.0, T0)
    assert store.compute_volatility("SOL", 60, now=T0) == 0.0
    assert store.compute_momentum("SOL", 60, now=T0) == 0.0


def test_capacity_evicts_oldest_first():
    store = _store([1.0, 2.0, 3.0, 4.0], capacity=3)
    prices = [p.price for p in store.history("SOL")]
    assert prices == [2.0, 3.0, 4.0]
    assert len(store.history("SOL")) == 3


def test_volatility_is_annualised_population_std():
    store = _store([100.0, 110.0, 99.0])
    vol = store.compute_volatility("SOL", 60, now=T0 + timedelta(minutes=2))
    # returns are +10% and -10%, population std 0.1
    expected = 0.1 * math.sqrt(MINUTES_PER_YEAR / 60) * 100.0
    assert vol == pytest.approx(expected)


def test_volatility_only_uses_points_inside_window():
    store = PriceHistoryStore()
    store.record_sample("SOL", 50.0, T0 - timedelta(minutes=120))
    store.record_sample("SOL", 100.0, T0)
    assert store.compute_volatility("SOL", 60, now=T0) == EMPTY_VOLATILITY


def test_zero_price_base_is_skipped():
    store = _store([0.0, 100.0, 110.0])
    # only one usable return left, so no dispersion
    assert store.compute_volatility("SOL", 60, now=T0 + timedelta(minutes=2)) == 0.0
    assert store.compute_momentum("SOL", 60, now=T0 + timedelta(minutes=2)) == EMPTY_MOMENTUM


def test_momentum_first_to_last():
    store = _store([100.0, 105.0, 110.0])
    assert store.compute_momentum("SOL", 60, now=T0 + timedelta(minutes=2)) == pytest.approx(10.0)


def test_symbols_are_independent():
    store = PriceHistoryStore()
    store.record_sample("SOL", 1.0, T0)
    store.record_sample("DOT", 2.0, T0)
    assert sorted(store.symbols()) == ["DOT", "SOL"]
    assert [p.price for p in store.history("DOT")] == [2.0]
    assert store.history("BTC") == []


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        PriceHistoryStore(0)
