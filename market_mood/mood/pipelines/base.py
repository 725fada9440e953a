from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from market_mood.mood.core.schema import MarketSnapshot
from market_mood.mood.utils.helpers import clamp

log = logging.getLogger(__name__)

NEUTRAL_SIGNAL = 0.0


class MarketDataSource(ABC):
    """Returns the freshest snapshot for a symbol or raises DataFetchError."""

    name = "market"

    @abstractmethod
    def fetch_snapshot(self, symbol: str) -> MarketSnapshot:
        ...


class SignalSource(ABC):
    """A numeric sentiment proxy in [-1, 1] for one symbol."""

    name = "signal"

    @abstractmethod
    def fetch(self, symbol: str) -> float:
        ...


class NullSignalSource(SignalSource):
    name = "none"

    def fetch(self, symbol: str) -> float:
        return NEUTRAL_SIGNAL


def read_signal(source: SignalSource | None, symbol: str) -> float:
    """
    Soft read: a missing or failing source counts as neutral.
    The value is clamped to [-1, 1] whatever the source returns.
    """
    if source is None:
        return NEUTRAL_SIGNAL
    try:
        value = float(source.fetch(symbol))
    except Exception as e:
        log.warning("signal fetch failed source=%s symbol=%s error=%s", source.name, symbol, e)
        return NEUTRAL_SIGNAL
    if value != value:  # NaN
        log.warning("signal source=%s symbol=%s returned NaN", source.name, symbol)
        return NEUTRAL_SIGNAL
    return clamp(value, -1.0, 1.0)
