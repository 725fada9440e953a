from __future__ import annotations

import math
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, List, Optional

import numpy as np

from market_mood.mood.core.schema import PricePoint, utc_now


DEFAULT_CAPACITY = 100

# Returned whenever fewer than MIN_SAMPLES points fall inside the window.
EMPTY_VOLATILITY = 0.0
EMPTY_MOMENTUM = 0.0
MIN_SAMPLES = 2

MINUTES_PER_YEAR = 365 * 24 * 60


class PriceHistoryStore:
    """
    Bounded per-symbol price series.

    Each symbol keeps at most `capacity` points in arrival order; the
    oldest point is dropped first once the buffer is full.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._buffers: Dict[str, Deque[PricePoint]] = {}

    def record_sample(self, symbol: str, price: float, timestamp: Optional[datetime] = None) -> PricePoint:
        point = PricePoint(price=float(price), timestamp=timestamp or utc_now())
        buf = self._buffers.get(symbol)
        if buf is None:
            buf = deque(maxlen=self.capacity)
            self._buffers[symbol] = buf
        buf.append(point)
        return point

    def history(self, symbol: str) -> List[PricePoint]:
        return list(self._buffers.get(symbol, ()))

    def symbols(self) -> List[str]:
        return list(self._buffers.keys())

    def _window(self, symbol: str, window_minutes: float, now: Optional[datetime]) -> List[PricePoint]:
        buf = self._buffers.get(symbol)
        if not buf:
            return []
        cutoff = (now or utc_now()) - timedelta(minutes=window_minutes)
        return [p for p in buf if p.timestamp >= cutoff]

    def compute_volatility(self, symbol: str, window_minutes: float = 60, now: Optional[datetime] = None) -> float:
        """
        Annualised standard deviation of period-over-period returns, in percent.

        Returns EMPTY_VOLATILITY when the window holds fewer than two points.
        """
        points = self._window(symbol, window_minutes, now)
        if len(points) < MIN_SAMPLES or window_minutes <= 0:
            return EMPTY_VOLATILITY

        prices = np.array([p.price for p in points], dtype=float)
        prev = prices[:-1]
        valid = prev != 0
        if not valid.any():
            return EMPTY_VOLATILITY
        returns = (prices[1:][valid] - prev[valid]) / prev[valid]

        std = float(np.std(returns))  # population std
        periods_per_year = MINUTES_PER_YEAR / window_minutes
        return std * math.sqrt(periods_per_year) * 100.0

    def compute_momentum(self, symbol: str, window_minutes: float = 60, now: Optional[datetime] = None) -> float:
        """Percent change from the first to the last point inside the window."""
        points = self._window(symbol, window_minutes, now)
        if len(points) < MIN_SAMPLES:
            return EMPTY_MOMENTUM
        first = points[0].price
        last = points[-1].price
        if first == 0:
            return EMPTY_MOMENTUM
        return (last - first) / first * 100.0
