from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MoodState(str, Enum):
    """Mood states, values match the token contract's enum variants."""
    BULLISH = "Bullish"
    BEARISH = "Bearish"
    NEUTRAL = "Neutral"
    VOLATILE = "Volatile"
    POSITIVE_SENTIMENT = "PositiveSentiment"
    NEGATIVE_SENTIMENT = "NegativeSentiment"


@dataclass(frozen=True)
class PricePoint:
    price: float
    timestamp: datetime


@dataclass(frozen=True)
class MarketSnapshot:
    """
    One polling cycle's read of an asset.

    Produced by a market data source, consumed by the history store
    and sentiment fusion, never stored as-is.
    """
    symbol: str
    price: float
    volume_24h: float
    price_change_24h: float
    price_change_percent_24h: float
    high_24h: float
    low_24h: float
    market_cap: float
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class SentimentSignals:
    social: float
    on_chain: float
    technical: float


@dataclass(frozen=True)
class SentimentSample:
    """
    Fused sentiment for one asset at one point in time.

    `score` is in [-1.0, 1.0], `confidence` in [0.0, 1.0].
    """
    symbol: str
    score: float
    confidence: float
    signals: SentimentSignals
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class MoodFactors:
    price_change: float
    volatility: float
    sentiment: float
    volume: float


@dataclass(frozen=True)
class MoodAnalysis:
    symbol: str
    mood: MoodState
    confidence: float
    factors: MoodFactors
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["mood"] = self.mood.value
        out["timestamp"] = self.timestamp.isoformat()
        return out


class DispatchStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class DispatchResult:
    token_id: int
    status: DispatchStatus
    mood: MoodState
    attempts: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is DispatchStatus.SENT
