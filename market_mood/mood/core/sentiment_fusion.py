from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Deque, Dict, List, Optional

import numpy as np
import yaml

from market_mood.mood.core.errors import ConfigurationError
from market_mood.mood.core.schema import MarketSnapshot, SentimentSample, SentimentSignals, utc_now
from market_mood.mood.utils.helpers import clamp


log = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY = 50

# (threshold, score) pairs, checked from the strongest move down
TECHNICAL_BANDS = ((10.0, 0.5), (5.0, 0.3), (0.0, 0.1))
VOLUME_AMPLIFIER = 1.2

TREND_THRESHOLD = 0.1


@dataclass(frozen=True)
class SentimentWeights:
    social: float = 0.3
    on_chain: float = 0.4
    technical: float = 0.3

    @classmethod
    def from_mapping(cls, data: Dict[str, object]) -> "SentimentWeights":
        """
        Build weights from a mapping like {"social": 0.3, "on_chain": 0.4, "technical": 0.3}.
        Missing keys keep their defaults; bad values are a configuration error.
        """
        clean: Dict[str, float] = {}
        aliases = {"social": "social", "on_chain": "on_chain", "onchain": "on_chain",
                   "onChain": "on_chain", "technical": "technical"}
        for k, v in (data or {}).items():
            key = aliases.get(str(k))
            if key is None:
                log.warning("Ignoring unknown sentiment weight %r", k)
                continue
            try:
                v_float = float(v)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Sentiment weight {k!r} is not a number: {v!r}")
            if v_float < 0:
                raise ConfigurationError(f"Sentiment weight {k!r} must be non-negative, got {v_float}")
            clean[key] = v_float
        return cls(**clean)

    @classmethod
    def from_yaml(cls, weights_path: str | Path) -> "SentimentWeights":
        """
        Expects a weights file like:

        weights:
          social: 0.30
          on_chain: 0.40
          technical: 0.30
        """
        path = Path(weights_path)
        if not path.exists():
            raise ConfigurationError(f"Weights config not found at {path}")

        with path.open("r") as fh:
            data = yaml.safe_load(fh) or {}

        weights = data.get("weights", {})
        if not isinstance(weights, dict) or not weights:
            raise ConfigurationError(f"{path} must contain a 'weights' mapping")
        return cls.from_mapping(weights)


def technical_score(price_change_percent: float, volume_24h: float) -> float:
    """Banded score from the 24h move, amplified when there is traded volume."""
    score = 0.0
    for threshold, value in TECHNICAL_BANDS:
        if price_change_percent > threshold:
            score = value
            break
        if price_change_percent < -threshold:
            score = -value
            break

    if volume_24h > 0:
        score *= VOLUME_AMPLIFIER

    return clamp(score, -1.0, 1.0)


def agreement_confidence(signals: List[float]) -> float:
    """1 - population std of the signals: agreeing signals give high confidence."""
    variance = float(np.var(np.asarray(signals, dtype=float)))
    return clamp(1.0 - float(np.sqrt(variance)), 0.0, 1.0)


def sentiment_label(score: float) -> str:
    if score > 0.5:
        return "Very Positive"
    if score > 0.2:
        return "Positive"
    if score > -0.2:
        return "Neutral"
    if score > -0.5:
        return "Negative"
    return "Very Negative"


class SentimentFusion:
    """
    Combines social, on-chain and technical signals into one score per asset.

    Every fused sample is appended to a bounded per-symbol history that
    backs the average/trend queries.
    """

    def __init__(
        self,
        weights: SentimentWeights | None = None,
        history_capacity: int = DEFAULT_HISTORY_CAPACITY,
    ) -> None:
        self.weights = weights or SentimentWeights()
        self.history_capacity = history_capacity
        self._history: Dict[str, Deque[SentimentSample]] = {}

    def fuse(
        self,
        snapshot: MarketSnapshot,
        social: float = 0.0,
        on_chain: float = 0.0,
        timestamp: Optional[datetime] = None,
    ) -> SentimentSample:
        social = clamp(float(social), -1.0, 1.0)
        on_chain = clamp(float(on_chain), -1.0, 1.0)
        technical = technical_score(snapshot.price_change_percent_24h, snapshot.volume_24h)

        combined = (
            self.weights.social * social
            + self.weights.on_chain * on_chain
            + self.weights.technical * technical
        )

        sample = SentimentSample(
            symbol=snapshot.symbol,
            score=clamp(combined, -1.0, 1.0),
            confidence=agreement_confidence([social, on_chain, technical]),
            signals=SentimentSignals(social=social, on_chain=on_chain, technical=technical),
            timestamp=timestamp or utc_now(),
        )
        self._add_to_history(sample)

        log.info(
            "sentiment symbol=%s score=%.3f confidence=%.2f label=%r social=%.2f on_chain=%.2f technical=%.2f",
            sample.symbol, sample.score, sample.confidence, sentiment_label(sample.score),
            social, on_chain, technical,
        )
        return sample

    def _add_to_history(self, sample: SentimentSample) -> None:
        buf = self._history.get(sample.symbol)
        if buf is None:
            buf = deque(maxlen=self.history_capacity)
            self._history[sample.symbol] = buf
        buf.append(sample)

    # ---------- history queries ----------

    def history(self, symbol: str) -> List[SentimentSample]:
        return list(self._history.get(symbol, ()))

    def latest(self, symbol: str) -> Optional[SentimentSample]:
        buf = self._history.get(symbol)
        return buf[-1] if buf else None

    def _recent(self, symbol: str, period_minutes: float, now: Optional[datetime]) -> List[SentimentSample]:
        cutoff = (now or utc_now()) - timedelta(minutes=period_minutes)
        return [s for s in self._history.get(symbol, ()) if s.timestamp >= cutoff]

    def average_sentiment(self, symbol: str, period_minutes: float = 60, now: Optional[datetime] = None) -> float:
        recent = self._recent(symbol, period_minutes, now)
        if not recent:
            return 0.0
        return float(np.mean([s.score for s in recent]))

    def sentiment_trend(self, symbol: str, period_minutes: float = 60, now: Optional[datetime] = None) -> str:
        """'improving', 'declining' or 'stable' comparing the older and newer half of the window."""
        recent = self._recent(symbol, period_minutes, now)
        if len(recent) < 2:
            return "stable"

        mid = len(recent) // 2
        first_avg = float(np.mean([s.score for s in recent[:mid]]))
        second_avg = float(np.mean([s.score for s in recent[mid:]]))
        change = second_avg - first_avg

        if change > TREND_THRESHOLD:
            return "improving"
        if change < -TREND_THRESHOLD:
            return "declining"
        return "stable"
