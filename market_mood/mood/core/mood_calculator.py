from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from market_mood.mood.core.schema import (
    MarketSnapshot,
    MoodAnalysis,
    MoodFactors,
    MoodState,
    SentimentSample,
    utc_now,
)


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoodThresholds:
    volatile_pct: float = 50.0
    sentiment_strong: float = 0.6
    sentiment_confidence: float = 0.7
    price_move_pct: float = 5.0
    mixed_signal_volatility_pct: float = 30.0


DEFAULT_THRESHOLDS = MoodThresholds()

MIXED_SIGNAL_CONFIDENCE = 0.6
DEFAULT_CONFIDENCE = 0.7
PRICE_CONFIDENCE_SCALE = 20.0


def decide(
    price_change_pct: float,
    sentiment_score: float,
    sentiment_confidence: float,
    volatility_pct: float,
    thresholds: MoodThresholds = DEFAULT_THRESHOLDS,
) -> Tuple[MoodState, float]:
    """
    Map market factors to a mood. Rules are checked in order, first match wins:

      1. high volatility                       -> Volatile
      2. strong, confident positive sentiment  -> PositiveSentiment
      3. strong, confident negative sentiment  -> NegativeSentiment
      4. price up with positive sentiment      -> Bullish
      5. price down with negative sentiment    -> Bearish
      6. price up, sentiment not positive      -> Volatile/Neutral
      7. price down, sentiment not negative    -> Volatile/Neutral
      8. otherwise                             -> Neutral
    """
    t = thresholds

    if volatility_pct > t.volatile_pct:
        return MoodState.VOLATILE, min(1.0, volatility_pct / 100.0)

    if sentiment_score > t.sentiment_strong and sentiment_confidence > t.sentiment_confidence:
        return MoodState.POSITIVE_SENTIMENT, sentiment_confidence
    if sentiment_score < -t.sentiment_strong and sentiment_confidence > t.sentiment_confidence:
        return MoodState.NEGATIVE_SENTIMENT, sentiment_confidence

    if price_change_pct > t.price_move_pct and sentiment_score > 0:
        return MoodState.BULLISH, min(1.0, price_change_pct / PRICE_CONFIDENCE_SCALE)
    if price_change_pct < -t.price_move_pct and sentiment_score < 0:
        return MoodState.BEARISH, min(1.0, abs(price_change_pct) / PRICE_CONFIDENCE_SCALE)

    # mixed signals: price and sentiment disagree
    if (price_change_pct > t.price_move_pct and sentiment_score <= 0) or (
        price_change_pct < -t.price_move_pct and sentiment_score >= 0
    ):
        mood = MoodState.VOLATILE if volatility_pct > t.mixed_signal_volatility_pct else MoodState.NEUTRAL
        return mood, MIXED_SIGNAL_CONFIDENCE

    return MoodState.NEUTRAL, DEFAULT_CONFIDENCE


MOOD_METADATA: Dict[MoodState, Dict[str, str]] = {
    MoodState.BULLISH: {
        "description": "Strong upward price movement with positive sentiment.",
        "color": "#22c55e",
        "emoji": "🚀",
    },
    MoodState.BEARISH: {
        "description": "Downward trend with negative sentiment.",
        "color": "#ef4444",
        "emoji": "📉",
    },
    MoodState.NEUTRAL: {
        "description": "Stable market with balanced sentiment.",
        "color": "#3b82f6",
        "emoji": "😌",
    },
    MoodState.VOLATILE: {
        "description": "High price swings and uncertainty.",
        "color": "#eab308",
        "emoji": "⚡",
    },
    MoodState.POSITIVE_SENTIMENT: {
        "description": "Strong community optimism.",
        "color": "#10b981",
        "emoji": "💚",
    },
    MoodState.NEGATIVE_SENTIMENT: {
        "description": "Community fear and doubt.",
        "color": "#f43f5e",
        "emoji": "💔",
    },
}


def describe(mood: MoodState) -> Dict[str, str]:
    return dict(MOOD_METADATA[mood])


class MoodCalculator:
    def __init__(self, thresholds: MoodThresholds = DEFAULT_THRESHOLDS) -> None:
        self.thresholds = thresholds

    def calculate_mood(
        self,
        snapshot: MarketSnapshot,
        sentiment: SentimentSample,
        volatility: float,
        timestamp: Optional[datetime] = None,
    ) -> MoodAnalysis:
        mood, confidence = decide(
            snapshot.price_change_percent_24h,
            sentiment.score,
            sentiment.confidence,
            volatility,
            self.thresholds,
        )
        analysis = MoodAnalysis(
            symbol=snapshot.symbol,
            mood=mood,
            confidence=confidence,
            factors=MoodFactors(
                price_change=snapshot.price_change_percent_24h,
                volatility=volatility,
                sentiment=sentiment.score,
                volume=snapshot.volume_24h,
            ),
            timestamp=timestamp or utc_now(),
        )
        log.info(
            "mood symbol=%s mood=%s confidence=%.2f %s",
            snapshot.symbol, mood.value, confidence, MOOD_METADATA[mood]["emoji"],
        )
        return analysis

    def batch_calculate(
        self,
        snapshots: Iterable[MarketSnapshot],
        sentiments: Mapping[str, SentimentSample],
        volatilities: Mapping[str, float],
    ) -> List[MoodAnalysis]:
        """Moods for every snapshot that has a sentiment sample; others are skipped."""
        analyses: List[MoodAnalysis] = []
        for snapshot in snapshots:
            sentiment = sentiments.get(snapshot.symbol)
            if sentiment is None:
                continue
            analyses.append(
                self.calculate_mood(snapshot, sentiment, volatilities.get(snapshot.symbol, 0.0))
            )
        return analyses


def mood_statistics(analyses: Iterable[MoodAnalysis]) -> Dict[MoodState, int]:
    stats = {mood: 0 for mood in MoodState}
    for analysis in analyses:
        stats[analysis.mood] += 1
    return stats
