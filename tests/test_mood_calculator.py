import pytest

from market_mood.mood.core.mood_calculator import (
    MoodCalculator,
    MoodThresholds,
    decide,
    describe,
    mood_statistics,
)
from market_mood.mood.core.schema import MoodState
from market_mood.mood.core.sentiment_fusion import SentimentFusion

from conftest import T0, make_snapshot


@pytest.mark.parametrize(
    "price, sentiment, confidence, volatility, mood, mood_confidence",
    [
        (6.0, 0.2, 0.5, 10.0, MoodState.BULLISH, 0.3),
        (-6.0, -0.1, 0.5, 55.0, MoodState.VOLATILE, 0.55),
        (1.0, 0.75, 0.8, 5.0, MoodState.POSITIVE_SENTIMENT, 0.8),
        (7.0, -0.2, 0.5, 35.0, MoodState.VOLATILE, 0.6),
        (0.5, 0.05, 0.5, 2.0, MoodState.NEUTRAL, 0.7),
    ],
)
def test_decision_scenarios(price, sentiment, confidence, volatility, mood, mood_confidence):
    got_mood, got_confidence = decide(price, sentiment, confidence, volatility)
    assert got_mood is mood
    assert got_confidence == pytest.approx(mood_confidence)


@pytest.mark.parametrize("price", [-30.0, -6.0, 0.0, 6.0, 30.0])
@pytest.mark.parametrize("sentiment", [-0.9, 0.0, 0.9])
def test_high_volatility_always_wins(price, sentiment):
    assert decide(price, sentiment, 0.95, 75.0) == (MoodState.VOLATILE, 0.75)


def test_volatility_confidence_is_capped():
    assert decide(0.0, 0.0, 0.5, 250.0) == (MoodState.VOLATILE, 1.0)


def test_negative_sentiment_and_bearish():
    assert decide(0.0, -0.7, 0.8, 10.0) == (MoodState.NEGATIVE_SENTIMENT, 0.8)
    mood, conf = decide(-30.0, -0.2, 0.5, 10.0)
    assert mood is MoodState.BEARISH
    assert conf == 1.0


def test_mixed_signal_calm_market_is_neutral():
    assert decide(-8.0, 0.1, 0.5, 10.0) == (MoodState.NEUTRAL, 0.6)
    assert decide(8.0, 0.0, 0.5, 10.0) == (MoodState.NEUTRAL, 0.6)


def test_strong_sentiment_needs_confidence():
    # confidence at the threshold is not enough, falls through to bullish
    mood, _ = decide(6.0, 0.8, 0.7, 10.0)
    assert mood is MoodState.BULLISH


def test_decide_is_deterministic():
    args = (4.2, 0.31, 0.66, 18.5)
    assert all(decide(*args) == decide(*args) for _ in range(10))


def test_custom_thresholds():
    strict = MoodThresholds(volatile_pct=10.0)
    assert decide(0.0, 0.0, 0.5, 15.0, strict)[0] is MoodState.VOLATILE


def test_calculate_mood_records_factors():
    snapshot = make_snapshot(pct=6.0, volume=2_000.0)
    sentiment = SentimentFusion().fuse(snapshot, social=0.5, on_chain=0.5, timestamp=T0)

    analysis = MoodCalculator().calculate_mood(snapshot, sentiment, 10.0, timestamp=T0)

    assert analysis.mood is MoodState.BULLISH
    assert analysis.factors.price_change == 6.0
    assert analysis.factors.volatility == 10.0
    assert analysis.factors.sentiment == sentiment.score
    assert analysis.factors.volume == 2_000.0
    assert analysis.to_dict()["mood"] == "Bullish"


def test_batch_calculate_skips_missing_sentiment():
    fusion = SentimentFusion()
    sol = make_snapshot("SOL")
    dot = make_snapshot("DOT")
    sentiments = {"SOL": fusion.fuse(sol, timestamp=T0)}

    analyses = MoodCalculator().batch_calculate([sol, dot], sentiments, {"SOL": 0.0})
    assert [a.symbol for a in analyses] == ["SOL"]


def test_statistics_and_metadata():
    fusion = SentimentFusion()
    calc = MoodCalculator()
    snaps = [make_snapshot("SOL"), make_snapshot("DOT"), make_snapshot("BTC", pct=8.0)]
    sentiments = {s.symbol: fusion.fuse(s, social=0.2, timestamp=T0) for s in snaps}
    analyses = calc.batch_calculate(snaps, sentiments, {})

    stats = mood_statistics(analyses)
    assert stats[MoodState.NEUTRAL] == 2
    assert stats[MoodState.BULLISH] == 1
    assert sum(stats.values()) == 3

    meta = describe(MoodState.BULLISH)
    assert set(meta) == {"description", "color", "emoji"}
    assert meta["color"].startswith("#")
