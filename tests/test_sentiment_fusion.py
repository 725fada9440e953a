import math
from datetime import timedelta

import pytest

from market_mood.mood.core.errors import ConfigurationError
from market_mood.mood.core.sentiment_fusion import (
    SentimentFusion,
    SentimentWeights,
    agreement_confidence,
    sentiment_label,
    technical_score,
)

from conftest import T0, make_snapshot


@pytest.mark.parametrize(
    "pct, volume, expected",
    [
        (12.0, 1.0, 0.6),
        (12.0, 0.0, 0.5),
        (7.0, 0.0, 0.3),
        (-7.0, 10.0, -0.36),
        (3.0, 0.0, 0.1),
        (-3.0, 0.0, -0.1),
        (0.0, 10.0, 0.0),
    ],
)
def test_technical_score_bands(pct, volume, expected):
    assert technical_score(pct, volume) == pytest.approx(expected)


def test_agreement_confidence():
    assert agreement_confidence([0.5, 0.5, 0.5]) == pytest.approx(1.0)
    assert agreement_confidence([1.0, 0.0, 0.0]) == pytest.approx(1 - math.sqrt(2 / 9))
    assert 0.0 <= agreement_confidence([1.0, -1.0, 1.0]) < 0.1


def test_fuse_clamps_inputs_and_weights_signals():
    fusion = SentimentFusion()
    sample = fusion.fuse(make_snapshot(pct=0.0), social=2.0, on_chain=0.0, timestamp=T0)

    assert sample.signals.social == 1.0
    assert sample.signals.technical == 0.0
    assert sample.score == pytest.approx(0.3)
    assert sample.confidence == pytest.approx(1 - math.sqrt(2 / 9))
    assert sample.timestamp == T0
    assert fusion.latest("SOL") is sample


def test_fuse_score_stays_in_range():
    fusion = SentimentFusion(SentimentWeights(social=1.0, on_chain=1.0, technical=1.0))
    sample = fusion.fuse(make_snapshot(pct=20.0), social=1.0, on_chain=1.0, timestamp=T0)
    assert sample.score == 1.0
    low = fusion.fuse(make_snapshot(pct=-20.0), social=-1.0, on_chain=-1.0, timestamp=T0)
    assert low.score == -1.0


def test_history_is_bounded():
    fusion = SentimentFusion(history_capacity=3)
    for i in range(5):
        fusion.fuse(make_snapshot(), social=i / 10, timestamp=T0 + timedelta(minutes=i))
    history = fusion.history("SOL")
    assert len(history) == 3
    assert history[0].timestamp == T0 + timedelta(minutes=2)


def test_average_and_trend():
    fusion = SentimentFusion()
    for i, social in enumerate([-1.0, -1.0, 1.0, 1.0]):
        fusion.fuse(make_snapshot(pct=0.0), social=social, timestamp=T0 + timedelta(minutes=i))
    now = T0 + timedelta(minutes=3)

    assert fusion.average_sentiment("SOL", 60, now=now) == pytest.approx(0.0)
    assert fusion.sentiment_trend("SOL", 60, now=now) == "improving"
    assert fusion.sentiment_trend("DOT", 60, now=now) == "stable"
    assert fusion.average_sentiment("DOT", 60, now=now) == 0.0


def test_trend_declining_and_window():
    fusion = SentimentFusion()
    for i, social in enumerate([1.0, 1.0, -1.0, -1.0]):
        fusion.fuse(make_snapshot(pct=0.0), social=social, timestamp=T0 + timedelta(minutes=i))
    assert fusion.sentiment_trend("SOL", 60, now=T0 + timedelta(minutes=3)) == "declining"
    # window ending far later holds no samples
    assert fusion.sentiment_trend("SOL", 60, now=T0 + timedelta(hours=5)) == "stable"


@pytest.mark.parametrize(
    "score, label",
    [(0.6, "Very Positive"), (0.5, "Positive"), (0.3, "Positive"), (0.0, "Neutral"),
     (-0.3, "Negative"), (-0.6, "Very Negative")],
)
def test_sentiment_label(score, label):
    assert sentiment_label(score) == label


def test_weights_from_yaml(tmp_path):
    path = tmp_path / "weights.yaml"
    path.write_text("weights:\n  social: 0.2\n  onchain: 0.5\n  technical: 0.3\n")
    weights = SentimentWeights.from_yaml(path)
    assert weights == SentimentWeights(social=0.2, on_chain=0.5, technical=0.3)


def test_weights_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        SentimentWeights.from_yaml(tmp_path / "missing.yaml")

    empty = tmp_path / "empty.yaml"
    empty.write_text("other: 1\n")
    with pytest.raises(ConfigurationError):
        SentimentWeights.from_yaml(empty)

    with pytest.raises(ConfigurationError):
        SentimentWeights.from_mapping({"social": -0.1})
    with pytest.raises(ConfigurationError):
        SentimentWeights.from_mapping({"social": "lots"})


def test_unknown_weight_keys_are_ignored():
    weights = SentimentWeights.from_mapping({"social": 0.5, "macro": 0.9})
    assert weights.social == 0.5
    assert weights.on_chain == 0.4
