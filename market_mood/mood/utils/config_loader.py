import logging

from market_mood.mood.core.mood_calculator import MoodThresholds
from market_mood.mood.core.sentiment_fusion import SentimentWeights
from market_mood.mood.core.token_registry import TokenRegistry

log = logging.getLogger(__name__)


def load_weights(settings) -> SentimentWeights:
    if settings.weights_path:
        log.info("Loading sentiment weights from %s", settings.weights_path)
        return SentimentWeights.from_yaml(settings.weights_path)
    return SentimentWeights.from_mapping(settings.sentiment_weights)


def load_registry(settings) -> TokenRegistry:
    registry = TokenRegistry.from_yaml(settings.tokens_path)
    log.info("Loaded %d tokens tracking %s", len(registry), ", ".join(registry.symbols()))
    return registry


def load_thresholds(settings) -> MoodThresholds:
    return MoodThresholds(
        volatile_pct=settings.volatility_volatile_threshold_pct,
        sentiment_strong=settings.sentiment_strong_threshold,
        sentiment_confidence=settings.sentiment_confidence_threshold,
        price_move_pct=settings.price_move_threshold_pct,
        mixed_signal_volatility_pct=settings.mixed_signal_volatility_threshold_pct,
    )
