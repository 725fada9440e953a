"""
Market mood engine runner.

Polls market data for every tracked token, fuses sentiment, decides a mood
and pushes mood changes to the configured sink on a fixed interval.
Configuration comes from MOOD_* environment variables or a .env file.
"""

import logging
import os
import signal
import sys
import threading

from dotenv import load_dotenv

from market_mood.mood.core.change_detector import ChangeDetector
from market_mood.mood.core.errors import ConfigurationError, SinkUnavailableError
from market_mood.mood.core.mood_calculator import MoodCalculator
from market_mood.mood.core.orchestrator import MoodOrchestrator
from market_mood.mood.core.price_history import PriceHistoryStore
from market_mood.mood.core.sentiment_fusion import SentimentFusion
from market_mood.mood.core.settings import Settings
from market_mood.mood.dispatch.base import DispatchSink, LoggingSink
from market_mood.mood.dispatch.dispatcher import BatchDispatcher
from market_mood.mood.dispatch.ledger import DispatchLedger
from market_mood.mood.orchestration.scheduler import MoodScheduler
from market_mood.mood.pipelines.base import NullSignalSource
from market_mood.mood.pipelines.files.file_signals import FileSignalSource
from market_mood.mood.pipelines.market.coingecko import CoinGeckoClient, CoinGeckoMarketSource
from market_mood.mood.utils.config_loader import load_registry, load_thresholds, load_weights
from market_mood.mood.utils.logger import configure_logging

log = logging.getLogger(__name__)


def build_market_source(settings: Settings, client: CoinGeckoClient):
    provider = settings.market_provider.lower()
    if provider == "coingecko":
        return CoinGeckoMarketSource(client)
    if provider == "binance":
        from market_mood.mood.pipelines.market.binance_source import BinanceMarketSource

        return BinanceMarketSource(
            api_key=settings.binance_api_key,
            api_secret=settings.binance_api_secret,
            timeout=settings.fetch_timeout_seconds,
        )
    raise ConfigurationError(f"unknown market provider {settings.market_provider!r}")


def build_signal_source(kind: str, provider: str, settings: Settings, client: CoinGeckoClient):
    provider = provider.lower()
    if provider in ("none", ""):
        return NullSignalSource()
    if provider == "file":
        return FileSignalSource(
            os.path.join(settings.signal_files_dir, f"{kind}_sentiment"),
            name=f"{kind}_file",
            max_age_minutes=settings.signal_max_age_minutes,
        )
    if provider == "coingecko":
        if kind == "social":
            from market_mood.mood.pipelines.social.social_sentiment import CoinGeckoSocialSource

            return CoinGeckoSocialSource(client)
        from market_mood.mood.pipelines.onchain.onchain_sentiment import CoinGeckoOnChainSource

        return CoinGeckoOnChainSource(client)
    if provider == "fear_greed" and kind == "social":
        from market_mood.mood.pipelines.social.social_sentiment import FearGreedSource

        return FearGreedSource(timeout=settings.fetch_timeout_seconds)
    raise ConfigurationError(f"unknown {kind} provider {provider!r}")


def build_sink(settings: Settings) -> DispatchSink:
    kind = settings.sink.lower()
    if kind == "logging":
        return LoggingSink(settings.contract_address, settings.dispatch_inter_item_delay_ms)
    if kind == "relay":
        from market_mood.mood.dispatch.relay_sink import RelayerSink

        return RelayerSink(
            relayer_url=settings.relayer_url,
            signer_account=settings.signer_account,
            contract_address=settings.contract_address,
            source_chain=settings.source_chain,
            destination_chain=settings.destination_chain,
            timeout=settings.fetch_timeout_seconds,
            inter_item_delay_ms=settings.dispatch_inter_item_delay_ms,
        )
    if kind == "kafka":
        from market_mood.mood.dispatch.kafka_sink import KafkaSink

        return KafkaSink(
            bootstrap_servers=settings.kafka_bootstrap_servers,
            topic=settings.kafka_topic,
            contract_address=settings.contract_address,
            timeout=settings.fetch_timeout_seconds,
            inter_item_delay_ms=settings.dispatch_inter_item_delay_ms,
        )
    raise ConfigurationError(f"unknown sink {settings.sink!r}")


def build_engine(settings: Settings) -> MoodOrchestrator:
    """Wire every component from settings. Raises ConfigurationError on bad config."""
    registry = load_registry(settings)
    client = CoinGeckoClient(
        base_url=settings.coingecko_base_url,
        timeout=settings.fetch_timeout_seconds,
        cache_seconds=settings.coingecko_cache_seconds,
    )
    sink = build_sink(settings)
    stop_event = threading.Event()
    dispatcher = BatchDispatcher(
        sink,
        concurrency=settings.dispatch_concurrency,
        inter_item_delay_ms=settings.dispatch_inter_item_delay_ms,
        retry_attempts=settings.dispatch_retry_attempts,
        backoff_base_seconds=settings.dispatch_backoff_base_seconds,
        backoff_max_seconds=settings.dispatch_backoff_max_seconds,
        stop_event=stop_event,
    )
    return MoodOrchestrator(
        registry=registry,
        market_source=build_market_source(settings, client),
        social_source=build_signal_source("social", settings.social_provider, settings, client),
        onchain_source=build_signal_source("onchain", settings.onchain_provider, settings, client),
        history=PriceHistoryStore(settings.price_history_capacity),
        fusion=SentimentFusion(load_weights(settings), settings.sentiment_history_capacity),
        calculator=MoodCalculator(load_thresholds(settings)),
        detector=ChangeDetector(settings.change_confidence_threshold),
        sink=sink,
        dispatcher=dispatcher,
        ledger=DispatchLedger(settings.dispatch_max_attempts),
        volatility_lookback_minutes=settings.volatility_lookback_minutes,
        fetch_timeout_seconds=settings.fetch_timeout_seconds,
        fetch_concurrency=settings.fetch_concurrency,
        cycle_timeout_seconds=settings.cycle_timeout_seconds,
        stop_event=stop_event,
    )


def start_api(orchestrator: MoodOrchestrator, settings: Settings) -> threading.Thread:
    import uvicorn

    from market_mood.mood.api.main import create_app

    config = uvicorn.Config(
        create_app(orchestrator, settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="status-api", daemon=True)
    thread.start()
    log.info("Status API started on %s:%s", settings.api_host, settings.api_port)
    return thread


def main():
    load_dotenv()
    try:
        settings = Settings()
    except Exception as e:
        configure_logging("INFO")
        log.error("Invalid configuration: %s", e)
        return 1
    configure_logging(settings.log_level)

    try:
        orchestrator = build_engine(settings)
    except ConfigurationError as e:
        log.error("Invalid configuration: %s", e)
        return 1

    try:
        orchestrator.sink.connect()
    except SinkUnavailableError as e:
        # retried at the start of every cycle
        log.warning("Sink %s not ready at startup: %s", orchestrator.sink.name, e)

    if settings.api_enabled:
        start_api(orchestrator, settings)

    scheduler = MoodScheduler(orchestrator, settings.update_interval_minutes)

    def _shutdown(signum, frame):
        log.info("Received signal %s, shutting down", signum)
        orchestrator.stop()
        scheduler.shutdown()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    log.info("Market mood engine online, tracking %d tokens", len(orchestrator.registry))
    try:
        scheduler.start()
    finally:
        orchestrator.sink.disconnect()
        log.info("Market mood engine stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
