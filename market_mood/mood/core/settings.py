from pathlib import Path
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


class Settings(BaseSettings):
    # scheduling
    update_interval_minutes: float = Field(5, gt=0)
    volatility_lookback_minutes: float = Field(60, gt=0)
    cycle_timeout_seconds: float = Field(120, gt=0)
    fetch_timeout_seconds: float = Field(10, gt=0)
    fetch_concurrency: int = Field(8, ge=1)

    # mood decision
    volatility_volatile_threshold_pct: float = 50.0
    sentiment_strong_threshold: float = 0.6
    sentiment_confidence_threshold: float = 0.7
    price_move_threshold_pct: float = 5.0
    mixed_signal_volatility_threshold_pct: float = 30.0
    change_confidence_threshold: float = 0.6

    # buffers
    price_history_capacity: int = Field(100, ge=1)
    sentiment_history_capacity: int = Field(50, ge=1)

    # sentiment fusion
    sentiment_weights: Dict[str, float] = {"social": 0.3, "on_chain": 0.4, "technical": 0.3}
    weights_path: Optional[str] = None

    # collaborators
    tokens_path: str = str(CONFIG_DIR / "tokens.yaml")
    market_provider: str = "coingecko"          # coingecko | binance
    social_provider: str = "coingecko"          # coingecko | fear_greed | file | none
    onchain_provider: str = "coingecko"         # coingecko | file | none
    signal_files_dir: str = "data/signals"
    signal_max_age_minutes: Optional[float] = Field(None, gt=0)   # unset keeps every row
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coingecko_cache_seconds: float = 30.0
    binance_api_key: str = ""
    binance_api_secret: str = ""

    # dispatch
    sink: str = "logging"                       # logging | relay | kafka
    source_chain: str = "arkiv-network"
    destination_chain: str = "kusama"
    contract_address: str = ""
    relayer_url: str = ""
    signer_account: str = ""
    kafka_bootstrap_servers: str = ""
    kafka_topic: str = "mood-updates"
    dispatch_inter_item_delay_ms: float = Field(100, ge=0)
    dispatch_concurrency: int = Field(1, ge=1)
    dispatch_retry_attempts: int = Field(3, ge=1)
    dispatch_backoff_base_seconds: float = Field(0.5, ge=0)
    dispatch_backoff_max_seconds: float = Field(8.0, ge=0)
    dispatch_max_attempts: int = Field(5, ge=1)

    # status api
    api_enabled: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 8001
    api_key: str = "DEV_DEFAULT_KEY"

    log_level: str = "INFO"

    class Config:
        env_prefix = "MOOD_"
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"
