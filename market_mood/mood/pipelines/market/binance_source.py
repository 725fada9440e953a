from __future__ import annotations

import logging
import threading
from typing import Optional

from binance.client import Client
from binance.exceptions import BinanceAPIException, BinanceRequestException

from market_mood.mood.core.errors import DataFetchError
from market_mood.mood.core.schema import MarketSnapshot
from market_mood.mood.core.token_registry import asset_info, resolve_symbol
from market_mood.mood.pipelines.base import MarketDataSource
from market_mood.mood.utils.helpers import safe_float

log = logging.getLogger(__name__)


def _binance_symbol_from_canonical(canonical: str) -> str:
    info = asset_info(canonical)
    if info and info.get("binance"):
        return str(info["binance"])
    s = (canonical or "").upper().replace("/", "").replace("-", "").replace(" ", "")
    if s.endswith("USDT"):
        return s
    return f"{s}USDT"


class BinanceMarketSource(MarketDataSource):
    """
    24h rolling ticker stats from Binance spot.

    Binance has no market cap, so `market_cap` is always 0.0; 24h volume is
    the quote-asset (USDT) volume to stay comparable with USD sources.
    """

    name = "binance"

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        timeout: float = 10.0,
        binance_client: Optional[Client] = None,
    ) -> None:
        self._api_key = api_key or None
        self._api_secret = api_secret or None
        self._timeout = timeout
        self._client = binance_client
        self._lock = threading.Lock()

    @property
    def client(self) -> Client:
        # Client() pings the exchange on construction, so build it on first use
        with self._lock:
            if self._client is None:
                self._client = Client(
                    self._api_key,
                    self._api_secret,
                    requests_params={"timeout": self._timeout},
                )
            return self._client

    def fetch_snapshot(self, symbol: str) -> MarketSnapshot:
        canonical = resolve_symbol(symbol)
        pair = _binance_symbol_from_canonical(canonical)
        try:
            t = self.client.get_ticker(symbol=pair)
        except (BinanceAPIException, BinanceRequestException) as e:
            raise DataFetchError(canonical, f"Binance ticker {pair} failed: {e}") from e

        price = safe_float(t.get("lastPrice"))
        if price <= 0:
            raise DataFetchError(canonical, f"Binance returned no usable price for {pair}")

        snapshot = MarketSnapshot(
            symbol=canonical,
            price=price,
            volume_24h=safe_float(t.get("quoteVolume")),
            price_change_24h=safe_float(t.get("priceChange")),
            price_change_percent_24h=safe_float(t.get("priceChangePercent")),
            high_24h=safe_float(t.get("highPrice")),
            low_24h=safe_float(t.get("lowPrice")),
            market_cap=0.0,
        )
        log.info(
            "snapshot symbol=%s price=%.4f change_pct=%.2f source=binance",
            snapshot.symbol, snapshot.price, snapshot.price_change_percent_24h,
        )
        return snapshot
