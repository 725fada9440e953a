from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import requests

from market_mood.mood.core.errors import DataFetchError
from market_mood.mood.core.schema import MarketSnapshot
from market_mood.mood.core.token_registry import asset_info, resolve_symbol
from market_mood.mood.pipelines.base import MarketDataSource
from market_mood.mood.utils.helpers import safe_float
from market_mood.mood.utils.https_client import https_get, safe_json

log = logging.getLogger(__name__)

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


class CoinGeckoClient:
    """
    Thin client for /coins/{id}.

    Payloads are cached for `cache_seconds` so the market, social and
    on-chain reads of one symbol in one cycle share a single request.
    """

    def __init__(
        self,
        base_url: str = COINGECKO_BASE_URL,
        timeout: float = 10.0,
        cache_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache_seconds = cache_seconds
        self.session = session or requests.Session()
        self._cache: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def coin_id(self, symbol: str) -> str:
        info = asset_info(symbol)
        if not info or not info.get("coingecko"):
            raise DataFetchError(symbol, "unknown symbol for CoinGecko")
        return str(info["coingecko"])

    def coin(self, symbol: str) -> Dict[str, Any]:
        coin_id = self.coin_id(symbol)
        now = time.monotonic()
        with self._lock:
            hit = self._cache.get(coin_id)
            if hit and now - hit[0] < self.cache_seconds:
                return hit[1]

        resp = https_get(
            f"{self.base_url}/coins/{coin_id}",
            params={
                "localization": "false",
                "tickers": "false",
                "community_data": "false",
                "developer_data": "false",
            },
            timeout=self.timeout,
            session=self.session,
        )
        data = safe_json(resp)
        if not isinstance(data, dict) or "market_data" not in data:
            raise DataFetchError(symbol, f"no market data from CoinGecko for {coin_id}")

        with self._lock:
            self._cache[coin_id] = (now, data)
        return data


def _usd(block: Any) -> float:
    if isinstance(block, dict):
        return safe_float(block.get("usd"))
    return safe_float(block)


class CoinGeckoMarketSource(MarketDataSource):
    name = "coingecko"

    def __init__(self, client: CoinGeckoClient) -> None:
        self.client = client

    def fetch_snapshot(self, symbol: str) -> MarketSnapshot:
        data = self.client.coin(symbol)
        md = data["market_data"]

        price = _usd(md.get("current_price"))
        if price <= 0:
            raise DataFetchError(symbol, "CoinGecko returned no usable price")

        snapshot = MarketSnapshot(
            symbol=resolve_symbol(symbol),
            price=price,
            volume_24h=_usd(md.get("total_volume")),
            price_change_24h=safe_float(md.get("price_change_24h")),
            price_change_percent_24h=safe_float(md.get("price_change_percentage_24h")),
            high_24h=_usd(md.get("high_24h")),
            low_24h=_usd(md.get("low_24h")),
            market_cap=_usd(md.get("market_cap")),
        )
        log.info(
            "snapshot symbol=%s price=%.4f change_pct=%.2f source=coingecko",
            snapshot.symbol, snapshot.price, snapshot.price_change_percent_24h,
        )
        return snapshot
