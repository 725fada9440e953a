from market_mood.mood.core.errors import DataFetchError
from market_mood.mood.pipelines.base import SignalSource
from market_mood.mood.pipelines.market.coingecko import CoinGeckoClient
from market_mood.mood.utils.helpers import clamp, safe_float
from market_mood.mood.utils.https_client import https_get, safe_json


FEAR_GREED_URL = "https://api.alternative.me/fng/"


class CoinGeckoSocialSource(SignalSource):
    """
    Community vote split from CoinGecko mapped to [-1, 1]:
      100% up   -> +1
      50/50     ->  0
      100% down -> -1
    """

    name = "coingecko_social"

    def __init__(self, client: CoinGeckoClient) -> None:
        self.client = client

    def fetch(self, symbol: str) -> float:
        data = self.client.coin(symbol)
        up = data.get("sentiment_votes_up_percentage")
        down = data.get("sentiment_votes_down_percentage")
        up = 50.0 if up is None else safe_float(up, 50.0)
        down = 50.0 if down is None else safe_float(down, 50.0)
        return clamp((up - down) / 100.0, -1.0, 1.0)


class FearGreedSource(SignalSource):
    """
    Crypto Fear & Greed index (0–100), a market-wide reading applied to every symbol:
      0 → -1 (extreme fear)
     50 →  0 (neutral)
    100 → +1 (extreme greed)
    """

    name = "fear_greed"

    def __init__(self, url: str = FEAR_GREED_URL, timeout: float = 10.0, session=None) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session

    def fetch(self, symbol: str) -> float:
        data = safe_json(https_get(self.url, timeout=self.timeout, session=self.session))
        try:
            value = float(data["data"][0]["value"])
        except (TypeError, KeyError, IndexError, ValueError):
            raise DataFetchError(symbol, "Fear & Greed index unavailable")

        score = (value - 50.0) / 50.0
        return clamp(score, -1.0, 1.0)
