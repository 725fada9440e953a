from market_mood.mood.pipelines.base import SignalSource
from market_mood.mood.pipelines.market.coingecko import CoinGeckoClient
from market_mood.mood.utils.helpers import clamp, safe_float

# (threshold, score), strongest band first; declines mirror the bands
VOLUME_CHANGE_BANDS = ((20.0, 0.4), (0.0, 0.2))
MARKET_CAP_CHANGE_BANDS = ((5.0, 0.3), (0.0, 0.15))


def _banded(change: float, bands) -> float:
    for threshold, score in bands:
        if change > threshold:
            return score
    for threshold, score in bands:
        if change < -threshold:
            return -score
    return 0.0


def onchain_score(volume_change_pct: float, market_cap_change_pct: float) -> float:
    """Volume growth and market-cap growth read as network activity, in [-1, 1]."""
    score = _banded(volume_change_pct, VOLUME_CHANGE_BANDS)
    score += _banded(market_cap_change_pct, MARKET_CAP_CHANGE_BANDS)
    return clamp(score, -1.0, 1.0)


class CoinGeckoOnChainSource(SignalSource):
    """
    On-chain proxy from CoinGecko market data.

    A real chain indexer (Subscan, Solscan, ...) can replace this as long as
    it returns a score in [-1, 1].
    """

    name = "coingecko_onchain"

    def __init__(self, client: CoinGeckoClient) -> None:
        self.client = client

    def fetch(self, symbol: str) -> float:
        md = self.client.coin(symbol).get("market_data", {})
        volume_change = safe_float(md.get("total_volume_change_percentage_24h"))
        market_cap_change = safe_float(md.get("market_cap_change_percentage_24h"))
        return onchain_score(volume_change, market_cap_change)
