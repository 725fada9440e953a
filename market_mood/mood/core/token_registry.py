# token_registry.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

import yaml

from market_mood.mood.core.errors import ConfigurationError


# -----------------------------
# Asset registry (edit freely)
# -----------------------------
ASSET_REGISTRY: Dict[str, Dict[str, Optional[str]]] = {
    "SOL": {"canonical": "SOL", "coingecko": "solana", "binance": "SOLUSDT"},
    "DOT": {"canonical": "DOT", "coingecko": "polkadot", "binance": "DOTUSDT"},
    "BTC": {"canonical": "BTC", "coingecko": "bitcoin", "binance": "BTCUSDT"},
    "ETH": {"canonical": "ETH", "coingecko": "ethereum", "binance": "ETHUSDT"},
    "KSM": {"canonical": "KSM", "coingecko": "kusama", "binance": "KSMUSDT"},
}


# -----------------------------
# Aliases / Normalization
# -----------------------------
ALIASES: Dict[str, str] = {
    "SOLANA": "SOL",
    "POLKADOT": "DOT",
    "BITCOIN": "BTC",
    "XBT": "BTC",
    "ETHEREUM": "ETH",
    "KUSAMA": "KSM",
}


def _clean(s: str) -> str:
    return (s or "").strip().upper().replace(" ", "")


def resolve_symbol(raw: str) -> str:
    """
    Normalize a symbol to its canonical registry key.

    Examples accepted:
      - SOL, sol, " Sol "
      - SOLUSDT, SOL-USD, SOL/USDT
      - SOLANA, XBT
    Unknown symbols are returned cleaned but otherwise untouched.
    """
    a = _clean(raw).replace("/", "").replace("-", "")
    if a in ALIASES:
        return ALIASES[a]

    for quote in ("USDT", "USD"):
        if a.endswith(quote) and a not in ASSET_REGISTRY:
            base = a[: -len(quote)]
            if base in ASSET_REGISTRY:
                return base

    return a


def asset_info(symbol: str) -> Optional[Dict[str, Optional[str]]]:
    return ASSET_REGISTRY.get(resolve_symbol(symbol))


class TokenRegistry:
    """
    Read-only mapping of token id -> asset symbol.

    Loaded once at startup; minting new tokens is handled elsewhere.
    """

    def __init__(self, tokens: Mapping[int, str]) -> None:
        clean: Dict[int, str] = {}
        for token_id, symbol in tokens.items():
            try:
                tid = int(token_id)
            except (TypeError, ValueError):
                raise ConfigurationError(f"Token id must be an integer, got {token_id!r}")
            sym = resolve_symbol(str(symbol))
            if not sym:
                raise ConfigurationError(f"Token {tid} has an empty symbol")
            clean[tid] = sym
        if not clean:
            raise ConfigurationError("Token registry is empty")
        self._tokens = clean

    @classmethod
    def from_yaml(cls, path: str | Path) -> "TokenRegistry":
        """
        Expects a file like:

        tokens:
          1: SOL
          2: DOT
          3: BTC
        """
        p = Path(path)
        if not p.exists():
            raise ConfigurationError(f"Token registry not found at {p}")
        with p.open("r") as fh:
            data = yaml.safe_load(fh) or {}
        tokens = data.get("tokens")
        if not isinstance(tokens, dict):
            raise ConfigurationError(f"{p} must contain a 'tokens' mapping")
        return cls(tokens)

    def symbol_for(self, token_id: int) -> Optional[str]:
        return self._tokens.get(token_id)

    def symbols(self) -> List[str]:
        """Distinct symbols in first-seen order."""
        return list(dict.fromkeys(self._tokens.values()))

    def pairs(self) -> Iterator[Tuple[int, str]]:
        return iter(sorted(self._tokens.items()))

    def __len__(self) -> int:
        return len(self._tokens)
