from __future__ import annotations

import logging
import os
import re
from ast import literal_eval
from datetime import timedelta
from typing import List, Optional

import pandas as pd

from market_mood.mood.core.errors import DataFetchError
from market_mood.mood.core.schema import utc_now
from market_mood.mood.core.token_registry import resolve_symbol
from market_mood.mood.pipelines.base import SignalSource
from market_mood.mood.utils.helpers import clamp


log = logging.getLogger(__name__)


def _load_df(base_path: str) -> pd.DataFrame | None:
    """
    Load a DataFrame from base_path.[parquet|csv] if present.
    Returns None if both are missing.
    """
    parquet = f"{base_path}.parquet"
    csv = f"{base_path}.csv"

    if os.path.exists(parquet):
        try:
            return pd.read_parquet(parquet)
        except (OSError, ValueError, ImportError) as e:
            log.warning("Failed to read %s: %s, falling back to CSV", parquet, e)

    if os.path.exists(csv):
        try:
            return pd.read_csv(csv)
        except (OSError, ValueError) as e:
            log.error("Failed to read %s: %s", csv, e)
            return None

    log.info("No data found for base path %s", base_path)
    return None


def _extract_symbols(raw) -> List[str]:
    """
    Interpret a 'tickers' cell and return canonical symbols.

    Handles:
      - list / tuple (e.g. from parquet)
      - stringified lists: "['BTC', 'ETH']"
      - CSV-like strings: "BTC,ETH"
    """
    if raw is None:
        return []

    if isinstance(raw, (list, tuple)):
        return [resolve_symbol(str(item)) for item in raw if item]

    if hasattr(raw, "tolist"):
        return _extract_symbols(raw.tolist())

    if isinstance(raw, str):
        txt = raw.strip()
        if txt.startswith("["):
            try:
                return _extract_symbols(literal_eval(txt))
            except (ValueError, SyntaxError):
                pass
        tokens = re.split(r"[\s,;/]+", txt.strip("[]"))
        return [resolve_symbol(t.strip("'\"")) for t in tokens if t.strip("'\"")]

    return []


class FileSignalSource(SignalSource):
    """
    Signal read from files written by an external sentiment pipeline.

    `<base_path>.parquet` or `.csv` must have a `sentiment_score` column in
    [-1, 1] and either a `symbol` or a `tickers` column. Rows without either
    column apply to every symbol. When `max_age_minutes` is set and the file
    has a `timestamp` column, older rows are ignored.
    """

    def __init__(self, base_path: str, name: str = "file", max_age_minutes: Optional[float] = None) -> None:
        self.base_path = base_path
        self.name = name
        self.max_age_minutes = max_age_minutes

    def fetch(self, symbol: str) -> float:
        symbol = resolve_symbol(symbol)
        df = _load_df(self.base_path)
        if df is None or df.empty or "sentiment_score" not in df.columns:
            raise DataFetchError(symbol, f"no sentiment rows in {self.base_path}")

        df = df.copy()
        df["sentiment_score"] = pd.to_numeric(df["sentiment_score"], errors="coerce")
        df = df.dropna(subset=["sentiment_score"])

        if self.max_age_minutes is not None and "timestamp" in df.columns:
            cutoff = utc_now() - timedelta(minutes=self.max_age_minutes)
            # unparsable timestamps become NaT and count as stale
            stamps = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
            df = df[stamps >= cutoff]

        if "symbol" in df.columns:
            rows = df[df["symbol"].astype(str).map(resolve_symbol) == symbol]
        elif "tickers" in df.columns:
            rows = df[df["tickers"].map(lambda t: symbol in _extract_symbols(t))]
        else:
            rows = df

        if rows.empty:
            raise DataFetchError(symbol, f"no rows for {symbol} in {self.base_path}")

        return clamp(float(rows["sentiment_score"].mean()), -1.0, 1.0)
