from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MoodFactorsModel(BaseModel):
    price_change: float
    volatility: float
    sentiment: float
    volume: float


class MoodResponse(BaseModel):
    token_id: int
    symbol: str
    mood: str
    confidence: float
    factors: MoodFactorsModel
    timestamp: datetime
    description: str
    color: str
    emoji: str


class SentimentResponse(BaseModel):
    symbol: str
    score: float = Field(..., description="Fused sentiment in [-1, 1]")
    confidence: float
    label: str
    social: float
    on_chain: float
    technical: float
    timestamp: datetime
    average: float = Field(..., description="Mean score over the averaging window")
    trend: str


class PricePointModel(BaseModel):
    price: float
    timestamp: datetime


class HistoryResponse(BaseModel):
    symbol: str
    points: List[PricePointModel]
    volatility: float
    momentum: float


class StatusResponse(BaseModel):
    sink: Dict[str, Any]
    cycles_run: int
    last_cycle: Optional[Dict[str, Any]] = None
    ledger: Dict[str, int]
    tracked_tokens: int
