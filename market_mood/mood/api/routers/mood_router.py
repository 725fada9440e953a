import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query, Request

from market_mood.mood.api.models.mood_model import (
    HistoryResponse,
    MoodFactorsModel,
    MoodResponse,
    PricePointModel,
    SentimentResponse,
)
from market_mood.mood.core.mood_calculator import describe
from market_mood.mood.core.sentiment_fusion import sentiment_label
from market_mood.mood.core.token_registry import resolve_symbol

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/moods", response_model=List[MoodResponse], summary="Latest mood per token")
def get_moods(request: Request):
    orchestrator = request.app.state.orchestrator
    out = []
    for token_id, analysis in sorted(orchestrator.latest_analyses.items()):
        meta = describe(analysis.mood)
        out.append(
            MoodResponse(
                token_id=token_id,
                symbol=analysis.symbol,
                mood=analysis.mood.value,
                confidence=analysis.confidence,
                factors=MoodFactorsModel(
                    price_change=analysis.factors.price_change,
                    volatility=analysis.factors.volatility,
                    sentiment=analysis.factors.sentiment,
                    volume=analysis.factors.volume,
                ),
                timestamp=analysis.timestamp,
                **meta,
            )
        )
    return out


@router.get("/sentiment/{symbol}", response_model=SentimentResponse, summary="Latest fused sentiment for a symbol")
def get_sentiment(
    request: Request,
    symbol: str,
    period_minutes: float = Query(60, gt=0, description="Window for average and trend"),
):
    """
    Latest fused sample plus the average and trend over `period_minutes`,
    measured back from the latest sample.
    """
    fusion = request.app.state.orchestrator.fusion
    sym = resolve_symbol(symbol)
    sample = fusion.latest(sym)
    if sample is None:
        log.warning("No sentiment recorded for %s", sym)
        raise HTTPException(status_code=404, detail=f"No sentiment data for '{sym}'")

    return SentimentResponse(
        symbol=sym,
        score=sample.score,
        confidence=sample.confidence,
        label=sentiment_label(sample.score),
        social=sample.signals.social,
        on_chain=sample.signals.on_chain,
        technical=sample.signals.technical,
        timestamp=sample.timestamp,
        average=fusion.average_sentiment(sym, period_minutes, now=sample.timestamp),
        trend=fusion.sentiment_trend(sym, period_minutes, now=sample.timestamp),
    )


@router.get("/history/{symbol}", response_model=HistoryResponse, summary="Recorded price history for a symbol")
def get_history(
    request: Request,
    symbol: str,
    window_minutes: float = Query(60, gt=0, description="Window for volatility and momentum"),
):
    store = request.app.state.orchestrator.history
    sym = resolve_symbol(symbol)
    points = store.history(sym)
    if not points:
        raise HTTPException(status_code=404, detail=f"No price history for '{sym}'")

    now = points[-1].timestamp
    return HistoryResponse(
        symbol=sym,
        points=[PricePointModel(price=p.price, timestamp=p.timestamp) for p in points],
        volatility=store.compute_volatility(sym, window_minutes, now=now),
        momentum=store.compute_momentum(sym, window_minutes, now=now),
    )
