import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from market_mood.mood.api.core.security import validate_api_key
from market_mood.mood.api.models.mood_model import StatusResponse
from market_mood.mood.dispatch.base import sink_status

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", summary="Simple liveness probe")
def health():
    """
    Lightweight liveness probe, returns immediately with 'ok'
    """
    return {"status": "ok"}


@router.get(
    "/status",
    response_model=StatusResponse,
    summary="Engine readiness & dispatch status",
    dependencies=[Depends(validate_api_key)],
)
def status(request: Request):
    """
    Readiness/status endpoint used by deployment monitors.
    Answers 503 while the dispatch sink is disconnected.
    """
    orchestrator = request.app.state.orchestrator
    try:
        report = orchestrator.last_report
        response = StatusResponse(
            sink=sink_status(orchestrator.sink),
            cycles_run=orchestrator.cycles_run,
            last_cycle=report.summary() if report else None,
            ledger=orchestrator.ledger.counts(),
            tracked_tokens=len(orchestrator.registry),
        )
    except Exception as e:
        log.error("Error computing status: %s", e)
        raise HTTPException(status_code=500, detail="Internal status check error")

    if not response.sink.get("connected"):
        raise HTTPException(status_code=503, detail=response.model_dump(mode="json"))
    return response
