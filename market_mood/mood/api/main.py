from fastapi import Depends, FastAPI

from market_mood.mood.api.core.security import validate_api_key
from market_mood.mood.api.routers.health_router import router as health_router
from market_mood.mood.api.routers.mood_router import router as mood_router
from market_mood.mood.core.orchestrator import MoodOrchestrator
from market_mood.mood.core.settings import Settings


def create_app(orchestrator: MoodOrchestrator, settings: Settings) -> FastAPI:
    """Read-only view over a running engine's in-memory state."""
    app = FastAPI(
        title="Market Mood API",
        version="1.0.0",
        description="Mood and sentiment state of the market mood engine",
    )
    app.state.orchestrator = orchestrator
    app.state.settings = settings

    # Attach routers
    app.include_router(mood_router, tags=["Mood"], dependencies=[Depends(validate_api_key)])
    app.include_router(health_router, tags=["Health"])
    return app
