"""
main.py: FastAPI application for Career Pilot
===============================================
All endpoints are thin wrappers around the journey services.
No business logic lives here.

Run:  uvicorn career_pilot.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from career_pilot import __version__
from career_pilot.agents import ContentGenerator
from career_pilot.aggregator import StageDataAggregator, build_roadmap
from career_pilot.config import get_settings
from career_pilot.database.schemas import (
    ActionRequest,
    AgentExecutionResult,
    JourneyRecord,
    JourneyRoadmap,
    JourneyStateResponse,
    LearningStepToggleResponse,
    PlacementRequest,
)
from career_pilot.database.store import Store
from career_pilot.db import get_store
from career_pilot.errors import AggregationFailed, CareerPilotError, PrecursorMissing
from career_pilot.journey_state import JourneyStateService
from career_pilot.orchestrator import StageOrchestrator
from career_pilot.state_machine import ACTIONS, next_action

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  DEPENDENCIES
# ═══════════════════════════════════════════════════════════════════

_store: Optional[Store] = None
_generator: Optional[ContentGenerator] = None


def store_dependency() -> Store:
    global _store
    if _store is None:
        _store = get_store(settings)
    return _store


def generator_dependency() -> ContentGenerator:
    global _generator
    if _generator is None:
        _generator = ContentGenerator()
    return _generator


# ═══════════════════════════════════════════════════════════════════
#  APP STARTUP
# ═══════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Career Pilot backend starting (v%s)", __version__)
    store = store_dependency()
    logger.info("  Store: %s", store.name)
    logger.info("  GROQ_API_KEY: %s", "set" if settings.groq_api_key else "MISSING")
    yield
    logger.info("Career Pilot backend shutting down.")


app = FastAPI(
    title="Career Pilot: Journey Orchestrator",
    description="Multi-stage career journey state machine and action orchestrator.",
    version=__version__,
    lifespan=lifespan,
)

# CORS for the web frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url, "http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _state_response(journey: JourneyRecord) -> JourneyStateResponse:
    flags = journey.flags()
    return JourneyStateResponse(
        user_id=journey.user_id,
        flags=flags,
        terms=journey.terms(),
        next_action=next_action(flags),
    )


# ═══════════════════════════════════════════════════════════════════
#  HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════

@app.get("/health")
def health(store: Store = Depends(store_dependency)):
    return {
        "status": "ok",
        "store": store.name,
        "groq_key_set": bool(settings.groq_api_key),
    }


# ═══════════════════════════════════════════════════════════════════
#  1. ROADMAP
#  GET /api/journey/{user_id}/roadmap
#  Stages + steps + progress, recomputed on every call.
# ═══════════════════════════════════════════════════════════════════

@app.get("/api/journey/{user_id}/roadmap", response_model=JourneyRoadmap)
def get_roadmap(user_id: str, store: Store = Depends(store_dependency)):
    try:
        return build_roadmap(StageDataAggregator(store), user_id)
    except AggregationFailed as e:
        raise HTTPException(status_code=503, detail=str(e))


# ═══════════════════════════════════════════════════════════════════
#  2. JOURNEY STATE
#  GET /api/journey/{user_id}/state
# ═══════════════════════════════════════════════════════════════════

@app.get("/api/journey/{user_id}/state", response_model=JourneyStateResponse)
def get_state(user_id: str, store: Store = Depends(store_dependency)):
    try:
        return _state_response(JourneyStateService(store).get_journey(user_id))
    except CareerPilotError as e:
        raise HTTPException(status_code=503, detail=str(e))


# ═══════════════════════════════════════════════════════════════════
#  3. ACTIONS
#  POST /api/journey/{user_id}/actions/{action}
#  Failures come back as 200 + success=false, except a missing
#  precursor (409).
# ═══════════════════════════════════════════════════════════════════

@app.post("/api/journey/{user_id}/actions/{action}", response_model=AgentExecutionResult)
def run_action(
    user_id: str,
    action: str,
    body: Optional[ActionRequest] = None,
    store: Store = Depends(store_dependency),
    generator: ContentGenerator = Depends(generator_dependency),
):
    if action not in ACTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown action '{action}'")
    result = StageOrchestrator(user_id, store, generator).run(action, body)
    if result.error_type == PrecursorMissing.__name__:
        return JSONResponse(status_code=409, content=result.model_dump(mode="json"))
    return result


# ═══════════════════════════════════════════════════════════════════
#  4. PLACEMENT
#  POST /api/journey/{user_id}/placement
# ═══════════════════════════════════════════════════════════════════

@app.post("/api/journey/{user_id}/placement", response_model=JourneyStateResponse)
def confirm_placement(user_id: str, body: PlacementRequest, store: Store = Depends(store_dependency)):
    try:
        return _state_response(JourneyStateService(store).confirm_placement(user_id, body.term))
    except PrecursorMissing as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CareerPilotError as e:
        raise HTTPException(status_code=503, detail=str(e))


# ═══════════════════════════════════════════════════════════════════
#  5. UNDO
#  DELETE /api/journey/{user_id}/flags/{flag_name}
# ═══════════════════════════════════════════════════════════════════

@app.delete("/api/journey/{user_id}/flags/{flag_name}", response_model=JourneyStateResponse)
def reset_flag(user_id: str, flag_name: str, store: Store = Depends(store_dependency)):
    try:
        return _state_response(JourneyStateService(store).reset_flag(user_id, flag_name))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CareerPilotError as e:
        raise HTTPException(status_code=503, detail=str(e))


# ═══════════════════════════════════════════════════════════════════
#  6. LEARNING SUB-STEPS
#  POST /api/journey/{user_id}/learning/{journey_id}/steps/{index}
# ═══════════════════════════════════════════════════════════════════

@app.post(
    "/api/journey/{user_id}/learning/{journey_id}/steps/{index}",
    response_model=LearningStepToggleResponse,
)
def toggle_learning_step(user_id: str, journey_id: str, index: int,
                         store: Store = Depends(store_dependency)):
    try:
        journey, overall = JourneyStateService(store).toggle_learning_step(user_id, journey_id, index)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CareerPilotError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return LearningStepToggleResponse(journey=journey, learning_progress=overall)


# ═══════════════════════════════════════════════════════════════════
#  RUN
# ═══════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("career_pilot.main:app", host="0.0.0.0", port=8000, reload=True)
