"""
Luna API Routes

Provides endpoints for local intent recognition and execution:
- POST   /api/luna/process           - Classify and (when confident) answer locally
- POST   /api/luna/classify          - Classify only, no execution or logging
- POST   /api/luna/feedback          - Helpful / not helpful, or the intent the user meant
- POST   /api/luna/confirm/{id}      - The user acted on a prediction (implicit ground truth)
- GET    /api/luna/analytics         - Overview, performance, accuracy, insights
- GET    /api/luna/analytics/events  - Raw events with feedback
- GET    /api/luna/capabilities      - Registered local capabilities
- DELETE /api/luna/cache             - Drop cached responses
"""

import threading
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from tools.logging_config import get_logger
from tools.luna.analytics.metrics import AnalyticsFilter
from tools.luna.context import SessionState
from tools.luna.engine import LocalExecutionEngine, create_engine
from tools.luna.models import CATEGORY_ACTIONS, Intent, IntentCategory

logger = get_logger(__name__)

router = APIRouter()

MAX_SESSIONS = 1000


# =============================================================================
# Request/Response Models
# =============================================================================


class ContextHintsModel(BaseModel):
    """What the client knows about where the request comes from."""

    route: Optional[str] = None
    module: Optional[str] = None
    language: Optional[str] = None
    timezone: Optional[str] = None
    working_hours_start: Optional[str] = None
    working_hours_end: Optional[str] = None
    communication_style: Optional[str] = None
    current_focus: Optional[str] = None


class IntentModel(BaseModel):
    category: IntentCategory
    action: str

    def to_intent(self) -> Intent:
        if self.action not in CATEGORY_ACTIONS[self.category]:
            raise HTTPException(
                status_code=422,
                detail=f"Unknown action {self.action!r} for {self.category.value}",
            )
        return Intent(category=self.category, action=self.action, confidence=1.0)


class ProcessRequest(BaseModel):
    text: str = Field(..., max_length=2000)
    context: ContextHintsModel = Field(default_factory=ContextHintsModel)
    session_id: Optional[str] = Field(default=None, max_length=128)
    actual_intent: Optional[IntentModel] = None


class ClassifyRequest(BaseModel):
    text: str = Field(..., max_length=2000)
    context: ContextHintsModel = Field(default_factory=ContextHintsModel)
    session_id: Optional[str] = Field(default=None, max_length=128)


class FeedbackRequest(BaseModel):
    event_id: str
    helpful: Optional[bool] = None
    actual_intent: Optional[IntentModel] = None


# =============================================================================
# Helpers
# =============================================================================


def _engine(request: Request) -> LocalExecutionEngine:
    return request.app.state.luna_engine


def _session(request: Request, session_id: str | None) -> SessionState | None:
    if not session_id:
        return None
    state = request.app.state
    with state.luna_sessions_lock:
        sessions: dict[str, SessionState] = state.luna_sessions
        session = sessions.get(session_id)
        if session is None:
            if len(sessions) >= MAX_SESSIONS:
                # Drop the oldest session
                sessions.pop(next(iter(sessions)))
            session = sessions[session_id] = _engine(request).new_session()
        return session


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/process")
async def process_utterance(request: Request, body: ProcessRequest) -> dict[str, Any]:
    """Classify an utterance and answer it locally when confident enough."""
    engine = _engine(request)
    result = engine.process(
        body.text,
        hints=body.context.model_dump(exclude_none=True),
        session=_session(request, body.session_id),
        actual_intent=body.actual_intent.to_intent() if body.actual_intent else None,
    )
    return result.to_dict()


@router.post("/classify")
async def classify_utterance(request: Request, body: ClassifyRequest) -> dict[str, Any]:
    """Classify only. Nothing is executed, cached or logged."""
    engine = _engine(request)
    intent = engine.classify(
        body.text,
        hints=body.context.model_dump(exclude_none=True),
        session=_session(request, body.session_id),
    )
    return intent.to_dict()


@router.post("/feedback")
async def submit_feedback(request: Request, body: FeedbackRequest) -> dict[str, Any]:
    """Record feedback on a processed request."""
    if body.helpful is None and body.actual_intent is None:
        raise HTTPException(status_code=422, detail="Provide helpful and/or actual_intent")

    record = _engine(request).feedback(
        body.event_id,
        helpful=body.helpful,
        actual_intent=body.actual_intent.to_intent() if body.actual_intent else None,
    )
    if record is None:
        raise HTTPException(status_code=404, detail=f"Unknown event {body.event_id}")
    return {"success": True, "feedback": record.to_dict()}


@router.post("/confirm/{event_id}")
async def confirm_prediction(request: Request, event_id: str) -> dict[str, Any]:
    """The user acted on the prediction; count it as correct."""
    record = _engine(request).confirm(event_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Unknown event {event_id}")
    return {"success": True, "feedback": record.to_dict()}


@router.get("/analytics")
async def get_analytics(
    request: Request,
    since: Optional[datetime] = Query(default=None),
    until: Optional[datetime] = Query(default=None),
    category: Optional[IntentCategory] = Query(default=None),
    module: Optional[str] = Query(default=None),
    include_cached: bool = Query(default=True),
) -> dict[str, Any]:
    """Aggregated classification analytics."""
    return _engine(request).dashboard_data(AnalyticsFilter(
        since=since,
        until=until,
        category=category,
        module=module,
        include_cached=include_cached,
    ))


@router.get("/analytics/events")
async def get_events(
    request: Request,
    limit: int = Query(default=100, ge=1, le=5000),
    category: Optional[IntentCategory] = Query(default=None),
    module: Optional[str] = Query(default=None),
) -> dict[str, Any]:
    """Most recent events, newest last."""
    events = _engine(request).tracker.export_events(
        AnalyticsFilter(category=category, module=module)
    )
    return {"events": events[-limit:], "total": len(events)}


@router.get("/capabilities")
async def list_capabilities(request: Request) -> dict[str, Any]:
    """Local capabilities and the intents they handle."""
    engine = _engine(request)
    return {
        "capabilities": engine.registry.to_list(),
        "routing": engine.config.routing.model_dump(),
    }


@router.delete("/cache")
async def clear_cache(request: Request) -> dict[str, Any]:
    """Drop all cached responses."""
    return {"success": True, "cleared": _engine(request).clear_cache()}


def create_app(engine: LocalExecutionEngine | None = None) -> FastAPI:
    """Standalone app serving the Luna routes under /api/luna."""
    app = FastAPI(title="Luna Local Intelligence")
    app.state.luna_engine = engine or create_engine()
    app.state.luna_sessions = {}
    app.state.luna_sessions_lock = threading.Lock()
    app.include_router(router, prefix="/api/luna", tags=["luna"])
    logger.info("luna_api_ready", capabilities=len(app.state.luna_engine.registry))
    return app


__all__ = ["create_app", "router"]
