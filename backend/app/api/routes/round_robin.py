import logging
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from app import crud
from app.api.deps import SessionDep
from app.api.errors import APIError
from app.core.config import settings
from app.models import RoundRobinMessagePublic, RoundRobinSession, RoundRobinSessionPublic
from app.round_robin.constants import DEFAULT_TURN_ORDER
from app.round_robin.orchestrator import SessionActionError, TurnScheduler, apply_session_action, run_round
from app.round_robin.providers import get_adapter

router = APIRouter(prefix="/round-robin", tags=["round-robin"])
logger = logging.getLogger(__name__)

RUNNABLE_STATUSES = ("active", "error")


class StartSessionRequest(BaseModel):
    topic: str | None = None
    turnOrder: list[str] | None = None
    activeModels: list[str] | None = None
    userId: str | None = None


class SessionActionRequest(BaseModel):
    sessionId: Any = None
    action: str | None = None
    model: str | None = None


class ContinueRequest(BaseModel):
    sessionId: Any = None
    message: str | None = Field(default=None)


def _stream_url(session_id: int) -> str:
    return f"{settings.API_V1_STR}/round-robin/stream?sessionId={session_id}"


def _parse_session_id(raw: Any) -> int:
    if not raw:
        raise APIError(400, "sessionId is required")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise APIError(400, "sessionId must be numeric")


def _load_session(session: SessionDep, raw_id: Any) -> RoundRobinSession:
    rr_session = session.get(RoundRobinSession, _parse_session_id(raw_id))
    if not rr_session:
        raise APIError(404, "Session not found")
    return rr_session


def _session_body(rr_session: RoundRobinSession) -> dict[str, Any]:
    return RoundRobinSessionPublic.model_validate(rr_session).model_dump(mode="json")


@router.post("")
def start_session(session: SessionDep, body: StartSessionRequest) -> dict[str, Any]:
    topic = (body.topic or "").strip()
    if not topic:
        raise APIError(400, "topic is required")

    turn_order = body.turnOrder or list(DEFAULT_TURN_ORDER)
    active_models = body.activeModels or turn_order

    rr_session = crud.create_round_robin_session(
        session=session,
        topic=topic,
        turn_order=turn_order,
        active_models=active_models,
        user_id=body.userId,
    )
    assert rr_session.id is not None
    crud.add_round_robin_message(
        session=session,
        session_id=rr_session.id,
        model="user",
        role="user",
        content=topic,
        turn_index=0,
    )
    logger.info("Started round-robin session %s with %s", rr_session.id, ", ".join(active_models))
    return {"sessionId": rr_session.id, "streamUrl": _stream_url(rr_session.id)}


@router.get("/stream")
async def stream_session(session: SessionDep, sessionId: str | None = None) -> EventSourceResponse:
    rr_session = _load_session(session, sessionId)

    scheduler = TurnScheduler.for_session(rr_session)
    if rr_session.status in RUNNABLE_STATUSES and scheduler.order:
        first_model = scheduler.model_for_turn(rr_session.current_turn_index or 0)
        adapter = get_adapter(first_model)
        if not adapter.is_available():
            raise APIError(503, f"{adapter.label} adapter unavailable")

    return EventSourceResponse(
        run_round(session, rr_session),
        headers={"Cache-Control": "no-cache, no-transform"},
    )


@router.post("/action")
def session_action(session: SessionDep, body: SessionActionRequest) -> dict[str, Any]:
    session_id = _parse_session_id(body.sessionId)
    if not body.action:
        raise APIError(400, "action is required")
    rr_session = _load_session(session, session_id)
    try:
        rr_session = apply_session_action(session, rr_session, body.action, body.model)
    except SessionActionError as e:
        raise APIError(400, str(e))
    return {"session": _session_body(rr_session)}


@router.post("/continue")
def continue_session(session: SessionDep, body: ContinueRequest) -> dict[str, Any]:
    rr_session = _load_session(session, body.sessionId)
    if rr_session.status != "awaiting_user":
        raise APIError(400, f"Cannot continue session with status: {rr_session.status}")

    assert rr_session.id is not None
    message = (body.message or "").strip()
    if message:
        crud.add_round_robin_message(
            session=session,
            session_id=rr_session.id,
            model="user",
            role="user",
            content=message,
            turn_index=rr_session.current_turn_index or 0,
        )
    crud.update_round_robin_session(session=session, db_session=rr_session, status="active")
    return {"success": True, "streamUrl": _stream_url(rr_session.id)}


@router.get("/resume")
def resume_session(session: SessionDep, sessionId: str | None = None) -> dict[str, Any]:
    rr_session = _load_session(session, sessionId)
    assert rr_session.id is not None
    messages = crud.get_round_robin_messages(session=session, session_id=rr_session.id)
    return {
        "session": _session_body(rr_session),
        "messages": [RoundRobinMessagePublic.model_validate(m).model_dump(mode="json") for m in messages],
        "currentTurn": rr_session.current_turn_index or 0,
    }
