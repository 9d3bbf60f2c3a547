import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app import crud
from app.models import RoundRobinSession
from app.round_robin import events
from app.round_robin.constants import (
    CONTENT_CHUNK_SIZE,
    DEFAULT_TURN_ORDER,
    LONG_WAIT_THRESHOLD_SECONDS,
    MAX_RETRY_ATTEMPTS,
)
from app.round_robin.prompt_builder import build_system_prompt
from app.round_robin.providers import ProviderAdapter, ProviderError, get_adapter
from app.round_robin.truncation import Summarizer, TranscriptMessage, truncate_history

logger = logging.getLogger(__name__)

ACTIONS_REQUIRING_MODEL = {"retry", "skip", "remove"}


class SessionActionError(ValueError):
    pass


class TurnScheduler:
    """Maps turn indices onto the active participants in configured order."""

    def __init__(self, turn_order: list[str] | None, active_models: list[str] | None):
        self.turn_order = list(turn_order or DEFAULT_TURN_ORDER)
        self.participants = list(active_models or self.turn_order)
        self.order = [m for m in self.turn_order if m in self.participants]

    @classmethod
    def for_session(cls, rr_session: RoundRobinSession) -> "TurnScheduler":
        return cls(rr_session.turn_order, rr_session.active_models)

    def __len__(self) -> int:
        return len(self.order)

    def model_for_turn(self, turn_index: int) -> str:
        if not self.order:
            raise SessionActionError("No active models configured")
        return self.order[turn_index % len(self.order)]

    def is_round_complete(self, next_turn_index: int) -> bool:
        return bool(self.order) and next_turn_index % len(self.order) == 0


def split_content(content: str, size: int = CONTENT_CHUNK_SIZE) -> list[str]:
    return [content[i : i + size] for i in range(0, len(content), size)]


def apply_session_action(
    session: Session,
    rr_session: RoundRobinSession,
    action: str,
    model: str | None = None,
) -> RoundRobinSession:
    """Apply a user decision (retry/skip/remove/pause/resume) to a session."""
    if action in ACTIONS_REQUIRING_MODEL and not model:
        raise SessionActionError("model is required for this action")

    active_models = list(rr_session.active_models or rr_session.turn_order or DEFAULT_TURN_ORDER)
    turn_index = rr_session.current_turn_index or 0
    status = rr_session.status or "active"
    error_context: dict[str, Any] | None = rr_session.error_context

    if action == "retry":
        retry_count = ((error_context or {}).get("retryCount") or 0) + 1
        if retry_count > MAX_RETRY_ATTEMPTS:
            raise SessionActionError(f"Retry limit reached ({MAX_RETRY_ATTEMPTS})")
        status = "active"
        error_context = {"model": model, "error": None, "retryCount": retry_count}
    elif action == "skip":
        turn_index = (turn_index + 1) % len(active_models)
        status = "active"
        error_context = None
    elif action == "remove":
        active_models = [m for m in active_models if m != model]
        if not active_models:
            status = "completed"
        turn_index = turn_index % len(active_models) if active_models else 0
        error_context = None
    elif action == "pause":
        status = "paused"
    elif action == "resume":
        if rr_session.status not in ("paused", "awaiting_user"):
            raise SessionActionError("Session is not paused or awaiting user input")
        status = "active"
        error_context = None
    else:
        raise SessionActionError("Unknown action")

    logger.info("Round-robin session %s: %s %s", rr_session.id, action, model or "")
    return crud.update_round_robin_session(
        session=session,
        db_session=rr_session,
        status=status,
        current_turn_index=turn_index,
        active_models=active_models,
        error_context=error_context,
    )


async def _generate_with_long_wait(
    adapter: ProviderAdapter,
    history: list[TranscriptMessage],
    system_prompt: str,
    model_id: str,
    long_wait_seconds: float,
) -> AsyncIterator[Any]:
    """Yield a ``long_wait`` event if the provider is slow, then the provider response."""
    task = asyncio.ensure_future(adapter.generate_response(history, system_prompt))
    try:
        done, _ = await asyncio.wait({task}, timeout=long_wait_seconds)
        if not done:
            yield events.long_wait(model_id, int(long_wait_seconds))
        yield await task
    finally:
        if not task.done():
            task.cancel()


async def run_round(
    session: Session,
    rr_session: RoundRobinSession,
    *,
    long_wait_seconds: float = LONG_WAIT_THRESHOLD_SECONDS,
    summarizer: Summarizer | None = None,
) -> AsyncIterator[dict[str, str]]:
    """Stream one round of the discussion: one turn per active model.

    The round ends early on a provider failure (``turn_error``, session status
    ``error``) and otherwise finishes with ``round_complete`` and the session
    waiting for user input.
    """
    assert rr_session.id is not None
    session_id = rr_session.id
    scheduler = TurnScheduler.for_session(rr_session)

    yield events.session_init(session_id, rr_session.topic, scheduler.turn_order, scheduler.participants)

    if rr_session.status == "paused":
        yield events.session_paused("Session is paused")
        return
    if rr_session.status == "awaiting_user":
        yield events.session_paused("Awaiting user input")
        return
    if rr_session.status == "completed":
        yield events.session_completed("Session completed")
        return
    if not scheduler.order:
        yield events.session_paused("No active models configured")
        return

    history = [
        TranscriptMessage.from_row(row)
        for row in crud.get_round_robin_messages(session=session, session_id=session_id)
    ]
    turn_index = rr_session.current_turn_index or 0
    current_round = rr_session.current_round or 1

    while True:
        model_id = scheduler.model_for_turn(turn_index)
        adapter = get_adapter(model_id)

        yield events.turn_start(model_id, turn_index)

        trimmed = await truncate_history(history, model_id, summarizer)
        system_prompt = build_system_prompt(model_id, rr_session.topic, scheduler.participants)

        try:
            result = None
            async for item in _generate_with_long_wait(adapter, trimmed, system_prompt, model_id, long_wait_seconds):
                if isinstance(item, dict):
                    yield item
                else:
                    result = item
            if result is None:
                raise ProviderError(f"{adapter.label} returned no response")
        except Exception as e:
            message = str(e) or "Unknown provider error"
            logger.warning("Round-robin turn %s for %s failed: %s", turn_index, model_id, message)
            yield events.turn_error(model_id, message)
            crud.update_round_robin_session(
                session=session,
                db_session=rr_session,
                status="error",
                error_context={"model": model_id, "error": message, "retryCount": 0},
            )
            return

        chunks = split_content(result.content)
        for idx, chunk in enumerate(chunks):
            yield events.content_chunk(model_id, chunk, idx == len(chunks) - 1)
        yield events.turn_complete(model_id, result.content, result.token_count)

        try:
            crud.add_round_robin_message(
                session=session,
                session_id=session_id,
                model=model_id,
                role="assistant",
                content=result.content,
                turn_index=turn_index,
                token_count=result.token_count,
            )
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Failed to persist round-robin message for session %s: %s", session_id, e)

        history.append(
            TranscriptMessage(
                model=model_id,
                role="assistant",
                content=result.content,
                turn_index=turn_index,
                token_count=result.token_count,
            )
        )

        turn_index += 1
        if scheduler.is_round_complete(turn_index):
            crud.update_round_robin_session(
                session=session,
                db_session=rr_session,
                current_turn_index=turn_index,
                current_round=current_round + 1,
                status="awaiting_user",
                error_context=None,
            )
            yield events.round_complete(current_round)
            return

        crud.update_round_robin_session(
            session=session,
            db_session=rr_session,
            current_turn_index=turn_index,
            error_context=None,
        )
