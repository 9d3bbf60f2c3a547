"""Server-sent event payloads emitted while a round-robin round streams."""

import json
from typing import Any

TURN_ERROR_OPTIONS = ["retry", "skip", "remove"]


def sse_event(event: str, **payload: Any) -> dict[str, str]:
    return {"event": event, "data": json.dumps(payload)}


def session_init(session_id: int, topic: str, turn_order: list[str], active_models: list[str]) -> dict[str, str]:
    return sse_event(
        "session_init",
        sessionId=session_id,
        topic=topic,
        turnOrder=turn_order,
        activeModels=active_models,
    )


def turn_start(model: str, turn_index: int) -> dict[str, str]:
    return sse_event("turn_start", model=model, turnIndex=turn_index)


def content_chunk(model: str, chunk: str, is_complete: bool) -> dict[str, str]:
    return sse_event("content_chunk", model=model, chunk=chunk, isComplete=is_complete)


def turn_complete(model: str, full_content: str, token_count: int) -> dict[str, str]:
    return sse_event("turn_complete", model=model, fullContent=full_content, tokenCount=token_count)


def turn_error(model: str, error: str) -> dict[str, str]:
    return sse_event("turn_error", model=model, error=error, options=list(TURN_ERROR_OPTIONS))


def session_paused(reason: str) -> dict[str, str]:
    return sse_event("session_paused", reason=reason)


def session_completed(summary: str) -> dict[str, str]:
    return sse_event("session_completed", summary=summary)


def round_complete(round_number: int) -> dict[str, str]:
    return sse_event("round_complete", round=round_number)


def long_wait(model: str, elapsed_seconds: int) -> dict[str, str]:
    return sse_event("long_wait", model=model, elapsedSeconds=elapsed_seconds)
