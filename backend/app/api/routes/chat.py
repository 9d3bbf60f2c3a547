from typing import Any

from fastapi import APIRouter

from app import crud
from app.api.deps import SessionDep, TokenDep, is_owner
from app.api.errors import APIError

router = APIRouter(prefix="/chat", tags=["chat"])


def _parse_chat_id(chat_id: str) -> int:
    try:
        return int(chat_id)
    except ValueError:
        raise APIError(400, "Invalid chat ID")


@router.get("/sessions/{chat_id}")
def read_chat_session(session: SessionDep, token: TokenDep, chat_id: str) -> list[dict[str, Any]]:
    """Messages of a chat, oldest first. Owners see every user's messages."""
    user_filter = None if is_owner(token.email) else token.sub
    messages = crud.get_chat_messages(session=session, chat_id=_parse_chat_id(chat_id), user_id=user_filter)
    return [m.model_dump(mode="json") for m in messages]


@router.delete("/sessions/{chat_id}")
def delete_chat_session(session: SessionDep, token: TokenDep, chat_id: str) -> dict[str, bool]:
    user_filter = None if is_owner(token.email) else token.sub
    crud.delete_chat_session(session=session, chat_id=_parse_chat_id(chat_id), user_id=user_filter)
    return {"success": True}
