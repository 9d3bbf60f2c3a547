import logging
from collections.abc import Generator
from typing import Annotated

import jwt
from fastapi import Depends, Request
from sqlmodel import Session

from app import crud
from app.api.errors import APIError
from app.core.config import settings
from app.core.db import engine
from app.core.security import TokenPayload, decode_access_token
from app.models import NucleusProfile

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_db)]


def get_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization") or ""
    if not auth_header.startswith("Bearer "):
        raise APIError(401, "Missing or invalid Authorization header", "MISSING_AUTH")
    return auth_header[len("Bearer ") :].strip()


def get_token_payload(token: Annotated[str, Depends(get_bearer_token)]) -> TokenPayload:
    try:
        return decode_access_token(token)
    except jwt.InvalidTokenError as e:
        logger.info("Rejected bearer token: %s", e)
        raise APIError(401, "Invalid or expired token", "INVALID_TOKEN")


TokenDep = Annotated[TokenPayload, Depends(get_token_payload)]


def get_current_profile(session: SessionDep, token: TokenDep) -> NucleusProfile:
    return crud.get_or_create_profile(session=session, user_id=token.sub, email=token.email)


CurrentUser = Annotated[NucleusProfile, Depends(get_current_profile)]


def is_owner(email: str | None) -> bool:
    return bool(email) and email.lower() in settings.owner_emails


def get_owner(token: TokenDep) -> TokenPayload:
    if not is_owner(token.email):
        raise APIError(401, "Unauthorized")
    return token


OwnerUser = Annotated[TokenPayload, Depends(get_owner)]
