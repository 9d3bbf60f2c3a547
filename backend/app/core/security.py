from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from pydantic import BaseModel

from app.core.config import settings

ALGORITHM = "HS256"


class TokenPayload(BaseModel):
    sub: str
    email: str = ""


def create_access_token(subject: str | Any, email: str, expires_delta: timedelta) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode: dict[str, Any] = {"exp": expire, "sub": str(subject), "email": email}
    if settings.NUCLEUS_JWT_ISSUER:
        to_encode["iss"] = settings.NUCLEUS_JWT_ISSUER
    if settings.NUCLEUS_JWT_AUDIENCE:
        to_encode["aud"] = settings.NUCLEUS_JWT_AUDIENCE
    return jwt.encode(to_encode, settings.NUCLEUS_JWT_SECRET, algorithm=ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    """Verify a bearer token. Raises ``jwt.InvalidTokenError`` on any failure."""
    options = {"require": ["sub"], "verify_aud": bool(settings.NUCLEUS_JWT_AUDIENCE)}
    payload = jwt.decode(
        token,
        settings.NUCLEUS_JWT_SECRET,
        algorithms=[ALGORITHM],
        audience=settings.NUCLEUS_JWT_AUDIENCE,
        issuer=settings.NUCLEUS_JWT_ISSUER,
        options=options,
    )
    return TokenPayload(sub=str(payload["sub"]), email=str(payload.get("email") or ""))
