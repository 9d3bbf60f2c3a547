from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError


class APIError(Exception):
    """Error rendered as ``{"error": ..., "code": ..., "details": ...}``."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details
        self.headers = headers

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.code:
            body["code"] = self.code
        if self.details:
            body["details"] = self.details
        return body


async def api_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, APIError):
        raise exc
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.headers)


def validation_details(exc: ValidationError) -> dict[str, str]:
    """First message per field, keyed by the field name the client sent."""
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "_form"
        errors.setdefault(field, error["msg"])
    return errors
