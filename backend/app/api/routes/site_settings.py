import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body

from app import crud
from app.api.deps import OwnerUser, SessionDep
from app.api.errors import APIError
from app.models import DEFAULT_AVAILABILITY_TEXT

router = APIRouter(prefix="/site_settings", tags=["site-settings"])
logger = logging.getLogger(__name__)

MAX_AVAILABILITY_TEXT = 200


@router.get("/availability")
def read_availability(session: SessionDep) -> dict[str, Any]:
    site_settings = crud.get_site_settings(session=session)
    if not site_settings:
        return {"availability": True, "availability_text": DEFAULT_AVAILABILITY_TEXT}
    return {"availability": site_settings.availability, "availability_text": site_settings.availability_text}


@router.post("/availability")
def update_availability(
    session: SessionDep, owner: OwnerUser, payload: Annotated[Any, Body()] = None
) -> dict[str, bool]:
    body = payload if isinstance(payload, dict) else {}
    fields: dict[str, Any] = {}
    if isinstance(body.get("availability"), bool):
        fields["availability"] = body["availability"]
    if isinstance(body.get("availability_text"), str):
        fields["availability_text"] = body["availability_text"][:MAX_AVAILABILITY_TEXT]
    if not fields:
        raise APIError(400, "No fields to update")

    crud.upsert_site_settings(session=session, **fields)
    logger.info("Availability updated by %s: %s", owner.email, ", ".join(fields))
    return {"ok": True}
