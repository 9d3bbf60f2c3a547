import logging
import re
from typing import Annotated, Any

from fastapi import APIRouter, Body
from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator, validate_email
from pydantic_core import PydanticCustomError

from app import crud
from app.api.deps import OwnerUser, SessionDep
from app.api.errors import APIError, validation_details
from app.models import ContactCreate, ContactPublic

router = APIRouter(tags=["contact"])
logger = logging.getLogger(__name__)

SUBJECT_OPTIONS = ("general", "quote", "support", "partnership", "billing", "other")
BUDGET_OPTIONS = ("under-1k", "1k-5k", "5k-10k", "10k-25k", "25k-50k", "50k-plus")
TIMELINE_OPTIONS = ("asap", "1-month", "3-months", "6-months", "flexible")
PREFERRED_CONTACT_OPTIONS = ("email", "phone", "either")


def _invalid(message: str) -> PydanticCustomError:
    return PydanticCustomError("contact_field", message)


def _trimmed(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _required_text(value: Any, max_length: int, missing: str) -> str:
    text = _trimmed(value)
    if not text:
        raise _invalid(missing)
    if len(text) > max_length:
        raise _invalid(f"Keep it under {max_length} characters")
    return text


def _optional_text(value: Any, max_length: int) -> str:
    text = _trimmed(value)
    if len(text) > max_length:
        raise _invalid(f"Keep it under {max_length} characters")
    return text


def _select(value: Any, options: tuple[str, ...], message: str, *, required: bool) -> str:
    choice = _trimmed(value)
    if choice in options or (not required and choice == ""):
        return choice
    raise _invalid(message)


class ContactForm(BaseModel):
    """Contact form as posted by the site, camelCase field names."""

    model_config = ConfigDict(populate_by_name=True, validate_default=True)

    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    email: str
    phone: str = ""
    company: str = ""
    subject: str = ""
    message: str
    budget: str = ""
    timeline: str = ""
    preferred_contact: str = Field(default="", alias="preferredContact")
    newsletter: StrictBool | None = None

    @field_validator("first_name", mode="before")
    @classmethod
    def check_first_name(cls, v: Any) -> str:
        return _required_text(v, 100, "First name is required")

    @field_validator("last_name", mode="before")
    @classmethod
    def check_last_name(cls, v: Any) -> str:
        return _required_text(v, 100, "Last name is required")

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        email = v.strip()
        try:
            validate_email(email)
        except ValueError:
            raise _invalid("Enter a valid email address")
        if len(email) > 200:
            raise _invalid("Keep the email under 200 characters")
        return email

    @field_validator("phone", mode="before")
    @classmethod
    def check_phone(cls, v: Any) -> str:
        return _optional_text(v, 30)

    @field_validator("company", mode="before")
    @classmethod
    def check_company(cls, v: Any) -> str:
        return _optional_text(v, 200)

    @field_validator("subject", mode="before")
    @classmethod
    def check_subject(cls, v: Any) -> str:
        return _select(v, SUBJECT_OPTIONS, "Select a subject", required=True)

    @field_validator("message")
    @classmethod
    def check_message(cls, v: str) -> str:
        message = v.strip()
        if not message:
            raise _invalid("Message is required")
        if len(message) > 2000:
            raise _invalid("Keep the message under 2000 characters")
        return message

    @field_validator("budget", mode="before")
    @classmethod
    def check_budget(cls, v: Any) -> str:
        return _select(v, BUDGET_OPTIONS, "Select a budget range", required=False)

    @field_validator("timeline", mode="before")
    @classmethod
    def check_timeline(cls, v: Any) -> str:
        return _select(v, TIMELINE_OPTIONS, "Select a timeline", required=False)

    @field_validator("preferred_contact", mode="before")
    @classmethod
    def check_preferred_contact(cls, v: Any) -> str:
        return _select(v, PREFERRED_CONTACT_OPTIONS, "Choose a contact preference", required=True)


def build_contact(form: ContactForm) -> ContactCreate:
    """Row values for a validated form; blank optional answers are stored as null."""
    return ContactCreate(
        first_name=form.first_name,
        last_name=form.last_name,
        full_name=re.sub(r"\s+", " ", f"{form.first_name} {form.last_name}").strip(),
        email=form.email,
        phone=form.phone or None,
        company=form.company or None,
        subject=form.subject,
        message=form.message,
        budget=form.budget or None,
        timeline=form.timeline or None,
        preferred_contact=form.preferred_contact,
        newsletter=bool(form.newsletter),
    )


def _parse_contact_id(id: str) -> int:
    try:
        return int(id)
    except ValueError:
        raise APIError(400, "Invalid contact ID")


@router.post("/contact")
def submit_contact(session: SessionDep, payload: Annotated[Any, Body()] = None) -> dict[str, bool]:
    try:
        form = ContactForm.model_validate(payload)
    except ValidationError as e:
        raise APIError(400, "Invalid contact form", details=validation_details(e))

    contact = crud.create_contact(session=session, contact_in=build_contact(form))
    logger.info("Contact request %s received (%s)", contact.id, contact.subject)
    return {"success": True}


@router.get("/contacts/{id}", response_model=ContactPublic)
def read_contact(session: SessionDep, owner: OwnerUser, id: str) -> Any:
    contact = crud.get_contact(session=session, contact_id=_parse_contact_id(id))
    if not contact:
        raise APIError(404, "Contact not found")
    return contact


@router.delete("/contacts/{id}")
def delete_contact(session: SessionDep, owner: OwnerUser, id: str) -> dict[str, bool]:
    contact_id = _parse_contact_id(id)
    crud.delete_contact(session=session, contact_id=contact_id)
    logger.info("Contact %s deleted by %s", contact_id, owner.email)
    return {"success": True}
