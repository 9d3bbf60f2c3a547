import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body
from pydantic import AnyUrl, BaseModel, Field, TypeAdapter, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from app import crud
from app.api.deps import OwnerUser, SessionDep
from app.api.errors import APIError, validation_details
from app.models import Project

router = APIRouter(prefix="/projects", tags=["projects"])
logger = logging.getLogger(__name__)

_url_adapter = TypeAdapter(AnyUrl)


class ProjectUpsert(BaseModel):
    url: str
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=2000)

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        try:
            _url_adapter.validate_python(v)
        except ValidationError:
            raise PydanticCustomError("url", "Enter a valid URL")
        return v

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


def _project_body(project: Project) -> dict[str, Any]:
    return project.model_dump(mode="json", include={"id", "url", "title", "description", "created_at", "updated_at"})


@router.post("")
def upsert_project(session: SessionDep, owner: OwnerUser, payload: Annotated[Any, Body()] = None) -> dict[str, Any]:
    try:
        body = ProjectUpsert.model_validate(payload)
    except ValidationError as e:
        raise APIError(400, "Invalid project", details=validation_details(e))

    project = crud.upsert_project(session=session, url=body.url, title=body.title, description=body.description)
    logger.info("Project %s saved by %s", project.url, owner.email)
    return {"project": _project_body(project)}
