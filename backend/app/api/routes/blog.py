import logging
from typing import Annotated, Any

from fastapi import APIRouter, Form
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from app import crud
from app.api.deps import OwnerUser, SessionDep
from app.api.errors import APIError
from app.models import BlogPost, BlogPostPublic, BlogPostUpdate, CommentCreate, CommentPublic, VoteCounts

router = APIRouter(tags=["blog"])
logger = logging.getLogger(__name__)

ANONYMOUS_VOTER_EMAIL = "anonymous@example.com"
VOTE_TYPES = ("up", "down")


def _parse_post_id(raw: str | None) -> int | None:
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None


def _get_post_or_error(session: SessionDep, id: str) -> BlogPost:
    post_id = _parse_post_id(id)
    if post_id is None:
        raise APIError(400, "Invalid post ID")
    post = crud.get_post(session=session, post_id=post_id)
    if not post:
        raise APIError(404, "Post not found")
    return post


def _redirect_to_post(post_id: int) -> RedirectResponse:
    return RedirectResponse(url=f"/blog/{post_id}", status_code=303)


@router.get("/blog/{id}", response_model=BlogPostPublic)
def read_post(session: SessionDep, id: str) -> Any:
    return _get_post_or_error(session, id)


@router.patch("/blog/{id}", response_model=BlogPostPublic)
def update_post(session: SessionDep, owner: OwnerUser, id: str, post_in: BlogPostUpdate) -> Any:
    post = _get_post_or_error(session, id)
    logger.info("Blog post %s updated by %s", post.id, owner.email)
    return crud.update_post(session=session, db_post=post, post_in=post_in)


@router.delete("/blog/{id}")
def delete_post(session: SessionDep, owner: OwnerUser, id: str) -> dict[str, bool]:
    post = _get_post_or_error(session, id)
    logger.info("Blog post %s deleted by %s", post.id, owner.email)
    crud.delete_post(session=session, db_post=post)
    return {"success": True}


@router.get("/blog/{id}/comments", response_model=list[CommentPublic])
def read_comments(session: SessionDep, id: str) -> Any:
    post = _get_post_or_error(session, id)
    assert post.id is not None
    return crud.get_comments(session=session, post_id=post.id)


@router.get("/blog/{id}/votes", response_model=VoteCounts)
def read_votes(session: SessionDep, id: str) -> Any:
    post = _get_post_or_error(session, id)
    assert post.id is not None
    return crud.get_vote_counts(session=session, post_id=post.id)


@router.post("/comments")
def create_comment(
    session: SessionDep,
    post_id: Annotated[str | None, Form()] = None,
    user_email: Annotated[str | None, Form()] = None,
    content: Annotated[str | None, Form()] = None,
) -> RedirectResponse:
    parsed_id = _parse_post_id(post_id)
    if not parsed_id or not user_email or not content:
        raise APIError(400, "Missing fields")
    try:
        comment_in = CommentCreate(post_id=parsed_id, user_email=user_email, content=content)
    except ValidationError:
        raise APIError(400, "Invalid comment")
    if not crud.get_post(session=session, post_id=parsed_id):
        raise APIError(404, "Post not found")

    crud.create_comment(session=session, comment_in=comment_in)
    return _redirect_to_post(parsed_id)


@router.post("/votes")
def cast_vote(
    session: SessionDep,
    post_id: Annotated[str | None, Form()] = None,
    vote_type: Annotated[str | None, Form()] = None,
) -> RedirectResponse:
    parsed_id = _parse_post_id(post_id)
    if not parsed_id or vote_type not in VOTE_TYPES:
        raise APIError(400, "Invalid vote")
    if not crud.get_post(session=session, post_id=parsed_id):
        raise APIError(404, "Post not found")

    crud.upsert_vote(session=session, post_id=parsed_id, user_email=ANONYMOUS_VOTER_EMAIL, vote_type=vote_type)
    return _redirect_to_post(parsed_id)
