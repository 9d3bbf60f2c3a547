from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.models import BlogPost


@pytest.fixture(name="post")
def post_fixture(session: Session) -> BlogPost:
    post = BlogPost(title="Hello", summary="First post", tags="python,fastapi", body="Body")
    session.add(post)
    session.commit()
    session.refresh(post)
    return post


@pytest.fixture(autouse=True)
def owner_emails():
    with patch("app.api.deps.settings.OWNER_EMAILS", "Owner@Example.com"):
        yield


def test_read_post(client: TestClient, post: BlogPost) -> None:
    r = client.get(f"/api/blog/{post.id}")
    assert r.status_code == 200
    assert r.json()["title"] == "Hello"

    assert client.get("/api/blog/abc").status_code == 400
    assert client.get("/api/blog/999").json() == {"error": "Post not found"}


def test_update_requires_owner(client: TestClient, post: BlogPost, auth_headers) -> None:
    r = client.patch(f"/api/blog/{post.id}", json={"title": "Nope"}, headers=auth_headers(email="reader@example.com"))
    assert r.status_code == 401

    r = client.patch(f"/api/blog/{post.id}", json={"title": "Updated"}, headers=auth_headers(email="owner@example.com"))
    assert r.status_code == 200
    assert r.json()["title"] == "Updated"
    assert r.json()["summary"] == "First post"


def test_delete_post(client: TestClient, post: BlogPost, auth_headers) -> None:
    r = client.delete(f"/api/blog/{post.id}", headers=auth_headers(email="owner@example.com"))
    assert r.json() == {"success": True}
    assert client.get(f"/api/blog/{post.id}").status_code == 404


def test_comments_are_newest_first(client: TestClient, post: BlogPost) -> None:
    for content in ("first", "second"):
        r = client.post(
            "/api/comments",
            data={"post_id": str(post.id), "user_email": "reader@example.com", "content": content},
            follow_redirects=False,
        )
        assert r.status_code == 303
        assert r.headers["location"] == f"/blog/{post.id}"

    comments = client.get(f"/api/blog/{post.id}/comments").json()
    assert [c["content"] for c in comments] == ["second", "first"]


def test_comment_missing_fields(client: TestClient, post: BlogPost) -> None:
    r = client.post("/api/comments", data={"post_id": str(post.id), "content": "hi"}, follow_redirects=False)
    assert r.status_code == 400
    assert r.json() == {"error": "Missing fields"}


def test_votes_upsert_anonymous_voter(client: TestClient, post: BlogPost) -> None:
    for vote_type in ("up", "down"):
        r = client.post("/api/votes", data={"post_id": str(post.id), "vote_type": vote_type}, follow_redirects=False)
        assert r.status_code == 303

    assert client.get(f"/api/blog/{post.id}/votes").json() == {"up": 0, "down": 1}


def test_invalid_vote(client: TestClient, post: BlogPost) -> None:
    r = client.post("/api/votes", data={"post_id": str(post.id), "vote_type": "sideways"}, follow_redirects=False)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid vote"}
