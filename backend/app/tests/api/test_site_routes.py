from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from app.models import ChatMessage, Contact, Project

OWNER = "owner@example.com"

CONTACT_FORM = {
    "firstName": "  Ada ",
    "lastName": "Lovelace",
    "email": " ada@example.com ",
    "phone": "   ",
    "company": "Analytical Engines",
    "subject": "quote",
    "message": "  Can you build me an API?  ",
    "budget": "5k-10k",
    "timeline": "",
    "preferredContact": "email",
}


@pytest.fixture(autouse=True)
def owner_emails():
    with patch("app.api.deps.settings.OWNER_EMAILS", OWNER):
        yield


def test_contact_form_is_stored_normalized(client: TestClient, session: Session) -> None:
    r = client.post("/api/contact", json=CONTACT_FORM)
    assert r.status_code == 200
    assert r.json() == {"success": True}

    contact = session.exec(select(Contact)).one()
    assert contact.first_name == "Ada"
    assert contact.full_name == "Ada Lovelace"
    assert contact.email == "ada@example.com"
    assert contact.phone is None
    assert contact.company == "Analytical Engines"
    assert contact.message == "Can you build me an API?"
    assert contact.budget == "5k-10k"
    assert contact.timeline is None
    assert contact.preferred_contact == "email"
    assert contact.newsletter is False


def test_contact_form_reports_each_invalid_field(client: TestClient, session: Session) -> None:
    form = {
        **CONTACT_FORM,
        "firstName": "   ",
        "email": "not-an-email",
        "subject": "spam",
        "timeline": "tomorrow",
        "phone": "5" * 31,
    }
    r = client.post("/api/contact", json=form)
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Invalid contact form"
    assert body["details"]["firstName"] == "First name is required"
    assert body["details"]["email"] == "Enter a valid email address"
    assert body["details"]["subject"] == "Select a subject"
    assert body["details"]["phone"] == "Keep it under 30 characters"
    assert "timeline" in body["details"]
    assert session.exec(select(Contact)).all() == []


def test_contact_form_requires_preference(client: TestClient) -> None:
    form = {k: v for k, v in CONTACT_FORM.items() if k != "preferredContact"}
    r = client.post("/api/contact", json=form)
    assert r.status_code == 400
    assert r.json()["details"] == {"preferredContact": "Choose a contact preference"}


def test_contacts_are_owner_only(client: TestClient, session: Session, auth_headers) -> None:
    client.post("/api/contact", json=CONTACT_FORM)
    contact_id = session.exec(select(Contact)).one().id

    assert client.get(f"/api/contacts/{contact_id}", headers=auth_headers()).status_code == 401
    assert client.delete(f"/api/contacts/{contact_id}", headers=auth_headers()).status_code == 401

    owner = auth_headers(email=OWNER)
    assert client.get(f"/api/contacts/{contact_id}", headers=owner).json()["full_name"] == "Ada Lovelace"
    assert client.delete("/api/contacts/abc", headers=owner).json() == {"error": "Invalid contact ID"}
    assert client.delete(f"/api/contacts/{contact_id}", headers=owner).json() == {"success": True}
    assert client.get(f"/api/contacts/{contact_id}", headers=owner).status_code == 404


def test_project_upsert_is_keyed_by_url(client: TestClient, session: Session, auth_headers) -> None:
    owner = auth_headers(email=OWNER)
    r = client.post(
        "/api/projects",
        json={"url": "https://example.com/app", "title": "  App  ", "description": "First"},
        headers=owner,
    )
    assert r.status_code == 200
    first = r.json()["project"]
    assert first["title"] == "App"

    r = client.post("/api/projects", json={"url": "https://example.com/app", "title": "App v2"}, headers=owner)
    second = r.json()["project"]
    assert second["id"] == first["id"]
    assert second["title"] == "App v2"
    assert second["description"] is None
    assert len(session.exec(select(Project)).all()) == 1


def test_project_validation(client: TestClient, auth_headers) -> None:
    owner = auth_headers(email=OWNER)
    r = client.post("/api/projects", json={"url": "not a url"}, headers=owner)
    assert r.status_code == 400
    assert r.json()["details"] == {"url": "Enter a valid URL"}

    r = client.post("/api/projects", json={"url": "https://example.com", "title": "   "}, headers=owner)
    assert r.status_code == 400
    assert "title" in r.json()["details"]

    r = client.post("/api/projects", json={"url": "https://example.com"}, headers=auth_headers())
    assert r.status_code == 401


def test_availability_defaults_then_upserts_single_row(client: TestClient, auth_headers) -> None:
    assert client.get("/api/site_settings/availability").json() == {
        "availability": True,
        "availability_text": "Available for hire",
    }

    owner = auth_headers(email=OWNER)
    r = client.post("/api/site_settings/availability", json={"availability_text": "x" * 250}, headers=owner)
    assert r.json() == {"ok": True}
    r = client.post("/api/site_settings/availability", json={"availability": False}, headers=owner)
    assert r.json() == {"ok": True}

    body = client.get("/api/site_settings/availability").json()
    assert body == {"availability": False, "availability_text": "x" * 200}


def test_availability_requires_a_field(client: TestClient, auth_headers) -> None:
    r = client.post(
        "/api/site_settings/availability",
        json={"availability": "yes", "availability_text": 3},
        headers=auth_headers(email=OWNER),
    )
    assert r.status_code == 400
    assert r.json() == {"error": "No fields to update"}


def _seed_chat(session: Session) -> None:
    session.add(ChatMessage(chat_id=7, message="mine", user_id="user-1"))
    session.add(ChatMessage(chat_id=7, message="theirs", user_id="user-2"))
    session.add(ChatMessage(chat_id=8, message="other chat", user_id="user-1"))
    session.commit()


def test_user_deletes_only_own_chat_messages(client: TestClient, session: Session, auth_headers) -> None:
    _seed_chat(session)

    r = client.get("/api/chat/sessions/7", headers=auth_headers())
    assert [m["message"] for m in r.json()] == ["mine"]

    assert client.delete("/api/chat/sessions/7", headers=auth_headers()).json() == {"success": True}
    remaining = session.exec(select(ChatMessage).order_by(ChatMessage.id)).all()
    assert [m.message for m in remaining] == ["theirs", "other chat"]


def test_owner_deletes_whole_chat(client: TestClient, session: Session, auth_headers) -> None:
    _seed_chat(session)
    owner = auth_headers(sub="owner-1", email=OWNER)

    assert [m["message"] for m in client.get("/api/chat/sessions/7", headers=owner).json()] == ["mine", "theirs"]
    client.delete("/api/chat/sessions/7", headers=owner)

    remaining = session.exec(select(ChatMessage)).all()
    assert [m.chat_id for m in remaining] == [8]


def test_chat_session_errors(client: TestClient, auth_headers) -> None:
    assert client.delete("/api/chat/sessions/7").status_code == 401
    r = client.delete("/api/chat/sessions/seven", headers=auth_headers())
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid chat ID"}
