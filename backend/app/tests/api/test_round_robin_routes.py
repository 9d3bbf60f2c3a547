from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlmodel import Session

from app import crud
from app.models import RoundRobinSession


def _start(client: TestClient, **extra) -> int:
    r = client.post("/api/round-robin", json={"topic": "  Tabs or spaces?  ", **extra})
    assert r.status_code == 200
    return r.json()["sessionId"]


def test_start_session_defaults(client: TestClient, session: Session) -> None:
    r = client.post("/api/round-robin", json={"topic": "Tabs or spaces?"})
    body = r.json()
    assert body["streamUrl"] == f"/api/round-robin/stream?sessionId={body['sessionId']}"

    rr_session = session.get(RoundRobinSession, body["sessionId"])
    assert rr_session.turn_order == ["openai", "anthropic", "mistral", "gemini", "huggingface", "xai"]
    assert rr_session.active_models == rr_session.turn_order
    assert rr_session.status == "active"
    assert rr_session.current_round == 1

    messages = crud.get_round_robin_messages(session=session, session_id=rr_session.id)
    assert [(m.role, m.content, m.turn_index) for m in messages] == [("user", "Tabs or spaces?", 0)]


def test_start_requires_topic(client: TestClient) -> None:
    r = client.post("/api/round-robin", json={"topic": "   "})
    assert r.status_code == 400
    assert r.json() == {"error": "topic is required"}


def test_stream_validates_session_id(client: TestClient) -> None:
    assert client.get("/api/round-robin/stream").status_code == 400
    assert client.get("/api/round-robin/stream?sessionId=abc").json() == {"error": "sessionId must be numeric"}
    assert client.get("/api/round-robin/stream?sessionId=999").status_code == 404


def test_stream_refuses_when_first_provider_unavailable(client: TestClient) -> None:
    session_id = _start(client, turnOrder=["anthropic", "openai"])
    with patch("app.clients.llm.settings.ANTHROPIC_API_KEY", None):
        r = client.get(f"/api/round-robin/stream?sessionId={session_id}")
    assert r.status_code == 503
    assert r.json() == {"error": "Anthropic adapter unavailable"}


def test_action_endpoint(client: TestClient) -> None:
    session_id = _start(client, activeModels=["openai", "xai"])

    r = client.post("/api/round-robin/action", json={"sessionId": session_id, "action": "remove", "model": "xai"})
    assert r.status_code == 200
    assert r.json()["session"]["active_models"] == ["openai"]

    r = client.post("/api/round-robin/action", json={"sessionId": session_id, "action": "skip"})
    assert r.status_code == 400
    assert r.json() == {"error": "model is required for this action"}

    r = client.post("/api/round-robin/action", json={"sessionId": session_id})
    assert r.json() == {"error": "action is required"}

    r = client.post("/api/round-robin/action", json={"sessionId": session_id, "action": "resume"})
    assert r.status_code == 400


def test_continue_only_from_awaiting_user(client: TestClient, session: Session) -> None:
    session_id = _start(client)
    r = client.post("/api/round-robin/continue", json={"sessionId": session_id, "message": "go on"})
    assert r.status_code == 400
    assert r.json() == {"error": "Cannot continue session with status: active"}

    rr_session = session.get(RoundRobinSession, session_id)
    crud.update_round_robin_session(session=session, db_session=rr_session, status="awaiting_user", current_turn_index=6)

    r = client.post("/api/round-robin/continue", json={"sessionId": session_id, "message": "  What about Go?  "})
    assert r.status_code == 200
    assert r.json()["success"] is True

    resumed = client.get(f"/api/round-robin/resume?sessionId={session_id}").json()
    assert resumed["session"]["status"] == "active"
    assert resumed["currentTurn"] == 6
    assert [(m["role"], m["content"], m["turn_index"]) for m in resumed["messages"]] == [
        ("user", "Tabs or spaces?", 0),
        ("user", "What about Go?", 6),
    ]


def test_zero_session_id_is_missing(client: TestClient) -> None:
    r = client.post("/api/round-robin/action", json={"sessionId": 0, "action": "pause"})
    assert r.status_code == 400
    assert r.json() == {"error": "sessionId is required"}
