from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient


def test_models_without_key_is_empty(client: TestClient) -> None:
    with patch("app.api.routes.openai.settings.OPENAI_API_KEY", None):
        r = client.get("/api/openai/models")
    assert r.status_code == 200
    assert r.json() == {"models": []}


def test_models_lists_ids(client: TestClient) -> None:
    with (
        patch("app.api.routes.openai.settings.OPENAI_API_KEY", "sk-test"),
        patch("app.api.routes.openai.LLMClient") as mock_client,
    ):
        mock_client.return_value.list_models = AsyncMock(return_value=["gpt-4o", "gpt-4o-mini"])
        r = client.get("/api/openai/models")
    assert r.json() == {"models": ["gpt-4o", "gpt-4o-mini"]}


def test_models_failure_is_swallowed(client: TestClient) -> None:
    with (
        patch("app.api.routes.openai.settings.OPENAI_API_KEY", "sk-test"),
        patch("app.api.routes.openai.LLMClient") as mock_client,
    ):
        mock_client.return_value.list_models = AsyncMock(side_effect=RuntimeError("boom"))
        r = client.get("/api/openai/models")
    assert r.status_code == 200
    assert r.json() == {"models": []}


def test_health_check(client: TestClient) -> None:
    r = client.get("/api/utils/health-check/")
    assert r.status_code == 200
    assert r.json() is True


def test_deep_health_reports_unconfigured_providers(client: TestClient) -> None:
    with (
        patch("app.api.routes.utils.settings.OPENAI_API_KEY", None),
        patch("app.api.routes.utils.settings.ANTHROPIC_API_KEY", "key"),
        patch("app.api.routes.utils.settings.MISTRAL_API_KEY", None),
        patch("app.api.routes.utils.settings.XAI_API_KEY", None),
        patch("app.api.routes.utils.settings.HF_API_KEY", None),
        patch("app.api.routes.utils.settings.GEMINI_API_KEY", None),
    ):
        r = client.get("/api/health/deep")

    providers = r.json()["providers"]
    assert providers["OpenAI"] == {"status": "not_configured"}
    assert providers["Anthropic"] == {"status": "operational"}
    assert providers["HuggingFace"] == {"status": "not_configured"}
    assert isinstance(r.json()["timestamp"], int)
