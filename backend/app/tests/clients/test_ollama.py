import json

import httpx
import pytest

from app.clients.ollama import OllamaClient, OllamaError, get_base_url, parse_ndjson


async def _chunks(*parts):
    for part in parts:
        yield part


@pytest.mark.asyncio
async def test_parse_ndjson_skips_blank_and_malformed_lines():
    events = [
        event
        async for event in parse_ndjson(
            _chunks('{"a": 1}\n\n{not json}\n{"b"', ': 2}\n{"c": 3}')
        )
    ]
    assert events == [{"a": 1}, {"b": 2}, {"c": 3}]


def test_get_base_url_strips_trailing_slashes(monkeypatch):
    monkeypatch.setattr("app.clients.ollama.settings.OLLAMA_BASE_URL", "http://ollama:11434///")
    assert get_base_url() == "http://ollama:11434"


@pytest.mark.asyncio
async def test_chat_stream_yields_pieces_until_done():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        lines = [
            {"message": {"content": "Hel"}},
            {"message": {"content": "lo"}},
            {"message": {"content": ""}},
            {"done": True},
            {"message": {"content": "ignored"}},
        ]
        return httpx.Response(200, text="\n".join(json.dumps(line) for line in lines))

    client = OllamaClient("http://ollama", transport=httpx.MockTransport(handler))
    pieces = [p async for p in client.chat_stream("llama3", [{"role": "user", "content": "hi"}])]

    assert pieces == ["Hel", "lo"]
    assert seen["body"]["stream"] is True
    assert seen["body"]["options"] == {"temperature": 0.6}


@pytest.mark.asyncio
async def test_chat_stream_raises_on_error_status():
    client = OllamaClient("http://ollama", transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    with pytest.raises(OllamaError, match="500"):
        async for _ in client.chat_stream("llama3", []):
            pass


@pytest.mark.asyncio
async def test_list_models_drops_unnamed_entries():
    payload = {"models": [{"name": "llama3:latest"}, {"size": 1}, {"name": "mistral"}]}
    client = OllamaClient("http://ollama", transport=httpx.MockTransport(lambda r: httpx.Response(200, json=payload)))
    assert await client.list_models() == ["llama3:latest", "mistral"]


@pytest.mark.asyncio
async def test_health_is_false_on_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = OllamaClient("http://ollama", transport=httpx.MockTransport(handler))
    assert await client.check_health() is False


@pytest.mark.asyncio
async def test_embeddings_non_list_becomes_empty():
    client = OllamaClient(
        "http://ollama",
        transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"embedding": "nope"})),
    )
    assert await client.embeddings("hello") == []


@pytest.mark.asyncio
async def test_list_models_rejects_non_json_body():
    client = OllamaClient(
        "http://ollama",
        transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>proxy page</html>")),
    )
    with pytest.raises(OllamaError, match="invalid JSON"):
        await client.list_models()
