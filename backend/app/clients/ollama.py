import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_TEMPERATURE = 0.6


class OllamaError(Exception):
    pass


def get_base_url() -> str:
    return (settings.OLLAMA_BASE_URL or "").rstrip("/") or DEFAULT_BASE_URL


async def parse_ndjson(chunks: AsyncIterable[str]) -> AsyncIterator[Any]:
    """Decode newline-delimited JSON, skipping blank and malformed lines."""
    buffer = ""
    async for chunk in chunks:
        buffer += chunk
        lines = buffer.split("\n")
        buffer = lines.pop()
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed NDJSON line: %s", line[:200])

    tail = buffer.strip()
    if tail:
        try:
            yield json.loads(tail)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed NDJSON tail: %s", tail[:200])


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise OllamaError(f"invalid JSON from ollama ({response.status_code})") from e


class OllamaClient:
    def __init__(self, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = (base_url or get_base_url()).rstrip("/")
        self._transport = transport

    def _client(self, timeout: float | None) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self._transport)

    async def check_health(self, timeout: float = 1.5) -> bool:
        try:
            async with self._client(timeout) as client:
                response = await client.get("/api/version")
            return response.is_success
        except httpx.HTTPError as e:
            logger.info("Ollama health check failed at %s: %s", self.base_url, e)
            return False

    async def list_models(self, timeout: float = 2.0) -> list[str]:
        """Names of locally installed models. Raises ``OllamaError`` on failure."""
        try:
            async with self._client(timeout) as client:
                response = await client.get("/api/tags")
        except httpx.HTTPError as e:
            raise OllamaError(str(e) or e.__class__.__name__) from e
        if not response.is_success:
            raise OllamaError(f"ollama tags failed ({response.status_code})")

        payload = _json_body(response)
        models = payload.get("models") if isinstance(payload, dict) else None
        return [m["name"] for m in models or [] if isinstance(m, dict) and m.get("name")]

    async def chat_stream(
        self,
        model: str,
        messages: list[dict[str, str]],
        temperature: float | None = None,
        top_p: float | None = None,
    ) -> AsyncIterator[str]:
        """Yield assistant text pieces from a streaming ``/api/chat`` call."""
        options: dict[str, float] = {"temperature": DEFAULT_TEMPERATURE if temperature is None else temperature}
        if top_p is not None:
            options["top_p"] = top_p
        body = {"model": model, "messages": messages, "options": options, "stream": True}

        async with self._client(None) as client:
            async with client.stream("POST", "/api/chat", json=body) as response:
                if not response.is_success:
                    raise OllamaError(f"Ollama request failed ({response.status_code})")
                async for event in parse_ndjson(response.aiter_text()):
                    if not isinstance(event, dict):
                        continue
                    piece = (event.get("message") or {}).get("content") or ""
                    if piece:
                        yield piece
                    if event.get("done"):
                        break

    async def embeddings(self, text: str, model: str | None = None) -> list[float]:
        """Embedding vector for ``text``. Raises ``OllamaError`` on a non-2xx reply."""
        body = {"model": model or settings.OLLAMA_EMBED_MODEL, "prompt": text}
        async with self._client(None) as client:
            response = await client.post("/api/embeddings", json=body)
        if not response.is_success:
            raise OllamaError(f"ollama embeddings failed ({response.status_code})")

        payload = _json_body(response)
        embedding = payload.get("embedding") if isinstance(payload, dict) else None
        return embedding if isinstance(embedding, list) else []


def get_ollama_client() -> OllamaClient:
    return OllamaClient()
