import logging
from collections.abc import AsyncIterator
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from app.clients.ollama import OllamaClient, OllamaError, get_ollama_client

router = APIRouter(prefix="/ollama", tags=["ollama"])
logger = logging.getLogger(__name__)

OllamaDep = Annotated[OllamaClient, Depends(get_ollama_client)]


class OllamaMessage(BaseModel):
    role: str
    content: str


class OllamaChatRequest(BaseModel):
    model: str
    messages: list[OllamaMessage] = Field(default_factory=list)
    temperature: float | None = None
    top_p: float | None = None


class EmbeddingsRequest(BaseModel):
    text: Any = None
    model: str | None = None


@router.get("/health")
async def ollama_health(client: OllamaDep) -> dict[str, Any]:
    online = await client.check_health()
    return {"online": online, "baseUrl": client.base_url}


@router.get("/models")
async def ollama_models(client: OllamaDep) -> dict[str, Any]:
    try:
        models = await client.list_models()
    except OllamaError as e:
        logger.warning("Listing Ollama models failed: %s", e)
        return {"models": [], "error": str(e)}
    except Exception as e:
        logger.exception("Listing Ollama models failed unexpectedly")
        return {"models": [], "error": str(e) or "Failed to list models"}
    return {"models": models}


@router.post("")
async def ollama_chat(body: OllamaChatRequest, client: OllamaDep) -> StreamingResponse:
    messages = [m.model_dump() for m in body.messages]

    async def text_stream() -> AsyncIterator[str]:
        try:
            async for piece in client.chat_stream(body.model, messages, body.temperature, body.top_p):
                yield piece
        except Exception as e:
            logger.warning("Ollama chat stream for %s failed: %s", body.model, e)
            yield f"[error] {str(e) or 'stream failed'}"

    return StreamingResponse(
        text_stream(),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-store"},
    )


@router.post("/embeddings")
async def ollama_embeddings(body: EmbeddingsRequest, client: OllamaDep) -> Any:
    if not isinstance(body.text, str) or not body.text.strip():
        return JSONResponse(status_code=400, content={"error": "'text' must be a non-empty string"})

    try:
        embedding = await client.embeddings(body.text, body.model)
    except OllamaError as e:
        return {"error": str(e)}
    except Exception:
        logger.exception("Ollama embeddings request failed")
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})
    return {"embedding": embedding}
