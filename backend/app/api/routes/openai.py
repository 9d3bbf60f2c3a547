import logging
from typing import Any

from fastapi import APIRouter

from app.clients.llm import LLMClient
from app.core.config import settings

router = APIRouter(prefix="/openai", tags=["openai"])
logger = logging.getLogger(__name__)


@router.get("/models")
async def openai_models() -> dict[str, Any]:
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not configured; returning no models")
        return {"models": []}
    try:
        models = await LLMClient(provider="openai").list_models()
    except Exception as e:
        logger.error("Listing OpenAI models failed: %s", e)
        return {"models": []}
    return {"models": models}
