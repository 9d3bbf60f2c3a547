import asyncio
import logging
import time
from typing import Any

import httpx
from fastapi import APIRouter

from app.clients.llm import LLMClient
from app.core.config import settings

router = APIRouter(tags=["utils"])
logger = logging.getLogger(__name__)

HF_WHOAMI_URL = "https://huggingface.co/api/whoami-v2"


@router.get("/utils/health-check/")
async def health_check() -> bool:
    return True


async def _check_model_list(provider: str, api_key: str | None) -> dict[str, Any]:
    if not api_key:
        return {"status": "not_configured"}
    try:
        models = await LLMClient(provider=provider).list_models()
    except Exception as e:
        logger.warning("Deep health: %s model listing failed: %s", provider, e)
        return {"status": "down", "info": str(e)}
    return {"status": "operational", "count": len(models)}


async def _check_huggingface(api_key: str | None) -> dict[str, Any]:
    if not api_key:
        return {"status": "not_configured"}
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(HF_WHOAMI_URL, headers={"Authorization": f"Bearer {api_key}"})
    except httpx.HTTPError as e:
        logger.warning("Deep health: Hugging Face whoami failed: %s", e)
        return {"status": "down", "info": str(e)}
    return {"status": "operational" if response.is_success else "down"}


def _check_configured(api_key: str | None) -> dict[str, Any]:
    return {"status": "operational" if api_key else "not_configured"}


@router.get("/health/deep")
async def deep_health() -> dict[str, Any]:
    openai_status, xai_status, mistral_status, hf_status = await asyncio.gather(
        _check_model_list("openai", settings.OPENAI_API_KEY),
        _check_model_list("xai", settings.XAI_API_KEY),
        _check_model_list("mistral", settings.MISTRAL_API_KEY),
        _check_huggingface(settings.HF_API_KEY),
    )
    return {
        "providers": {
            "OpenAI": openai_status,
            "Anthropic": _check_configured(settings.ANTHROPIC_API_KEY),
            "Mistral": mistral_status,
            "xAI": xai_status,
            "HuggingFace": hf_status,
            "Gemini": _check_configured(settings.GEMINI_API_KEY),
        },
        "timestamp": int(time.time() * 1000),
    }
