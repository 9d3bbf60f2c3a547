from unittest.mock import AsyncMock, patch

import pytest

from app.clients.llm import ChatResult
from app.round_robin.constants import GEMINI_CONTINUATION_PROMPT
from app.round_robin.providers import ADAPTERS, FALLBACK_ADAPTER, ProviderError, get_adapter
from app.round_robin.truncation import TranscriptMessage


def _msg(role: str, content: str, model: str = "user") -> TranscriptMessage:
    return TranscriptMessage(model=model, role=role, content=content, turn_index=0)


def test_unknown_model_falls_back_to_openai() -> None:
    assert get_adapter("grok-9000") is FALLBACK_ADAPTER
    assert get_adapter("mistral") is ADAPTERS["mistral"]


def test_messages_start_with_system_prompt() -> None:
    payload = ADAPTERS["openai"].build_messages([_msg("user", "topic")], "be brief")
    assert payload == [{"role": "system", "content": "be brief"}, {"role": "user", "content": "topic"}]


def test_gemini_appends_continuation_after_assistant_turn() -> None:
    adapter = ADAPTERS["gemini"]
    payload = adapter.build_messages([_msg("user", "topic"), _msg("assistant", "reply", "openai")], "sys")
    assert payload[-1] == {"role": "user", "content": GEMINI_CONTINUATION_PROMPT}

    payload = adapter.build_messages([_msg("user", "topic")], "sys")
    assert payload[-1] == {"role": "user", "content": "topic"}


@pytest.mark.asyncio
async def test_missing_key_is_provider_error() -> None:
    with patch("app.clients.llm.settings.XAI_API_KEY", None):
        with pytest.raises(ProviderError, match="Missing XAI_API_KEY environment variable"):
            await ADAPTERS["xai"].generate_response([_msg("user", "topic")], "sys")


@pytest.mark.asyncio
async def test_generate_response_strips_and_counts() -> None:
    adapter = ADAPTERS["mistral"]
    chat = AsyncMock(return_value=ChatResult(content="  An answer.  ", tokens_total=12))
    with (
        patch("app.clients.llm.settings.MISTRAL_API_KEY", "test-key"),
        patch("app.round_robin.providers.LLMClient.chat", chat),
    ):
        response = await adapter.generate_response([_msg("user", "topic")], "sys")

    assert response.content == "An answer."
    assert response.token_count == 12
    assert chat.await_args.kwargs == {"temperature": 0.7, "max_tokens": None}


@pytest.mark.asyncio
async def test_empty_response_is_provider_error() -> None:
    adapter = ADAPTERS["huggingface"]
    with (
        patch("app.clients.llm.settings.HF_API_KEY", "test-key"),
        patch("app.round_robin.providers.LLMClient.chat", AsyncMock(return_value=ChatResult(content="   "))),
    ):
        with pytest.raises(ProviderError, match="Hugging Face returned an empty response"):
            await adapter.generate_response([_msg("user", "topic")], "sys")
