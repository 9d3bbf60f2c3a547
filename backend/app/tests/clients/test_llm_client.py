from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError

from app.clients.llm import LLMClient, fold_system_messages, provider_config


def _mock_openai(content="Hello there", finish_reason="stop"):
    mock_message = MagicMock()
    mock_message.content = content

    mock_choice = MagicMock()
    mock_choice.message = mock_message
    mock_choice.finish_reason = finish_reason

    mock_usage = MagicMock()
    mock_usage.prompt_tokens = 12
    mock_usage.completion_tokens = 5
    mock_usage.total_tokens = 17

    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    mock_response.usage = mock_usage

    mock_completions = MagicMock()
    mock_completions.create = AsyncMock(return_value=mock_response)

    mock_chat = MagicMock()
    mock_chat.completions = mock_completions

    mock_client_instance = AsyncMock()
    mock_client_instance.chat = mock_chat
    return mock_client_instance, mock_completions


@pytest.mark.asyncio
async def test_chat_returns_content_and_usage():
    mock_client_instance, mock_completions = _mock_openai()

    with patch("app.clients.llm.AsyncOpenAI", return_value=mock_client_instance):
        client = LLMClient(model_name="gpt-4o", api_key="dummy_key")
        result = await client.chat([{"role": "user", "content": "hi"}], temperature=0.7, max_tokens=100)

    assert result.content == "Hello there"
    assert result.tokens_input == 12
    assert result.tokens_output == 5
    assert result.tokens_total == 17
    assert result.finish_reason == "stop"
    kwargs = mock_completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["temperature"] == 0.7
    assert kwargs["max_tokens"] == 100


@pytest.mark.asyncio
async def test_gpt5_models_omit_temperature():
    mock_client_instance, mock_completions = _mock_openai()

    with patch("app.clients.llm.AsyncOpenAI", return_value=mock_client_instance):
        client = LLMClient(model_name="gpt-5-mini", api_key="dummy_key")
        await client.chat([{"role": "user", "content": "hi"}], temperature=0.2)

    assert "temperature" not in mock_completions.create.call_args.kwargs


@pytest.mark.asyncio
async def test_anthropic_folds_system_messages():
    mock_client_instance, mock_completions = _mock_openai()

    with patch("app.clients.llm.AsyncOpenAI", return_value=mock_client_instance):
        client = LLMClient(model_name="claude-3-5-haiku-latest", provider="anthropic", api_key="dummy_key")
        await client.chat(
            [
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "hi"},
                {"role": "system", "content": "Use English."},
            ]
        )

    messages = mock_completions.create.call_args.kwargs["messages"]
    assert messages[0] == {"role": "system", "content": "Be brief.\n\nUse English."}
    assert [m["role"] for m in messages] == ["system", "user"]


@pytest.mark.asyncio
async def test_chat_retries_connection_errors():
    mock_client_instance, mock_completions = _mock_openai()
    success = mock_completions.create.return_value
    mock_completions.create = AsyncMock(
        side_effect=[APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1")), success]
    )
    mock_client_instance.chat.completions = mock_completions

    with patch("app.clients.llm.AsyncOpenAI", return_value=mock_client_instance):
        client = LLMClient(model_name="gpt-4o", api_key="dummy_key", max_attempts=2)
        result = await client.chat([{"role": "user", "content": "hi"}])

    assert result.content == "Hello there"
    assert mock_completions.create.await_count == 2


def test_fold_system_messages_without_system():
    messages = [{"role": "user", "content": "hi"}]
    assert fold_system_messages(messages) == messages


def test_provider_config_uses_settings():
    with patch("app.clients.llm.settings.XAI_API_KEY", "xai-key"):
        config = provider_config("xai")
    assert config.api_key == "xai-key"
    assert config.base_url == "https://api.x.ai/v1"

    with pytest.raises(ValueError):
        provider_config("unknown")
