import logging
from dataclasses import dataclass
from typing import Any

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI

from app.core.config import settings

logger = logging.getLogger(__name__)

_RETRYABLE_ERRORS = (APIConnectionError, APITimeoutError)


@dataclass
class ProviderConfig:
    api_key: str | None
    base_url: str | None
    model: str


def provider_config(provider: str) -> ProviderConfig:
    """Resolve credentials, endpoint and default model for a provider id."""
    configs = {
        "openai": ProviderConfig(settings.OPENAI_API_KEY, None, settings.OPENAI_MODEL),
        "anthropic": ProviderConfig(settings.ANTHROPIC_API_KEY, settings.ANTHROPIC_BASE_URL, settings.ANTHROPIC_MODEL),
        "mistral": ProviderConfig(settings.MISTRAL_API_KEY, settings.MISTRAL_BASE_URL, settings.MISTRAL_MODEL),
        "gemini": ProviderConfig(settings.GEMINI_API_KEY, settings.GEMINI_BASE_URL, settings.GEMINI_MODEL),
        "huggingface": ProviderConfig(settings.HF_API_KEY, settings.HF_BASE_URL, settings.HF_MODEL),
        "xai": ProviderConfig(settings.XAI_API_KEY, settings.XAI_BASE_URL, settings.XAI_MODEL),
    }
    if provider not in configs:
        raise ValueError(f"Unknown provider: {provider}")
    return configs[provider]


@dataclass
class ChatResult:
    content: str
    tokens_input: int | None = None
    tokens_output: int | None = None
    tokens_total: int | None = None
    finish_reason: str | None = None


def fold_system_messages(messages: list[dict[str, str]]) -> list[dict[str, str]]:
    """Merge every system message into a single leading system prompt."""
    system_parts = [m["content"] for m in messages if m.get("role") == "system" and m.get("content")]
    rest = [m for m in messages if m.get("role") != "system"]
    if not system_parts:
        return rest
    return [{"role": "system", "content": "\n\n".join(system_parts)}, *rest]


class LLMClient:
    """Chat client for any provider exposing the OpenAI chat completions API."""

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        provider: str = "openai",
        max_attempts: int = 2,
    ):
        config = provider_config(provider)
        self.provider = provider
        self.model_name = model_name or config.model
        self.max_attempts = max(1, max_attempts)

        self.client = AsyncOpenAI(
            base_url=base_url or config.base_url,
            api_key=api_key or config.api_key,
        )

    def _chat_completion_kwargs(self, *, temperature: float | None, max_tokens: int | None) -> dict[str, Any]:
        """Build provider/model-compatible kwargs for chat completions."""
        kwargs: dict[str, Any] = {}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        # GPT-5 family rejects non-default temperature values in some OpenAI endpoints.
        if (self.model_name or "").lower().startswith("gpt-5"):
            return kwargs
        if temperature is not None:
            kwargs["temperature"] = temperature
        return kwargs

    async def chat(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ChatResult:
        """Run one chat completion, retrying transport failures.

        API errors (``openai.APIStatusError``) are raised to the caller untouched so
        the upstream status can be reported.
        """
        payload = fold_system_messages(messages) if self.provider == "anthropic" else messages
        kwargs = self._chat_completion_kwargs(temperature=temperature, max_tokens=max_tokens)

        for attempt_idx in range(1, self.max_attempts + 1):
            try:
                logger.info(
                    "Issuing chat request to %s model %s (attempt %s/%s)...",
                    self.provider,
                    self.model_name,
                    attempt_idx,
                    self.max_attempts,
                )
                response = await self.client.chat.completions.create(
                    model=self.model_name,
                    messages=payload,
                    **kwargs,
                )
            except _RETRYABLE_ERRORS as e:
                if attempt_idx < self.max_attempts:
                    logger.warning(
                        "Chat request to %s failed on attempt %s/%s: %s. Retrying...",
                        self.model_name,
                        attempt_idx,
                        self.max_attempts,
                        e,
                    )
                    continue
                logger.error("Error calling %s: %s", self.model_name, e)
                raise

            choice = response.choices[0] if response.choices else None
            usage = response.usage
            return ChatResult(
                content=(choice.message.content or "") if choice else "",
                tokens_input=usage.prompt_tokens if usage else None,
                tokens_output=usage.completion_tokens if usage else None,
                tokens_total=usage.total_tokens if usage else None,
                finish_reason=choice.finish_reason if choice else None,
            )

        raise RuntimeError("Chat request failed without a captured error")

    async def list_models(self) -> list[str]:
        models: list[str] = []
        async for model in self.client.models.list():
            models.append(model.id)
        return models
