import logging
from dataclasses import dataclass

from openai import APIStatusError

from app.clients.llm import LLMClient, provider_config
from app.round_robin.constants import DEFAULT_CONTEXT_LIMIT, GEMINI_CONTINUATION_PROMPT, MODEL_CONTEXT_LIMITS
from app.round_robin.truncation import TranscriptMessage, count_tokens

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7


class ProviderError(Exception):
    pass


@dataclass
class ProviderResponse:
    content: str
    token_count: int


class ProviderAdapter:
    """Round-robin participant backed by an OpenAI-compatible chat endpoint."""

    def __init__(self, name: str, label: str, api_key_env: str, max_tokens: int | None = None):
        self.name = name
        self.label = label
        self.api_key_env = api_key_env
        self.max_tokens = max_tokens
        self.context_limit = MODEL_CONTEXT_LIMITS.get(name, DEFAULT_CONTEXT_LIMIT)

    def is_available(self) -> bool:
        return bool(provider_config(self.name).api_key)

    def build_messages(self, messages: list[TranscriptMessage], system_prompt: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt},
            *({"role": m.role, "content": m.content} for m in messages),
        ]

    def _client(self) -> LLMClient:
        return LLMClient(provider=self.name, max_attempts=1)

    async def generate_response(self, messages: list[TranscriptMessage], system_prompt: str) -> ProviderResponse:
        if not self.is_available():
            raise ProviderError(f"Missing {self.api_key_env} environment variable")

        client = self._client()
        try:
            result = await client.chat(
                self.build_messages(messages, system_prompt),
                temperature=DEFAULT_TEMPERATURE,
                max_tokens=self.max_tokens,
            )
        except APIStatusError as e:
            logger.error("%s error (model=%s, messages=%s): %s", self.name, client.model_name, len(messages), e)
            raise ProviderError(f"{e.status_code} {e.message}".strip()) from e
        except Exception as e:
            logger.error("%s error (model=%s, messages=%s): %s", self.name, client.model_name, len(messages), e)
            raise ProviderError(str(e) or f"Unknown {self.label} error") from e

        content = result.content.strip()
        if not content:
            raise ProviderError(f"{self.label} returned an empty response")
        return ProviderResponse(content=content, token_count=result.tokens_total or count_tokens(content))


class GeminiAdapter(ProviderAdapter):
    def build_messages(self, messages: list[TranscriptMessage], system_prompt: str) -> list[dict[str, str]]:
        payload = super().build_messages(messages, system_prompt)
        # Gemini requires the conversation to end on a user turn
        if not messages or messages[-1].role != "user":
            payload.append({"role": "user", "content": GEMINI_CONTINUATION_PROMPT})
        return payload


ADAPTERS: dict[str, ProviderAdapter] = {
    "openai": ProviderAdapter("openai", "OpenAI", "OPENAI_API_KEY"),
    "anthropic": ProviderAdapter("anthropic", "Anthropic", "ANTHROPIC_API_KEY", max_tokens=2048),
    "mistral": ProviderAdapter("mistral", "Mistral", "MISTRAL_API_KEY"),
    "gemini": GeminiAdapter("gemini", "Gemini", "GEMINI_API_KEY"),
    "huggingface": ProviderAdapter("huggingface", "Hugging Face", "HF_API_KEY", max_tokens=1024),
    "xai": ProviderAdapter("xai", "xAI", "XAI_API_KEY"),
}

FALLBACK_ADAPTER = ADAPTERS["openai"]


def get_adapter(model_id: str) -> ProviderAdapter:
    return ADAPTERS.get(model_id, FALLBACK_ADAPTER)
