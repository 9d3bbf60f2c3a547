from app.clients.llm import ChatResult, LLMClient

SUPPORTED_CHAT_PROVIDERS = ("openai", "anthropic")
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7


class ProviderNotImplementedError(Exception):
    pass


async def complete_chat(
    provider: str,
    model: str,
    messages: list[dict[str, str]],
    *,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
) -> ChatResult:
    """Proxy a chat request to the provider that serves ``model``.

    Anthropic system messages are folded into a single system prompt by the client.
    """
    if provider not in SUPPORTED_CHAT_PROVIDERS:
        raise ProviderNotImplementedError(provider)
    client = LLMClient(model_name=model, provider=provider)
    return await client.chat(messages, max_tokens=max_tokens, temperature=temperature)
