from dataclasses import dataclass


@dataclass(frozen=True)
class SupportedModel:
    id: str
    name: str
    context_limit: int


SUPPORTED_MODELS: tuple[SupportedModel, ...] = (
    SupportedModel("openai", "GPT-4", 128_000),
    SupportedModel("anthropic", "Claude", 200_000),
    SupportedModel("mistral", "Mistral", 32_000),
    SupportedModel("gemini", "Gemini", 1_000_000),
    SupportedModel("huggingface", "Zephyr", 8_192),
    SupportedModel("xai", "Grok", 131_072),
)

MODEL_CONTEXT_LIMITS: dict[str, int] = {m.id: m.context_limit for m in SUPPORTED_MODELS}
MODEL_DISPLAY_NAMES: dict[str, str] = {m.id: m.name for m in SUPPORTED_MODELS}

DEFAULT_TURN_ORDER: list[str] = [m.id for m in SUPPORTED_MODELS]
DEFAULT_CONTEXT_LIMIT = 32_000

RESPONSE_TOKEN_RESERVE = 2_000
SYSTEM_PROMPT_TOKEN_RESERVE = 500
MAX_RETRY_ATTEMPTS = 3
LONG_WAIT_THRESHOLD_SECONDS = 30
CONTENT_CHUNK_SIZE = 400

ROUND_ROBIN_SYSTEM_PROMPT = """You are {model_name}, participating in a group discussion with other AI models.

Participants: {participant_list}

Guidelines:
- Be concise but substantive (2-4 paragraphs max)
- Build on previous responses, don't repeat
- Acknowledge others' points when relevant
- Stay on topic
- Be respectful and constructive

The discussion topic is provided below. When it's your turn, contribute meaningfully to the conversation."""

GEMINI_CONTINUATION_PROMPT = (
    "Continue the discussion based on the conversation above. Provide your next contribution."
)
