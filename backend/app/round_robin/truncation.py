"""Keeps a discussion transcript inside a model's context window.

Messages are dropped oldest-first, never touching anchors (the opening user
message, each model's first reply and the most recent exchanges). What was
dropped is condensed into a single summary message placed right after the
opening user message.
"""

import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from app.clients.llm import LLMClient
from app.core.config import settings
from app.models import RoundRobinMessage
from app.round_robin.constants import (
    DEFAULT_CONTEXT_LIMIT,
    MODEL_CONTEXT_LIMITS,
    RESPONSE_TOKEN_RESERVE,
    SYSTEM_PROMPT_TOKEN_RESERVE,
)

logger = logging.getLogger(__name__)

RECENT_MESSAGE_COUNT = 6
FALLBACK_SUMMARY_CHAR_LIMIT = 800
SUMMARY_INPUT_CHAR_LIMIT = 8000
SUMMARY_SYSTEM_PROMPT = (
    "Summarize the following excerpts from an AI group discussion. "
    "Preserve crucial facts, disagreements, and conclusions in 2-3 sentences."
)


@dataclass
class TranscriptMessage:
    model: str
    role: str
    content: str
    turn_index: int = 0
    token_count: int | None = None

    @classmethod
    def from_row(cls, row: RoundRobinMessage) -> "TranscriptMessage":
        return cls(
            model=row.model,
            role=row.role,
            content=row.content or "",
            turn_index=row.turn_index or 0,
            token_count=row.token_count,
        )


def count_tokens(text: str) -> int:
    """Rough token estimate: 1.3 tokens per whitespace-separated word."""
    if not text:
        return 0
    words = text.split()
    return max(1, math.ceil(len(words) * 1.3))


def _message_tokens(message: TranscriptMessage) -> int:
    return message.token_count if message.token_count is not None else count_tokens(message.content)


def context_budget(model_id: str) -> int:
    limit = MODEL_CONTEXT_LIMITS.get(model_id, DEFAULT_CONTEXT_LIMIT)
    return max(1, limit - RESPONSE_TOKEN_RESERVE - SYSTEM_PROMPT_TOKEN_RESERVE)


def compute_anchor_indices(messages: list[TranscriptMessage]) -> set[int]:
    anchors: set[int] = set()

    for idx, message in enumerate(messages):
        if message.role == "user":
            anchors.add(idx)
            break

    seen_models: set[str] = set()
    for idx, message in enumerate(messages):
        if message.role == "assistant" and message.model not in seen_models:
            seen_models.add(message.model)
            anchors.add(idx)

    anchors.update(range(max(len(messages) - RECENT_MESSAGE_COUNT, 0), len(messages)))
    return anchors


def fallback_summary(text: str) -> str:
    snippet = text[:FALLBACK_SUMMARY_CHAR_LIMIT]
    ellipsis = "…" if len(text) > FALLBACK_SUMMARY_CHAR_LIMIT else ""
    return f"Summary of earlier turns: {snippet}{ellipsis}"


async def generate_summary(messages: list[TranscriptMessage]) -> str:
    if not messages:
        return ""

    joined = "\n\n".join(f"[{m.role}:{m.model}] {m.content}" for m in messages)
    if not settings.OPENAI_API_KEY:
        return fallback_summary(joined)

    try:
        client = LLMClient(model_name=settings.OPENAI_SUMMARY_MODEL, provider="openai", max_attempts=1)
        result = await client.chat(
            [
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": joined[:SUMMARY_INPUT_CHAR_LIMIT]},
            ],
            temperature=0.4,
        )
    except Exception as e:
        logger.warning("Round-robin summary generation failed: %s", e)
        return fallback_summary(joined)

    return result.content.strip() or fallback_summary(joined)


Summarizer = Callable[[list[TranscriptMessage]], Awaitable[str]]


async def truncate_history(
    messages: list[TranscriptMessage],
    target_model: str,
    summarizer: Summarizer | None = None,
) -> list[TranscriptMessage]:
    budget = context_budget(target_model)
    tokens = [_message_tokens(m) for m in messages]
    total = sum(tokens)
    if total <= budget:
        return messages

    anchors = compute_anchor_indices(messages)
    removable = [idx for idx in range(len(messages)) if idx not in anchors]
    if not removable:
        return messages

    removed: set[int] = set()
    for idx in removable:
        if total <= budget:
            break
        removed.add(idx)
        total -= tokens[idx]

    truncated = [m for idx, m in enumerate(messages) if idx not in removed]
    if total > budget:
        # Only anchors remain; best effort
        return truncated

    dropped = [messages[idx] for idx in sorted(removed)]
    if not dropped:
        return truncated

    summary_text = (await (summarizer or generate_summary)(dropped)).strip()
    if not summary_text:
        return truncated

    summary = TranscriptMessage(
        model="summary",
        role="assistant",
        content=summary_text,
        turn_index=dropped[0].turn_index,
        token_count=count_tokens(summary_text),
    )
    if total + (summary.token_count or 0) > budget:
        logger.info("Summary of %s dropped messages does not fit %s's budget", len(dropped), target_model)
        return truncated

    first_user = next((idx for idx, m in enumerate(truncated) if m.role == "user"), None)
    if first_user is None:
        truncated.insert(0, summary)
    else:
        truncated.insert(first_user + 1, summary)
    logger.info("Truncated history for %s: dropped %s messages, kept %s", target_model, len(dropped), len(truncated))
    return truncated
