import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Response
from openai import APIStatusError
from pydantic import BaseModel, Field

from app import crud
from app.api.deps import CurrentUser, SessionDep
from app.api.errors import APIError
from app.models import ModelPricing, NucleusProfile, NucleusProfilePublic, NucleusProfileUpdate, UsageLogCreate
from app.nucleus import pricing
from app.nucleus.chat import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, ProviderNotImplementedError, complete_chat
from app.nucleus.rate_limit import rate_limit, rate_limit_headers

router = APIRouter(prefix="/nucleus", tags=["nucleus"])
logger = logging.getLogger(__name__)

PROVIDER_ERROR_CODES = {"openai": ("OpenAI", "OPENAI_ERROR"), "anthropic": ("Anthropic", "ANTHROPIC_ERROR")}


class ChatMessage(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    model: str | None = None
    messages: list[ChatMessage] | None = None
    conversation_id: str | None = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE


class ProfileUpdateRequest(BaseModel):
    display_name: Any = Field(default=None)


def _profile_body(profile: NucleusProfile) -> dict[str, Any]:
    return NucleusProfilePublic.model_validate(profile).model_dump(mode="json")


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)


def _format_model(row: ModelPricing, labels: dict[int, dict[str, Any]]) -> dict[str, Any]:
    return {
        "id": row.model_id,
        "name": row.model_name,
        "provider": row.provider,
        "tier": row.tier,
        "credits_per_request": row.credits_per_request,
        "tier_label": labels.get(row.tier, {}).get("label", "Unknown"),
    }


@router.get("/auth/session")
def read_session(current_user: CurrentUser) -> dict[str, Any]:
    return {
        "user": {"id": current_user.id, "email": current_user.email},
        "profile": _profile_body(current_user),
    }


@router.get("/credits/balance")
def read_credit_balance(current_user: CurrentUser) -> dict[str, Any]:
    subscription_active = crud.is_subscription_active(current_user)
    return {
        "credit_balance": current_user.credit_balance,
        "subscription_tier": current_user.subscription_tier,
        "subscription_status": current_user.subscription_status,
        "subscription_ends_at": current_user.subscription_ends_at,
        "subscription_active": subscription_active,
        "effective_credits": "unlimited" if subscription_active else current_user.credit_balance,
    }


@router.get("/credits/packages")
def read_credit_packages(session: SessionDep) -> dict[str, Any]:
    packages = pricing.get_credit_packages(session)
    return {"packages": [pricing.format_package(p) for p in packages]}


@router.get("/packages")
def read_packages(session: SessionDep) -> dict[str, Any]:
    return {
        "credit_packages": [pricing.format_package(p) for p in pricing.get_credit_packages(session)],
        "subscription_plans": [pricing.format_plan(p) for p in pricing.get_subscription_plans(session)],
    }


@router.get("/subscription/plans")
def read_subscription_plans(session: SessionDep) -> dict[str, Any]:
    return {"plans": [pricing.format_plan(p) for p in pricing.get_subscription_plans(session)]}


@router.get("/models")
def read_models(session: SessionDep) -> dict[str, Any]:
    rows = pricing.get_all_model_pricing(session)
    by_provider: dict[str, list[dict[str, Any]]] = {}
    for row in rows:
        by_provider.setdefault(row.provider, []).append(row.model_dump(mode="json"))
    return {
        "models": [_format_model(row, pricing.TIER_INFO) for row in rows],
        "by_provider": by_provider,
        "tier_info": pricing.TIER_INFO,
    }


@router.get("/llm/models")
def read_llm_models(session: SessionDep) -> dict[str, Any]:
    rows = pricing.get_all_model_pricing(session)
    tier_names = {1: "fast", 2: "balanced", 3: "premium"}
    by_tier: dict[str, list[dict[str, Any]]] = {name: [] for name in tier_names.values()}
    for row in rows:
        if row.tier in tier_names:
            by_tier[tier_names[row.tier]].append(
                {
                    "id": row.model_id,
                    "name": row.model_name,
                    "provider": row.provider,
                    "credits": row.credits_per_request,
                }
            )
    return {
        "models": [_format_model(row, pricing.PRICING_TIERS) for row in rows],
        "by_tier": by_tier,
        "pricing_tiers": pricing.PRICING_TIERS,
    }


@router.get("/user/profile")
def read_profile(current_user: CurrentUser) -> dict[str, Any]:
    return {"profile": _profile_body(current_user)}


@router.patch("/user/profile")
def update_profile(session: SessionDep, current_user: CurrentUser, body: ProfileUpdateRequest) -> dict[str, Any]:
    if not isinstance(body.display_name, str) or not body.display_name.strip():
        raise APIError(400, "display_name must be a non-empty string", "INVALID_INPUT")
    profile = crud.update_profile(
        session=session,
        db_profile=current_user,
        profile_in=NucleusProfileUpdate(display_name=body.display_name.strip()),
    )
    return {"profile": _profile_body(profile)}


@router.get("/user/usage")
def read_usage(
    session: SessionDep,
    current_user: CurrentUser,
    limit: int = 50,
    offset: int = 0,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    include_transactions: bool = False,
) -> dict[str, Any]:
    logs = crud.get_usage_history(
        session=session,
        user_id=current_user.id,
        limit=limit,
        offset=offset,
        start_date=_as_utc(start_date),
        end_date=_as_utc(end_date),
    )

    by_model: dict[str, dict[str, Any]] = {}
    for log in logs:
        entry = by_model.setdefault(
            log.model_id,
            {"model_id": log.model_id, "model_name": log.model_name, "requests": 0, "credits": 0},
        )
        entry["requests"] += 1
        entry["credits"] += log.credits_used

    body: dict[str, Any] = {
        "usage": [log.model_dump(mode="json") for log in logs],
        "summary": {
            "total_requests": len(logs),
            "total_credits_used": sum(log.credits_used for log in logs),
            "total_tokens": sum(log.tokens_total or 0 for log in logs),
            "by_model": list(by_model.values()),
        },
        "pagination": {"limit": limit, "offset": offset, "has_more": len(logs) == limit},
    }
    if include_transactions:
        transactions = crud.get_transaction_history(session=session, user_id=current_user.id, limit=50)
        body["transactions"] = [t.model_dump(mode="json") for t in transactions]
    return body


@router.post("/llm/chat")
async def llm_chat(session: SessionDep, current_user: CurrentUser, body: ChatRequest, response: Response) -> dict[str, Any]:
    started = time.monotonic()

    limit = rate_limit(f"nucleus:chat:{current_user.id}")
    if not limit.allowed:
        raise APIError(429, "Rate limit exceeded", "RATE_LIMITED", headers=rate_limit_headers(limit, blocked=True))
    response.headers.update(rate_limit_headers(limit))

    if not body.model:
        raise APIError(400, "model is required", "MISSING_MODEL")
    if not body.messages:
        raise APIError(400, "messages array is required", "MISSING_MESSAGES")

    model_pricing = pricing.get_model_pricing(session, body.model)
    if model_pricing is None:
        raise APIError(
            400,
            f'Model "{body.model}" is not supported',
            "UNSUPPORTED_MODEL",
            {"supported_models": list(pricing.DEFAULT_MODEL_PRICING)},
        )

    credits_needed = model_pricing.credits_per_request
    is_pro = crud.is_subscription_active(current_user)
    if not is_pro and current_user.credit_balance < credits_needed:
        raise APIError(
            402,
            "Insufficient credits",
            "INSUFFICIENT_CREDITS",
            {"credits_needed": credits_needed, "credits_available": current_user.credit_balance, "model": body.model},
        )

    messages = [m.model_dump() for m in body.messages]
    try:
        result = await complete_chat(
            model_pricing.provider,
            body.model,
            messages,
            max_tokens=body.max_tokens,
            temperature=body.temperature,
        )
    except ProviderNotImplementedError:
        raise APIError(501, f'Provider "{model_pricing.provider}" not implemented', "PROVIDER_NOT_IMPLEMENTED")
    except APIStatusError as e:
        label, code = PROVIDER_ERROR_CODES[model_pricing.provider]
        logger.error("%s chat request for %s failed: %s", label, body.model, e)
        raise APIError(e.status_code or 500, f"{label} API error: {e.message}", code)
    except Exception:
        logger.exception("LLM chat request for %s failed", body.model)
        raise APIError(500, "Failed to process chat request", "CHAT_ERROR")

    duration_ms = int((time.monotonic() - started) * 1000)

    credits_remaining = -1
    if not is_pro:
        try:
            credits_remaining, _ = crud.deduct_credits(
                session=session,
                user_id=current_user.id,
                credits=credits_needed,
                model_used=body.model,
            )
        except crud.InsufficientCreditsError as e:
            raise APIError(
                402,
                "Insufficient credits",
                "INSUFFICIENT_CREDITS",
                {"credits_needed": e.credits_needed, "credits_available": e.credits_available, "model": body.model},
            )

    credits_used = 0 if is_pro else credits_needed
    crud.log_usage(
        session=session,
        usage_in=UsageLogCreate(
            user_id=current_user.id,
            model_id=body.model,
            model_name=model_pricing.model_name,
            provider=model_pricing.provider,
            tier=model_pricing.tier,
            credits_used=credits_used,
            tokens_input=result.tokens_input,
            tokens_output=result.tokens_output,
            tokens_total=(result.tokens_input or 0) + (result.tokens_output or 0),
            request_duration_ms=duration_ms,
            conversation_id=body.conversation_id,
        ),
    )

    return {
        "response": result.content,
        "model": body.model,
        "credits_used": credits_used,
        "credits_remaining": credits_remaining,
        "tokens_input": result.tokens_input,
        "tokens_output": result.tokens_output,
        "finish_reason": result.finish_reason,
    }
