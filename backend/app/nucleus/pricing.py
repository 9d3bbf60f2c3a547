"""Model pricing tiers, credit packages and subscription plans.

The database is the source of truth; the defaults below seed it and are
served when the catalog tables are empty or unreachable.
"""

import logging
import re
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from app.models import CreditPackage, ModelPricing, SubscriptionPlan

logger = logging.getLogger(__name__)

UNKNOWN_MODEL_TIER = 2
UNKNOWN_MODEL_CREDITS = 3

DEFAULT_MODEL_PRICING: dict[str, dict[str, Any]] = {
    # Tier 1: cheap/fast
    "gpt-3.5-turbo": {"tier": 1, "credits": 1, "name": "GPT-3.5 Turbo", "provider": "openai"},
    "gpt-4o-mini": {"tier": 1, "credits": 1, "name": "GPT-4o Mini", "provider": "openai"},
    "claude-3-5-haiku-latest": {"tier": 1, "credits": 1, "name": "Claude 3.5 Haiku", "provider": "anthropic"},
    "claude-3-haiku-20240307": {"tier": 1, "credits": 1, "name": "Claude 3 Haiku", "provider": "anthropic"},
    # Tier 2: mid-tier
    "gpt-4o": {"tier": 2, "credits": 3, "name": "GPT-4o", "provider": "openai"},
    "gpt-4-turbo": {"tier": 2, "credits": 3, "name": "GPT-4 Turbo", "provider": "openai"},
    "gpt-4-turbo-preview": {"tier": 2, "credits": 3, "name": "GPT-4 Turbo Preview", "provider": "openai"},
    "claude-sonnet-4-20250514": {"tier": 2, "credits": 3, "name": "Claude Sonnet 4", "provider": "anthropic"},
    "claude-3-5-sonnet-latest": {"tier": 2, "credits": 3, "name": "Claude 3.5 Sonnet", "provider": "anthropic"},
    "claude-3-5-sonnet-20241022": {"tier": 2, "credits": 3, "name": "Claude 3.5 Sonnet", "provider": "anthropic"},
    "claude-3-sonnet-20240229": {"tier": 2, "credits": 3, "name": "Claude 3 Sonnet", "provider": "anthropic"},
    # Tier 3: premium
    "gpt-4": {"tier": 3, "credits": 10, "name": "GPT-4", "provider": "openai"},
    "gpt-4-0613": {"tier": 3, "credits": 10, "name": "GPT-4", "provider": "openai"},
    "claude-opus-4-20250514": {"tier": 3, "credits": 10, "name": "Claude Opus 4", "provider": "anthropic"},
    "claude-3-opus-latest": {"tier": 3, "credits": 10, "name": "Claude 3 Opus", "provider": "anthropic"},
    "claude-3-opus-20240229": {"tier": 3, "credits": 10, "name": "Claude 3 Opus", "provider": "anthropic"},
}

DEFAULT_CREDIT_PACKAGES: list[dict[str, Any]] = [
    {"name": "Starter", "credits": 100, "price_cents": 500, "badge": None},
    {"name": "Standard", "credits": 500, "price_cents": 2000, "badge": "Popular"},
    {"name": "Power Pack", "credits": 1500, "price_cents": 5000, "badge": "Best Value"},
]

PRO_SUBSCRIPTION: dict[str, Any] = {
    "name": "Nucleus Pro",
    "price_cents": 30000,
    "billing_period": "monthly",
    "monthly_credits": None,
    "features": [
        "Unlimited requests",
        "All models included",
        "Priority support",
        "Usage analytics",
        "Early access to new features",
    ],
}

# Labels used by /nucleus/models
TIER_INFO = {
    1: {"label": "Standard", "credits": 1, "description": "Fast, cost-effective models"},
    2: {"label": "Advanced", "credits": 3, "description": "Balanced performance models"},
    3: {"label": "Premium", "credits": 10, "description": "Most capable models"},
}

# Labels used by /nucleus/llm/models
PRICING_TIERS = {
    1: {"label": "Fast", "credits": 1, "description": "Quick responses, lower cost"},
    2: {"label": "Balanced", "credits": 3, "description": "Great balance of speed and quality"},
    3: {"label": "Premium", "credits": 10, "description": "Best quality, most capable"},
}


def get_model_credits(model_id: str) -> int:
    pricing = DEFAULT_MODEL_PRICING.get(model_id)
    if not pricing:
        logger.warning("Unknown model %s, defaulting to tier %s pricing", model_id, UNKNOWN_MODEL_TIER)
        return UNKNOWN_MODEL_CREDITS
    return pricing["credits"]


def slugify_package_name(name: str) -> str:
    return re.sub(r"\s+", "-", name.lower())


def default_model_pricing() -> list[dict[str, Any]]:
    return [
        {
            "id": model_id,
            "model_id": model_id,
            "model_name": pricing["name"],
            "provider": pricing["provider"],
            "tier": pricing["tier"],
            "credits_per_request": pricing["credits"],
            "is_active": True,
        }
        for model_id, pricing in DEFAULT_MODEL_PRICING.items()
    ]


def default_credit_packages() -> list[dict[str, Any]]:
    return [
        {
            "id": slugify_package_name(p["name"]),
            "name": p["name"],
            "description": None,
            "credits": p["credits"],
            "price_cents": p["price_cents"],
            "badge": p["badge"],
            "sort_order": idx,
            "is_active": True,
        }
        for idx, p in enumerate(DEFAULT_CREDIT_PACKAGES)
    ]


def default_subscription_plans() -> list[dict[str, Any]]:
    return [
        {
            "id": "pro",
            "name": PRO_SUBSCRIPTION["name"],
            "tier": "pro",
            "description": None,
            "price_cents": PRO_SUBSCRIPTION["price_cents"],
            "billing_period": PRO_SUBSCRIPTION["billing_period"],
            "monthly_credits": PRO_SUBSCRIPTION["monthly_credits"],
            "features": list(PRO_SUBSCRIPTION["features"]),
            "is_active": True,
        }
    ]


def get_all_model_pricing(session: Session) -> list[ModelPricing]:
    try:
        rows = session.exec(
            select(ModelPricing)
            .where(ModelPricing.is_active == True)  # noqa: E712
            .order_by(col(ModelPricing.tier), col(ModelPricing.model_name))
        ).all()
        if rows:
            return list(rows)
    except SQLAlchemyError as exc:
        logger.warning("Model pricing lookup failed, serving defaults: %s", exc)
    return [ModelPricing.model_validate(row) for row in default_model_pricing()]


def get_model_pricing(session: Session, model_id: str) -> ModelPricing | None:
    """Active pricing row for a model, falling back to the default table."""
    try:
        row = session.exec(
            select(ModelPricing).where(
                ModelPricing.model_id == model_id,
                ModelPricing.is_active == True,  # noqa: E712
            )
        ).first()
        if row:
            return row
    except SQLAlchemyError as exc:
        logger.warning("Pricing lookup for %s failed, using defaults: %s", model_id, exc)

    pricing = DEFAULT_MODEL_PRICING.get(model_id)
    if not pricing:
        return None
    return ModelPricing(
        id="",
        model_id=model_id,
        model_name=pricing["name"],
        provider=pricing["provider"],
        tier=pricing["tier"],
        credits_per_request=get_model_credits(model_id),
        is_active=True,
    )


def get_credit_packages(session: Session) -> list[CreditPackage]:
    try:
        rows = session.exec(
            select(CreditPackage)
            .where(CreditPackage.is_active == True)  # noqa: E712
            .order_by(col(CreditPackage.sort_order))
        ).all()
        if rows:
            return list(rows)
    except SQLAlchemyError as exc:
        logger.warning("Credit package lookup failed, serving defaults: %s", exc)
    return [CreditPackage.model_validate(row) for row in default_credit_packages()]


def get_subscription_plans(session: Session) -> list[SubscriptionPlan]:
    try:
        rows = session.exec(
            select(SubscriptionPlan)
            .where(SubscriptionPlan.is_active == True)  # noqa: E712
            .order_by(col(SubscriptionPlan.price_cents))
        ).all()
        if rows:
            return list(rows)
    except SQLAlchemyError as exc:
        logger.warning("Subscription plan lookup failed, serving defaults: %s", exc)
    return [SubscriptionPlan.model_validate(row) for row in default_subscription_plans()]


def format_price(price_cents: int) -> str:
    return f"${price_cents / 100:.2f}"


def format_package(package: CreditPackage) -> dict[str, Any]:
    return {
        "id": package.id,
        "name": package.name,
        "description": package.description,
        "credits": package.credits,
        "price_cents": package.price_cents,
        "price_display": format_price(package.price_cents),
        "credits_per_dollar": round(package.credits / (package.price_cents / 100)),
        "badge": package.badge,
    }


def format_plan(plan: SubscriptionPlan) -> dict[str, Any]:
    return {
        "id": plan.id,
        "name": plan.name,
        "tier": plan.tier,
        "description": plan.description,
        "price_cents": plan.price_cents,
        "price_display": format_price(plan.price_cents),
        "billing_period": plan.billing_period,
        "features": plan.features,
        "unlimited": plan.monthly_credits is None,
        "monthly_credits": plan.monthly_credits,
    }
