from sqlmodel import Session

from app.models import CreditPackage, ModelPricing, SubscriptionPlan
from app.nucleus import pricing


def test_default_lookups():
    assert pricing.get_model_credits("gpt-4o-mini") == 1
    assert pricing.get_model_credits("gpt-4o") == 3
    assert pricing.get_model_credits("claude-opus-4-20250514") == 10
    assert pricing.get_model_credits("mystery-model") == 3


def test_default_packages_are_slugified():
    ids = [p["id"] for p in pricing.default_credit_packages()]
    assert ids == ["starter", "standard", "power-pack"]


def test_format_package():
    package = CreditPackage(id="starter", name="Starter", credits=100, price_cents=500)
    formatted = pricing.format_package(package)
    assert formatted["price_display"] == "$5.00"
    assert formatted["credits_per_dollar"] == 20


def test_format_plan_marks_unlimited():
    formatted = pricing.format_plan(SubscriptionPlan.model_validate(pricing.default_subscription_plans()[0]))
    assert formatted["unlimited"] is True
    assert formatted["price_display"] == "$300.00"


def test_db_row_wins_over_defaults(session: Session):
    row = session.get(ModelPricing, "gpt-4o")
    assert row is not None
    row.credits_per_request = 7
    session.add(row)
    session.commit()

    assert pricing.get_model_pricing(session, "gpt-4o").credits_per_request == 7


def test_falls_back_to_defaults_for_inactive_row(session: Session):
    row = session.get(ModelPricing, "gpt-4")
    assert row is not None
    row.is_active = False
    row.credits_per_request = 99
    session.add(row)
    session.commit()

    fallback = pricing.get_model_pricing(session, "gpt-4")
    assert fallback is not None
    assert fallback.credits_per_request == 10
    assert pricing.get_model_pricing(session, "mystery-model") is None
