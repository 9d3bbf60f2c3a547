import logging

from sqlmodel import Session, SQLModel, create_engine, select

from app.core.config import settings
from app.models import CreditPackage, ModelPricing, SubscriptionPlan
from app.nucleus.pricing import default_credit_packages, default_model_pricing, default_subscription_plans

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite") else {}
engine = create_engine(settings.SQLALCHEMY_DATABASE_URI, connect_args=connect_args)


def init_db(session: Session) -> None:
    """Create tables and seed the Nucleus catalog when it is empty."""
    SQLModel.metadata.create_all(session.get_bind())

    if session.exec(select(ModelPricing)).first() is None:
        for row in default_model_pricing():
            session.add(ModelPricing.model_validate(row))
        logger.info("Seeded model pricing table with defaults")

    if session.exec(select(CreditPackage)).first() is None:
        for row in default_credit_packages():
            session.add(CreditPackage.model_validate(row))
        logger.info("Seeded credit packages with defaults")

    if session.exec(select(SubscriptionPlan)).first() is None:
        for row in default_subscription_plans():
            session.add(SubscriptionPlan.model_validate(row))
        logger.info("Seeded subscription plans with defaults")

    session.commit()
