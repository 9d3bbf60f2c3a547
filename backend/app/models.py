import uuid
from datetime import datetime, timezone

from pydantic import EmailStr
from sqlalchemy import JSON, DateTime, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


# Nucleus profiles and ledger

class NucleusProfileBase(SQLModel):
    email: str = Field(index=True, max_length=255)
    display_name: str | None = Field(default=None, max_length=255)
    credit_balance: int = Field(default=0, ge=0)
    subscription_tier: str = Field(default="free", max_length=20)  # free, credits, pro
    subscription_status: str | None = Field(default=None, max_length=20)  # active, canceled, past_due
    subscription_ends_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class NucleusProfile(NucleusProfileBase, table=True):
    __tablename__ = "nucleus_profiles"

    # Matches the bearer token subject
    id: str = Field(primary_key=True, max_length=255)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class NucleusProfilePublic(NucleusProfileBase):
    id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class NucleusProfileUpdate(SQLModel):
    display_name: str | None = None
    credit_balance: int | None = None
    subscription_tier: str | None = None
    subscription_status: str | None = None
    subscription_ends_at: datetime | None = None


class CreditTransaction(SQLModel, table=True):
    __tablename__ = "nucleus_credit_transactions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(foreign_key="nucleus_profiles.id", index=True, ondelete="CASCADE")
    type: str = Field(max_length=30)  # purchase, usage, refund, subscription_grant, admin_adjustment, bonus
    credits_change: int
    balance_after: int
    amount_cents: int | None = None
    reference: str | None = Field(default=None, max_length=255)
    model_used: str | None = Field(default=None, max_length=255)
    description: str = Field(default="", max_length=1000)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class UsageLogBase(SQLModel):
    model_id: str = Field(max_length=255)
    model_name: str = Field(max_length=255)
    provider: str = Field(max_length=50)
    tier: int
    credits_used: int = 0
    tokens_input: int | None = None
    tokens_output: int | None = None
    tokens_total: int | None = None
    request_duration_ms: int | None = None
    conversation_id: str | None = Field(default=None, max_length=255)


class UsageLogCreate(UsageLogBase):
    user_id: str


class UsageLog(UsageLogBase, table=True):
    __tablename__ = "nucleus_usage_logs"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(foreign_key="nucleus_profiles.id", index=True, ondelete="CASCADE")
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Nucleus catalog

class ModelPricing(SQLModel, table=True):
    __tablename__ = "nucleus_model_pricing"

    id: str = Field(primary_key=True, max_length=255)
    model_id: str = Field(unique=True, index=True, max_length=255)
    model_name: str = Field(max_length=255)
    provider: str = Field(max_length=50)
    tier: int = Field(ge=1, le=3)
    credits_per_request: int = Field(ge=0)
    is_active: bool = True


class CreditPackage(SQLModel, table=True):
    __tablename__ = "nucleus_credit_packages"

    id: str = Field(primary_key=True, max_length=100)
    name: str = Field(max_length=255)
    description: str | None = None
    credits: int = Field(gt=0)
    price_cents: int = Field(gt=0)
    badge: str | None = Field(default=None, max_length=50)
    sort_order: int = 0
    is_active: bool = True


class SubscriptionPlan(SQLModel, table=True):
    __tablename__ = "nucleus_subscription_plans"

    id: str = Field(primary_key=True, max_length=100)
    name: str = Field(max_length=255)
    tier: str = Field(default="pro", max_length=20)
    description: str | None = None
    price_cents: int = Field(gt=0)
    billing_period: str = Field(default="monthly", max_length=20)  # monthly, yearly
    monthly_credits: int | None = None  # None means unlimited
    features: list[str] = Field(default_factory=list, sa_type=JSON)
    is_active: bool = True


# Round-robin discussions

class RoundRobinSessionBase(SQLModel):
    topic: str = Field(min_length=1, max_length=5000)
    turn_order: list[str] = Field(default_factory=list, sa_type=JSON)
    active_models: list[str] = Field(default_factory=list, sa_type=JSON)
    current_turn_index: int = 0
    current_round: int = 1
    status: str = Field(default="active", max_length=20)  # active, paused, completed, error, awaiting_user
    user_id: str | None = Field(default=None, max_length=255)
    error_context: dict | None = Field(default=None, sa_type=JSON)


class RoundRobinSession(RoundRobinSessionBase, table=True):
    __tablename__ = "round_robin_sessions"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    messages: list["RoundRobinMessage"] = Relationship(back_populates="session", cascade_delete=True)


class RoundRobinSessionPublic(RoundRobinSessionBase):
    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RoundRobinMessageBase(SQLModel):
    model: str = Field(max_length=50)  # provider id, "user" or "summary"
    role: str = Field(max_length=20)  # user, assistant
    content: str = ""
    turn_index: int = 0
    token_count: int | None = None


class RoundRobinMessage(RoundRobinMessageBase, table=True):
    __tablename__ = "round_robin_messages"

    id: int | None = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="round_robin_sessions.id", index=True, ondelete="CASCADE")
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    session: RoundRobinSession | None = Relationship(back_populates="messages")


class RoundRobinMessagePublic(RoundRobinMessageBase):
    id: int
    session_id: int
    created_at: datetime | None = None


# Blog

class BlogPostBase(SQLModel):
    title: str | None = Field(default=None, max_length=500)
    summary: str | None = None
    tags: str | None = None  # CSV string
    references: str | None = None
    body: str | None = None


class BlogPostUpdate(BlogPostBase):
    pass


class BlogPost(BlogPostBase, table=True):
    __tablename__ = "blog_posts"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class BlogPostPublic(BlogPostBase):
    id: int
    created_at: datetime | None = None


class CommentBase(SQLModel):
    post_id: int = Field(foreign_key="blog_posts.id", index=True, ondelete="CASCADE")
    user_email: EmailStr = Field(max_length=255)
    content: str = Field(min_length=1, max_length=5000)


class CommentCreate(CommentBase):
    pass


class Comment(CommentBase, table=True):
    __tablename__ = "comments"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class CommentPublic(CommentBase):
    id: int
    created_at: datetime | None = None


class Vote(SQLModel, table=True):
    __tablename__ = "votes"
    __table_args__ = (UniqueConstraint("post_id", "user_email"),)

    id: int | None = Field(default=None, primary_key=True)
    post_id: int = Field(foreign_key="blog_posts.id", index=True, ondelete="CASCADE")
    user_email: str = Field(max_length=255)
    vote_type: str | None = Field(default=None, max_length=10)  # up, down
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class VoteCounts(SQLModel):
    up: int = 0
    down: int = 0


# Contact requests

class ContactBase(SQLModel):
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    full_name: str = Field(max_length=201)
    email: str = Field(max_length=200)
    phone: str | None = Field(default=None, max_length=30)
    company: str | None = Field(default=None, max_length=200)
    subject: str = Field(max_length=20)
    message: str = Field(max_length=2000)
    budget: str | None = Field(default=None, max_length=20)
    timeline: str | None = Field(default=None, max_length=20)
    preferred_contact: str = Field(max_length=10)
    newsletter: bool = False


class ContactCreate(ContactBase):
    pass


class Contact(ContactBase, table=True):
    __tablename__ = "contactlist"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class ContactPublic(ContactBase):
    id: int
    created_at: datetime | None = None


# Portfolio projects

class Project(SQLModel, table=True):
    __tablename__ = "projects"

    id: int | None = Field(default=None, primary_key=True)
    url: str = Field(unique=True, index=True, max_length=2048)
    title: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Site settings (single row)

DEFAULT_AVAILABILITY_TEXT = "Available for hire"


class SiteSettings(SQLModel, table=True):
    __tablename__ = "site_settings"

    id: int | None = Field(default=None, primary_key=True)
    availability: bool = True
    availability_text: str = Field(default=DEFAULT_AVAILABILITY_TEXT, max_length=200)


# Site chat history

class ChatMessage(SQLModel, table=True):
    __tablename__ = "chat_messages"

    id: int | None = Field(default=None, primary_key=True)
    chat_id: int = Field(index=True)
    message: str = ""
    user_id: str | None = Field(default=None, index=True, max_length=255)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
