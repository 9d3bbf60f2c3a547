import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, func, select

from app.models import (
    BlogPost,
    BlogPostUpdate,
    ChatMessage,
    Comment,
    CommentCreate,
    Contact,
    ContactCreate,
    CreditTransaction,
    NucleusProfile,
    NucleusProfileUpdate,
    Project,
    RoundRobinMessage,
    RoundRobinSession,
    SiteSettings,
    UsageLog,
    UsageLogCreate,
    Vote,
    VoteCounts,
    get_datetime_utc,
)

logger = logging.getLogger(__name__)


class InsufficientCreditsError(Exception):
    def __init__(self, credits_needed: int, credits_available: int):
        super().__init__("INSUFFICIENT_CREDITS")
        self.credits_needed = credits_needed
        self.credits_available = credits_available


# Nucleus profiles

def get_profile(*, session: Session, user_id: str) -> NucleusProfile | None:
    return session.get(NucleusProfile, user_id)


def get_or_create_profile(*, session: Session, user_id: str, email: str) -> NucleusProfile:
    profile = session.get(NucleusProfile, user_id)
    if profile:
        return profile

    profile = NucleusProfile(
        id=user_id,
        email=email,
        display_name=email.split("@")[0] if email else None,
        credit_balance=0,
        subscription_tier="free",
    )
    session.add(profile)
    try:
        session.commit()
    except IntegrityError:
        # Another request created the row first
        session.rollback()
        existing = session.get(NucleusProfile, user_id)
        if existing is None:
            raise
        return existing
    session.refresh(profile)
    return profile


def update_profile(*, session: Session, db_profile: NucleusProfile, profile_in: NucleusProfileUpdate) -> NucleusProfile:
    profile_data = profile_in.model_dump(exclude_unset=True)
    db_profile.sqlmodel_update(profile_data, update={"updated_at": get_datetime_utc()})
    session.add(db_profile)
    session.commit()
    session.refresh(db_profile)
    return db_profile


def get_credit_balance(*, session: Session, user_id: str) -> int:
    balance = session.exec(select(NucleusProfile.credit_balance).where(NucleusProfile.id == user_id)).first()
    return balance or 0


def is_subscription_active(profile: NucleusProfile, *, now: datetime | None = None) -> bool:
    if profile.subscription_tier != "pro" or profile.subscription_status != "active":
        return False
    if profile.subscription_ends_at is None:
        return True
    ends_at = profile.subscription_ends_at
    if ends_at.tzinfo is None:
        # SQLite drops the offset; stored values are UTC
        ends_at = ends_at.replace(tzinfo=timezone.utc)
    return ends_at > (now or get_datetime_utc())


def has_active_subscription(*, session: Session, user_id: str) -> bool:
    profile = get_profile(session=session, user_id=user_id)
    if not profile:
        return False
    return is_subscription_active(profile)


# Credits ledger

def _record_transaction(
    *,
    session: Session,
    user_id: str,
    type: str,
    credits_change: int,
    balance_after: int,
    description: str,
    **extra: Any,
) -> CreditTransaction | None:
    transaction = CreditTransaction(
        user_id=user_id,
        type=type,
        credits_change=credits_change,
        balance_after=balance_after,
        description=description,
        **extra,
    )
    try:
        session.add(transaction)
        session.commit()
        session.refresh(transaction)
        return transaction
    except Exception as exc:
        # The balance change is already committed; a missing ledger row must not undo it
        session.rollback()
        logger.error("Failed to log credit transaction for %s: %s", user_id, exc)
        return None


def add_credits(
    *,
    session: Session,
    user_id: str,
    credits: int,
    type: str,
    description: str,
    amount_cents: int | None = None,
    reference: str | None = None,
) -> tuple[int, CreditTransaction | None]:
    if credits <= 0:
        raise ValueError("credits must be positive")
    session.execute(
        update(NucleusProfile)
        .where(col(NucleusProfile.id) == user_id)
        .values(
            credit_balance=NucleusProfile.credit_balance + credits,
            updated_at=get_datetime_utc(),
        )
    )
    session.commit()
    new_balance = get_credit_balance(session=session, user_id=user_id)
    transaction = _record_transaction(
        session=session,
        user_id=user_id,
        type=type,
        credits_change=credits,
        balance_after=new_balance,
        description=description,
        amount_cents=amount_cents,
        reference=reference,
    )
    return new_balance, transaction


def deduct_credits(
    *,
    session: Session,
    user_id: str,
    credits: int,
    model_used: str,
    description: str | None = None,
) -> tuple[int, CreditTransaction | None]:
    """Atomically deduct credits; raises InsufficientCreditsError instead of going negative."""
    result = session.execute(
        update(NucleusProfile)
        .where(
            col(NucleusProfile.id) == user_id,
            col(NucleusProfile.credit_balance) >= credits,
        )
        .values(
            credit_balance=NucleusProfile.credit_balance - credits,
            updated_at=get_datetime_utc(),
        )
    )
    session.commit()
    if result.rowcount == 0:
        available = get_credit_balance(session=session, user_id=user_id)
        raise InsufficientCreditsError(credits_needed=credits, credits_available=available)

    new_balance = get_credit_balance(session=session, user_id=user_id)
    transaction = _record_transaction(
        session=session,
        user_id=user_id,
        type="usage",
        credits_change=-credits,
        balance_after=new_balance,
        description=description or f"Used {credits} credits for {model_used}",
        model_used=model_used,
    )
    return new_balance, transaction


def log_usage(*, session: Session, usage_in: UsageLogCreate) -> UsageLog:
    db_usage = UsageLog.model_validate(usage_in)
    session.add(db_usage)
    session.commit()
    session.refresh(db_usage)
    return db_usage


def get_usage_history(
    *,
    session: Session,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[UsageLog]:
    statement = select(UsageLog).where(UsageLog.user_id == user_id)
    if start_date:
        statement = statement.where(col(UsageLog.created_at) >= start_date)
    if end_date:
        statement = statement.where(col(UsageLog.created_at) <= end_date)
    statement = statement.order_by(col(UsageLog.created_at).desc()).offset(offset).limit(limit)
    return list(session.exec(statement).all())


def get_transaction_history(
    *,
    session: Session,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
    type: str | None = None,
) -> list[CreditTransaction]:
    statement = select(CreditTransaction).where(CreditTransaction.user_id == user_id)
    if type:
        statement = statement.where(CreditTransaction.type == type)
    statement = statement.order_by(col(CreditTransaction.created_at).desc()).offset(offset).limit(limit)
    return list(session.exec(statement).all())


def activate_subscription(*, session: Session, db_profile: NucleusProfile, ends_at: datetime | None = None) -> NucleusProfile:
    return update_profile(
        session=session,
        db_profile=db_profile,
        profile_in=NucleusProfileUpdate(
            subscription_tier="pro",
            subscription_status="active",
            subscription_ends_at=ends_at,
        ),
    )


def cancel_subscription(*, session: Session, db_profile: NucleusProfile, ends_at: datetime) -> NucleusProfile:
    return update_profile(
        session=session,
        db_profile=db_profile,
        profile_in=NucleusProfileUpdate(subscription_status="canceled", subscription_ends_at=ends_at),
    )


def expire_subscription(*, session: Session, db_profile: NucleusProfile) -> NucleusProfile:
    return update_profile(
        session=session,
        db_profile=db_profile,
        profile_in=NucleusProfileUpdate(
            subscription_tier="credits",
            subscription_status=None,
            subscription_ends_at=None,
        ),
    )


# Round-robin sessions

def create_round_robin_session(
    *,
    session: Session,
    topic: str,
    turn_order: list[str],
    active_models: list[str],
    user_id: str | None = None,
) -> RoundRobinSession:
    db_session = RoundRobinSession(
        topic=topic,
        turn_order=list(turn_order),
        active_models=list(active_models),
        current_turn_index=0,
        current_round=1,
        status="active",
        user_id=user_id,
    )
    session.add(db_session)
    session.commit()
    session.refresh(db_session)
    return db_session


def update_round_robin_session(*, session: Session, db_session: RoundRobinSession, **fields: Any) -> RoundRobinSession:
    # JSON columns are reassigned with fresh lists/dicts so the change is flushed
    for key, value in fields.items():
        if isinstance(value, list):
            value = list(value)
        elif isinstance(value, dict):
            value = dict(value)
        setattr(db_session, key, value)
    db_session.updated_at = get_datetime_utc()
    session.add(db_session)
    session.commit()
    session.refresh(db_session)
    return db_session


def add_round_robin_message(
    *,
    session: Session,
    session_id: int,
    model: str,
    role: str,
    content: str,
    turn_index: int,
    token_count: int | None = None,
) -> RoundRobinMessage:
    message = RoundRobinMessage(
        session_id=session_id,
        model=model,
        role=role,
        content=content,
        turn_index=turn_index,
        token_count=token_count,
    )
    session.add(message)
    session.commit()
    session.refresh(message)
    return message


def get_round_robin_messages(*, session: Session, session_id: int) -> list[RoundRobinMessage]:
    statement = (
        select(RoundRobinMessage)
        .where(RoundRobinMessage.session_id == session_id)
        .order_by(col(RoundRobinMessage.turn_index), col(RoundRobinMessage.created_at), col(RoundRobinMessage.id))
    )
    return list(session.exec(statement).all())


# Blog

def get_post(*, session: Session, post_id: int) -> BlogPost | None:
    return session.get(BlogPost, post_id)


def update_post(*, session: Session, db_post: BlogPost, post_in: BlogPostUpdate) -> BlogPost:
    db_post.sqlmodel_update(post_in.model_dump(exclude_unset=True))
    session.add(db_post)
    session.commit()
    session.refresh(db_post)
    return db_post


def delete_post(*, session: Session, db_post: BlogPost) -> None:
    session.delete(db_post)
    session.commit()


def get_comments(*, session: Session, post_id: int) -> list[Comment]:
    statement = (
        select(Comment)
        .where(Comment.post_id == post_id)
        .order_by(col(Comment.created_at).desc(), col(Comment.id).desc())
    )
    return list(session.exec(statement).all())


def create_comment(*, session: Session, comment_in: CommentCreate) -> Comment:
    db_comment = Comment.model_validate(comment_in)
    session.add(db_comment)
    session.commit()
    session.refresh(db_comment)
    return db_comment


def upsert_vote(*, session: Session, post_id: int, user_email: str, vote_type: str) -> Vote:
    existing = session.exec(
        select(Vote).where(Vote.post_id == post_id, Vote.user_email == user_email)
    ).first()
    if existing:
        existing.vote_type = vote_type
        vote = existing
    else:
        vote = Vote(post_id=post_id, user_email=user_email, vote_type=vote_type)
    session.add(vote)
    session.commit()
    session.refresh(vote)
    return vote


def get_vote_counts(*, session: Session, post_id: int) -> VoteCounts:
    rows = session.exec(
        select(Vote.vote_type, func.count()).where(Vote.post_id == post_id).group_by(Vote.vote_type)
    ).all()
    counts = {vote_type: count for vote_type, count in rows}
    return VoteCounts(up=counts.get("up", 0), down=counts.get("down", 0))


# Contact requests

def create_contact(*, session: Session, contact_in: ContactCreate) -> Contact:
    db_contact = Contact.model_validate(contact_in)
    session.add(db_contact)
    session.commit()
    session.refresh(db_contact)
    return db_contact


def get_contact(*, session: Session, contact_id: int) -> Contact | None:
    return session.get(Contact, contact_id)


def delete_contact(*, session: Session, contact_id: int) -> bool:
    contact = session.get(Contact, contact_id)
    if not contact:
        return False
    session.delete(contact)
    session.commit()
    return True


# Portfolio projects

def upsert_project(*, session: Session, url: str, title: str | None, description: str | None) -> Project:
    """Insert or update the project keyed by ``url``; omitted fields are cleared."""
    project = session.exec(select(Project).where(Project.url == url)).first()
    if project:
        project.sqlmodel_update({"title": title, "description": description, "updated_at": get_datetime_utc()})
    else:
        project = Project(url=url, title=title, description=description)
    session.add(project)
    session.commit()
    session.refresh(project)
    return project


# Site settings

def get_site_settings(*, session: Session) -> SiteSettings | None:
    return session.exec(select(SiteSettings).order_by(col(SiteSettings.id))).first()


def upsert_site_settings(*, session: Session, **fields: Any) -> SiteSettings:
    db_settings = get_site_settings(session=session) or SiteSettings()
    db_settings.sqlmodel_update(fields)
    session.add(db_settings)
    session.commit()
    session.refresh(db_settings)
    return db_settings


# Site chat history

def get_chat_messages(*, session: Session, chat_id: int, user_id: str | None = None) -> list[ChatMessage]:
    statement = select(ChatMessage).where(ChatMessage.chat_id == chat_id)
    if user_id is not None:
        statement = statement.where(ChatMessage.user_id == user_id)
    statement = statement.order_by(col(ChatMessage.created_at), col(ChatMessage.id))
    return list(session.exec(statement).all())


def delete_chat_session(*, session: Session, chat_id: int, user_id: str | None = None) -> int:
    """Delete a chat's messages, only the user's own when ``user_id`` is given."""
    statement = delete(ChatMessage).where(col(ChatMessage.chat_id) == chat_id)
    if user_id is not None:
        statement = statement.where(col(ChatMessage.user_id) == user_id)
    result = session.execute(statement)
    session.commit()
    return result.rowcount
