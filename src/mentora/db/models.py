"""ORM models for the Mentora schema.

Table definitions mirror the Alembic migrations in alembic/versions.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mentora.db.base import Base, BigIntPK, JSONType, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Per-user account record: identity, roles, streak and score accumulators."""

    __tablename__ = "users"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    roles: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # --- Daily claim ---
    streak_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_claim_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    seasonal_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_claims: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    # --- Subscription flags ---
    subscription_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    subscriber_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    claimed_courses: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    subscription: Mapped[Subscription | None] = relationship("Subscription", back_populates="user", uselist=False)


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------


class Subscription(Base):
    """Current billing period, one row per user."""

    __tablename__ = "subscriptions"

    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.uid", ondelete="CASCADE"), primary_key=True)
    plan_id: Mapped[str] = mapped_column(String(64), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    current_period_start: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_payment_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    order_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    user: Mapped[User] = relationship("User", back_populates="subscription")


class Payment(Base):
    """Gateway order, keyed by the order id sent to Midtrans."""

    __tablename__ = "payments"

    order_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(128), ForeignKey("users.uid", ondelete="SET NULL"), nullable=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    payment_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    fraud_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    raw: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class SubscriptionRequest(Base):
    """Manual-transfer subscription request awaiting admin review."""

    __tablename__ = "subscription_requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.uid", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    proof_url: Mapped[str] = mapped_column(Text, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    decided_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


class Course(Base):
    """Catalog entry."""

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    mentor: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    image_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    access_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_free: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    material_type: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, server_default=func.now())


class Chapter(Base):
    """Ordered unit of course material."""

    __tablename__ = "chapters"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    course_id: Mapped[str] = mapped_column(String(64), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="module")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, server_default=func.now())


class CourseProgress(Base):
    """Completed chapters per (user, course)."""

    __tablename__ = "course_progress"

    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.uid", ondelete="CASCADE"), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(64), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True)
    completed_chapter_ids: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class CourseRequest(Base):
    """Manual-transfer purchase request for a single paid course."""

    __tablename__ = "course_requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.uid", ondelete="CASCADE"), nullable=False)
    course_id: Mapped[str] = mapped_column(String(64), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    proof_url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    decided_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


class Assignment(Base):
    """Task or quiz. Quiz questions are stored inline as JSON."""

    __tablename__ = "assignments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    course_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="task")
    points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    auto_grading: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    questions: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, server_default=func.now())


class Submission(Base):
    """One submission per (assignment, user)."""

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "user_id", name="submissions_assignment_id_user_id_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    assignment_id: Mapped[str] = mapped_column(String(64), ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.uid", ondelete="CASCADE"), nullable=False)
    answers: Mapped[Any] = mapped_column(JSONType, nullable=True)
    status: Mapped[str] = mapped_column(String(24), nullable=False, default="submitted")
    awarded_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    auto_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Score ledger
# ---------------------------------------------------------------------------


class ScoreLedger(Base):
    """Immutable score transaction log with idempotency key."""

    __tablename__ = "score_ledger"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.uid", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    idempotency_key: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, server_default=func.now())


# ---------------------------------------------------------------------------
# Leaderboard seasons
# ---------------------------------------------------------------------------


class LeaderboardMeta(Base):
    """Singleton row tracking which monthly season is current."""

    __tablename__ = "leaderboard_meta"

    key: Mapped[str] = mapped_column(String(32), primary_key=True, default="global")
    current_period: Mapped[str] = mapped_column(String(7), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


class LeaderboardReward(Base):
    """Prize for a top-ranked user of a finished season."""

    __tablename__ = "leaderboard_rewards"
    __table_args__ = (
        UniqueConstraint("period", "user_id", name="leaderboard_rewards_period_user_id_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.uid", ondelete="CASCADE"), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    subscription_months: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow, server_default=func.now())
