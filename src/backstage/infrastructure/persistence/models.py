"""SQLAlchemy ORM models for Backstage."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! UTC datetimes come back naive.
# Use this whenever a DB datetime ends up in a domain entity or gets compared.
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me - users are OWNED by the dashboard (signup, billing, settings). The
# release check only reads them and bumps emails_sent_this_month. monthly_quota >= 999999999
# means "unlimited plan"; the billing job resets emails_sent_this_month on the 1st.
class UserModel(Base):
    """Artist account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    soundcloud_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    spotify_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    monthly_quota: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    emails_sent_this_month: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sender_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    contacts: Mapped[list["ContactModel"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_users_active", "active"),)


class ContactModel(Base):
    """Fan subscribed to an artist's mailing list."""

    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subscribed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    unsubscribe_token: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    user: Mapped[UserModel] = relationship(back_populates="contacts")

    __table_args__ = (
        UniqueConstraint("user_id", "email", name="uq_contacts_user_email"),
        Index("ix_contacts_user_subscribed", "user_id", "subscribed"),
    )


# Hey future me - THIS is the cross-invocation idempotency mechanism. The unique constraint
# is what makes "announce release X to user Y's audience at most once" hold even when two
# cron invocations overlap. Never drop it in a migration.
class NotifiedReleaseModel(Base):
    """Track ledger entry."""

    __tablename__ = "notified_releases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    external_track_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sent_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        UniqueConstraint(
            "platform",
            "external_track_id",
            "user_id",
            name="uq_notified_releases_platform_track_user",
        ),
        Index("ix_notified_releases_user", "user_id"),
    )


class ExecutionLogModel(Base):
    """One release check run. Append-only."""

    __tablename__ = "execution_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    users_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_new_tracks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_emails_sent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timed_out: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    units_skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # {"soundcloud": {...PlatformResult...}, "spotify": {...}}
    platform_results: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    errors: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (Index("ix_execution_logs_started_at", "started_at"),)


__all__ = [
    "Base",
    "UserModel",
    "ContactModel",
    "NotifiedReleaseModel",
    "ExecutionLogModel",
    "utc_now",
    "ensure_utc_aware",
]
