"""Repository implementations for the release check ports.

Hey future me - unlike request-scoped repositories these do NOT take a session. Every
call opens its own short session_scope() on the shared Database. The release check runs
several units concurrently and an AsyncSession must never be shared between tasks.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backstage.domain.entities import (
    Contact,
    ErrorEntry,
    ExecutionRecord,
    NotifiedRelease,
    Platform,
    PlatformResult,
    RunStatus,
    User,
)
from backstage.domain.exceptions import ExecutionLedgerError, UserDirectoryError
from backstage.domain.ports import (
    IAudienceRepository,
    IExecutionLedger,
    ITrackLedger,
    IUserDirectory,
)

from .database import Database
from .models import (
    ContactModel,
    ExecutionLogModel,
    NotifiedReleaseModel,
    UserModel,
    ensure_utc_aware,
)

logger = logging.getLogger(__name__)


def _user_from_model(model: UserModel) -> User:
    platform_ids = {
        platform: value
        for platform, value in (
            (Platform.SOUNDCLOUD, model.soundcloud_id),
            (Platform.SPOTIFY, model.spotify_id),
        )
        if value
    }
    return User(
        id=model.id,
        email=model.email,
        name=model.name,
        active=model.active,
        platform_ids=platform_ids,
        monthly_quota=model.monthly_quota,
        emails_sent_this_month=model.emails_sent_this_month,
        sender_email=model.sender_email,
    )


class UserDirectoryRepository(IUserDirectory):
    """Reads artist accounts from the users table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def list_active_users(self) -> list[User]:
        try:
            async with self._db.session_scope() as session:
                stmt = (
                    select(UserModel)
                    .where(UserModel.active.is_(True))
                    .order_by(UserModel.id)
                )
                result = await session.execute(stmt)
                return [_user_from_model(model) for model in result.scalars().all()]
        except SQLAlchemyError as e:
            raise UserDirectoryError(f"Failed to load active users: {e}") from e


class TrackLedgerRepository(ITrackLedger):
    """Track ledger on the notified_releases table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def has_notified(
        self, platform: Platform, external_track_id: str, user_id: int
    ) -> bool:
        async with self._db.session_scope() as session:
            stmt = select(NotifiedReleaseModel.id).where(
                NotifiedReleaseModel.platform == platform.value,
                NotifiedReleaseModel.external_track_id == external_track_id,
                NotifiedReleaseModel.user_id == user_id,
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def record_notified(
        self,
        platform: Platform,
        external_track_id: str,
        user_id: int,
        sent_count: int,
        title: str | None = None,
    ) -> NotifiedRelease:
        """Insert the ledger row, or add sent_count to the existing row, and return it.

        Hey future me - ON CONFLICT DO UPDATE keeps this atomic even when two overlapping
        cron invocations record the same release. Both SQLite and PostgreSQL support it.
        """
        async with self._db.session_scope() as session:
            insert_fn = _dialect_insert(session)
            stmt = insert_fn(NotifiedReleaseModel).values(
                platform=platform.value,
                external_track_id=external_track_id,
                user_id=user_id,
                sent_count=sent_count,
                title=title,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["platform", "external_track_id", "user_id"],
                set_={"sent_count": NotifiedReleaseModel.sent_count + sent_count},
            )
            await session.execute(stmt)

            row = await session.execute(
                select(NotifiedReleaseModel).where(
                    NotifiedReleaseModel.platform == platform.value,
                    NotifiedReleaseModel.external_track_id == external_track_id,
                    NotifiedReleaseModel.user_id == user_id,
                )
            )
            model = row.scalar_one()
            return NotifiedRelease(
                platform=Platform(model.platform),
                external_track_id=model.external_track_id,
                user_id=model.user_id,
                sent_count=model.sent_count,
                notified_at=ensure_utc_aware(model.notified_at),
                title=model.title,
            )


def _dialect_insert(session: AsyncSession) -> Any:
    dialect = session.get_bind().dialect.name
    return pg_insert if dialect == "postgresql" else sqlite_insert


class AudienceRepository(IAudienceRepository):
    """Contacts and quota counters."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def list_subscribed_contacts(
        self, user_id: int, limit: int | None = None
    ) -> list[Contact]:
        async with self._db.session_scope() as session:
            stmt = (
                select(ContactModel)
                .where(ContactModel.user_id == user_id, ContactModel.subscribed.is_(True))
                .order_by(ContactModel.id)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return [
                Contact(
                    id=model.id,
                    email=model.email,
                    name=model.name,
                    unsubscribe_token=model.unsubscribe_token,
                )
                for model in result.scalars().all()
            ]

    async def get_quota(self, user_id: int) -> tuple[int, int] | None:
        async with self._db.session_scope() as session:
            stmt = select(UserModel.monthly_quota, UserModel.emails_sent_this_month).where(
                UserModel.id == user_id
            )
            row = (await session.execute(stmt)).one_or_none()
            return (row[0], row[1]) if row else None

    async def increment_emails_sent(self, user_id: int, count: int) -> None:
        if count <= 0:
            return
        async with self._db.session_scope() as session:
            await session.execute(
                update(UserModel)
                .where(UserModel.id == user_id)
                .values(emails_sent_this_month=UserModel.emails_sent_this_month + count)
            )


class ExecutionLogRepository(IExecutionLedger):
    """Append-only execution ledger on the execution_logs table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def persist(self, record: ExecutionRecord) -> None:
        try:
            async with self._db.session_scope() as session:
                session.add(
                    ExecutionLogModel(
                        run_id=record.run_id,
                        status=record.status.value,
                        started_at=record.started_at,
                        finished_at=record.finished_at,
                        duration_ms=record.duration_ms,
                        users_processed=record.users_processed,
                        total_new_tracks=record.total_new_tracks,
                        total_emails_sent=record.total_emails_sent,
                        timed_out=record.timed_out,
                        units_skipped=record.units_skipped,
                        platform_results={
                            platform.value: result.as_dict()
                            for platform, result in record.platform_results.items()
                        },
                        errors=[entry.as_dict() for entry in record.errors],
                    )
                )
        except SQLAlchemyError as e:
            raise ExecutionLedgerError(
                f"Failed to persist execution record {record.run_id}: {e}"
            ) from e

    async def list_recent(self, limit: int = 20) -> list[ExecutionRecord]:
        async with self._db.session_scope() as session:
            stmt = (
                select(ExecutionLogModel)
                .order_by(ExecutionLogModel.started_at.desc(), ExecutionLogModel.id.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [self._to_entity(model) for model in result.scalars().all()]

    @staticmethod
    def _to_entity(model: ExecutionLogModel) -> ExecutionRecord:
        return ExecutionRecord(
            run_id=model.run_id,
            status=RunStatus(model.status),
            started_at=ensure_utc_aware(model.started_at),
            finished_at=ensure_utc_aware(model.finished_at),
            users_processed=model.users_processed,
            total_new_tracks=model.total_new_tracks,
            total_emails_sent=model.total_emails_sent,
            platform_results={
                Platform(key): PlatformResult.from_dict(value)
                for key, value in (model.platform_results or {}).items()
            },
            errors=tuple(ErrorEntry.from_dict(entry) for entry in model.errors or []),
            timed_out=model.timed_out,
            units_skipped=model.units_skipped,
        )


__all__ = [
    "UserDirectoryRepository",
    "TrackLedgerRepository",
    "AudienceRepository",
    "ExecutionLogRepository",
]
