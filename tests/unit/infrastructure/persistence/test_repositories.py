"""Repository tests against in-memory SQLite.

Hey future me - these run on the real models and the real upsert, so a broken unique
constraint or ON CONFLICT clause shows up here first.
"""

from datetime import UTC, datetime, timedelta

import pytest

from backstage.domain.entities import (
    ErrorEntry,
    ErrorKind,
    ExecutionRecord,
    Platform,
    PlatformResult,
    RunStatus,
)
from backstage.infrastructure.persistence.database import Database
from backstage.infrastructure.persistence.models import ContactModel, UserModel
from backstage.infrastructure.persistence.repositories import (
    AudienceRepository,
    ExecutionLogRepository,
    TrackLedgerRepository,
    UserDirectoryRepository,
)


@pytest.fixture
async def seeded(database: Database) -> Database:
    async with database.session_scope() as session:
        session.add_all(
            [
                UserModel(
                    id=1,
                    email="geebeat@example.test",
                    name="Gee Beat",
                    soundcloud_id="1001",
                    spotify_id="",
                    monthly_quota=1000,
                    emails_sent_this_month=40,
                    sender_email="info@geebeat.com",
                ),
                UserModel(id=2, email="inactive@example.test", active=False, soundcloud_id="1002"),
                UserModel(id=3, email="nolinks@example.test", monthly_quota=500),
            ]
        )
        await session.flush()
        session.add_all(
            [
                ContactModel(user_id=1, email="a@example.test", name="A", unsubscribe_token="t-a"),
                ContactModel(user_id=1, email="b@example.test", subscribed=False),
                ContactModel(user_id=1, email="c@example.test", unsubscribe_token="t-c"),
                ContactModel(user_id=3, email="z@example.test"),
            ]
        )
    return database


class TestUserDirectoryRepository:
    async def test_only_active_users(self, seeded: Database) -> None:
        users = await UserDirectoryRepository(seeded).list_active_users()

        assert [u.id for u in users] == [1, 3]
        gee = users[0]
        assert gee.external_id(Platform.SOUNDCLOUD) == "1001"
        assert gee.external_id(Platform.SPOTIFY) is None
        assert (gee.monthly_quota, gee.emails_sent_this_month) == (1000, 40)
        assert gee.sender_email == "info@geebeat.com"


class TestTrackLedgerRepository:
    async def test_record_then_has_notified(self, seeded: Database) -> None:
        ledger = TrackLedgerRepository(seeded)

        assert await ledger.has_notified(Platform.SOUNDCLOUD, "sc-123", 1) is False
        await ledger.record_notified(Platform.SOUNDCLOUD, "sc-123", 1, 50, "Midnight")

        assert await ledger.has_notified(Platform.SOUNDCLOUD, "sc-123", 1) is True
        assert await ledger.has_notified(Platform.SPOTIFY, "sc-123", 1) is False
        assert await ledger.has_notified(Platform.SOUNDCLOUD, "sc-123", 3) is False

    async def test_second_record_increments_sent_count(self, seeded: Database) -> None:
        ledger = TrackLedgerRepository(seeded)

        first = await ledger.record_notified(Platform.SPOTIFY, "album-1", 1, 10, "Night Drive")
        entry = await ledger.record_notified(Platform.SPOTIFY, "album-1", 1, 5)

        assert first.sent_count == 10
        assert entry.sent_count == 15
        assert entry.platform is Platform.SPOTIFY
        assert entry.title == "Night Drive"
        assert entry.notified_at.tzinfo is not None


class TestAudienceRepository:
    async def test_subscribed_contacts_in_stable_order(self, seeded: Database) -> None:
        contacts = await AudienceRepository(seeded).list_subscribed_contacts(1)

        assert [c.email for c in contacts] == ["a@example.test", "c@example.test"]
        assert contacts[0].unsubscribe_token == "t-a"

    async def test_limit(self, seeded: Database) -> None:
        contacts = await AudienceRepository(seeded).list_subscribed_contacts(1, limit=1)

        assert [c.email for c in contacts] == ["a@example.test"]

    async def test_quota_counter(self, seeded: Database) -> None:
        repo = AudienceRepository(seeded)

        await repo.increment_emails_sent(1, 25)
        await repo.increment_emails_sent(1, 0)

        assert await repo.get_quota(1) == (1000, 65)
        assert await repo.get_quota(42) is None


class TestExecutionLogRepository:
    @staticmethod
    def record(run_id: str, started_at: datetime) -> ExecutionRecord:
        return ExecutionRecord(
            run_id=run_id,
            status=RunStatus.PARTIAL,
            started_at=started_at,
            finished_at=started_at + timedelta(milliseconds=1500),
            users_processed=2,
            total_new_tracks=3,
            total_emails_sent=40,
            platform_results={
                Platform.SOUNDCLOUD: PlatformResult(users_checked=2, releases_found=3, emails_sent=40),
                Platform.SPOTIFY: PlatformResult(users_checked=1, error_count=1),
            },
            errors=(
                ErrorEntry(
                    kind=ErrorKind.TIMEOUT,
                    message="Spotify did not answer in time (fetch)",
                    user_id=2,
                    platform=Platform.SPOTIFY,
                ),
            ),
            timed_out=True,
            units_skipped=1,
        )

    async def test_persist_and_read_back(self, database: Database) -> None:
        repo = ExecutionLogRepository(database)
        original = self.record("run-1", datetime(2026, 10, 1, 6, 0, tzinfo=UTC))

        await repo.persist(original)
        [loaded] = await repo.list_recent()

        assert loaded == original
        assert loaded.duration_ms == 1500

    async def test_newest_first_and_limit(self, database: Database) -> None:
        repo = ExecutionLogRepository(database)
        base = datetime(2026, 10, 1, 6, 0, tzinfo=UTC)
        for hour in range(3):
            await repo.persist(self.record(f"run-{hour}", base + timedelta(hours=hour)))

        recent = await repo.list_recent(limit=2)

        assert [r.run_id for r in recent] == ["run-2", "run-1"]
