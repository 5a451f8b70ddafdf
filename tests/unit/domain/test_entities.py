"""Tests for domain entities."""

from datetime import UTC, datetime, timedelta

from backstage.domain.entities import (
    ErrorEntry,
    ErrorKind,
    ExecutionRecord,
    ExecutionSummary,
    Platform,
    RunStatus,
    User,
)

NOW = datetime(2026, 10, 1, 6, 0, tzinfo=UTC)


class TestUser:
    def test_blank_platform_id_is_unlinked(self) -> None:
        user = User(id=1, email="a@example.test", platform_ids={Platform.SOUNDCLOUD: "  ", Platform.SPOTIFY: " abc "})

        assert user.external_id(Platform.SOUNDCLOUD) is None
        assert user.external_id(Platform.SPOTIFY) == "abc"


class TestPlatform:
    def test_declaration_order_is_check_order(self) -> None:
        assert list(Platform) == [Platform.SOUNDCLOUD, Platform.SPOTIFY]
        assert Platform.SOUNDCLOUD.label == "SoundCloud"


class TestErrorEntry:
    def test_dict_round_trip_keeps_platform(self) -> None:
        entry = ErrorEntry(ErrorKind.RATE_LIMITED, "slow down", user_id=3, platform=Platform.SPOTIFY)

        assert ErrorEntry.from_dict(entry.as_dict()) == entry


class TestExecutionSummary:
    def record(self, status: RunStatus, timed_out: bool = False) -> ExecutionRecord:
        return ExecutionRecord(
            run_id="run-1",
            status=status,
            started_at=NOW,
            finished_at=NOW + timedelta(seconds=1),
            timed_out=timed_out,
        )

    def test_messages(self) -> None:
        assert ExecutionSummary(self.record(RunStatus.COMPLETED)).message == "Multi-platform check completed"
        assert ExecutionSummary(self.record(RunStatus.ABORTED)).message == "Failed to check music platforms"
        assert "stopped early" in ExecutionSummary(self.record(RunStatus.PARTIAL, timed_out=True)).message

    def test_only_aborted_is_unsuccessful(self) -> None:
        assert ExecutionSummary(self.record(RunStatus.PARTIAL, timed_out=True)).success is True
        assert ExecutionSummary(self.record(RunStatus.ABORTED)).success is False
