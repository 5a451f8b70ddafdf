"""Tests for folding unit outcomes into an execution record."""

from datetime import UTC, datetime, timedelta

from backstage.application.services.execution_report import (
    UnitOutcome,
    aggregate_outcomes,
    build_platform_result,
)
from backstage.domain.entities import ErrorEntry, ErrorKind, Platform, RunStatus, UnitState

STARTED = datetime(2026, 10, 1, 6, 0, tzinfo=UTC)


def outcome(user_id: int, platform: Platform, **kwargs) -> UnitOutcome:
    return UnitOutcome(user_id=user_id, platform=platform, state=UnitState.RECORDED, **kwargs)


class TestBuildPlatformResult:
    def test_sums_counters_and_counts_distinct_users(self) -> None:
        result = build_platform_result(
            [
                outcome(1, Platform.SOUNDCLOUD, releases_found=2, emails_sent=10, emails_failed=1),
                outcome(2, Platform.SOUNDCLOUD, releases_found=1, quota_skipped=1),
            ]
        )

        assert result.users_checked == 2
        assert result.releases_found == 3
        assert result.emails_sent == 10
        assert result.emails_failed == 1
        assert result.quota_skipped == 1

    def test_warnings_do_not_count_as_errors(self) -> None:
        errors = (
            ErrorEntry(ErrorKind.PARTIAL_SEND_FAILURE, "2 of 5 failed", severity="warning"),
            ErrorEntry(ErrorKind.TIMEOUT, "Spotify did not answer in time"),
        )

        result = build_platform_result([outcome(1, Platform.SPOTIFY, errors=errors)])

        assert result.error_count == 1


class TestAggregateOutcomes:
    def test_every_platform_gets_a_result(self) -> None:
        record = aggregate_outcomes(
            "run-1",
            STARTED,
            STARTED + timedelta(seconds=2),
            [Platform.SOUNDCLOUD, Platform.SPOTIFY],
            [outcome(1, Platform.SOUNDCLOUD, releases_found=1, emails_sent=4)],
        )

        assert set(record.platform_results) == {Platform.SOUNDCLOUD, Platform.SPOTIFY}
        assert record.platform_results[Platform.SPOTIFY].users_checked == 0
        assert record.status is RunStatus.COMPLETED
        assert record.duration_ms == 2000

    def test_totals_and_distinct_users(self) -> None:
        record = aggregate_outcomes(
            "run-2",
            STARTED,
            STARTED,
            [Platform.SOUNDCLOUD, Platform.SPOTIFY],
            [
                outcome(1, Platform.SOUNDCLOUD, releases_found=1, emails_sent=5),
                outcome(1, Platform.SPOTIFY, releases_found=2, emails_sent=7),
                outcome(2, Platform.SPOTIFY, releases_found=1, emails_sent=1),
            ],
        )

        assert record.users_processed == 2
        assert record.total_new_tracks == 4
        assert record.total_emails_sent == 13

    def test_skipped_units_mark_run_partial(self) -> None:
        record = aggregate_outcomes(
            "run-3", STARTED, STARTED, [Platform.SOUNDCLOUD], [], units_skipped=4
        )

        assert record.timed_out is True
        assert record.units_skipped == 4
        assert record.status is RunStatus.PARTIAL

    def test_cut_short_unit_marks_run_partial(self) -> None:
        record = aggregate_outcomes(
            "run-4",
            STARTED,
            STARTED,
            [Platform.SOUNDCLOUD],
            [outcome(1, Platform.SOUNDCLOUD, cut_short=True)],
        )

        assert record.timed_out is True
        assert record.units_skipped == 0
