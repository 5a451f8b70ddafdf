"""Aggregation of unit outcomes into an execution record.

Hey future me - this is the ONLY place counters are summed. Units never touch shared
counters; they hand back an immutable UnitOutcome and this module folds them once at the
end. That keeps `total_emails_sent == sum(platform.emails_sent)` true by construction.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from backstage.domain.entities import (
    ErrorEntry,
    ExecutionRecord,
    Platform,
    PlatformResult,
    RunStatus,
    UnitState,
)


@dataclass(frozen=True)
class UnitOutcome:
    """Result of one (user, platform) unit. Immutable once the unit finishes."""

    user_id: int
    platform: Platform
    state: UnitState
    releases_found: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    quota_skipped: int = 0
    errors: tuple[ErrorEntry, ...] = ()
    cut_short: bool = False  # deadline hit before its last release or mid-audience

    @property
    def error_count(self) -> int:
        return sum(1 for entry in self.errors if entry.severity == "error")


def build_platform_result(outcomes: Iterable[UnitOutcome]) -> PlatformResult:
    """Fold the outcomes of ONE platform into its PlatformResult."""
    users: set[int] = set()
    releases_found = emails_sent = emails_failed = quota_skipped = error_count = 0

    for outcome in outcomes:
        users.add(outcome.user_id)
        releases_found += outcome.releases_found
        emails_sent += outcome.emails_sent
        emails_failed += outcome.emails_failed
        quota_skipped += outcome.quota_skipped
        error_count += outcome.error_count

    return PlatformResult(
        users_checked=len(users),
        releases_found=releases_found,
        emails_sent=emails_sent,
        emails_failed=emails_failed,
        quota_skipped=quota_skipped,
        error_count=error_count,
    )


def aggregate_outcomes(
    run_id: str,
    started_at: datetime,
    finished_at: datetime,
    platforms: Sequence[Platform],
    outcomes: Sequence[UnitOutcome],
    units_skipped: int = 0,
) -> ExecutionRecord:
    """Build the run's ExecutionRecord from all unit outcomes.

    Every platform in `platforms` gets a PlatformResult, even with zero units, so the
    response always has the same keys.
    """
    platform_results = {
        platform: build_platform_result(o for o in outcomes if o.platform is platform)
        for platform in platforms
    }

    timed_out = units_skipped > 0 or any(o.cut_short for o in outcomes)
    errors = tuple(entry for outcome in outcomes for entry in outcome.errors)

    return ExecutionRecord(
        run_id=run_id,
        status=RunStatus.PARTIAL if timed_out else RunStatus.COMPLETED,
        started_at=started_at,
        finished_at=finished_at,
        users_processed=len({o.user_id for o in outcomes}),
        total_new_tracks=sum(r.releases_found for r in platform_results.values()),
        total_emails_sent=sum(r.emails_sent for r in platform_results.values()),
        platform_results=platform_results,
        errors=errors,
        timed_out=timed_out,
        units_skipped=units_skipped,
    )


__all__ = ["UnitOutcome", "aggregate_outcomes", "build_platform_result"]
