"""Multi-platform release check.

Hey future me - this is THE cron job. One call to run_check():

    LoadingUsers → CheckingPlatforms → Aggregating → Persisted → Done
         └─ (user directory down) → Aborted

CheckingPlatforms is an explicit task model:
1. Build WorkItems platform-major (SoundCloud users first, then Spotify users)
2. A bounded pool of workers pulls items until the queue is empty OR the deadline hits
3. Every unit returns an immutable UnitOutcome, errors included
4. execution_report.aggregate_outcomes() folds them once

Failure isolation is per (user, platform). NOTHING inside a unit may escape run_check();
_run_unit() catches everything and turns it into an ErrorEntry. The only fatal path is
the user directory.

Dedup happens twice:
- Track Ledger (persistent, across invocations)
- ctx.claimed (in memory, same run) - catches the same release id showing up twice for
  one user in a single run before the ledger write of the first one landed
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from backstage.application.services.execution_report import (
    UnitOutcome,
    aggregate_outcomes,
)
from backstage.config.settings import ReleaseCheckSettings
from backstage.domain.entities import (
    ErrorEntry,
    ErrorKind,
    ExecutionRecord,
    ExecutionSummary,
    Platform,
    Release,
    RunState,
    RunStatus,
    UnitState,
    User,
)
from backstage.domain.exceptions import (
    AudienceResolutionError,
    ConfigurationError,
    ExternalServiceError,
    PlatformUnavailableError,
    RateLimitedError,
)
from backstage.domain.ports import (
    IAudienceProvider,
    IExecutionLedger,
    INotificationSender,
    ITrackLedger,
    IUserDirectory,
    ReleaseAnnouncement,
)
from backstage.infrastructure.observability.log_messages import LogMessages
from backstage.infrastructure.observability.logging import (
    bind_run,
    bind_unit,
    unbind_unit,
)
from backstage.infrastructure.plugins.registry import PlatformAdapterRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunConfig:
    """Per-run knobs. Defaults mirror ReleaseCheckSettings."""

    platforms: tuple[Platform, ...] = tuple(Platform)
    lookback_limit: int = 5
    max_concurrency: int = 4
    time_budget_seconds: float = 55.0
    finalize_margin_seconds: float = 5.0
    platform_timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings: ReleaseCheckSettings) -> "RunConfig":
        enabled = set(settings.enabled_platforms)
        return cls(
            platforms=tuple(p for p in Platform if p.value in enabled),
            lookback_limit=settings.lookback_limit,
            max_concurrency=settings.max_concurrency,
            time_budget_seconds=settings.time_budget_seconds,
            finalize_margin_seconds=settings.finalize_margin_seconds,
            platform_timeout_seconds=settings.platform_timeout_seconds,
        )


@dataclass(frozen=True)
class WorkItem:
    """One (user, platform) unit of work."""

    index: int
    user: User
    platform: Platform
    external_id: str


@dataclass
class _RunContext:
    """Mutable bookkeeping of a single run. Never outlives run_check()."""

    run_id: str
    config: RunConfig
    started_mono: float
    clock: Callable[[], float]
    state: RunState = RunState.NOT_STARTED
    claimed: set[tuple[str, str, int]] = field(default_factory=set)
    user_locks: dict[int, asyncio.Lock] = field(default_factory=dict)

    @property
    def cutoff(self) -> float:
        return (
            self.started_mono
            + self.config.time_budget_seconds
            - self.config.finalize_margin_seconds
        )

    def deadline_reached(self) -> bool:
        return self.clock() >= self.cutoff

    def time_left(self) -> float:
        """Seconds until the HARD end of the budget (not the cutoff)."""
        return self.started_mono + self.config.time_budget_seconds - self.clock()

    def user_lock(self, user_id: int) -> asyncio.Lock:
        # setdefault is atomic here: no await between lookup and insert
        return self.user_locks.setdefault(user_id, asyncio.Lock())


class ReleaseCheckService:
    """Checks every active user's linked platforms and announces new releases."""

    def __init__(
        self,
        user_directory: IUserDirectory,
        adapters: PlatformAdapterRegistry,
        track_ledger: ITrackLedger,
        audience: IAudienceProvider,
        sender: INotificationSender,
        execution_ledger: IExecutionLedger,
        default_config: RunConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._users = user_directory
        self._adapters = adapters
        self._ledger = track_ledger
        self._audience = audience
        self._sender = sender
        self._executions = execution_ledger
        self._default_config = default_config or RunConfig()
        self._clock = clock

    # =========================================================================
    # RUN
    # =========================================================================

    async def run_check(self, config: RunConfig | None = None) -> ExecutionSummary:
        """Run one release check. Never raises for partial failures."""
        config = config or self._default_config
        run_id = str(uuid.uuid4())
        bind_run(run_id)

        ctx = _RunContext(
            run_id=run_id, config=config, started_mono=self._clock(), clock=self._clock
        )
        started_at = datetime.now(UTC)
        platforms = [p for p in config.platforms if self._adapters.is_registered(p)]
        for missing in set(config.platforms) - set(platforms):
            logger.warning("No adapter registered for %s - platform skipped", missing.label)

        logger.info(
            LogMessages.run_started(
                run_id,
                [p.value for p in platforms],
                config.max_concurrency,
                config.time_budget_seconds,
            )
        )

        # 1. LoadingUsers
        self._transition(ctx, RunState.LOADING_USERS)
        try:
            users = await self._users.list_active_users()
        except Exception as e:
            return await self._abort(ctx, started_at, e)

        # 2. CheckingPlatforms
        self._transition(ctx, RunState.CHECKING_PLATFORMS)
        items = self.build_work_items(users, platforms)
        outcomes, units_skipped = await self._run_pool(ctx, items)

        # 3. Aggregating
        self._transition(ctx, RunState.AGGREGATING)
        record = aggregate_outcomes(
            run_id=run_id,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            platforms=platforms,
            outcomes=outcomes,
            units_skipped=units_skipped,
        )

        # 4. Persisted
        persisted = await self._persist(record)
        self._transition(ctx, RunState.PERSISTED)

        logger.info(
            LogMessages.run_completed(
                run_id,
                users=record.users_processed,
                new_releases=record.total_new_tracks,
                emails_sent=record.total_emails_sent,
                errors=sum(r.error_count for r in record.platform_results.values()),
                duration_ms=record.duration_ms,
                timed_out=record.timed_out,
                units_skipped=record.units_skipped,
            )
        )
        self._transition(ctx, RunState.DONE)
        return ExecutionSummary(record=record, persisted=persisted)

    @staticmethod
    def build_work_items(users: list[User], platforms: list[Platform]) -> list[WorkItem]:
        """Platform-major list of units for every user linked to each platform."""
        items: list[WorkItem] = []
        for platform in platforms:
            for user in users:
                external_id = user.external_id(platform)
                if external_id is None:
                    continue
                items.append(
                    WorkItem(
                        index=len(items),
                        user=user,
                        platform=platform,
                        external_id=external_id,
                    )
                )
        return items

    async def _run_pool(
        self, ctx: _RunContext, items: list[WorkItem]
    ) -> tuple[list[UnitOutcome], int]:
        """Run units through a bounded worker pool.

        Returns:
            (outcomes in work item order, number of units never dispatched)
        """
        queue: asyncio.Queue[WorkItem] = asyncio.Queue()
        for item in items:
            queue.put_nowait(item)

        results: dict[int, UnitOutcome] = {}

        async def _worker() -> None:
            while not ctx.deadline_reached():
                try:
                    item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                token = bind_unit(item.user.id, item.platform.value)
                try:
                    results[item.index] = await self._run_unit(ctx, item)
                finally:
                    unbind_unit(token)

        worker_count = max(1, min(ctx.config.max_concurrency, len(items)))
        if items:
            await asyncio.gather(*(_worker() for _ in range(worker_count)))

        skipped = queue.qsize()
        if skipped:
            logger.warning(
                "Time budget reached: %d of %d units not dispatched", skipped, len(items)
            )
        return [results[index] for index in sorted(results)], skipped

    # =========================================================================
    # UNIT
    # =========================================================================

    async def _run_unit(self, ctx: _RunContext, item: WorkItem) -> UnitOutcome:
        """Process one (user, platform) pair. Never raises."""
        user, platform = item.user, item.platform
        state = UnitState.FETCHING
        step = "fetch"
        current_release: str | None = None
        releases_found = sent = failed = quota_skipped = 0
        errors: list[ErrorEntry] = []
        cut_short = False

        try:
            adapter = self._adapters.require(platform)
            timeout = min(ctx.config.platform_timeout_seconds, max(ctx.time_left(), 0.001))
            releases = await asyncio.wait_for(
                adapter.fetch_latest_releases(item.external_id, ctx.config.lookback_limit),
                timeout=timeout,
            )

            state, step = UnitState.DEDUPING, "dedup"
            new_releases = await self._filter_new(ctx, user.id, releases)

            state = UnitState.SENDING
            for index, release in enumerate(new_releases):
                if ctx.deadline_reached():
                    # Unstarted releases are released again so the next run picks them up
                    for pending in new_releases[index:]:
                        ctx.claimed.discard(self._claim_key(pending, user.id))
                    cut_short = True
                    break

                current_release = release.external_track_id
                releases_found += 1
                step = "audience"
                async with ctx.user_lock(user.id):
                    remaining = await self._audience.remaining_quota(user.id)
                    if remaining <= 0:
                        quota_skipped += 1
                        logger.info(
                            LogMessages.quota_exhausted(
                                platform.label, user.id, release.external_track_id
                            )
                        )
                        step = "record"
                        await self._ledger.record_notified(
                            platform, release.external_track_id, user.id, 0, release.title
                        )
                        continue

                    contacts = await self._audience.resolve_eligible_contacts(
                        user.id, remaining
                    )

                    step = "send"
                    result = await self._sender.send(
                        self._announcement(user, release),
                        contacts,
                        should_stop=ctx.deadline_reached,
                    )

                    # Ledger first: a failed quota booking must never cause a resend
                    step = "record"
                    await self._ledger.record_notified(
                        platform, release.external_track_id, user.id, result.sent, release.title
                    )
                    sent += result.sent
                    failed += result.failed
                    if result.stopped_early:
                        # Recorded with what was delivered, the rest of the audience is dropped
                        cut_short = True

                    if result.sent:
                        step = "quota"
                        await self._audience.record_sent(user.id, result.sent)

                logger.info(
                    LogMessages.release_announced(
                        platform.label,
                        user.id,
                        release.external_track_id,
                        release.title,
                        result.sent,
                        result.failed,
                    )
                )
                if result.failed:
                    first = result.failures[0].reason if result.failures else "unknown"
                    errors.append(
                        ErrorEntry(
                            kind=ErrorKind.PARTIAL_SEND_FAILURE,
                            message=(
                                f"{result.failed} of {result.attempted} recipients failed "
                                f"(first: {first})"
                            ),
                            user_id=user.id,
                            platform=platform,
                            release_id=release.external_track_id,
                            severity="warning",
                        )
                    )

            state = UnitState.RECORDED

        except Exception as e:
            state = UnitState.FAILED
            entry = self._error_entry(e, step, user.id, platform, current_release)
            errors.append(entry)
            logger.warning(
                LogMessages.platform_check_failed(platform.label, user.id, entry.message),
                exc_info=entry.kind is ErrorKind.UNEXPECTED,
            )

        return UnitOutcome(
            user_id=user.id,
            platform=platform,
            state=state,
            releases_found=releases_found,
            emails_sent=sent,
            emails_failed=failed,
            quota_skipped=quota_skipped,
            errors=tuple(errors),
            cut_short=cut_short,
        )

    async def _filter_new(
        self, ctx: _RunContext, user_id: int, releases: list[Release]
    ) -> list[Release]:
        """Drop releases already claimed in this run or already in the Track Ledger.

        Returned oldest first, so fans get announcements in publish order.
        """
        new_releases: list[Release] = []
        for release in reversed(releases):
            key = self._claim_key(release, user_id)
            # Claim BEFORE awaiting the ledger, otherwise two units could both pass the check
            if key in ctx.claimed:
                continue
            ctx.claimed.add(key)
            if await self._ledger.has_notified(
                release.platform, release.external_track_id, user_id
            ):
                continue
            new_releases.append(release)
        return new_releases

    @staticmethod
    def _claim_key(release: Release, user_id: int) -> tuple[str, str, int]:
        return (*release.ledger_key, user_id)

    @staticmethod
    def _announcement(user: User, release: Release) -> ReleaseAnnouncement:
        artist_name = user.name or user.email.split("@", 1)[0]
        return ReleaseAnnouncement(
            release=release, artist_name=artist_name, sender_email=user.sender_email
        )

    @staticmethod
    def _error_entry(
        error: Exception,
        step: str,
        user_id: int,
        platform: Platform,
        release_id: str | None,
    ) -> ErrorEntry:
        """Classify an exception caught at the unit boundary."""
        if isinstance(error, TimeoutError):
            kind = ErrorKind.TIMEOUT
            message = f"{platform.label} did not answer in time ({step})"
        elif isinstance(error, RateLimitedError):
            kind, message = ErrorKind.RATE_LIMITED, error.message
        elif isinstance(error, (PlatformUnavailableError, ExternalServiceError, ConfigurationError)):
            kind, message = ErrorKind.PLATFORM_UNAVAILABLE, error.message
        elif isinstance(error, AudienceResolutionError):
            kind, message = ErrorKind.AUDIENCE_RESOLUTION, error.message
        elif step in ("dedup", "record"):
            kind = ErrorKind.LEDGER
            message = f"Track ledger {step} failed: {error}"
        else:
            kind = ErrorKind.UNEXPECTED
            message = f"{type(error).__name__} during {step}: {error}"

        return ErrorEntry(
            kind=kind,
            message=message,
            user_id=user_id,
            platform=platform,
            release_id=release_id,
        )

    # =========================================================================
    # PERSISTENCE / ABORT
    # =========================================================================

    async def _persist(self, record: ExecutionRecord) -> bool:
        try:
            await self._executions.persist(record)
            return True
        except Exception as e:
            logger.error(LogMessages.persistence_failed(record.run_id, str(e)))
            return False

    async def _abort(
        self, ctx: _RunContext, started_at: datetime, error: Exception
    ) -> ExecutionSummary:
        self._transition(ctx, RunState.ABORTED)
        logger.error(LogMessages.run_aborted(ctx.run_id, str(error)), exc_info=True)

        record = ExecutionRecord(
            run_id=ctx.run_id,
            status=RunStatus.ABORTED,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            errors=(
                ErrorEntry(
                    kind=ErrorKind.USER_DIRECTORY,
                    message=f"Failed to load active users: {error}",
                ),
            ),
        )
        # Best effort: the history should show aborted runs too
        persisted = await self._persist(record)
        return ExecutionSummary(record=record, persisted=persisted)

    @staticmethod
    def _transition(ctx: _RunContext, state: RunState) -> None:
        logger.debug("Run %s: %s → %s", ctx.run_id, ctx.state.value, state.value)
        ctx.state = state


__all__ = ["ReleaseCheckService", "RunConfig", "WorkItem"]
