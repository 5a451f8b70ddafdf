"""Execution ledger entities for release check runs."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from backstage.domain.entities.release import Platform


class RunState(str, Enum):
    """Outer state machine of one release check run."""

    NOT_STARTED = "not_started"
    LOADING_USERS = "loading_users"
    CHECKING_PLATFORMS = "checking_platforms"
    AGGREGATING = "aggregating"
    PERSISTED = "persisted"
    DONE = "done"
    ABORTED = "aborted"


class UnitState(str, Enum):
    """Lifecycle of one (user, platform) work unit."""

    PENDING = "pending"
    FETCHING = "fetching"
    DEDUPING = "deduping"
    SENDING = "sending"
    RECORDED = "recorded"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Final status stored in the execution ledger."""

    COMPLETED = "completed"
    PARTIAL = "partial"  # time budget hit, some units never dispatched
    ABORTED = "aborted"


class ErrorKind(str, Enum):
    """Classification of non-fatal (and the one fatal) error entries."""

    PLATFORM_UNAVAILABLE = "platform_unavailable"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    AUDIENCE_RESOLUTION = "audience_resolution"
    PARTIAL_SEND_FAILURE = "partial_send_failure"
    LEDGER = "ledger"
    USER_DIRECTORY = "user_directory"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class ErrorEntry:
    """Structured error descriptor kept in the execution record.

    Hey future me - user_id/platform/release_id are what you need to reproduce a
    failure from the execution history without grepping logs. Keep them filled in.
    """

    kind: ErrorKind
    message: str
    user_id: int | None = None
    platform: Platform | None = None
    release_id: str | None = None
    severity: str = "error"  # "error" or "warning"

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "user_id": self.user_id,
            "platform": self.platform.value if self.platform else None,
            "release_id": self.release_id,
            "severity": self.severity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ErrorEntry":
        platform = data.get("platform")
        return cls(
            kind=ErrorKind(data["kind"]),
            message=data.get("message", ""),
            user_id=data.get("user_id"),
            platform=Platform(platform) if platform else None,
            release_id=data.get("release_id"),
            severity=data.get("severity", "error"),
        )


@dataclass(frozen=True)
class PlatformResult:
    """Per-platform counters of one run, isolated from the other platforms."""

    users_checked: int = 0
    releases_found: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    quota_skipped: int = 0
    error_count: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlatformResult":
        return cls(**{key: int(data.get(key, 0)) for key in cls.__dataclass_fields__})


@dataclass(frozen=True)
class ExecutionRecord:
    """One row of the append-only execution ledger."""

    run_id: str
    status: RunStatus
    started_at: datetime
    finished_at: datetime
    users_processed: int = 0
    total_new_tracks: int = 0
    total_emails_sent: int = 0
    platform_results: dict[Platform, PlatformResult] = field(default_factory=dict)
    errors: tuple[ErrorEntry, ...] = ()
    timed_out: bool = False
    units_skipped: int = 0

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)


@dataclass(frozen=True)
class ExecutionSummary:
    """What run_check() hands back to the trigger endpoint.

    Wraps the record and adds whether it made it into the ledger. A failed
    persist never turns a completed run into a failed one.
    """

    record: ExecutionRecord
    persisted: bool = True

    @property
    def success(self) -> bool:
        return self.record.status is not RunStatus.ABORTED

    @property
    def run_id(self) -> str:
        return self.record.run_id

    @property
    def users_processed(self) -> int:
        return self.record.users_processed

    @property
    def total_new_tracks(self) -> int:
        return self.record.total_new_tracks

    @property
    def total_emails_sent(self) -> int:
        return self.record.total_emails_sent

    @property
    def platform_results(self) -> dict[Platform, PlatformResult]:
        return self.record.platform_results

    @property
    def errors(self) -> tuple[ErrorEntry, ...]:
        return self.record.errors

    @property
    def message(self) -> str:
        if self.record.status is RunStatus.ABORTED:
            return "Failed to check music platforms"
        if self.record.timed_out:
            return "Multi-platform check stopped early (time budget reached)"
        return "Multi-platform check completed"
