"""API schemas for the release check trigger and the execution history.

The dashboard frontend reads camelCase keys, so every model serializes by alias.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backstage.domain.entities import (
    ErrorEntry,
    ExecutionRecord,
    ExecutionSummary,
    Platform,
    PlatformResult,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlatformResultSchema(_CamelModel):
    """Per-platform counters of one run."""

    users_checked: int = Field(0, description="Users with this platform linked and checked")
    releases_found: int = Field(0, description="New releases processed")
    emails_sent: int = Field(0, description="Announcement emails delivered")
    emails_failed: int = Field(0, description="Announcement emails that failed")
    quota_skipped: int = Field(0, description="Releases skipped because quota was exhausted")
    error_count: int = Field(0, description="Units that ended with an error")

    @classmethod
    def from_entity(cls, result: PlatformResult) -> "PlatformResultSchema":
        return cls(**result.as_dict())


class ErrorEntrySchema(_CamelModel):
    """A non-fatal problem recorded during a run."""

    kind: str
    message: str
    user_id: int | None = None
    platform: str | None = None
    release_id: str | None = None
    severity: str = "error"

    @classmethod
    def from_entity(cls, entry: ErrorEntry) -> "ErrorEntrySchema":
        return cls(
            kind=entry.kind.value,
            message=entry.message,
            user_id=entry.user_id,
            platform=entry.platform.value if entry.platform else None,
            release_id=entry.release_id,
            severity=entry.severity,
        )


def _platform_results(
    results: dict[Platform, PlatformResult],
) -> dict[str, PlatformResultSchema]:
    return {
        platform.value: PlatformResultSchema.from_entity(result)
        for platform, result in results.items()
    }


class CheckMusicPlatformsResponse(_CamelModel):
    """Response of GET /api/check-music-platforms."""

    success: bool
    users_processed: int
    total_emails_sent: int
    total_new_tracks: int
    platform_results: dict[str, PlatformResultSchema]
    message: str
    run_id: str
    timed_out: bool = False
    duration_ms: int = 0
    errors: list[ErrorEntrySchema] = Field(default_factory=list)

    @classmethod
    def from_summary(cls, summary: ExecutionSummary) -> "CheckMusicPlatformsResponse":
        record = summary.record
        return cls(
            success=summary.success,
            users_processed=summary.users_processed,
            total_emails_sent=summary.total_emails_sent,
            total_new_tracks=summary.total_new_tracks,
            platform_results=_platform_results(summary.platform_results),
            message=summary.message,
            run_id=summary.run_id,
            timed_out=record.timed_out,
            duration_ms=record.duration_ms,
            errors=[ErrorEntrySchema.from_entity(e) for e in summary.errors],
        )


class ExecutionHistoryItem(_CamelModel):
    """One persisted execution record."""

    run_id: str
    status: str
    started_at: datetime
    finished_at: datetime
    duration_ms: int
    users_processed: int
    total_new_tracks: int
    total_emails_sent: int
    timed_out: bool
    units_skipped: int
    platform_results: dict[str, PlatformResultSchema]
    errors: list[ErrorEntrySchema]

    @classmethod
    def from_record(cls, record: ExecutionRecord) -> "ExecutionHistoryItem":
        return cls(
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
            platform_results=_platform_results(record.platform_results),
            errors=[ErrorEntrySchema.from_entity(e) for e in record.errors],
        )


class ExecutionHistoryResponse(_CamelModel):
    """Response of GET /api/execution-history."""

    executions: list[ExecutionHistoryItem]
    count: int


__all__ = [
    "CheckMusicPlatformsResponse",
    "ErrorEntrySchema",
    "ExecutionHistoryItem",
    "ExecutionHistoryResponse",
    "PlatformResultSchema",
]
