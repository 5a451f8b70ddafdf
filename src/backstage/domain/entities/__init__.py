"""Domain entities."""

from backstage.domain.entities.execution import (
    ErrorEntry,
    ErrorKind,
    ExecutionRecord,
    ExecutionSummary,
    PlatformResult,
    RunState,
    RunStatus,
    UnitState,
)
from backstage.domain.entities.release import NotifiedRelease, Platform, Release
from backstage.domain.entities.user import UNLIMITED_QUOTA, Contact, User

__all__ = [
    "Contact",
    "ErrorEntry",
    "ErrorKind",
    "ExecutionRecord",
    "ExecutionSummary",
    "NotifiedRelease",
    "Platform",
    "PlatformResult",
    "Release",
    "RunState",
    "RunStatus",
    "UNLIMITED_QUOTA",
    "UnitState",
    "User",
]
