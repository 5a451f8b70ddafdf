"""Structured log message templates for the release check.

Hey future me - a cron run produces a handful of lines that people actually read when
an artist asks "why didn't my fans get the email?". Those lines come from here so they
all look the same:

    ⚠️ SoundCloud Check Failed
    ├─ User: 42
    ├─ Reason: soundcloud unavailable: feed for 123 returned 503
    └─ 💡 Other platforms and users were not affected

Principles:
1. Icon first (🔴 error, ⚠️ warning, ✅ success, 🚀 start)
2. What happened
3. Context (ids, counts)
4. Optional hint
"""

from dataclasses import dataclass, field


@dataclass
class LogTemplate:
    """A log message with icon, title, tree-formatted fields and an optional hint.

    Field values are used as-is (no str.format on them). Track titles and error texts
    contain braces often enough to break templating.
    """

    icon: str
    title: str
    fields: dict[str, str] = field(default_factory=dict)
    hint: str | None = None

    def format(self) -> str:
        lines = [f"{self.icon} {self.title}"]

        field_items = list(self.fields.items())
        for i, (key, value) in enumerate(field_items):
            # Last line uses └─ instead of ├─
            prefix = "└─" if i == len(field_items) - 1 and not self.hint else "├─"
            lines.append(f"{prefix} {key}: {value}")

        if self.hint:
            lines.append(f"└─ 💡 {self.hint}")

        return "\n".join(lines)


class LogMessages:
    """Collection of standardized release check log messages."""

    @staticmethod
    def run_started(run_id: str, platforms: list[str], max_concurrency: int, budget: float) -> str:
        return LogTemplate(
            icon="🚀",
            title="Release Check Started",
            fields={
                "Run": run_id,
                "Platforms": ", ".join(platforms) or "none",
                "Workers": str(max_concurrency),
                "Budget": f"{budget:.0f}s",
            },
        ).format()

    @staticmethod
    def run_completed(
        run_id: str,
        users: int,
        new_releases: int,
        emails_sent: int,
        errors: int,
        duration_ms: int,
        timed_out: bool = False,
        units_skipped: int = 0,
    ) -> str:
        fields = {
            "Run": run_id,
            "Users": str(users),
            "New releases": str(new_releases),
            "Emails sent": str(emails_sent),
            "Errors": str(errors),
            "Duration": f"{duration_ms}ms",
        }
        if timed_out:
            fields["Skipped units"] = str(units_skipped)

        return LogTemplate(
            icon="⏱️" if timed_out else "✅",
            title="Release Check Stopped Early" if timed_out else "Release Check Completed",
            fields=fields,
            hint=(
                "Time budget reached. Skipped users are picked up by the next run"
                if timed_out
                else None
            ),
        ).format()

    @staticmethod
    def run_aborted(run_id: str, error: str) -> str:
        return LogTemplate(
            icon="🔴",
            title="Release Check Aborted",
            fields={"Run": run_id, "Reason": error},
            hint="Active users could not be loaded. Check DATABASE__URL and DB health",
        ).format()

    @staticmethod
    def platform_check_failed(
        platform: str, user_id: int, error: str, hint: str | None = None
    ) -> str:
        return LogTemplate(
            icon="⚠️",
            title=f"{platform} Check Failed",
            fields={"User": str(user_id), "Reason": error},
            hint=hint or "Other platforms and users were not affected",
        ).format()

    @staticmethod
    def release_announced(
        platform: str,
        user_id: int,
        release_id: str,
        title: str,
        sent: int,
        failed: int,
    ) -> str:
        fields = {
            "User": str(user_id),
            "Release": f"{title} ({release_id})",
            "Sent": str(sent),
        }
        if failed:
            fields["Failed"] = str(failed)
        return LogTemplate(
            icon="📣",
            title=f"New {platform} Release Announced",
            fields=fields,
        ).format()

    @staticmethod
    def quota_exhausted(platform: str, user_id: int, release_id: str) -> str:
        return LogTemplate(
            icon="📭",
            title="Monthly Email Quota Exhausted",
            fields={"User": str(user_id), "Platform": platform, "Release": release_id},
            hint="Release is marked as notified and will not be announced later",
        ).format()

    @staticmethod
    def persistence_failed(run_id: str, error: str) -> str:
        return LogTemplate(
            icon="🔴",
            title="Execution Record Not Persisted",
            fields={"Run": run_id, "Reason": error},
            hint="Emails were sent; only the history entry is missing",
        ).format()


__all__ = ["LogMessages", "LogTemplate"]
