"""Logging setup for the release check service.

Every line written during a run carries the run id, and every line written while a
(user, platform) unit is in flight also carries that user id and platform. Two outputs:

- console: one human line per record, exceptions shown as a short cause chain
- json:    one object per record for log shippers (python-json-logger)
"""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default="")
unit_var: contextvars.ContextVar[tuple[int, str] | None] = contextvars.ContextVar(
    "unit", default=None
)

_NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "asyncio", "aiosqlite", "uvicorn.access")


def current_run_id() -> str:
    """Run id bound to the current context, "" outside a run."""
    return run_id_var.get()


def bind_run(run_id: str | None = None) -> str:
    """Bind a run id to the current context (a fresh uuid4 when None)."""
    run_id = run_id or str(uuid.uuid4())
    run_id_var.set(run_id)
    return run_id


# Hey future me, the release check runs units inside worker tasks created by gather(). Each
# task has its own copy of the context, so binding a unit in one worker never leaks into the
# next worker's lines. Reset with the token when the unit is done, the worker is reused.
def bind_unit(user_id: int, platform: str) -> contextvars.Token[tuple[int, str] | None]:
    """Tag following log lines with the (user, platform) unit being processed."""
    return unit_var.set((user_id, platform))


def unbind_unit(token: contextvars.Token[tuple[int, str] | None]) -> None:
    unit_var.reset(token)


class RunContextFilter(logging.Filter):
    """Copy the run/unit context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_var.get()
        unit = unit_var.get()
        record.user_id, record.platform = unit if unit else (None, None)
        return True


class ConsoleFormatter(logging.Formatter):
    """Single-line console output with a compact cause chain for exceptions.

    12:00:01 WARNING  backstage.application.services.release_check_service [3f2a9c1e soundcloud#42] Unit failed
      ! PlatformUnavailableError: soundcloud unavailable: feed request failed
        soundcloud_client.py:61 fetch_feed
      ! caused by ConnectError: All connection attempts failed
    """

    def format(self, record: logging.LogRecord) -> str:
        record.context = self._context_tag(record)
        return super().format(record)

    @staticmethod
    def _context_tag(record: logging.LogRecord) -> str:
        parts = []
        run_id = getattr(record, "run_id", "")
        if run_id:
            parts.append(run_id[:8])
        platform = getattr(record, "platform", None)
        if platform:
            parts.append(f"{platform}#{getattr(record, 'user_id', '?')}")
        return f"[{' '.join(parts)}] " if parts else ""

    def formatException(self, ei: Any) -> str:
        exc: BaseException | None = ei[1]
        lines: list[str] = []
        prefix = "!"
        seen: set[int] = set()
        while exc is not None and id(exc) not in seen:
            seen.add(id(exc))
            lines.append(f"  {prefix} {type(exc).__name__}: {exc}")
            # Only our own frames, the httpx/anyio stack under an adapter call is noise
            for frame in traceback.extract_tb(exc.__traceback__):
                if "backstage" in frame.filename and "site-packages" not in frame.filename:
                    lines.append(f"    {Path(frame.filename).name}:{frame.lineno} {frame.name}")
            exc = exc.__cause__ or exc.__context__
            prefix = "! caused by"
        return "\n".join(lines)


class JsonLogFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined,misc]
    """JSON records with level, logger and the run/unit context as top-level keys."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["line"] = record.lineno
        for key in ("run_id", "user_id", "platform"):
            value = getattr(record, key, None)
            if value:
                log_record[key] = value


# Listen future me, lifespan calls this once at startup. It drops every existing root
# handler first, so calling it again (tests, reload) never duplicates output.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "backstage",
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: JSON lines instead of console lines
        app_name: Added to the startup log line
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(level)

    formatter: logging.Formatter
    if json_format:
        formatter = JsonLogFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S"
        )
    else:
        formatter = ConsoleFormatter(
            fmt="%(asctime)s %(levelname)-8s %(name)s %(context)s%(message)s",
            datefmt="%H:%M:%S",
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RunContextFilter())
    handler.setFormatter(formatter)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured for %s (level=%s, json=%s)", app_name, log_level, json_format
    )


__all__ = [
    "ConsoleFormatter",
    "JsonLogFormatter",
    "RunContextFilter",
    "bind_run",
    "bind_unit",
    "configure_logging",
    "current_run_id",
    "run_id_var",
    "unbind_unit",
    "unit_var",
]
