"""Tests for run-scoped logging."""

import asyncio
import json
import logging
import sys

from backstage.infrastructure.observability.logging import (
    ConsoleFormatter,
    JsonLogFormatter,
    RunContextFilter,
    bind_run,
    bind_unit,
    configure_logging,
    current_run_id,
    unbind_unit,
)


def make_record(message: str = "hello", exc_info=None) -> logging.LogRecord:
    record = logging.LogRecord(
        name="backstage.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=exc_info,
    )
    RunContextFilter().filter(record)
    return record


class TestRunContext:
    def test_bind_run_uses_given_id(self) -> None:
        assert bind_run("run-abc") == "run-abc"
        assert current_run_id() == "run-abc"

    def test_bind_run_generates_uuid_when_none(self) -> None:
        result = bind_run(None)

        assert len(result) == 36
        assert current_run_id() == result

    def test_unit_binding_is_reset(self) -> None:
        token = bind_unit(42, "soundcloud")
        record = make_record()
        unbind_unit(token)

        assert (record.user_id, record.platform) == (42, "soundcloud")
        assert make_record().platform is None

    async def test_unit_binding_stays_inside_its_task(self) -> None:
        seen: dict[str, object] = {}

        async def unit() -> None:
            bind_unit(7, "spotify")
            seen["inner"] = make_record().platform

        await asyncio.create_task(unit())
        seen["outer"] = make_record().platform

        assert seen == {"inner": "spotify", "outer": None}


class TestFormatters:
    def test_console_formatter_tags_run_and_unit(self) -> None:
        bind_run("12345678-aaaa-bbbb-cccc-dddddddddddd")
        token = bind_unit(42, "soundcloud")
        try:
            record = make_record()
        finally:
            unbind_unit(token)

        formatter = ConsoleFormatter(fmt="%(context)s%(message)s")

        assert formatter.format(record) == "[12345678 soundcloud#42] hello"

    def test_console_formatter_walks_cause_chain(self) -> None:
        try:
            try:
                raise ConnectionError("refused")
            except ConnectionError as e:
                raise RuntimeError("feed failed") from e
        except RuntimeError:
            exc_info = sys.exc_info()

        text = ConsoleFormatter().formatException(exc_info)
        lines = [line.strip() for line in text.splitlines() if "!" in line]

        assert lines == [
            "! RuntimeError: feed failed",
            "! caused by ConnectionError: refused",
        ]

    def test_json_formatter_includes_run_context(self) -> None:
        bind_run("run-json")
        token = bind_unit(3, "spotify")
        try:
            record = make_record("release check started")
        finally:
            unbind_unit(token)
        formatter = JsonLogFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "release check started"
        assert payload["level"] == "WARNING"
        assert payload["run_id"] == "run-json"
        assert payload["user_id"] == 3
        assert payload["platform"] == "spotify"


class TestLoggingConfiguration:
    def test_configure_logging_debug_level(self) -> None:
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")

        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_json_format(self) -> None:
        configure_logging(log_level="INFO", json_format=True, app_name="test-app")

        [handler] = logging.getLogger().handlers
        assert isinstance(handler.formatter, JsonLogFormatter)

    def test_third_party_loggers_are_quieted(self) -> None:
        configure_logging(log_level="DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("aiosqlite").level == logging.WARNING
