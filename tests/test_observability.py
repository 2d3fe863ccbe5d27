"""Tests for eve_door.observability.logging.

Covers the formatters, value rendering, LogContext propagation and the
idempotent configure/reset cycle of the ``eve_door`` logger hierarchy.
"""

import io
import json
import logging
import sys

import pytest

from eve_door.observability import logging as log_module
from eve_door.observability.logging import (
    ROOT_LOGGER_NAME,
    JSONFormatter,
    LogContext,
    StructuredFormatter,
    StructuredLogger,
    _format_value,
    _log_context,
    configure_logging,
    get_logger,
    reset_logging,
)


def make_record(msg: str = "Test message", level: int = logging.INFO, **structured):
    """Build a LogRecord, attaching structured_data when given."""
    record = logging.LogRecord(
        name="eve_door.test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    if structured:
        record.structured_data = structured
    return record


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_basic_format(self):
        """Verifies formatter produces readable output for a plain message.

        Arrangement:
        1. StructuredFormatter with default settings.
        2. LogRecord without structured_data attribute.

        Action:
        Formats the record.

        Assertion Strategy:
        - Message and level name appear.
        - No pipe separator is appended.
        """
        result = StructuredFormatter().format(make_record())

        assert "Test message" in result
        assert "INFO" in result
        assert "|" not in result

    def test_format_with_structured_data(self):
        """Verifies structured data is appended after a pipe.

        Arrangement:
        1. Record with structured_data = {"tick": 3, "device": "Eve door"}.

        Action:
        Formats the record.

        Assertion Strategy:
        - "tick=3" present.
        - Value with a space is quoted.
        - Separator present.

        Testing Principle:
        Validates key=value pairs stay greppable in text logs.
        """
        record = make_record("Set contact to false", tick=3, device="Eve door")

        result = StructuredFormatter().format(record)

        assert result.endswith(' | tick=3 device="Eve door"')
        assert "Set contact to false" in result

    def test_empty_structured_data(self):
        """Verifies no separator when structured_data is empty."""
        record = make_record()
        record.structured_data = {}

        assert "|" not in StructuredFormatter().format(record)

    def test_include_structured_false(self):
        """Verifies structured data is omitted when disabled."""
        formatter = StructuredFormatter(include_structured=False)

        result = formatter.format(make_record(tick=3))

        assert "tick=3" not in result

    def test_custom_format(self):
        """Verifies a custom format string is honoured."""
        formatter = StructuredFormatter(fmt="%(levelname)s: %(message)s")

        assert formatter.format(make_record()) == "INFO: Test message"


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        """Verifies the standard keys of an NDJSON record.

        Arrangement:
        1. Plain INFO record named eve_door.test.

        Action:
        Formats and parses the output.

        Assertion Strategy:
        - level, logger and message populated.
        - timestamp is ISO 8601 in UTC.
        - No exception key without exc_info.
        """
        parsed = json.loads(JSONFormatter().format(make_record()))

        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "eve_door.test"
        assert parsed["message"] == "Test message"
        assert parsed["timestamp"].endswith("+00:00")
        assert "exception" not in parsed

    def test_structured_keys_at_top_level(self):
        """Verifies structured data is flattened into the object."""
        record = make_record(tick=4, event={"stateValue": False})

        parsed = json.loads(JSONFormatter().format(record))

        assert parsed["tick"] == 4
        assert parsed["event"] == {"stateValue": False}

    def test_exception_included(self):
        """Verifies exc_info is rendered under 'exception'."""
        try:
            raise OSError("disk full")
        except OSError:
            exc_info = sys.exc_info()
        record = make_record(level=logging.ERROR)
        record.exc_info = exc_info

        parsed = json.loads(JSONFormatter().format(record))

        assert "OSError: disk full" in parsed["exception"]

    def test_unencodable_value_falls_back_to_str(self):
        """Verifies non-JSON values are stringified rather than raising."""
        record = make_record(path=object())

        parsed = json.loads(JSONFormatter().format(record))

        assert parsed["path"].startswith("<object object")


class TestFormatValue:
    """Tests for _format_value."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "null"),
            ("open", "open"),
            ("Eve door", '"Eve door"'),
            ({"stateValue": False}, '{"stateValue": false}'),
            ([1, 2], "[1, 2]"),
            (160, "160"),
            (True, "True"),
            (60.1, "60.1"),
        ],
    )
    def test_values(self, value, expected):
        """Verifies each value type renders as documented."""
        assert _format_value(value) == expected


class TestLogContext:
    """Tests for LogContext."""

    def test_sets_and_restores(self):
        """Verifies values are active only inside the block."""
        assert _log_context.get() == {}

        with LogContext(tick=1):
            assert _log_context.get() == {"tick": 1}

        assert _log_context.get() == {}

    def test_nested_contexts_merge(self):
        """Verifies nested contexts merge and inner values win.

        Arrangement:
        1. Outer context device="Eve door", tick=1.
        2. Inner context tick=2.

        Action:
        Reads the context inside and after the inner block.

        Assertion Strategy:
        - Inside: device kept, tick overridden.
        - After inner exit: tick restored to 1.
        """
        with LogContext(device="Eve door", tick=1):
            with LogContext(tick=2):
                assert _log_context.get() == {"device": "Eve door", "tick": 2}
            assert _log_context.get() == {"device": "Eve door", "tick": 1}

    def test_restored_on_exception(self):
        """Verifies the context is restored and the exception propagates."""
        with pytest.raises(RuntimeError), LogContext(tick=9):
            raise RuntimeError("boom")

        assert _log_context.get() == {}


class TestStructuredLogger:
    """Tests for StructuredLogger through get_logger()."""

    @pytest.fixture
    def stream(self):
        """Configure the eve_door hierarchy to write into a StringIO.

        Returns:
            io.StringIO: Captured text output, DEBUG level, structured format.
        """
        stream = io.StringIO()
        configure_logging(level=logging.DEBUG, stream=stream, force=True)
        return stream

    def test_get_logger_returns_structured_logger(self, stream):
        """Verifies get_logger hands out StructuredLogger instances."""
        assert isinstance(get_logger("eve_door.test_kind"), StructuredLogger)

    def test_structured_kwargs(self, stream):
        """Verifies keyword arguments become key=value pairs."""
        get_logger("eve_door.test_kwargs").info(
            "Battery updated", percent=160, level="OK"
        )

        output = stream.getvalue()
        assert "Battery updated | percent=160 level=OK" in output

    def test_parameter_names_usable_as_keys(self, stream):
        """Verifies level, msg and args are accepted as structured keys.

        Arrangement:
        1. Logger at DEBUG writing into the stream.

        Action:
        Logs at each level with keys named like the logging parameters.

        Assertion Strategy:
        - No TypeError, every pair rendered after the message.
        """
        logger = get_logger("eve_door.test_reserved")

        logger.info("Battery updated", level="WARNING", msg="low", args=2)
        logger.debug("Battery updated", level="CRITICAL")
        logger.warning("Battery updated", msg="check")
        logger.error("Battery updated", args=[1])

        output = stream.getvalue()
        assert "| level=WARNING msg=low args=2" in output
        assert "| level=CRITICAL" in output
        assert "| msg=check" in output
        assert "| args=[1]" in output

    def test_percent_args_still_format(self, stream):
        """Verifies classic % formatting keeps working."""
        get_logger("eve_door.test_args").info(
            "Initializing platform: %s", "matterbridge-eve-door"
        )

        assert "Initializing platform: matterbridge-eve-door" in stream.getvalue()

    def test_context_included(self, stream):
        """Verifies LogContext values reach the output."""
        with LogContext(tick=7):
            get_logger("eve_door.test_ctx").info("Set contact to true")

        assert "tick=7" in stream.getvalue()

    def test_kwargs_override_context(self, stream):
        """Verifies explicit kwargs take precedence over context values."""
        with LogContext(tick=7):
            get_logger("eve_door.test_override").info("Tick", tick=8)

        output = stream.getvalue()
        assert "tick=8" in output
        assert "tick=7" not in output

    def test_exception_with_kwargs(self, stream):
        """Verifies exception() carries both traceback and structured data.

        Arrangement:
        1. Logger at DEBUG writing into the stream.

        Action:
        Logs exception() inside an except block with timer="eve-door-tick".

        Assertion Strategy:
        - Structured pair present.
        - Traceback text present.
        """
        logger = get_logger("eve_door.test_exc")
        try:
            raise ValueError("bad tick")
        except ValueError:
            logger.exception("Timer callback failed", timer="eve-door-tick")

        output = stream.getvalue()
        assert "timer=eve-door-tick" in output
        assert "ValueError: bad tick" in output

    def test_level_filtering(self):
        """Verifies records below the configured level are dropped."""
        stream = io.StringIO()
        configure_logging(level="WARNING", stream=stream, force=True)
        logger = get_logger("eve_door.test_filter")

        logger.debug("hidden", tick=1)
        logger.info("hidden too")
        logger.warning("Tick already armed")

        output = stream.getvalue()
        assert "hidden" not in output
        assert "Tick already armed" in output

    def test_debug_and_error_levels(self, stream):
        """Verifies debug() and error() emit at their levels."""
        logger = get_logger("eve_door.test_levels")

        logger.debug("Battery updated", percent=10)
        logger.error("Tick failed", error="boom")

        output = stream.getvalue()
        assert "DEBUG - Battery updated | percent=10" in output
        assert "ERROR - Tick failed | error=boom" in output


class TestConfigureLogging:
    """Tests for configure_logging and reset_logging."""

    def test_configure_with_defaults(self):
        """Verifies the first call installs a single handler.

        Arrangement:
        1. Logging reset.

        Action:
        configure_logging(stream=...).

        Assertion Strategy:
        - _configured flag set.
        - Root eve_door logger has one handler and does not propagate.
        - INFO messages reach the stream.
        """
        reset_logging()
        stream = io.StringIO()

        configure_logging(stream=stream)

        root = logging.getLogger(ROOT_LOGGER_NAME)
        assert log_module._configured
        assert len(root.handlers) == 1
        assert root.propagate is False
        get_logger("eve_door.test_defaults").info("Test message")
        assert "Test message" in stream.getvalue()

    def test_idempotent_without_force(self):
        """Verifies a second call without force changes nothing."""
        reset_logging()
        first = io.StringIO()
        second = io.StringIO()

        configure_logging(stream=first)
        configure_logging(stream=second, json_format=True)
        get_logger("eve_door.test_idem").info("once")

        assert "once" in first.getvalue()
        assert second.getvalue() == ""
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1

    def test_force_replaces_handler(self):
        """Verifies force=True swaps the existing handler."""
        first = io.StringIO()
        second = io.StringIO()
        configure_logging(stream=first, force=True)

        configure_logging(stream=second, json_format=True, force=True)
        get_logger("eve_door.test_force").info("JSON test", tick=2)

        assert first.getvalue() == ""
        parsed = json.loads(second.getvalue())
        assert parsed["message"] == "JSON test"
        assert parsed["tick"] == 2
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1

    def test_level_by_name(self):
        """Verifies string level names are accepted."""
        configure_logging(level="DEBUG", stream=io.StringIO(), force=True)

        assert logging.getLogger(ROOT_LOGGER_NAME).level == logging.DEBUG

    def test_reset_logging(self):
        """Verifies reset removes handlers and clears the flag."""
        configure_logging(stream=io.StringIO(), force=True)

        reset_logging()

        assert not log_module._configured
        assert logging.getLogger(ROOT_LOGGER_NAME).handlers == []

    def test_get_logger_auto_configures(self):
        """Verifies get_logger configures defaults when nothing is set up."""
        reset_logging()

        get_logger("eve_door.test_auto")

        assert log_module._configured
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1
