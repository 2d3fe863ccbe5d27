"""Structured logging for eve-door.

Builds on Python's standard logging module with:
- Keyword-argument structured data (``logger.info("msg", tick=3)``)
- Human-readable ``| key=value`` or NDJSON output
- Context propagation via contextvars (tick number, device name)

The simulation engine, history aggregator and lifecycle controller all log
through loggers obtained from :func:`get_logger`. Loggers live under the
``eve_door`` hierarchy, which does not propagate to the root logger.

Example:
    logger = get_logger(__name__)
    logger.info("Platform started", device="Eve door")

    with LogContext(tick=12):
        logger.info("Set contact to false")  # includes tick=12

    configure_logging(json_format=True, force=True)
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import threading
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, cast

ROOT_LOGGER_NAME = "eve_door"

_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept structured keyword data.

    Keyword arguments that are not part of the standard logging signature
    are merged with the active :class:`LogContext` and attached to the
    record as ``structured_data``. The message and level parameters are
    positional-only, so any key (``level``, ``msg``, ``args``) can be
    used as structured data.

    Usage:
        logger = StructuredLogger("eve_door.simulation")
        logger.info("Battery updated", percent=160, level="OK")
    """

    def debug(
        self, msg: object, /, *args: Any, stacklevel: int = 1, **kwargs: Any
    ) -> None:
        """Log debug message with optional structured data kwargs."""
        if self.isEnabledFor(logging.DEBUG):
            self._log(logging.DEBUG, msg, args, stacklevel=stacklevel + 1, **kwargs)

    def info(
        self, msg: object, /, *args: Any, stacklevel: int = 1, **kwargs: Any
    ) -> None:
        """Log info message with optional structured data kwargs."""
        if self.isEnabledFor(logging.INFO):
            self._log(logging.INFO, msg, args, stacklevel=stacklevel + 1, **kwargs)

    def warning(
        self, msg: object, /, *args: Any, stacklevel: int = 1, **kwargs: Any
    ) -> None:
        """Log warning message with optional structured data kwargs."""
        if self.isEnabledFor(logging.WARNING):
            self._log(logging.WARNING, msg, args, stacklevel=stacklevel + 1, **kwargs)

    def error(
        self, msg: object, /, *args: Any, stacklevel: int = 1, **kwargs: Any
    ) -> None:
        """Log error message with optional structured data kwargs."""
        if self.isEnabledFor(logging.ERROR):
            self._log(logging.ERROR, msg, args, stacklevel=stacklevel + 1, **kwargs)

    def _log(
        self,
        level: int,
        msg: object,
        args: tuple[Any, ...] | MutableMapping[str, Any] | None = None,
        /,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **kwargs: Any,
    ) -> None:
        """Attach context and keyword data to the record, then log it.

        Merge order is LogContext values first, explicit kwargs second, so a
        call site can override an ambient value such as ``tick``.
        """
        extra = dict(extra or {})
        extra["structured_data"] = {**_log_context.get(), **kwargs}

        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


# =============================================================================
# Formatters
# =============================================================================


class StructuredFormatter(logging.Formatter):
    """Human-readable formatter.

    Format: ``timestamp - name - level - message | key=value key=value``
    """

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        include_structured: bool = True,
    ) -> None:
        """Initialize the formatter.

        Args:
            fmt: Format string; defaults to
                ``%(asctime)s - %(name)s - %(levelname)s - %(message)s``.
            datefmt: Date format for ``%(asctime)s``.
            include_structured: Append structured data after the message.
        """
        if fmt is None:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        super().__init__(fmt, datefmt)
        self.include_structured = include_structured

    def format(self, record: logging.LogRecord) -> str:
        """Format the record, appending ``| key=value`` pairs when present."""
        base = super().format(record)

        if not self.include_structured:
            return base

        structured = getattr(record, "structured_data", {})
        if not structured:
            return base

        pairs = " ".join(f"{k}={_format_value(v)}" for k, v in structured.items())
        return f"{base} | {pairs}"


class JSONFormatter(logging.Formatter):
    """NDJSON formatter: one object per record, structured data at top level."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a record as a single-line JSON object.

        Output keys are ``timestamp`` (ISO 8601, UTC), ``level``, ``logger``,
        ``message``, every structured data key, and ``exception`` when the
        record carries exc_info. Values that JSON cannot encode fall back
        to ``str()``.

        Args:
            record: The record to format.

        Returns:
            JSON string without trailing newline.

        Example:
            >>> formatter = JSONFormatter()
            >>> record.structured_data = {"tick": 4}
            >>> json.loads(formatter.format(record))["tick"]
            4
        """
        log_dict: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        log_dict.update(getattr(record, "structured_data", {}))

        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_dict, default=str)


def _format_value(value: Any) -> str:
    """Render a structured value for ``key=value`` output.

    None becomes ``null``, strings with spaces are quoted, dicts and lists
    are JSON-encoded, anything else goes through ``str()``.

    Example:
        >>> _format_value("Eve door")
        '"Eve door"'
        >>> _format_value({"stateValue": False})
        '{"stateValue": false}'
    """
    if value is None:
        return "null"
    if isinstance(value, str):
        if " " in value:
            return f'"{value}"'
        return value
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return str(value)


# =============================================================================
# Context Management
# =============================================================================


@dataclass
class LogContext:
    """Context manager adding key-value pairs to every record in scope.

    Nested contexts merge; inner values win.

    Usage:
        with LogContext(device="Eve door"):
            with LogContext(tick=7):
                logger.info("Set contact to true")  # device and tick
    """

    _kwargs: dict[str, Any] = field(default_factory=dict, init=False, repr=True)
    _token: contextvars.Token[dict[str, Any]] | None = field(
        default=None, init=False, repr=False
    )

    def __init__(self, **kwargs: Any) -> None:
        """Store the key-value pairs to activate on enter."""
        self._kwargs = kwargs

    def __enter__(self) -> LogContext:
        """Merge this context's values over the current context."""
        current = _log_context.get()
        self._token = _log_context.set({**current, **self._kwargs})
        return self

    def __exit__(self, *args: Any) -> None:
        """Restore the previous context. Exceptions are not suppressed."""
        if self._token is not None:
            _log_context.reset(self._token)


# =============================================================================
# Configuration
# =============================================================================

_configured = False
_config_lock = threading.RLock()


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
    force: bool = False,
) -> None:
    """Configure the ``eve_door`` logger hierarchy.

    Idempotent: only the first call installs a handler unless ``force`` is
    set, in which case existing handlers are removed first. Thread-safe.

    Args:
        level: Minimum level (int or name such as ``"DEBUG"``).
        json_format: Use :class:`JSONFormatter` instead of
            :class:`StructuredFormatter`.
        stream: Output stream, default ``sys.stderr``.
        include_structured: Append structured data in text mode.
        force: Reconfigure even if already configured.

    Example:
        >>> import io
        >>> buffer = io.StringIO()
        >>> configure_logging(level="DEBUG", stream=buffer, force=True)
    """
    global _configured

    with _config_lock:
        if force:
            reset_logging()
        if _configured:
            return

        logging.setLoggerClass(StructuredLogger)

        handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
        handler.setFormatter(
            JSONFormatter()
            if json_format
            else StructuredFormatter(include_structured=include_structured)
        )

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)
        root.addHandler(handler)
        root.propagate = False

        _configured = True


def reset_logging() -> None:
    """Remove all ``eve_door`` handlers and mark logging unconfigured.

    Intended for test teardown.
    """
    global _configured

    with _config_lock:
        root = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        _configured = False


def get_logger(name: str) -> StructuredLogger:
    """Return a structured logger, configuring defaults on first use.

    Args:
        name: Logger name, normally ``__name__``.

    Returns:
        StructuredLogger accepting keyword structured data.

    Example:
        >>> logger = get_logger("eve_door.platform")
        >>> logger.info("Initializing platform: %s", "matterbridge-eve-door")
    """
    if not _configured:
        configure_logging()
    return cast(StructuredLogger, logging.getLogger(name))
