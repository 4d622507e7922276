"""Logging setup for processes embedding the access engine.

Level and format come from ``settings`` unless the caller overrides them.
Every line carries the signed-in caller's session id when the embedding app
has bound one, and session credentials and invite tokens are scrubbed
before anything is written: invite tokens travel in request paths, which
the API client logs on retry.
"""

import contextvars
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional

from .config import Settings, settings as default_settings


# Set by the embedding application after sign-in, read by both formatters.
session_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("session_id", default="")

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(session)s%(message)s"
_TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are noisy at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")


class _JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields land at the top level."""

    _RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys())

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        sid = session_id_var.get("")
        if sid:
            payload["session_id"] = sid

        for key, value in record.__dict__.items():
            if key not in self._RESERVED and key not in payload and key != "session":
                payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class _TextFormatter(logging.Formatter):
    """Human-readable lines prefixed with ``[session]`` when one is bound."""

    def __init__(self) -> None:
        super().__init__(fmt=_TEXT_FORMAT, datefmt=_TEXT_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        sid = session_id_var.get("")
        record.session = f"[{sid}] " if sid else ""
        return super().format(record)


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------

_SECRET_PATTERNS = [
    re.compile(r'(?i)(bearer\s+)[a-zA-Z0-9._\-]{8,}'),
    re.compile(r'(?i)((?:access_token|refresh_token|password|secret)[=:]\s*)[^\s,\'"]{8,}'),
    # /v1/parent-companion/invites/<token>/accept
    re.compile(r'(/invites/)(?!pending\b)[^/\s?]+'),
]

_REDACTED = "***REDACTED***"


def redact(text: str) -> str:
    """Replace credentials and invite tokens in *text*."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + _REDACTED, text)
    return text


class _SecretFilter(logging.Filter):
    """Scrub the rendered message, so %-style arguments are covered too."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Bad %-arguments; leave the record for the handler's error path.
            return True
        record.msg = redact(message)
        record.args = ()
        if record.exc_text:
            record.exc_text = redact(record.exc_text)
        return True


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    config: Optional[Settings] = None,
) -> None:
    """Install one stdout handler on the root logger.

    Args:
        log_level: Overrides ``config.log_level``.
        log_format: ``"json"`` or ``"text"``; overrides ``config.log_format``.
        config: Settings to read defaults from; the package settings if omitted.
    """
    config = config or default_settings
    level = (log_level or config.log_level).upper()
    fmt = (log_format or config.log_format).lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_SecretFilter())
    handler.setFormatter(_JsonFormatter() if fmt == "json" else _TextFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"level": level, "format": fmt, "environment": config.environment.value},
    )
