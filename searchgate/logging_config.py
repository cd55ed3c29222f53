"""
Logging setup for the gateway process.

Every module logs through a child of the ``searchgate`` logger:

    from searchgate.logging_config import get_logger
    logger = get_logger(__name__)

Output goes to stderr, human-readable in development and one JSON object per
line when APP_ENV=production. Each record carries the correlation id of the
HTTP exchange being handled, and known secrets (the submission token, bearer
credentials) are masked before anything is written. An hourly-rotated file
with 48 hours of history can be enabled on top of the console output.
"""

import json
import logging
import logging.handlers
import os
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path

ROOT_LOGGER = "searchgate"
CORRELATION_HEADER = "x-correlation-id"

LOG_FILE_NAME = "gateway.log"
LOG_RETENTION_HOURS = 48

REDACTED = "[REDACTED]"

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    return _correlation_id.get()


def set_correlation_id(cid: str) -> None:
    _correlation_id.set(cid)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


def _environment() -> str:
    return (os.environ.get("APP_ENV") or os.environ.get("ENV") or "development").lower()


def is_production() -> bool:
    return _environment() == "production"


# =============================================================================
# Redaction
# =============================================================================

# Credentials carried in Authorization-style text
_CREDENTIAL_PATTERNS = [
    re.compile(r"(bearer\s+)\S{8,}", re.IGNORECASE),
    re.compile(r"((?:token|password)\s*[:=]\s*)['\"]?[^\s'\",]{8,}['\"]?", re.IGNORECASE),
]

_secrets: set[str] = set()


def register_secret(value: str) -> None:
    """Mask every later occurrence of ``value`` in log output."""
    if value and len(value) > 4:
        _secrets.add(value)


def redact(text: str) -> str:
    for secret in _secrets:
        text = text.replace(secret, REDACTED)
    for pattern in _CREDENTIAL_PATTERNS:
        text = pattern.sub(rf"\1{REDACTED}", text)
    return text


# =============================================================================
# Formatters
# =============================================================================

class DevelopmentFormatter(logging.Formatter):
    """``LEVEL  time  logger [cid]  message`` lines for a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created, tz=timezone.utc)
        cid = get_correlation_id()
        line = (
            f"{record.levelname:<8} {when:%Y-%m-%d %H:%M:%S} {record.name}"
            f"{f' [{cid[:8]}]' if cid else ''}  {record.getMessage()}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return redact(line)


class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    LEVELS = {"WARNING": "warn", "CRITICAL": "fatal"}

    def __init__(self, service: str = ROOT_LOGGER):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": self.LEVELS.get(record.levelname, record.levelname.lower()),
            "service": self.service,
            "context": record.name,
            "correlationId": get_correlation_id() or None,
            "message": redact(record.getMessage()),
        }
        if record.exc_info:
            entry["stackTrace"] = redact(self.formatException(record.exc_info))
        data = getattr(record, "data", None)
        if isinstance(data, dict):
            entry["data"] = data
        return json.dumps(entry, default=str)


def retention_file_handler(log_dir: Path) -> logging.Handler:
    """Hourly-rotated ``gateway.log`` keeping LOG_RETENTION_HOURS of history."""
    log_dir.mkdir(parents=True, exist_ok=True)
    return logging.handlers.TimedRotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        when="h",
        backupCount=LOG_RETENTION_HOURS,
        encoding="utf-8",
        utc=True,
    )


# =============================================================================
# Setup
# =============================================================================

_configured = False


def configure_logging(
    log_level: str = "INFO",
    service: str = ROOT_LOGGER,
    enable_file_logging: bool = False,
    log_dir: Path | None = None,
) -> None:
    """(Re)configure the ``searchgate`` logger tree.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        service: service name written into JSON entries
        enable_file_logging: also write JSON lines to $LOG_DIR/gateway.log
        log_dir: overrides $LOG_DIR (default ./logs)
    """
    global _configured

    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(
        StructuredJsonFormatter(service) if is_production() else DevelopmentFormatter()
    )
    root.addHandler(console)

    if enable_file_logging:
        try:
            handler = retention_file_handler(log_dir or Path(os.environ.get("LOG_DIR", "logs")))
        except OSError as e:
            root.warning(f"File logging disabled: {e}")
        else:
            handler.setFormatter(StructuredJsonFormatter(service))
            root.addHandler(handler)

    _configured = True


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger under the ``searchgate`` tree, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
