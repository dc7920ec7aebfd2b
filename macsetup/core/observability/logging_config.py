"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py. Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  MACSETUP_LOG_LEVEL env var  >  WARNING (default)

Optional file output via MACSETUP_LOG_FILE / MACSETUP_LOG_FILE_LEVEL.
Provisioning runs are long and the terminal summary only shows the tail
of each error, so the file keeps full detail and rotates instead of
growing across runs.

Credentials typed at a prompt (sudo, SMB) are registered with
``mask_secret`` and replaced by ``***`` in every handler's output.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

# Console format per level: quiet by default, more context when asked.
_CONSOLE_FORMATS: dict[int, tuple[str, str | None]] = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    logging.WARNING: ("%(message)s", None),
}

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"
_FILE_MAX_BYTES = 5 * 1024 * 1024
_FILE_BACKUPS = 3

MASK = "***"


class SecretMask(logging.Filter):
    """Replace registered secrets in formatted log messages."""

    def __init__(self) -> None:
        super().__init__()
        self._secrets: set[str] = set()

    def add(self, secret: str) -> None:
        if secret:
            self._secrets.add(secret)

    def clear(self) -> None:
        self._secrets.clear()

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        masked = message
        for secret in self._secrets:
            masked = masked.replace(secret, MASK)
        if masked != message:
            record.msg, record.args = masked, None
        return True


_secret_mask = SecretMask()

# Handlers installed by the last setup_logging call.
_installed: list[logging.Handler] = []


def mask_secret(secret: str) -> None:
    """Never let ``secret`` reach a log handler."""
    _secret_mask.add(secret)


def forget_secrets() -> None:
    _secret_mask.clear()


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Repeat calls replace the handlers of the previous call.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a rotating log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
    """
    numeric_level = parse_level(level)

    root = logging.getLogger()
    root.handlers.clear()
    for handler in _installed:
        handler.close()
    _installed.clear()

    _install(root, _console_handler(numeric_level))
    effective_level = numeric_level

    if log_file:
        file_level = parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)
        _install(root, _file_handler(Path(log_file).expanduser(), file_level))

    root.setLevel(effective_level)
    logging.raiseExceptions = False


def _install(root: logging.Logger, handler: logging.Handler) -> None:
    handler.addFilter(_secret_mask)
    root.addHandler(handler)
    _installed.append(handler)


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = next(
        (f for threshold, f in sorted(_CONSOLE_FORMATS.items()) if level <= threshold),
        _CONSOLE_FORMATS[logging.WARNING],
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=_FILE_MAX_BYTES, backupCount=_FILE_BACKUPS, encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
