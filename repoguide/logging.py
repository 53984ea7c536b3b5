"""Logging utilities for repoguide components."""

from __future__ import annotations

import logging
import re
from pathlib import Path

_LOGGER_NAME = "repoguide"
_CONSOLE_FORMAT = "[repoguide] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Gemini keys, classic and fine-grained GitHub tokens.
_SECRET_RE = re.compile(r"AIza[0-9A-Za-z_\-]{20,}|gh[pousr]_[0-9A-Za-z]{20,}|github_pat_[0-9A-Za-z_]{20,}")


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the repoguide hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def describe_credential(value: str | None) -> str:
    """Return a log-safe description of a credential, never the secret itself."""
    if not value:
        return "none"
    if len(value) <= 8:
        return "****"
    return f"****{value[-4:]}"


class RedactingFilter(logging.Filter):
    """Masks anything shaped like an API key or access token in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SECRET_RE.sub(lambda match: describe_credential(match.group(0)), message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Attach console (and optional file) handlers to the repoguide logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = get_logger()
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handlers: list[logging.Handler] = [_handler(logging.StreamHandler(), level, _CONSOLE_FORMAT)]
    if log_file is not None:
        handlers.append(_handler(logging.FileHandler(log_file, encoding="utf-8"), level, _FILE_FORMAT))
    for handler in handlers:
        logger.addHandler(handler)
    return logger


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(RedactingFilter())
    return handler


__all__ = ["RedactingFilter", "configure_logging", "describe_credential", "get_logger"]
