"""Tests for repoguide logging helpers."""

from __future__ import annotations

import logging
from pathlib import Path

from repoguide.logging import RedactingFilter, configure_logging, describe_credential, get_logger


def test_describe_credential() -> None:
    assert describe_credential(None) == "none"
    assert describe_credential("short") == "****"
    assert describe_credential("AIzaSyExampleKey1234") == "****1234"


def test_redacting_filter_masks_tokens() -> None:
    record = logging.LogRecord(
        "repoguide.test", logging.INFO, __file__, 1, "token=%s", ("ghp_" + "a" * 36,), None
    )
    assert RedactingFilter().filter(record) is True
    assert record.getMessage() == "token=****aaaa"


def test_configure_logging_writes_file_without_duplicates(tmp_path: Path) -> None:
    log_file = tmp_path / "repoguide.log"
    configure_logging(verbose=True)
    logger = configure_logging(verbose=True, log_file=log_file)
    assert len(logger.handlers) == 2
    assert logger.level == logging.DEBUG

    get_logger("test").debug("key %s", "AIza" + "B" * 35)
    for handler in logger.handlers:
        handler.flush()
    text = log_file.read_text(encoding="utf-8")
    assert "repoguide.test" in text
    assert "AIza" not in text

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
