"""Tests for ColoredFormatter."""

import logging
from io import StringIO
from unittest.mock import patch

import pytest

from classroom_jukebox.utils.logging import ColoredFormatter

RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}


def _make_record(level: int, message: str = "test") -> logging.LogRecord:
    return logging.LogRecord(
        name="classroom_jukebox.test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


def _tty() -> StringIO:
    stream = StringIO()
    stream.isatty = lambda: True  # type: ignore[method-assign]
    return stream


class TestColoredFormatter:
    """Tests for ANSI color formatting."""

    @pytest.mark.parametrize(
        "level",
        [logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL],
    )
    def test_color_applied_per_level(self, level: int):
        fmt = ColoredFormatter("%(levelname)s | %(message)s", stream=_tty())

        output = fmt.format(_make_record(level))

        assert LEVEL_COLORS[level] in output
        assert RESET in output

    def test_no_color_when_no_color_env_set(self):
        fmt = ColoredFormatter("%(levelname)s | %(message)s", stream=_tty())

        with patch.dict("os.environ", {"NO_COLOR": "1"}):
            output = fmt.format(_make_record(logging.INFO))

        assert "\033[" not in output

    def test_no_color_when_stream_not_tty(self):
        fmt = ColoredFormatter("%(levelname)s | %(message)s", stream=StringIO())

        output = fmt.format(_make_record(logging.ERROR))

        assert "\033[" not in output

    def test_defaults_to_stderr(self):
        fmt = ColoredFormatter("%(levelname)s")

        with patch("sys.stderr", StringIO()):
            assert fmt._use_color() is False
        with patch("sys.stderr", _tty()), patch.dict("os.environ", {}, clear=True):
            assert fmt._use_color() is True

    def test_original_record_not_mutated(self):
        fmt = ColoredFormatter("%(levelname)s | %(message)s", stream=_tty())
        record = _make_record(logging.WARNING)

        fmt.format(record)

        assert record.levelname == "WARNING"

    def test_message_preserved(self):
        fmt = ColoredFormatter("%(levelname)s | %(message)s", stream=_tty())

        output = fmt.format(_make_record(logging.INFO, "queued entry 3"))

        plain = output.replace(LEVEL_COLORS[logging.INFO], "").replace(RESET, "")
        assert plain == "INFO | queued entry 3"
