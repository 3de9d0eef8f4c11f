"""Tests for the numeric logging level system and formatters."""
from __future__ import annotations

import json
import logging

import pytest


@pytest.fixture
def restore_level():
    from phonos_ms.core.logging import get_level, set_level

    saved = get_level()
    yield
    set_level(saved)


class TestLogLevel:

    def test_enum_values(self):
        from phonos_ms.core.logging import LogLevel

        assert LogLevel.MINIMAL == 1
        assert LogLevel.NORMAL == 2
        assert LogLevel.VERBOSE == 3
        assert LogLevel.DEBUG == 4

    @pytest.mark.parametrize(
        "value,expected",
        [
            (1, 1), (4, 4),
            ("minimal", 1), ("VERBOSE", 3), ("trace", 4), ("3", 3),
            ("WARNING", 1), ("INFO", 2),
            (logging.WARNING, 1), (logging.INFO, 2), (logging.DEBUG, 4),
            ("nonsense", 2), (None, 2),
        ],
    )
    def test_coerce_level(self, value, expected):
        from phonos_ms.core.logging import coerce_level

        assert coerce_level(value) == expected


class TestGating:

    def test_verbose_suppressed_at_normal(self, caplog, restore_level):
        from phonos_ms.core.logging import LogLevel, get_logger, info, set_level, verbose

        set_level(LogLevel.NORMAL)
        log = get_logger("phonos-ms.test")
        with caplog.at_level(1):
            verbose(log, "hidden_event")
            info(log, "shown_event")

        messages = [r.getMessage() for r in caplog.records]
        assert "shown_event" in messages
        assert "hidden_event" not in messages

    def test_fields_attached(self, caplog, restore_level):
        from phonos_ms.core.logging import LogLevel, get_logger, set_level, set_request_id, warn

        set_level(LogLevel.NORMAL)
        set_request_id("rid-123")
        log = get_logger("phonos-ms.test")
        with caplog.at_level(1):
            warn(log, "expiry_refresh_failed", file="a.mp3", seconds=0.5, event="expiry")
        set_request_id("-")

        record = caplog.records[-1]
        assert record.tag == "WARN"
        assert record.request_id == "rid-123"
        assert record.seconds == 0.5
        assert record.event == "expiry"
        assert record.extra_data == {"file": "a.mp3"}


class TestFormatters:

    def _record(self, **extra):
        record = logging.LogRecord("phonos-ms.test", logging.INFO, __file__, 1, "persisted", None, None)
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_jsonl(self):
        from phonos_ms.core.logging import JsonlFormatter

        line = JsonlFormatter().format(self._record(
            tag="INFO", numeric_level=2, request_id="abc", seconds=0.25,
            event=None, extra_data={"file": "a.mp3", "bytes": 10},
        ))
        payload = json.loads(line)
        assert payload["message"] == "persisted"
        assert payload["tag"] == "INFO"
        assert payload["level"] == 2
        assert payload["request_id"] == "abc"
        assert payload["seconds"] == 0.25
        assert payload["extra"] == {"file": "a.mp3", "bytes": 10}
        assert "event" not in payload

    def test_console_without_colors(self, monkeypatch):
        import phonos_ms.core.logging as log_module
        from phonos_ms.core.logging import ColoredConsoleFormatter

        monkeypatch.setattr(log_module, "_USE_COLORS", False)
        line = ColoredConsoleFormatter().format(self._record(
            tag="INFO", request_id="abc", seconds=0.012, event=None, extra_data={"file": "a.mp3"},
        ))
        assert "\033[" not in line
        assert "(abc) persisted file=a.mp3 0.012s" in line

    def test_console_with_colors(self, monkeypatch):
        import phonos_ms.core.logging as log_module
        from phonos_ms.core.logging import ColoredConsoleFormatter

        monkeypatch.setattr(log_module, "_USE_COLORS", True)
        line = ColoredConsoleFormatter().format(self._record(tag="ERROR", request_id="-"))
        assert "\033[" in line
        assert "persisted" in line


class TestFileHandler:

    def test_jsonl_file_written(self, tmp_path, monkeypatch, restore_level):
        from phonos_ms.core.logging import configure_logging, get_logger, info

        monkeypatch.setenv("PHONOS_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("PHONOS_LOG_LEVEL", "2")
        configure_logging(force=True)
        try:
            info(get_logger("phonos-ms.test"), "file_event", n=1)
            for handler in logging.getLogger().handlers:
                handler.flush()

            lines = (tmp_path / "phonos-ms.jsonl").read_text(encoding="utf-8").splitlines()
            payload = json.loads(lines[-1])
            assert payload["message"] == "file_event"
            assert payload["extra"] == {"n": 1}
        finally:
            monkeypatch.delenv("PHONOS_LOG_DIR")
            configure_logging(force=True)
