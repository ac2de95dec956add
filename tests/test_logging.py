"""
Tests for structured logging
"""

import json
import logging

import pytest

from buildtrace.logging import (
    BuildTraceLogger,
    ConsoleFormatter,
    LogContext,
    StructuredFormatter,
    get_current_log_context,
    get_logger,
    log_context,
)


def make_record(msg="Segmenting", level=logging.INFO, **extra_fields):
    record = logging.LogRecord("buildtrace", level, __file__, 1, msg, (), None)
    if extra_fields:
        record.extra_fields = extra_fields
    return record


class TestLogContext:
    """Tests for context propagation"""

    def test_to_dict_skips_empty(self):
        assert LogContext(game_id=0, scenario="house").to_dict() == {"game_id": 0, "scenario": "house"}

    def test_merge_prefers_other(self):
        merged = LogContext(game_id=1, scenario="house").merge(LogContext(pass_state="normal"))
        assert merged.game_id == 1
        assert merged.scenario == "house"
        assert merged.pass_state == "normal"

    def test_nested_context(self):
        with log_context(game_id=5, scenario="bridge"):
            with log_context(pass_state="ignore_destroy"):
                context = get_current_log_context()
                assert context.game_id == 5
                assert context.pass_state == "ignore_destroy"
            assert get_current_log_context().pass_state is None
        assert get_current_log_context().game_id is None


class TestFormatters:
    """Tests for log formatters"""

    def test_structured_formatter(self):
        with log_context(game_id=3):
            line = StructuredFormatter().format(make_record(unresolved=[1]))
        entry = json.loads(line)
        assert entry["level"] == "INFO"
        assert entry["message"] == "Segmenting"
        assert entry["context"] == {"game_id": 3}
        assert entry["unresolved"] == [1]
        assert entry["timestamp"].endswith("Z")

    def test_debug_includes_source(self):
        entry = json.loads(StructuredFormatter().format(make_record(level=logging.DEBUG)))
        assert "source" in entry

    def test_console_formatter(self):
        with log_context(game_id=3, pass_state="normal"):
            line = ConsoleFormatter(use_colors=False).format(make_record())
        assert "INFO" in line
        assert "Segmenting [game=3, pass=normal]" in line


class TestBuildTraceLogger:
    """Tests for the logger wrapper"""

    def test_json_file_output(self, tmp_path):
        log_file = tmp_path / "analysis.log"
        logger = BuildTraceLogger("buildtrace.test")
        logger.configure(level="DEBUG", format="json", log_file=log_file)
        with log_context(game_id=9):
            logger.warning("Goals unresolved", unresolved=[2])
        logger._logger.handlers[-1].flush()

        entry = json.loads(log_file.read_text().splitlines()[-1])
        assert entry["message"] == "Goals unresolved"
        assert entry["unresolved"] == [2]
        assert entry["context"]["game_id"] == 9

    def test_level_filters(self, tmp_path):
        log_file = tmp_path / "analysis.log"
        logger = BuildTraceLogger("buildtrace.test.level")
        logger.configure(level="ERROR", log_file=log_file)
        logger.info("hidden")
        logger.error("shown")
        assert "hidden" not in log_file.read_text()
        assert "shown" in log_file.read_text()

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            BuildTraceLogger("buildtrace.test.unknown").configure(level="VERBOSE")

    def test_timed(self, tmp_path):
        log_file = tmp_path / "analysis.log"
        logger = BuildTraceLogger("buildtrace.test.timed")
        logger.configure(level="DEBUG", log_file=log_file)
        with logger.timed("segmentation"):
            pass
        entries = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert entries[-1]["message"] == "Completed: segmentation"
        assert "duration_ms" in entries[-1]

    def test_get_logger_is_shared(self):
        assert get_logger() is get_logger()
