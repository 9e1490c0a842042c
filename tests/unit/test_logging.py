"""Unit tests for structured logging."""

import json
import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from stlpreview.core.config import LoggingConfig
from stlpreview.processing.decoder import DecodeStats, StlFormat
from stlpreview.utils.logging import (
    LOG_FILE_NAME,
    StructuredLogger,
    get_logger,
    log_conversion_result,
    log_decode_stats,
    log_performance,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_logging():
    """Put the quiet test configuration back after each test."""
    yield
    setup_logging(LoggingConfig(level="WARNING", colorize=False))


@pytest.fixture
def clean_stats() -> DecodeStats:
    return DecodeStats(StlFormat.BINARY, total=12, valid=12)


@pytest.fixture
def dirty_stats() -> DecodeStats:
    return DecodeStats(StlFormat.ASCII, total=15, valid=12, degenerate=2, incomplete=1)


@pytest.fixture
def converted_box(clean_stats: DecodeStats) -> MagicMock:
    """Stand-in for a successful ConversionResult."""
    result = MagicMock()
    result.success = True
    result.input_path = Path("/parts/box.stl")
    result.output_path = Path("/parts/box.obj")
    result.vertex_count = 8
    result.face_count = 12
    result.stats = clean_stats
    result.error = None
    return result


class TestSetupLogging:
    """Test handler and renderer configuration."""

    @pytest.mark.parametrize("fmt", ["json", "console", "plain"])
    def test_each_format(self, fmt):
        logger = setup_logging(LoggingConfig(format=fmt, add_caller_info=True))

        assert hasattr(logger, "info")
        assert hasattr(logger, "warning")

    def test_console_goes_to_stderr(self):
        setup_logging(LoggingConfig())

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr

    def test_file_handler_writes_json(self, tmp_path):
        log_file = tmp_path / "run.log"

        setup_logging(LoggingConfig(level="INFO", format="plain"), log_file=log_file)
        logging.getLogger("stlpreview.test").info("file message")
        for handler in logging.getLogger().handlers:
            handler.flush()

        record = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert record["event"] == "file message"
        assert record["level"] == "info"
        assert record["logger"] == "stlpreview.test"

    def test_log_dir_creates_default_file(self, tmp_path):
        setup_logging(LoggingConfig(log_dir=tmp_path / "logs", log_to_file=True))

        assert (tmp_path / "logs" / LOG_FILE_NAME).exists()
        assert len(logging.getLogger().handlers) == 2

    def test_log_dir_ignored_without_flag(self, tmp_path):
        setup_logging(LoggingConfig(log_dir=tmp_path / "logs"))

        assert not (tmp_path / "logs").exists()

    @pytest.mark.parametrize(
        "level, expected",
        [("DEBUG", logging.DEBUG), ("INFO", logging.INFO), ("ERROR", logging.ERROR)],
    )
    def test_root_level(self, level, expected):
        setup_logging(LoggingConfig(level=level))

        assert logging.getLogger().level == expected

    def test_libraries_stay_at_warning(self):
        setup_logging(LoggingConfig(level="DEBUG"))

        assert logging.getLogger("trimesh").level == logging.WARNING
        assert logging.getLogger("numpy").level == logging.WARNING

    def test_get_logger(self):
        logger = get_logger("stlpreview.module")

        assert hasattr(logger, "debug")


class TestLogHelpers:
    """Test the event helpers."""

    def test_log_performance(self):
        logger = get_logger("test")

        with patch.object(logger, "info") as mock_info:
            log_performance(logger, "inspect", 0.25, faces=12)

        mock_info.assert_called_once_with(
            "performance", operation="inspect", duration_ms=250.0, faces=12
        )

    def test_decode_stats_info_when_clean(self, clean_stats):
        logger = get_logger("test")

        with patch.object(logger, "info") as mock_info, patch.object(
            logger, "warning"
        ) as mock_warning:
            log_decode_stats(logger, clean_stats, size=684)

        mock_warning.assert_not_called()
        event, fields = mock_info.call_args[0][0], mock_info.call_args[1]
        assert event == "stl_decoded"
        assert fields["size"] == 684
        assert fields["format"] == "binary"
        assert fields["valid"] == 12

    def test_decode_stats_warning_when_dropped(self, dirty_stats):
        logger = get_logger("test")

        with patch.object(logger, "warning") as mock_warning:
            log_decode_stats(logger, dirty_stats)

        fields = mock_warning.call_args[1]
        assert mock_warning.call_args[0][0] == "stl_decoded"
        assert fields["dropped"] == 3
        assert fields["incomplete"] == 1

    def test_conversion_success(self, converted_box):
        logger = get_logger("test")

        with patch.object(logger, "info") as mock_info:
            log_conversion_result(logger, converted_box)

        mock_info.assert_called_once()
        fields = mock_info.call_args[1]
        assert mock_info.call_args[0][0] == "conversion_success"
        assert fields["input_file"] == str(Path("/parts/box.stl"))
        assert fields["output_file"] == str(Path("/parts/box.obj"))
        assert fields["vertices"] == 8
        assert fields["faces"] == 12
        assert fields["total"] == 12

    def test_conversion_empty_model(self, converted_box, dirty_stats):
        converted_box.success = False
        converted_box.output_path = None
        converted_box.stats = dirty_stats
        converted_box.error = "no model available"
        logger = get_logger("test")

        with patch.object(logger, "error") as mock_error:
            log_conversion_result(logger, converted_box)

        fields = mock_error.call_args[1]
        assert mock_error.call_args[0][0] == "conversion_failed"
        assert fields["error"] == "no model available"
        assert fields["degenerate"] == 2

    def test_conversion_unreadable_file(self, converted_box):
        converted_box.success = False
        converted_box.stats = None
        converted_box.error = "File does not exist"
        logger = get_logger("test")

        with patch.object(logger, "error") as mock_error:
            log_conversion_result(logger, converted_box)

        assert "total" not in mock_error.call_args[1]


class TestStructuredLogger:
    """Test the operation context manager."""

    def test_started_and_completed(self):
        logger = get_logger("test")

        with patch.object(logger, "info") as mock_info:
            with StructuredLogger(logger, "batch_conversion", files=3) as ctx:
                ctx.update_context(succeeded=3)

        assert [c[0][0] for c in mock_info.call_args_list] == [
            "batch_conversion_started",
            "batch_conversion_completed",
        ]
        assert mock_info.call_args_list[0][1] == {"files": 3}
        completed = mock_info.call_args_list[1][1]
        assert completed["succeeded"] == 3
        assert completed["duration_ms"] >= 0

    def test_failed_reraises(self):
        logger = get_logger("test")

        with patch.object(logger, "info") as mock_info, patch.object(
            logger, "error"
        ) as mock_error:
            with pytest.raises(OSError):
                with StructuredLogger(logger, "batch_conversion"):
                    raise OSError("disk full")

        assert mock_info.call_count == 1
        failed = mock_error.call_args[1]
        assert mock_error.call_args[0][0] == "batch_conversion_failed"
        assert failed["error"] == "disk full"
        assert failed["error_type"] == "OSError"
        assert "duration_ms" in failed

    def test_update_context_overrides(self):
        logger = get_logger("test")

        with StructuredLogger(logger, "inspect", path="a.stl") as ctx:
            ctx.update_context(path="b.stl", faces=1)

            assert ctx.context == {"path": "b.stl", "faces": 1}
