"""Structured logging configuration using structlog."""

import logging
import sys
import time
from pathlib import Path
from typing import Any, List, Optional

import structlog
from structlog.processors import CallsiteParameter
from structlog.typing import Processor

from stlpreview.core.config import LoggingConfig

LOG_FILE_NAME = "stlpreview.log"

# Third-party loggers that are noisy at DEBUG
QUIET_LIBRARIES = ("trimesh", "numpy")


def _shared_processors(config: LoggingConfig) -> List[Processor]:
    """Processors applied to both structlog and foreign stdlib records."""
    processors: List[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=config.timestamp_format),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if config.add_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    CallsiteParameter.FILENAME,
                    CallsiteParameter.LINENO,
                    CallsiteParameter.FUNC_NAME,
                ],
            )
        )
    return processors


def _renderer(config: LoggingConfig, stream: Any) -> Processor:
    if config.format == "json":
        return structlog.processors.JSONRenderer()
    if config.format == "console":
        return structlog.dev.ConsoleRenderer(
            colors=config.colorize and stream.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    return structlog.processors.KeyValueRenderer(
        key_order=["timestamp", "level", "logger", "event"],
        drop_missing=True,
    )


def _formatter(
    shared: List[Processor],
    renderer: Processor,
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def setup_logging(
    config: Optional[LoggingConfig] = None,
    log_file: Optional[Path] = None,
) -> structlog.stdlib.BoundLogger:
    """Route structlog and stdlib logging through one set of handlers.

    Console output goes to stderr so OBJ text piped to stdout stays
    clean. The optional file handler always writes JSON lines.

    Args:
        config: Logging configuration
        log_file: Optional log file path; defaults to
            ``log_dir/stlpreview.log`` when ``log_to_file`` is set

    Returns:
        Configured logger instance
    """
    if config is None:
        config = LoggingConfig()

    if log_file is None and config.log_to_file and config.log_dir is not None:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = config.log_dir / LOG_FILE_NAME

    shared = _shared_processors(config)
    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    stream = sys.stderr
    handler = logging.StreamHandler(stream)
    handler.setFormatter(_formatter(shared, _renderer(config, stream)))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, config.level))

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(_formatter(shared, structlog.processors.JSONRenderer()))
        root_logger.addHandler(file_handler)

    for lib in QUIET_LIBRARIES:
        logging.getLogger(lib).setLevel(logging.WARNING)

    return structlog.get_logger("stlpreview")


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)


def log_performance(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    duration: float,
    **kwargs: Any,
) -> None:
    """Log the duration of an operation in milliseconds.

    Args:
        logger: Logger instance
        operation: Operation name
        duration: Duration in seconds
        **kwargs: Additional metrics
    """
    logger.info(
        "performance",
        operation=operation,
        duration_ms=round(duration * 1000, 2),
        **kwargs,
    )


def log_decode_stats(
    logger: structlog.stdlib.BoundLogger,
    stats: Any,  # DecodeStats
    **context: Any,
) -> None:
    """Log decoder counters, as a warning when any facet was dropped.

    Args:
        logger: Logger instance
        stats: Decoder counters
        **context: Extra fields such as the buffer size
    """
    counters = stats.as_dict()
    dropped = stats.degenerate + stats.invalid + stats.incomplete
    if dropped:
        logger.warning("stl_decoded", dropped=dropped, **context, **counters)
    else:
        logger.info("stl_decoded", **context, **counters)


def log_conversion_result(
    logger: structlog.stdlib.BoundLogger,
    result: Any,  # ConversionResult
) -> None:
    """Log the outcome of one file conversion with its decoder counters.

    Args:
        logger: Logger instance
        result: Conversion result object
    """
    counters = result.stats.as_dict() if result.stats is not None else {}
    if result.success:
        logger.info(
            "conversion_success",
            input_file=str(result.input_path),
            output_file=str(result.output_path),
            vertices=result.vertex_count,
            faces=result.face_count,
            **counters,
        )
    else:
        logger.error(
            "conversion_failed",
            input_file=str(result.input_path),
            error=result.error,
            **counters,
        )


class StructuredLogger:
    """Context manager emitting <operation>_started/_completed/_failed events."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        """Initialize structured logger context.

        Args:
            logger: Logger instance
            operation: Operation name used as the event prefix
            **context: Fields attached to every event
        """
        self.logger = logger
        self.operation = operation
        self.context = context
        self._start_time: Optional[float] = None

    def _elapsed_ms(self) -> float:
        return round((time.perf_counter() - self._start_time) * 1000, 2)

    def __enter__(self) -> "StructuredLogger":
        self._start_time = time.perf_counter()
        self.logger.info(f"{self.operation}_started", **self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.logger.info(
                f"{self.operation}_completed",
                duration_ms=self._elapsed_ms(),
                **self.context,
            )
            return

        self.logger.error(
            f"{self.operation}_failed",
            duration_ms=self._elapsed_ms(),
            error=str(exc_val),
            error_type=exc_type.__name__,
            **self.context,
        )

    def update_context(self, **kwargs: Any) -> None:
        """Add or replace fields attached to the closing event."""
        self.context.update(kwargs)
