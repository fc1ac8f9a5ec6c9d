"""
Structured Logging Configuration with structlog

Outputs JSON logs (or colored console logs in development).
Every log includes: version, timestamp and, when set, symbol_id and stage.
"""

import sys
import time
import logging
import structlog
from typing import Optional, Any, Dict
from datetime import datetime
from contextvars import ContextVar
from functools import wraps

# Context variables for invocation-scoped logging
symbol_id_var: ContextVar[Optional[str]] = ContextVar("symbol_id", default=None)
stage_var: ContextVar[Optional[str]] = ContextVar("stage", default=None)

# Application version
APP_VERSION = "1.0.0"


def add_app_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add application context to every log entry."""
    event_dict["version"] = APP_VERSION

    symbol_id = symbol_id_var.get()
    if symbol_id:
        event_dict.setdefault("symbol_id", symbol_id)

    stage = stage_var.get()
    if stage:
        event_dict.setdefault("stage", stage)

    return event_dict


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add ISO format timestamp."""
    event_dict["timestamp"] = datetime.utcnow().isoformat() + "Z"
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = True,
):
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON; if False, output colored console logs
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Silence noisy loggers
    logging.getLogger("PIL").setLevel(logging.WARNING)

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_timestamp,
            add_app_context,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.UnicodeDecoder(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class LogContext:
    """
    Context manager for setting logging context.

    Usage:
        with LogContext(symbol_id="wild", stage="cleanup"):
            logger.info("pass_started")
    """

    def __init__(self, symbol_id: Optional[str] = None, stage: Optional[str] = None):
        self.symbol_id = symbol_id
        self.stage = stage
        self._symbol_id_token = None
        self._stage_token = None

    def __enter__(self):
        if self.symbol_id:
            self._symbol_id_token = symbol_id_var.set(self.symbol_id)
        if self.stage:
            self._stage_token = stage_var.set(self.stage)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._stage_token:
            stage_var.reset(self._stage_token)
        if self._symbol_id_token:
            symbol_id_var.reset(self._symbol_id_token)
        return False

    def set_stage(self, stage: str):
        """Update the current stage."""
        if self._stage_token:
            stage_var.reset(self._stage_token)
        self._stage_token = stage_var.set(stage)


def with_logging(stage: str):
    """
    Decorator to wrap a pipeline pass with stage logging.

    Usage:
        @with_logging("denoise")
        def denoise(image: RasterImage) -> RasterImage:
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            token = stage_var.set(stage)

            logger.debug("stage_started", stage=stage)
            start_time = time.perf_counter()

            try:
                result = func(*args, **kwargs)
                duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
                logger.debug(
                    "stage_completed",
                    stage=stage,
                    duration_ms=duration_ms
                )
                return result
            except Exception as e:
                duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
                logger.warning(
                    "stage_failed",
                    stage=stage,
                    duration_ms=duration_ms,
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise
            finally:
                stage_var.reset(token)

        return wrapper

    return decorator
