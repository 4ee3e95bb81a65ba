"""
Structured logging configuration for the bot.

This module sets up structured logging using the structlog library on top of
the standard library's handlers, so discord.py's own log records and the
bot's structured events end up in the same stdout stream and log file.
"""

import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any, Optional

import structlog
from structlog.contextvars import bind_contextvars, merge_contextvars, unbind_contextvars
from structlog.stdlib import LoggerFactory


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid.uuid4())


def configure_stdlib_logging(
    log_level: int = logging.INFO, log_file: Optional[str] = None
) -> None:
    """Configure standard logging.

    Args:
        log_level: The logging level to use.
        log_file: Optional log file name, written under ``logs/``.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_file:
        os.makedirs("logs", exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join("logs", f"{log_file}.log"),
            encoding="utf-8",
            maxBytes=32 * 1024 * 1024,  # 32 MB
            backupCount=10,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        format="%(message)s", level=log_level, handlers=handlers, force=True
    )
    logging.getLogger("discord").setLevel(log_level)


def configure_structlog(log_format: str = "console") -> None:
    """Configure structlog with processors for formatting and output.

    Args:
        log_format: The format to use for log output. Either "json" or "console".
    """
    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.CallsiteParameterAdder(
            [
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
        # Add context variables (including request_id)
        merge_contextvars,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def init_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_format: str = "console",
) -> structlog.stdlib.BoundLogger:
    """Initialize logging with both stdlib and structlog.

    Returns:
        A structlog logger instance.
    """
    configure_stdlib_logging(log_level, log_file)
    configure_structlog(log_format)
    return structlog.get_logger()


class RequestContext:
    """Context manager for tracking a unit of work with a unique ID.

    The ID is bound into structlog's context variables, so every event logged
    inside the block carries it.

    Example:
        ```python
        async with RequestContext(logger, "verification_sweep"):
            logger.info("links_loaded", count=12)
        ```
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation_name: str,
        request_id: Optional[str] = None,
    ):
        self.logger = logger
        self.operation_name = operation_name
        self.request_id = request_id or generate_request_id()

    def __enter__(self) -> "RequestContext":
        bind_contextvars(request_id=self.request_id)
        self.logger.debug(f"{self.operation_name}_started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.logger.error(
                f"{self.operation_name}_failed",
                error=str(exc_val),
                error_type=exc_type.__name__,
            )
        unbind_contextvars("request_id")

    async def __aenter__(self) -> "RequestContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


class TimingContext:
    """Context manager for timing blocks of code.

    Example:
        ```python
        async with TimingContext(logger, "verification_sweep") as ctx:
            outcomes = await check_all()
            ctx.add_info(checked=len(outcomes))
        ```
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, operation_name: str):
        self.logger = logger
        self.operation_name = operation_name
        self.start_time: float | None = None
        self.additional_info: dict[str, Any] = {}

    def add_info(self, **kwargs: Any) -> None:
        """Add additional information to be logged."""
        self.additional_info.update(kwargs)

    async def __aenter__(self) -> "TimingContext":
        self.start_time = time.monotonic()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        duration = time.monotonic() - self.start_time

        if exc_type is None:
            self.logger.info(
                f"{self.operation_name}_completed",
                duration=round(duration, 3),
                **self.additional_info,
            )
        else:
            self.logger.error(
                f"{self.operation_name}_failed",
                duration=round(duration, 3),
                error=str(exc_val),
                error_type=exc_type.__name__,
                **self.additional_info,
            )
