# housecall/core/logging.py
"""
Structured logging with correlation IDs for API requests.
"""
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from fastapi import Request

# Correlation context
request_id: ContextVar[str] = ContextVar("request_id", default="")


class TruncatingProcessor:
    """Keep log lines short; long free-text answers are clipped."""

    def __init__(self, max_length: int = 200):
        self.max_length = max_length

    def __call__(self, logger, method_name, event_dict):
        for key in ("message", "error", "address"):
            if key in event_dict and event_dict[key] is not None:
                event_dict[key] = str(event_dict[key])[:self.max_length]
        return event_dict


class CorrelationProcessor:
    """Add the request correlation ID to all logs."""

    def __call__(self, logger, method_name, event_dict):
        correlation_id = request_id.get("")
        if correlation_id:
            event_dict["correlation_id"] = correlation_id
        return event_dict


def setup_logging(debug: bool = False, max_log_length: int = 200):
    """Configure structured logging for the application."""
    processors = [
        structlog.stdlib.filter_by_level,
        CorrelationProcessor(),
        TruncatingProcessor(max_length=max_log_length),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=logging.INFO if not debug else logging.DEBUG,
        format="%(message)s",
    )


def get_logger(name: str = __name__):
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: str):
    request_id.set(correlation_id)


def clear_context():
    request_id.set("")


class LoggingMiddleware:
    """FastAPI middleware for request logging with correlation IDs."""

    def __init__(self, log_requests: bool = False, log_responses: bool = False):
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.logger = get_logger("middleware")

    async def __call__(self, request: Request, call_next):
        correlation_id = str(uuid.uuid4())[:8]
        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        start_time = datetime.now(timezone.utc)

        if self.log_requests:
            self.logger.info(
                "request_start",
                path=request.url.path,
                method=request.method,
            )

        try:
            response = await call_next(request)
            duration = (datetime.now(timezone.utc) - start_time).total_seconds()

            if self.log_responses or duration > 2.0 or response.status_code >= 400:
                self.logger.info(
                    "request_complete",
                    path=request.url.path,
                    status_code=response.status_code,
                    duration=round(duration, 3),
                    slow=duration > 2.0,
                )

            return response

        except Exception as e:
            duration = (datetime.now(timezone.utc) - start_time).total_seconds()
            self.logger.error(
                "request_error",
                error=str(e),
                duration=round(duration, 3),
                error_type=type(e).__name__,
            )
            raise
        finally:
            clear_context()
