"""
Logging configuration and structured event helpers.

Console output always; in production/staging errors and the combined stream
are also written to daily-rotated files under ./logs.
"""
import logging
import time
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

SERVICE_NAME = "template-backend"
LOGS_DIR = Path("./logs")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(service)s %(environment)s %(type)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

logger = logging.getLogger(SERVICE_NAME)

# Set by configure_logging so helpers can tag events without holding settings
_environment = "development"


class EventFieldsFilter(logging.Filter):
    """Fill in type/service/environment for records logged without them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "type"):
            record.type = "app"
        if not hasattr(record, "service"):
            record.service = SERVICE_NAME
        if not hasattr(record, "environment"):
            record.environment = _environment
        return True


def configure_logging(settings) -> logging.Logger:
    """Configure the root logger from settings. Safe to call more than once."""
    global _environment
    _environment = settings.env

    root = logging.getLogger()
    root.setLevel(LEVELS[settings.log_level])
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    for handler in list(root.handlers):
        if getattr(handler, "_template_backend", False):
            root.removeHandler(handler)
            handler.close()

    handlers = [logging.StreamHandler()]

    if settings.env in ("production", "staging"):
        LOGS_DIR.mkdir(exist_ok=True)
        error_handler = TimedRotatingFileHandler(LOGS_DIR / "error.log", when="midnight", backupCount=30)
        error_handler.setLevel(logging.ERROR)
        handlers.append(error_handler)
        handlers.append(TimedRotatingFileHandler(LOGS_DIR / "combined.log", when="midnight", backupCount=14))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(EventFieldsFilter())
        handler._template_backend = True
        root.addHandler(handler)

    return logger


def _extra(event_type: str, **fields) -> dict:
    return {"type": event_type, "service": SERVICE_NAME, "environment": _environment, **fields}


def log_request(method: str, path: str, status_code: int, duration_ms: float) -> None:
    logger.info(
        f"{method} {path} {status_code} {duration_ms:.1f}ms",
        extra=_extra("request", method=method, path=path, status_code=status_code, duration_ms=duration_ms),
    )


def log_auth_event(event: str, user_id, success: bool, **details) -> None:
    logger.info(
        f"Auth event {event} user={user_id} success={success}",
        extra=_extra("auth", event=event, user_id=user_id, success=success, details=details),
    )


def log_security_event(event: str, severity: str, **details) -> None:
    logger.warning(
        f"Security event {event} severity={severity}",
        extra=_extra("security", event=event, severity=severity, details=details),
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """HTTP access log: one line per request with status and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        log_request(request.method, request.url.path, response.status_code, duration_ms)
        return response
