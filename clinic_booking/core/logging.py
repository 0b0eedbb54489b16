"""
Structured logging for the booking API.

Every event logged while a request is in flight carries its correlation id
and route; once the caller is identified it also carries the acting user id
and role, so a rejected booking or a closure cascade can be traced back to
whoever triggered it.
"""
import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional

import structlog
from fastapi import Request

CORRELATION_HEADER = "X-Correlation-Id"

# Free-text fields that can carry patient-typed or admin-typed notes
TRUNCATED_FIELDS = ("message", "error", "note", "closure_message")


@dataclass(frozen=True)
class RequestContext:
    correlation_id: str = ""
    endpoint: Optional[str] = None
    method: Optional[str] = None
    user_id: Optional[int] = None
    role: Optional[str] = None

    def log_fields(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v not in (None, "")}


_request_context: ContextVar[RequestContext] = ContextVar("request_context", default=RequestContext())


def current_context() -> RequestContext:
    return _request_context.get()


def bind_request(correlation_id: str, endpoint: str, method: str) -> None:
    """Start a fresh context for an incoming request."""
    _request_context.set(RequestContext(correlation_id=correlation_id, endpoint=endpoint, method=method))


def bind_actor(user_id: int, role: str) -> None:
    """Attach the authenticated caller, keeping the correlation id and route."""
    _request_context.set(replace(_request_context.get(), user_id=user_id, role=role))


def clear_context() -> None:
    _request_context.set(RequestContext())


def add_request_context(logger, method_name, event_dict):
    for key, value in current_context().log_fields().items():
        event_dict.setdefault(key, value)
    return event_dict


class LengthLimitProcessor:
    """Keep free-text fields short."""

    def __init__(self, max_length: int = 200):
        self.max_length = max_length

    def __call__(self, logger, method_name, event_dict):
        for key in TRUNCATED_FIELDS:
            if event_dict.get(key) is not None:
                event_dict[key] = str(event_dict[key])[:self.max_length]
        return event_dict


def setup_logging(debug: bool = False, max_log_length: int = 200, level: str = "INFO"):
    """Configure structured logging for the application."""
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        add_request_context,
        LengthLimitProcessor(max_length=max_log_length),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
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

    logging.basicConfig(level=log_level, format="%(message)s")


def get_logger(name: str = __name__):
    return structlog.get_logger(name)


def _incoming_correlation_id(request: Request) -> Optional[str]:
    value = (request.headers.get(CORRELATION_HEADER) or "").strip()
    # Upstream ids are reused only when short and printable
    if value and len(value) <= 64 and value.isprintable():
        return value
    return None


class LoggingMiddleware:
    """Correlation ids on every request; slow and failed requests are logged."""

    def __init__(self, log_requests: bool = False, log_responses: bool = False,
                 slow_threshold: float = 2.0):
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.slow_threshold = slow_threshold
        self.logger = get_logger("middleware")

    async def __call__(self, request: Request, call_next):
        correlation_id = _incoming_correlation_id(request) or uuid.uuid4().hex[:8]
        bind_request(correlation_id, request.url.path, request.method)
        request.state.correlation_id = correlation_id
        started = time.perf_counter()

        if self.log_requests:
            self.logger.info("request_start", query_params=dict(request.query_params))

        try:
            try:
                response = await call_next(request)
            except Exception as e:
                self.logger.error(
                    "request_error",
                    error=str(e),
                    error_type=type(e).__name__,
                    duration=round(time.perf_counter() - started, 3),
                )
                raise

            duration = time.perf_counter() - started
            slow = duration > self.slow_threshold
            # 4xx covers every booking rejection; those are worth a line each
            if self.log_responses or slow or response.status_code >= 400:
                self.logger.info(
                    "request_complete",
                    status_code=response.status_code,
                    duration=round(duration, 3),
                    slow=slow,
                )
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        finally:
            clear_context()
