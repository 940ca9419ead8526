"""
Device Logger Utilities
Shared utilities for logging, request tracking, and error handling.
"""

import sys
import uuid
import logging
import orjson
import structlog
from typing import Dict, Any, Optional
from fastapi.responses import JSONResponse


def _orjson_dumps(obj: Any, **kwargs) -> str:
    return orjson.dumps(obj, **kwargs).decode("utf-8")


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structured operational logging.

    Operational events go to stderr; stdout is reserved for visit-log lines.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(serializer=_orjson_dumps)
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def generate_request_id() -> str:
    """Generate unique request ID."""
    return str(uuid.uuid4())


class RequestContextMiddleware:
    """Middleware to inject request_id into all logs."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            request_id = generate_request_id()
            scope["request_id"] = request_id
            structlog.contextvars.clear_contextvars()
            structlog.contextvars.bind_contextvars(
                request_id=request_id,
                method=scope.get("method"),
                path=scope.get("path")
            )

        await self.app(scope, receive, send)


def error_response(
    status_code: int,
    error_type: str,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """Build standardized error response."""
    content = {
        "error": {
            "type": error_type,
            "message": message,
        }
    }
    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content
    )
