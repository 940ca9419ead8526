"""
Device Logger - FastAPI Application
Accepts browser telemetry, enriches it with request metadata and appends
one visit log entry per request.
"""

import sys
from typing import Optional
from contextlib import asynccontextmanager
import orjson
import structlog
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import HTMLResponse, Response
from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from starlette.exceptions import HTTPException as StarletteHTTPException

from client_ip import IpHasher
from landing import render_landing_page
from log_entry import EventType, LogEntry, RequestInfo, build_log_entry
from schemas import TelemetryProfile, TelemetryValidationError, validate_telemetry
from utils import RequestContextMiddleware, configure_logging, error_response
from visit_log import VisitLogSink

logger = structlog.get_logger()

VERSION = "0.1.0"


class Settings(BaseSettings):
    """Application settings from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", frozen=True)

    ip_hash_salt: SecretStr
    log_to_file: bool = True
    log_dir: str = "data/logs"
    log_text_format: bool = True
    consent_required: bool = False
    telemetry_schema: TelemetryProfile = TelemetryProfile.RICH
    max_body_bytes: int = Field(default=10 * 1024, gt=0)

    host: str = "0.0.0.0"
    port: int = 10000
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL|debug|info|warning|error|critical)$")

    @field_validator("ip_hash_salt")
    @classmethod
    def _salt_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("IP_HASH_SALT must not be empty")
        return value


def declared_length(request: Request) -> int:
    """Content-Length as sent, or 0 when absent or unparsable (chunked bodies)."""
    try:
        return int(request.headers.get("content-length", "0"))
    except ValueError:
        return 0


def create_app(settings: Settings, sink: Optional[VisitLogSink] = None) -> FastAPI:
    """
    Build the application for one immutable settings object.

    The sink is created here when not supplied, which creates the log
    directory; an OSError from that propagates to the caller.
    """
    hasher = IpHasher(settings.ip_hash_salt.get_secret_value())
    if sink is None:
        sink = VisitLogSink(
            log_dir=settings.log_dir,
            log_to_file=settings.log_to_file,
            text_format=settings.log_text_format
        )
    landing_html = render_landing_page(settings.consent_required, settings.telemetry_schema)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "service_startup",
            version=VERSION,
            telemetry_schema=settings.telemetry_schema.value,
            log_to_file=settings.log_to_file,
            log_dir=settings.log_dir
        )
        yield
        logger.info("service_shutdown")

    app = FastAPI(
        title="Device Logger",
        description="Device telemetry ingestion and visit logging",
        version=VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None
    )
    app.state.settings = settings
    app.state.hasher = hasher
    app.state.sink = sink

    app.add_middleware(RequestContextMiddleware)

    def persist_entry(entry: LogEntry) -> None:
        """Background task: never lets a sink failure escape."""
        try:
            sink.record(entry)
        except Exception as e:
            logger.error("visit_log_failed", entry_event=entry.event, error=str(e), error_type=type(e).__name__)

    def payload_too_large():
        return error_response(
            413,
            "payload_too_large",
            "Payload too large",
            {"max_bytes": settings.max_body_bytes}
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(404, "not_found", "Not Found")
        if exc.status_code == 405:
            return error_response(405, "method_not_allowed", "Method Not Allowed")
        return error_response(exc.status_code, "http_error", "Request failed")

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error("unhandled_error", error_type=type(exc).__name__, exc_info=exc)
        return error_response(500, "internal_error", "Internal Server Error")

    @app.get("/healthz")
    async def healthz():
        """Liveness probe. Not logged."""
        return {"status": "ok"}

    @app.get("/", response_class=HTMLResponse)
    async def landing(request: Request, background_tasks: BackgroundTasks):
        """Serve the landing page and record a page view after the response."""
        try:
            entry = build_log_entry(RequestInfo.from_request(request), hasher, EventType.PAGEVIEW)
        except Exception as e:
            logger.error("pageview_log_failed", error=str(e), error_type=type(e).__name__)
        else:
            background_tasks.add_task(persist_entry, entry)
        return HTMLResponse(landing_html)

    @app.post("/api/telemetry", status_code=204)
    async def telemetry(request: Request, background_tasks: BackgroundTasks):
        """Validate a telemetry submission and record it after the response."""
        try:
            if declared_length(request) > settings.max_body_bytes:
                return payload_too_large()

            body = await request.body()
            if len(body) > settings.max_body_bytes:
                return payload_too_large()

            try:
                payload = orjson.loads(body)
            except orjson.JSONDecodeError:
                logger.warning("telemetry_rejected", reason="malformed_json")
                return error_response(
                    400,
                    "invalid_payload",
                    "Invalid payload",
                    {"issues": [{"path": "", "message": "Body is not valid JSON", "type": "json_invalid"}]}
                )

            telemetry_payload = validate_telemetry(payload, settings.telemetry_schema)
            entry = build_log_entry(
                RequestInfo.from_request(request),
                hasher,
                EventType.TELEMETRY,
                telemetry=telemetry_payload
            )
            background_tasks.add_task(persist_entry, entry)
            return Response(status_code=204)

        except TelemetryValidationError as e:
            logger.warning("telemetry_rejected", reason="schema", issues=e.report())
            return error_response(400, "invalid_payload", "Invalid payload", {"issues": e.report()})

        except Exception as e:
            logger.error("telemetry_failed", error_type=type(e).__name__, exc_info=e)
            return error_response(500, "internal_error", "Internal Server Error")

    return app


def main() -> None:
    """Load settings, prepare the log directory and serve. Exits 1 on bad configuration."""
    import uvicorn

    configure_logging()
    try:
        settings = Settings()
    except ValidationError as e:
        logger.critical(
            "fatal_configuration_error",
            errors=[
                {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                for err in e.errors(include_url=False)
            ]
        )
        sys.exit(1)

    configure_logging(settings.log_level)
    try:
        sink = VisitLogSink(
            log_dir=settings.log_dir,
            log_to_file=settings.log_to_file,
            text_format=settings.log_text_format
        )
    except OSError as e:
        logger.critical("log_directory_unavailable", log_dir=settings.log_dir, error=str(e))
        sys.exit(1)

    app = create_app(settings, sink=sink)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False
    )


if __name__ == "__main__":
    main()
