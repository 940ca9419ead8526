import orjson
import pytest
import structlog

from utils import RequestContextMiddleware, configure_logging, error_response


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.mark.asyncio
async def test_request_context_binds_request_id():
    seen = {}

    async def inner_app(scope, receive, send):
        seen["scope_id"] = scope["request_id"]
        seen["context"] = structlog.contextvars.get_contextvars()

    middleware = RequestContextMiddleware(inner_app)
    await middleware({"type": "http", "method": "POST", "path": "/api/telemetry"}, None, None)

    assert seen["context"]["request_id"] == seen["scope_id"]
    assert seen["context"]["method"] == "POST"
    assert seen["context"]["path"] == "/api/telemetry"


@pytest.mark.asyncio
async def test_request_context_ignores_lifespan_scope():
    seen = {}

    async def inner_app(scope, receive, send):
        seen["scope"] = scope

    await RequestContextMiddleware(inner_app)({"type": "lifespan"}, None, None)

    assert "request_id" not in seen["scope"]


def test_error_response_shape():
    response = error_response(500, "internal_error", "Internal Server Error")
    assert response.status_code == 500
    assert orjson.loads(response.body) == {"error": {"type": "internal_error", "message": "Internal Server Error"}}

    response = error_response(413, "payload_too_large", "Payload too large", {"max_bytes": 10})
    assert orjson.loads(response.body)["error"]["details"] == {"max_bytes": 10}


def test_operational_logs_go_to_stderr_as_json(capsys):
    configure_logging("INFO")
    structlog.get_logger().warning("telemetry_rejected", reason="schema")
    structlog.get_logger().debug("not_shown")

    captured = capsys.readouterr()
    assert captured.out == ""
    lines = captured.err.strip().splitlines()
    assert len(lines) == 1
    record = orjson.loads(lines[0])
    assert record["event"] == "telemetry_rejected"
    assert record["level"] == "warning"
    assert record["reason"] == "schema"
