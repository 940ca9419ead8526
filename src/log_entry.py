"""
Visit log entries.

A LogEntry is built once per request from request metadata plus enrichment
(hashed client IP, parsed user agent) and is frozen afterwards, including
its nested containers.
"""

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, Dict, List, Mapping, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer, field_validator, model_validator
from starlette.requests import Request

from client_ip import IpHasher, resolve_client_ip
from user_agent import classify_user_agent

SELECTED_HEADERS = ("user-agent", "referer", "accept-language")


class EventType(str, Enum):
    """Kinds of visit recorded."""

    PAGEVIEW = "pageview"
    TELEMETRY = "telemetry"


def freeze(value: Any) -> Any:
    """Read-only deep copy: mappings become MappingProxyType, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of freeze, producing plain dicts and lists."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(item) for item in value]
    return value


FrozenHeaders = Annotated[Dict[str, str], AfterValidator(freeze), PlainSerializer(thaw)]
FrozenUserAgent = Annotated[Dict[str, Dict[str, str]], AfterValidator(freeze), PlainSerializer(thaw)]
FrozenTelemetry = Annotated[Dict[str, Any], AfterValidator(freeze), PlainSerializer(thaw)]


class LogEntry(BaseModel):
    """One persisted visit record. Serialized key order follows field order."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True, use_enum_values=True)

    timestamp: str
    method: str
    path: str
    hashed_ip: Optional[str] = Field(alias="hashedIp")
    headers: FrozenHeaders
    user_agent: FrozenUserAgent = Field(alias="userAgent")
    event: EventType
    telemetry: Optional[FrozenTelemetry] = None

    @field_validator("headers")
    @classmethod
    def headers_are_allow_listed(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        unexpected = sorted(set(value) - set(SELECTED_HEADERS))
        if unexpected:
            raise ValueError(f"headers outside the allow-list: {unexpected}")
        return value

    @model_validator(mode="after")
    def freeze_extra_fields(self) -> "LogEntry":
        extra = self.__pydantic_extra__ or {}
        for key, value in extra.items():
            extra[key] = freeze(value)
        return self

    def to_record(self) -> Dict[str, Any]:
        """Plain dict in persisted form; telemetry is omitted when it was never set."""
        return thaw(self.model_dump(by_alias=True, exclude_unset=True))


class RequestInfo(BaseModel):
    """The parts of an inbound request that a log entry is built from."""

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    headers: Dict[str, str] = {}
    forwarded_for: List[str] = []
    remote_addr: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestInfo":
        path = request.url.path
        if request.url.query:
            path = f"{path}?{request.url.query}"
        return cls(
            method=request.method,
            path=path,
            headers=dict(request.headers),
            forwarded_for=request.headers.getlist("x-forwarded-for"),
            remote_addr=request.client.host if request.client else None,
        )


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-05-01T12:00:00.000Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def select_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Copy the allow-listed headers, skipping any that are absent or empty."""
    lowered = {str(key).lower(): value for key, value in headers.items()}
    selected = {}
    for name in SELECTED_HEADERS:
        value = lowered.get(name)
        if value:
            selected[name] = value
    return selected


def build_log_entry(
    request_info: RequestInfo,
    hasher: IpHasher,
    event: EventType,
    telemetry: Optional[Dict[str, Any]] = None,
    **extra: Any
) -> LogEntry:
    """
    Assemble the log entry for one request.

    Args:
        request_info: Method, path, headers and addresses of the request
        hasher: Salted IP hasher built at startup
        event: EventType.PAGEVIEW or EventType.TELEMETRY
        telemetry: Validated payload, embedded as a read-only copy when given
        **extra: Additional fields appended after the core keys

    Raises:
        ValueError: if an extra field collides with a core key
    """
    headers = select_headers(request_info.headers)
    core = {
        "timestamp": utc_timestamp(),
        "method": request_info.method,
        "path": request_info.path,
        "hashedIp": hasher.hash(
            resolve_client_ip(request_info.forwarded_for, request_info.remote_addr)
        ),
        "headers": headers,
        "userAgent": classify_user_agent(headers.get("user-agent")),
        "event": event,
    }
    if telemetry is not None:
        core["telemetry"] = telemetry

    reserved = set(core) | {"telemetry"} | set(LogEntry.model_fields)
    collisions = sorted(reserved.intersection(extra))
    if collisions:
        raise ValueError(f"extra log fields shadow core keys: {collisions}")

    return LogEntry.model_validate({**core, **extra})
