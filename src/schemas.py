"""
Telemetry payload schemas.

Two payload shapes exist; a deployment picks one at startup via
``TelemetryProfile`` and every submission is checked against that shape only.
All objects are strict: unknown keys are rejected and values are not coerced.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class StrictModel(BaseModel):
    """
    Base for payload objects: no unknown keys, no type coercion.

    Optional members default to None when omitted; an explicit null is
    still rejected because the declared type is not nullable.
    """

    model_config = ConfigDict(extra="forbid", strict=True)


LanguageTag = Annotated[str, Field(min_length=1, max_length=64)]


# ---------------------------------------------------------------------------
# Rich profile
# ---------------------------------------------------------------------------

class Identifiers(StrictModel):
    sessionId: str = Field(min_length=1, max_length=128)
    visitorId: str = Field(min_length=1, max_length=128)
    deviceFingerprint: str = Field(min_length=1, max_length=256)
    navigatorFingerprint: str = Field(min_length=1, max_length=256)


class SystemInfo(StrictModel):
    platform: str = Field(default=None, min_length=1, max_length=128)
    os: str = Field(default=None, min_length=1, max_length=128)
    osVersion: str = Field(default=None, min_length=1, max_length=128)
    architecture: str = Field(default=None, min_length=1, max_length=64)
    hardwareConcurrency: int = Field(default=None, gt=0, le=1024)
    deviceMemory: float = Field(default=None, gt=0, le=4096)
    userAgent: str = Field(default=None, min_length=1, max_length=2048)
    localTime: str = Field(default=None, min_length=1, max_length=128)
    language: str = Field(default=None, min_length=1, max_length=64)
    languages: List[LanguageTag] = Field(default=None, max_length=32)


class NetworkInfo(StrictModel):
    connectionType: str = Field(default=None, min_length=1, max_length=64)
    effectiveType: str = Field(default=None, min_length=1, max_length=64)
    downlink: float = Field(default=None, ge=0, le=10000)
    rtt: float = Field(default=None, ge=0, le=100000)
    saveData: bool = None


class Screen(StrictModel):
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    colorDepth: int = Field(default=None, ge=0)
    pixelDepth: int = Field(default=None, ge=0)


class Viewport(StrictModel):
    width: int = Field(ge=0)
    height: int = Field(ge=0)


class TouchSupport(StrictModel):
    maxTouchPoints: int = Field(ge=0, le=100)
    touchEvent: bool
    pointerEvent: bool


class Gpu(StrictModel):
    vendor: str = Field(default=None, min_length=1, max_length=256)
    renderer: str = Field(default=None, min_length=1, max_length=512)


class Battery(StrictModel):
    charging: bool = None
    chargingTime: float = Field(default=None, ge=0)
    dischargingTime: float = Field(default=None, ge=0)
    level: float = Field(default=None, ge=0, le=1)


class HardwareInfo(StrictModel):
    screen: Screen
    viewport: Viewport = None
    pixelRatio: float = Field(default=None, gt=0, le=10)
    touchSupport: TouchSupport = None
    gpu: Gpu = None
    battery: Battery = None
    audioDevices: int = Field(default=None, ge=0)
    videoDevices: int = Field(default=None, ge=0)


class StorageEstimate(StrictModel):
    quota: float = Field(default=None, ge=0)
    usage: float = Field(default=None, ge=0)


class FeaturesInfo(StrictModel):
    cookiesEnabled: bool = None
    javaScriptEnabled: bool = None
    serviceWorkerStatus: str = Field(default=None, min_length=1, max_length=64)
    mediaDevices: bool = None
    storageEstimate: StorageEstimate = None


class ActivityRecord(StrictModel):
    timestamp: str = Field(min_length=1, max_length=64)
    message: str = Field(min_length=1, max_length=256)


class RichTelemetry(StrictModel):
    """Full device snapshot collected by the landing page."""

    identifiers: Identifiers
    system: SystemInfo
    network: NetworkInfo
    hardware: HardwareInfo
    features: FeaturesInfo
    activityLog: List[ActivityRecord] = Field(default=None, max_length=256)
    consentGranted: bool = None


# ---------------------------------------------------------------------------
# Minimal profile
# ---------------------------------------------------------------------------

class MinimalScreen(StrictModel):
    width: int = Field(ge=0, le=100000)
    height: int = Field(ge=0, le=100000)
    colorDepth: int = Field(default=None, ge=0, le=64)


class MinimalTelemetry(StrictModel):
    """Screen size plus locale hints."""

    screen: MinimalScreen
    timezone: str = Field(default=None, min_length=1, max_length=64)
    platform: str = Field(default=None, min_length=1, max_length=128)
    language: str = Field(default=None, min_length=1, max_length=64)
    languages: List[LanguageTag] = Field(default=None, max_length=32)
    consentGranted: bool = None


class TelemetryProfile(str, Enum):
    """Payload shape accepted by a deployment."""

    RICH = "rich"
    MINIMAL = "minimal"


PROFILE_MODELS: Dict[TelemetryProfile, Type[StrictModel]] = {
    TelemetryProfile.RICH: RichTelemetry,
    TelemetryProfile.MINIMAL: MinimalTelemetry,
}


class ValidationIssue(BaseModel):
    """One violated constraint, addressed by dotted field path."""

    path: str
    message: str
    type: str


class TelemetryValidationError(ValueError):
    """Raised when a payload does not match the active profile."""

    def __init__(self, issues: List[ValidationIssue]):
        self.issues = issues
        super().__init__(f"{len(issues)} telemetry validation issue(s)")

    def report(self) -> List[Dict[str, str]]:
        return [issue.model_dump() for issue in self.issues]


def _issue_path(loc) -> str:
    return ".".join(str(part) for part in loc)


def validate_telemetry(payload: Any, profile: TelemetryProfile) -> Dict[str, Any]:
    """
    Check a decoded payload against the active profile.

    Args:
        payload: Decoded JSON body
        profile: Profile chosen at startup

    Returns:
        The payload object itself, untouched

    Raises:
        TelemetryValidationError: if any field at any depth is invalid
    """
    model = PROFILE_MODELS[TelemetryProfile(profile)]
    try:
        model.model_validate(payload)
    except ValidationError as exc:
        issues = [
            ValidationIssue(
                path=_issue_path(error["loc"]),
                message=error["msg"],
                type=error["type"]
            )
            for error in exc.errors(include_url=False)
        ]
        raise TelemetryValidationError(issues) from exc
    return payload
