import copy

import pytest

from schemas import TelemetryProfile, TelemetryValidationError, validate_telemetry


def rich_payload():
    return {
        "identifiers": {
            "sessionId": "sess-1",
            "visitorId": "visitor-1",
            "deviceFingerprint": "a" * 64,
            "navigatorFingerprint": "b" * 64,
        },
        "system": {
            "platform": "Win32",
            "hardwareConcurrency": 8,
            "deviceMemory": 8,
            "language": "en-US",
            "languages": ["en-US", "en"],
        },
        "network": {"effectiveType": "4g", "downlink": 10.5, "rtt": 50, "saveData": False},
        "hardware": {
            "screen": {"width": 1920, "height": 1080, "colorDepth": 24},
            "viewport": {"width": 1280, "height": 720},
            "pixelRatio": 1.5,
            "touchSupport": {"maxTouchPoints": 0, "touchEvent": False, "pointerEvent": True},
            "battery": {"charging": True, "level": 0.8},
        },
        "features": {"cookiesEnabled": True, "storageEstimate": {"quota": 1000, "usage": 10}},
        "activityLog": [{"timestamp": "2024-05-01T12:00:00.000Z", "message": "Starting"}],
        "consentGranted": True,
    }


def minimal_payload():
    return {
        "screen": {"width": 390, "height": 844},
        "timezone": "Europe/Paris",
        "platform": "iPhone",
        "language": "fr-FR",
        "consentGranted": True,
    }


def issue_paths(exc_info):
    return [issue["path"] for issue in exc_info.value.report()]


def test_rich_payload_is_returned_unchanged():
    payload = rich_payload()
    snapshot = copy.deepcopy(payload)
    result = validate_telemetry(payload, TelemetryProfile.RICH)
    assert result is payload
    assert result == snapshot


def test_minimal_payload_is_returned_unchanged():
    payload = minimal_payload()
    assert validate_telemetry(payload, "minimal") is payload


def test_unknown_root_key_is_rejected():
    payload = minimal_payload()
    payload["referrer"] = "elsewhere"
    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry(payload, TelemetryProfile.MINIMAL)
    assert "referrer" in issue_paths(exc_info)
    assert exc_info.value.report()[0]["type"] == "extra_forbidden"


def test_unknown_nested_key_is_rejected():
    payload = rich_payload()
    payload["hardware"]["gpu"] = {"vendor": "ACME", "driver": "1.0"}
    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry(payload, TelemetryProfile.RICH)
    assert "hardware.gpu.driver" in issue_paths(exc_info)


def test_bad_field_inside_optional_object_rejects_whole_payload():
    payload = rich_payload()
    payload["hardware"]["battery"]["level"] = 1.5
    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry(payload, TelemetryProfile.RICH)
    assert issue_paths(exc_info) == ["hardware.battery.level"]


def test_values_are_not_coerced():
    payload = minimal_payload()
    payload["screen"]["width"] = "390"
    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry(payload, TelemetryProfile.MINIMAL)
    assert issue_paths(exc_info) == ["screen.width"]


def test_boolean_is_not_accepted_as_integer():
    payload = rich_payload()
    payload["system"]["hardwareConcurrency"] = True
    with pytest.raises(TelemetryValidationError):
        validate_telemetry(payload, TelemetryProfile.RICH)


def test_explicit_null_for_optional_field_is_rejected():
    payload = minimal_payload()
    payload["timezone"] = None
    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry(payload, TelemetryProfile.MINIMAL)
    assert issue_paths(exc_info) == ["timezone"]


def test_bounds_are_enforced():
    payload = rich_payload()
    payload["system"]["hardwareConcurrency"] = 4096
    payload["identifiers"]["sessionId"] = ""
    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry(payload, TelemetryProfile.RICH)
    assert set(issue_paths(exc_info)) == {"system.hardwareConcurrency", "identifiers.sessionId"}


def test_array_limits_and_item_paths():
    payload = rich_payload()
    payload["activityLog"] = [{"timestamp": "t", "message": "m"}] * 3 + [{"timestamp": "t", "message": ""}]
    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry(payload, TelemetryProfile.RICH)
    assert issue_paths(exc_info) == ["activityLog.3.message"]

    payload["activityLog"] = [{"timestamp": "t", "message": "m"}] * 257
    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry(payload, TelemetryProfile.RICH)
    assert issue_paths(exc_info) == ["activityLog"]


def test_empty_object_is_rejected_when_fields_are_required():
    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry({}, TelemetryProfile.MINIMAL)
    assert issue_paths(exc_info) == ["screen"]

    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry({}, TelemetryProfile.RICH)
    assert set(issue_paths(exc_info)) == {"identifiers", "system", "network", "hardware", "features"}


def test_non_object_payload_is_rejected_at_root():
    with pytest.raises(TelemetryValidationError) as exc_info:
        validate_telemetry([1, 2, 3], TelemetryProfile.MINIMAL)
    assert issue_paths(exc_info) == [""]


def test_profiles_are_not_auto_detected():
    with pytest.raises(TelemetryValidationError):
        validate_telemetry(minimal_payload(), TelemetryProfile.RICH)
    with pytest.raises(TelemetryValidationError):
        validate_telemetry(rich_payload(), TelemetryProfile.MINIMAL)
