"""
User-agent classification.

Browser, OS and device vendor/model come from the uap-core regexes shipped
with ua-parser. Rendering engine, CPU architecture and device type are not
part of uap-core, so they are read from well-known tokens in the raw string.
"""

import re
from typing import Dict, List, Optional, Tuple

import ua_parser

UNKNOWN_FAMILY = "Other"

# (pattern, engine name); first match wins, version taken from group 1
_ENGINE_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"Trident/([\w.]+)", re.IGNORECASE), "Trident"),
    (re.compile(r"\bEdge/([\w.]+)", re.IGNORECASE), "EdgeHTML"),
    (re.compile(r"Presto/([\w.]+)", re.IGNORECASE), "Presto"),
    (re.compile(r"AppleWebKit/[\w.]+.*?\b(?:Chrome|Chromium|HeadlessChrome)/([\w.]+)", re.IGNORECASE), "Blink"),
    (re.compile(r"AppleWebKit/([\w.]+)", re.IGNORECASE), "WebKit"),
    (re.compile(r"rv:([\w.]+)\).*?\bGecko/\d", re.IGNORECASE), "Gecko"),
]

_CPU_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\b(?:x86_64|x86-64|x64|win64|wow64|amd64)\b", re.IGNORECASE), "amd64"),
    (re.compile(r"\b(?:aarch64|arm64|armv8)", re.IGNORECASE), "arm64"),
    (re.compile(r"\b(?:armv7|armhf)", re.IGNORECASE), "armhf"),
    (re.compile(r"\barm", re.IGNORECASE), "arm"),
    (re.compile(r"\b(?:i[3-6]86|x86|ia32)\b", re.IGNORECASE), "ia32"),
    (re.compile(r"\b(?:ppc64|powerpc64)", re.IGNORECASE), "ppc64"),
    (re.compile(r"\b(?:ppc|powerpc)", re.IGNORECASE), "ppc"),
    (re.compile(r"\bsparc", re.IGNORECASE), "sparc"),
]

_DEVICE_TYPE_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"PlayStation|Xbox|Nintendo", re.IGNORECASE), "console"),
    (re.compile(r"Smart-?TV|HbbTV|AppleTV|GoogleTV|BRAVIA|Web0S|Tizen.+\bTV\b", re.IGNORECASE), "smarttv"),
    (re.compile(r"\bWatch\b|Wear ?OS", re.IGNORECASE), "wearable"),
    (re.compile(r"iPad|Tablet|Kindle|Silk/|PlayBook|Android(?!.*Mobi)", re.IGNORECASE), "tablet"),
    (re.compile(r"Mobi|iPhone|iPod|Windows Phone|BlackBerry|Opera Mini", re.IGNORECASE), "mobile"),
]


def _empty_result() -> Dict[str, Dict[str, str]]:
    return {"browser": {}, "engine": {}, "os": {}, "device": {}, "cpu": {}}


def _join_version(*parts: Optional[str]) -> Optional[str]:
    """Join leading non-empty version components ("17", "1", None) -> "17.1"."""
    present = []
    for part in parts:
        if not part:
            break
        present.append(part)
    return ".".join(present) or None


def _first_match(patterns: List[Tuple[re.Pattern, str]], raw: str) -> Tuple[Optional[str], Optional[str]]:
    for pattern, name in patterns:
        match = pattern.search(raw)
        if match:
            version = match.group(1) if pattern.groups else None
            return name, version
    return None, None


def _known(family: Optional[str]) -> bool:
    return bool(family) and family != UNKNOWN_FAMILY


def classify_user_agent(raw: Optional[str]) -> Dict[str, Dict[str, str]]:
    """
    Parse a raw User-Agent header into browser/engine/os/device/cpu mappings.

    Unrecognized members are omitted rather than null-filled, and the raw
    string itself is not part of the result.
    """
    result = _empty_result()
    if not raw or not raw.strip():
        return result

    parsed = ua_parser.parse(raw)

    browser = parsed.user_agent
    if browser is not None and _known(browser.family):
        result["browser"]["name"] = browser.family
        version = _join_version(browser.major, browser.minor, browser.patch)
        if version:
            result["browser"]["version"] = version
        if browser.major:
            result["browser"]["major"] = browser.major

    engine_name, engine_version = _first_match(_ENGINE_PATTERNS, raw)
    if engine_name:
        result["engine"]["name"] = engine_name
        if engine_version:
            result["engine"]["version"] = engine_version

    os_info = parsed.os
    if os_info is not None and _known(os_info.family):
        result["os"]["name"] = os_info.family
        version = _join_version(os_info.major, os_info.minor, os_info.patch)
        if version:
            result["os"]["version"] = version

    device = parsed.device
    if device is not None and _known(device.family):
        if device.brand:
            result["device"]["vendor"] = device.brand
        if device.model:
            result["device"]["model"] = device.model
    device_type, _ = _first_match(_DEVICE_TYPE_PATTERNS, raw)
    if device_type:
        result["device"]["type"] = device_type

    architecture, _ = _first_match(_CPU_PATTERNS, raw)
    if architecture:
        result["cpu"]["architecture"] = architecture

    return result
