"""
Append-only visit log: one JSON line per entry on stdout, plus optional
daily JSONL and human-readable text files keyed by the UTC date.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TextIO

import orjson
import structlog

from log_entry import LogEntry

logger = structlog.get_logger()

TEXT_SEPARATOR = "-----"
_CORE_TEXT_KEYS = ("timestamp", "method", "path", "hashedIp", "headers", "userAgent", "event", "telemetry")


def serialize_entry(entry: LogEntry) -> str:
    """Compact single-line JSON, stable key order."""
    return orjson.dumps(entry.to_record()).decode("utf-8")


def _pretty(value: Any) -> str:
    return orjson.dumps(value, option=orjson.OPT_INDENT_2).decode("utf-8")


def indent_block(text: str, spaces: int = 2) -> str:
    indent = " " * spaces
    return "\n".join(indent + line for line in text.split("\n"))


def format_text_entry(record: Dict[str, Any]) -> str:
    """Render a persisted record as a fixed, diffable text block."""
    lines = []
    lines.append(f"Timestamp: {record.get('timestamp') or 'Unknown'}")

    request_line = " ".join(
        part for part in (record.get("method") or "UNKNOWN", record.get("path") or "") if part
    )
    lines.append(f"Request: {request_line or 'Unavailable'}")
    hashed_ip = record.get("hashedIp")
    lines.append(f"Hashed IP: {hashed_ip if hashed_ip is not None else 'Unavailable'}")

    lines.append("Selected Headers:")
    lines.append(indent_block(_pretty(record.get("headers") or {})))
    lines.append("Parsed User Agent:")
    lines.append(indent_block(_pretty(record.get("userAgent") or {})))

    if record.get("event"):
        lines.append(f"Event: {record['event']}")

    if record.get("telemetry") is not None:
        lines.append("Telemetry Snapshot:")
        lines.append(indent_block(_pretty(record["telemetry"])))

    remaining = {key: value for key, value in record.items() if key not in _CORE_TEXT_KEYS}
    if remaining:
        lines.append("Additional Fields:")
        lines.append(indent_block(_pretty(remaining)))

    lines.append(TEXT_SEPARATOR)
    return "\n".join(lines) + "\n"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VisitLogSink:
    """Write visit log entries to stdout and the daily files."""

    def __init__(
        self,
        log_dir: str = "data/logs",
        log_to_file: bool = True,
        text_format: bool = True,
        stream: Optional[TextIO] = None,
        clock: Callable[[], datetime] = _utc_now
    ):
        self.log_dir = Path(log_dir)
        self.log_to_file = log_to_file
        self.text_format = text_format
        self._stream = stream
        self._clock = clock
        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def paths_for(self, moment: datetime) -> Dict[str, Path]:
        """Daily file paths for the UTC date of ``moment``."""
        stamp = moment.astimezone(timezone.utc).date().isoformat()
        return {
            "jsonl": self.log_dir / f"visits-{stamp}.jsonl",
            "text": self.log_dir / f"visits-{stamp}.txt",
        }

    def record(self, entry: LogEntry) -> None:
        """
        Persist one entry. Each destination is attempted independently; a
        failure in one is logged and does not stop the others.
        """
        line = None
        try:
            line = serialize_entry(entry) + "\n"
            self.stream.write(line)
            self.stream.flush()
        except (OSError, TypeError, ValueError) as e:
            logger.error("visit_log_write_failed", sink="stdout", error=str(e), error_type=type(e).__name__)

        if not self.log_to_file:
            return

        paths = self.paths_for(self._clock())

        try:
            if line is None:
                line = serialize_entry(entry) + "\n"
            self._append(paths["jsonl"], line)
        except (OSError, TypeError, ValueError) as e:
            logger.error(
                "visit_log_write_failed",
                sink="jsonl",
                path=str(paths["jsonl"]),
                error=str(e),
                error_type=type(e).__name__
            )

        if not self.text_format:
            return

        try:
            self._append(paths["text"], format_text_entry(entry.to_record()))
        except (OSError, TypeError, ValueError) as e:
            logger.error(
                "visit_log_write_failed",
                sink="text",
                path=str(paths["text"]),
                error=str(e),
                error_type=type(e).__name__
            )

    @staticmethod
    def _append(path: Path, data: str) -> None:
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(data)
