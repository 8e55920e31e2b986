"""
Activity logger: append-only structured event sink shared by every broker
component. Entries go to the persistent LogSink (best-effort), to structlog,
and to a bounded in-memory view used by the log viewer.
"""

import json
from collections import deque
from collections.abc import Iterable
from typing import Any

import structlog

from app.models.database import LogEntry, LogLevel
from app.services.tables import LogSink

logger = structlog.get_logger()

REDACTED = "***"

# Matched case-insensitively against detail keys after removing "_" and "-"
SECRET_KEY_MARKERS = (
    "consumerkey",
    "consumersecret",
    "accesstoken",
    "token",
    "secret",
    "password",
    "authorization",
    "apikey",
    "camouflageimage",
    "attachment",
)


def is_secret_key(key: str) -> bool:
    normalized = key.replace("_", "").replace("-", "").lower()
    return any(marker in normalized for marker in SECRET_KEY_MARKERS)


def scrub(value: Any, secret_values: Iterable[str] = ()) -> Any:
    """
    Recursively redact secret-looking keys and literal secret values.

    Args:
        value: Detail payload (dict, list or scalar)
        secret_values: Literal strings that must never appear in the output

    Returns:
        Redacted copy of value
    """
    secrets = [s for s in secret_values if s]
    if isinstance(value, dict):
        return {
            k: REDACTED if is_secret_key(str(k)) else scrub(v, secrets)
            for k, v in value.items()
        }
    if isinstance(value, list | tuple):
        return [scrub(v, secrets) for v in value]
    if isinstance(value, str):
        for secret in secrets:
            value = value.replace(secret, REDACTED)
        return value
    return value


class ActivityLogger:
    """Structured activity log with a persistent sink and an in-memory view."""

    def __init__(self, sink: LogSink | None = None, buffer_size: int = 1000):
        self.sink = sink
        self._recent: deque[LogEntry] = deque(maxlen=buffer_size)

    def log(
        self,
        level: LogLevel,
        source: str,
        message: str,
        details: dict[str, Any] | None = None,
        merchant_id: str | None = None,
        secret_values: Iterable[str] = (),
    ) -> LogEntry:
        """
        Record one activity entry. Never raises because of the sink.

        Args:
            level: Entry level
            source: Component name (e.g. 'PROBER')
            message: Human-readable message
            details: Structured payload; secret-looking keys are redacted
            merchant_id: Merchant the entry belongs to
            secret_values: Literal secrets to scrub from message and details

        Returns:
            The entry as recorded
        """
        secret_values = list(secret_values)
        entry = LogEntry(
            level=level,
            source=source,
            message=scrub(message, secret_values),
            details=scrub(details or {}, secret_values),
            merchant_id=merchant_id,
        )
        self._recent.appendleft(entry)
        self._emit(entry)

        if self.sink is not None:
            try:
                self.sink.append(entry)
            except Exception as e:
                # Secondary console-style sink
                logger.warning(
                    "Failed to persist activity log entry",
                    source=source,
                    error_type=type(e).__name__,
                )
        return entry

    def debug(self, source: str, message: str, **kwargs) -> LogEntry:
        return self.log(LogLevel.DEBUG, source, message, **kwargs)

    def info(self, source: str, message: str, **kwargs) -> LogEntry:
        return self.log(LogLevel.INFO, source, message, **kwargs)

    def success(self, source: str, message: str, **kwargs) -> LogEntry:
        return self.log(LogLevel.SUCCESS, source, message, **kwargs)

    def warning(self, source: str, message: str, **kwargs) -> LogEntry:
        return self.log(LogLevel.WARNING, source, message, **kwargs)

    def error(self, source: str, message: str, **kwargs) -> LogEntry:
        return self.log(LogLevel.ERROR, source, message, **kwargs)

    @staticmethod
    def _emit(entry: LogEntry) -> None:
        fields: dict[str, Any] = {"source": entry.source}
        if entry.details:
            fields["details"] = entry.details
        if entry.merchant_id:
            fields["merchant_id"] = entry.merchant_id
        if entry.level is LogLevel.DEBUG:
            logger.debug(entry.message, **fields)
        elif entry.level is LogLevel.WARNING:
            logger.warning(entry.message, **fields)
        elif entry.level is LogLevel.ERROR:
            logger.error(entry.message, **fields)
        elif entry.level is LogLevel.SUCCESS:
            logger.info(entry.message, outcome="success", **fields)
        else:
            logger.info(entry.message, **fields)

    # Log viewer

    def recent(
        self,
        level: LogLevel | None = None,
        source: str | None = None,
        limit: int | None = None,
        merchant_id: str | None = None,
    ) -> list[LogEntry]:
        """Return recent entries, newest first, optionally filtered."""
        entries = [
            entry
            for entry in self._recent
            if (level is None or entry.level == level)
            and (source is None or entry.source.upper() == source.upper())
            and (merchant_id is None or entry.merchant_id == merchant_id)
        ]
        return entries[:limit] if limit else entries

    def export_text(self, merchant_id: str | None = None) -> str:
        """Render the in-memory view as plain text, one block per entry."""
        blocks = []
        for entry in self.recent(merchant_id=merchant_id):
            line = f"[{entry.timestamp.isoformat()}] [{entry.level.value}] [{entry.source}] {entry.message}"
            if entry.details:
                line += f"\nDetails: {json.dumps(entry.details, indent=2, default=str)}"
            blocks.append(line)
        return "\n\n".join(blocks)

    def clear_view(self, merchant_id: str | None = None) -> None:
        """
        Clear the in-memory view, or only one merchant's entries.
        Persisted entries are not touched.
        """
        if merchant_id is None:
            self._recent.clear()
            return
        kept = [entry for entry in self._recent if entry.merchant_id != merchant_id]
        self._recent.clear()
        self._recent.extend(kept)
