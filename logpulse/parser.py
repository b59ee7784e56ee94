"""Record parser: one JSON line in, a validated LogEntry (or None) out."""

import json
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from logpulse.metrics import resolve_perf_sample
from logpulse.models import EPOCH, EventData, LogEntry, freeze
from logpulse.validator import RecordValidator

logger = logging.getLogger(__name__)

ONE_MS = timedelta(milliseconds=1)

# top-level JSON key -> (LogEntry attribute, accepted JSON types)
KNOWN_FIELDS = {
    "operationName": ("operation_name", (str,)),
    "correlationId": ("correlation_id", (str,)),
    "agentClientId": ("agent_client_id", (str,)),
    "durationInMilliseconds": ("duration_in_milliseconds", (str, int, float)),
    "roleInfo": ("role_info", (dict,)),
    "activityId": ("activity_id", (str,)),
}
CORE_FIELDS = ("eventTimestamp", "component", "traceLevel", "message")

EVENT_DATA_FIELDS = {
    "perfCounters": "perf_counters",
    "machineInfo": "machine_info",
    "processInfo": "process_info",
    "executionInfo": "execution_info",
    "uiFlowServiceProcessingInfo": "ui_flow_service_processing_info",
}


@lru_cache(maxsize=1)
def get_default_validator() -> RecordValidator:
    return RecordValidator()


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime. Offset-less values are UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip())
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        # the UTC instant must itself be a representable datetime
        parsed.astimezone(timezone.utc)
    except (ValueError, AttributeError, OverflowError):
        return None
    return parsed


def to_epoch_ms(ts: datetime) -> int:
    """Whole milliseconds since the epoch, floored."""
    return (ts - EPOCH) // ONE_MS


def _parse_event_data(value: dict[str, Any]) -> EventData:
    known = {}
    extras = {}
    for key, item in value.items():
        attr = EVENT_DATA_FIELDS.get(key)
        if attr is not None and isinstance(item, dict):
            known[attr] = freeze(item)
        else:
            extras[key] = item
    return EventData(**known, extras=freeze(extras))


def _is_accepted(value: Any, types: tuple[type, ...]) -> bool:
    # bool is an int subclass but never a valid duration
    return isinstance(value, types) and not isinstance(value, bool)


def parse_line(line: str, source: str = "", validator: RecordValidator | None = None) -> LogEntry | None:
    """Parse a single JSON line into a LogEntry. Returns None for anything that is not a log record."""
    stripped = line.strip()
    if not stripped:
        return None

    try:
        record = json.loads(stripped)
    except (ValueError, RecursionError):
        return None

    if not isinstance(record, dict):
        return None

    is_valid, errors = (validator or get_default_validator()).validate(record)
    if not is_valid:
        logger.debug("Rejected record from %s: %s", source or "<input>", "; ".join(errors))
        return None

    timestamp = parse_timestamp(record["eventTimestamp"])
    if timestamp is None:
        logger.debug("Rejected record from %s: unparseable eventTimestamp %r",
                     source or "<input>", record["eventTimestamp"])
        return None

    message = record.get("message")
    if message is None:
        message = ""
    elif not isinstance(message, str):
        message = json.dumps(message)

    fields: dict[str, Any] = {}
    extras: dict[str, Any] = {}
    event_data = None
    for key, value in record.items():
        if key in CORE_FIELDS:
            continue
        if key == "eventData" and isinstance(value, dict):
            event_data = _parse_event_data(value)
            continue
        known = KNOWN_FIELDS.get(key)
        if known is not None and _is_accepted(value, known[1]):
            attr = known[0]
            fields[attr] = freeze(value) if isinstance(value, dict) else value
        else:
            extras[key] = value

    return LogEntry(
        component=record["component"],
        trace_level=record["traceLevel"],
        event_timestamp=record["eventTimestamp"],
        message=message,
        timestamp=timestamp,
        timestamp_ms=to_epoch_ms(timestamp),
        raw=stripped,
        source=source,
        event_data=event_data,
        perf_sample=resolve_perf_sample(event_data),
        extras=freeze(extras),
        **fields,
    )
