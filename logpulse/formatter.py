"""Output formatters: text, JSON (NDJSON), colorized (ANSI), timeline and metric rows."""

import json
from dataclasses import asdict
from datetime import timezone
from typing import Callable

from logpulse.models import Bucket, LogEntry, MetricPoint, entry_to_dict

# ANSI color codes, keyed by lower-cased trace level
COLORS = {
    "error": "\033[31m",     # red
    "critical": "\033[31m",  # red
    "warning": "\033[33m",   # yellow
    "warn": "\033[33m",      # yellow
    "verbose": "\033[90m",   # grey
    "debug": "\033[90m",     # grey
}
DEFAULT_COLOR = "\033[34m"   # blue: Info and anything else
RESET = "\033[0m"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
BAR_WIDTH = 40


def entry_summary(entry: LogEntry) -> dict:
    """The fields a log table row shows."""
    return {
        "eventTimestamp": entry.event_timestamp,
        "timestamp": entry.timestamp_ms,
        "traceLevel": entry.trace_level,
        "component": entry.component,
        "operationName": entry.operation_name,
        "message": entry.message,
        "source": entry.source,
    }


def _display_time(entry: LogEntry) -> str:
    ts = entry.timestamp.astimezone(timezone.utc)
    return f"{ts.strftime(TIMESTAMP_FORMAT)}.{entry.timestamp_ms % 1000:03d}"


def format_text(entry: LogEntry) -> str:
    """One line: time, level, component, message."""
    return f"[{_display_time(entry)}] [{entry.trace_level}] {entry.component}: {entry.message}"


def format_json(entry: LogEntry) -> str:
    """Return NDJSON: the original record, compatible with jq."""
    return json.dumps(entry_to_dict(entry))


def format_color(entry: LogEntry) -> str:
    """Return the text line with an ANSI-colored level."""
    color = COLORS.get(entry.trace_level.lower(), DEFAULT_COLOR)
    return f"[{_display_time(entry)}] [{color}{entry.trace_level}{RESET}] {entry.component}: {entry.message}"


def get_formatter(output_format: str = "text", color: bool = False) -> Callable[[LogEntry], str]:
    """Factory that returns the right formatter based on args."""
    if output_format == "json":
        return format_json
    if color:
        return format_color
    return format_text


def format_bucket(bucket: Bucket, peak: int) -> str:
    """Timeline row with a bar scaled to the busiest bucket."""
    length = round(bucket.count / peak * BAR_WIDTH) if peak else 0
    return f"{bucket.label}  {bucket.count:>7}  {bucket.error_count:>7}  {'#' * length}"


def format_timeline_text(buckets: list[Bucket]) -> str:
    if not buckets:
        return "No buckets."
    width_s = (buckets[0].bucket_end - buckets[0].bucket_start) / 1000
    peak = max(b.count for b in buckets)
    lines = [f"Bucket width: {width_s:g}s", f"{'Bucket':14s}  {'Count':>7}  {'Errors':>7}"]
    lines.extend(format_bucket(b, peak) for b in buckets)
    return "\n".join(lines)


def format_metric(point: MetricPoint) -> str:
    return (
        f"{point.label}  cpu={point.cpu:g}%  process_cpu={point.process_cpu:g}%  "
        f"memory={point.memory:g}MB  queue={point.queue_length:g}"
    )


def format_metrics_text(points: list[MetricPoint]) -> str:
    if not points:
        return "No performance metrics."
    return "\n".join(format_metric(p) for p in points)


def to_json_rows(items) -> str:
    """JSON array of dataclass rows (buckets, metric points)."""
    return json.dumps([asdict(item) for item in items], indent=2)
