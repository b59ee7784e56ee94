"""Immutable record types shared by the ingestion and query modules."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

ERROR_LEVELS = frozenset({"Error", "Critical"})
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def freeze(value: Any) -> Any:
    """Return a read-only view of nested JSON data (dicts become mappings, lists tuples)."""
    if isinstance(value, dict):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(freeze(v) for v in value)
    return value


@dataclass(frozen=True)
class PerfCounterSample:
    """Legacy agent format: eventData.perfCounters."""
    total_cpu_percent: float = 0
    process_cpu_percent: float = 0
    available_memory_mb: float = 0
    processor_queue_length: float = 0


@dataclass(frozen=True)
class AgentLoadSample:
    """Newer agent format: eventData.machineInfo / eventData.processInfo load fields."""
    cpu_load: float = 0
    physical_free_memory_mb: float = 0
    process_cpu_load: float = 0


PerfSample = PerfCounterSample | AgentLoadSample


@dataclass(frozen=True)
class EventData:
    perf_counters: Mapping[str, Any] | None = None
    machine_info: Mapping[str, Any] | None = None
    process_info: Mapping[str, Any] | None = None
    execution_info: Mapping[str, Any] | None = None
    ui_flow_service_processing_info: Mapping[str, Any] | None = None
    extras: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)


@dataclass(frozen=True)
class LogEntry:
    component: str
    trace_level: str
    event_timestamp: str
    message: str
    timestamp: datetime
    timestamp_ms: int
    raw: str
    source: str = ""

    operation_name: str | None = None
    correlation_id: str | None = None
    agent_client_id: str | None = None
    duration_in_milliseconds: str | int | float | None = None
    event_data: EventData | None = None
    role_info: Mapping[str, Any] | None = None
    activity_id: str | None = None
    perf_sample: PerfSample | None = None
    extras: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)

    @property
    def is_error(self) -> bool:
        return self.trace_level in ERROR_LEVELS


def entry_to_dict(entry: LogEntry) -> dict[str, Any]:
    """Return the entry's original JSON record, field for field."""
    return json.loads(entry.raw)


@dataclass(frozen=True)
class SourceResult:
    """Outcome of ingesting one source. `error` is set when the source could not be read."""
    source_id: str
    entries: tuple[LogEntry, ...] = ()
    line_count: int = 0
    skipped_count: int = 0
    error: str | None = None


@dataclass(frozen=True)
class Dataset:
    name: str
    entries: tuple[LogEntry, ...]
    source_count: int = 1

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def start_ms(self) -> int | None:
        return self.entries[0].timestamp_ms if self.entries else None

    @property
    def end_ms(self) -> int | None:
        return self.entries[-1].timestamp_ms if self.entries else None

    @property
    def span_ms(self) -> int:
        if not self.entries:
            return 0
        return self.entries[-1].timestamp_ms - self.entries[0].timestamp_ms


@dataclass(frozen=True)
class LogFilter:
    """Empty string in any field means no constraint on that dimension."""
    search: str = ""
    level: str = ""
    component: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.search or self.level or self.component)


@dataclass(frozen=True)
class TimeRange:
    """Inclusive [start, end] window in epoch milliseconds."""
    start: int
    end: int

    def __contains__(self, timestamp_ms: int) -> bool:
        return self.start <= timestamp_ms <= self.end


@dataclass(frozen=True)
class Bucket:
    bucket_start: int
    bucket_end: int
    label: str
    count: int = 0
    error_count: int = 0


@dataclass(frozen=True)
class MetricPoint:
    timestamp: int
    label: str
    cpu: float = 0
    process_cpu: float = 0
    memory: float = 0
    queue_length: float = 0


@dataclass(frozen=True)
class Page:
    items: list[LogEntry] = field(default_factory=list)
    page: int = 1
    page_size: int = 50
    total_items: int = 0
    total_pages: int = 1

    @property
    def first_item(self) -> int:
        """1-based position of the first item on the page, 0 when the page is empty."""
        return (self.page - 1) * self.page_size + 1 if self.items else 0

    @property
    def last_item(self) -> int:
        return (self.page - 1) * self.page_size + len(self.items) if self.items else 0
