"""Performance-metric extraction and stride downsampling for chart series."""

import math
from typing import Any, Iterable, Mapping

from logpulse.analytics import format_label
from logpulse.models import AgentLoadSample, EventData, LogEntry, MetricPoint, PerfCounterSample, PerfSample

DEFAULT_MAX_POINTS = 500


def _number(source: Mapping[str, Any] | None, key: str) -> float:
    """Numeric field or 0. Missing, null, strings and booleans all read as 0."""
    if source is None:
        return 0
    value = source.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and math.isnan(value):
        return 0
    return value


def resolve_perf_sample(event_data: EventData | None) -> PerfSample | None:
    """Pick the metric schema an entry carries, preferring perfCounters."""
    if event_data is None:
        return None

    pc = event_data.perf_counters
    if pc is not None:
        return PerfCounterSample(
            total_cpu_percent=_number(pc, "totalCpuUsagePercent"),
            process_cpu_percent=_number(pc, "processCpuUsagePercent"),
            available_memory_mb=_number(pc, "availableMemoryMB"),
            processor_queue_length=_number(pc, "processorQueueLength"),
        )

    mi = event_data.machine_info
    if mi is not None and ("physicalFreeMemoryMB" in mi or "cpuLoad" in mi):
        return AgentLoadSample(
            cpu_load=_number(mi, "cpuLoad"),
            physical_free_memory_mb=_number(mi, "physicalFreeMemoryMB"),
            process_cpu_load=_number(event_data.process_info, "cpuLoad"),
        )

    return None


def has_metrics(entry: LogEntry) -> bool:
    return entry.perf_sample is not None


def to_metric_point(entry: LogEntry) -> MetricPoint:
    sample = entry.perf_sample
    label = format_label(entry.timestamp_ms)

    if isinstance(sample, PerfCounterSample):
        return MetricPoint(
            timestamp=entry.timestamp_ms,
            label=label,
            cpu=sample.total_cpu_percent,
            process_cpu=sample.process_cpu_percent,
            memory=sample.available_memory_mb,
            queue_length=sample.processor_queue_length,
        )
    if isinstance(sample, AgentLoadSample):
        # the agent format has no processor queue length
        return MetricPoint(
            timestamp=entry.timestamp_ms,
            label=label,
            cpu=sample.cpu_load,
            process_cpu=sample.process_cpu_load,
            memory=sample.physical_free_memory_mb,
        )
    return MetricPoint(timestamp=entry.timestamp_ms, label=label)


def downsample(entries: Iterable[LogEntry], cap: int = DEFAULT_MAX_POINTS) -> list[MetricPoint]:
    """Keep every ceil(N / cap)-th metric-bearing entry, starting with the first.

    Input order is preserved, so chronologically sorted input gives a sorted series
    of at most `cap` points.
    """
    if cap < 1:
        raise ValueError(f"cap must be at least 1, got {cap}")

    metric_entries = [e for e in entries if has_metrics(e)]
    if not metric_entries:
        return []

    step = math.ceil(len(metric_entries) / cap)
    return [to_metric_point(e) for e in metric_entries[::step]]
