"""Statistics: overview counts, level distribution, top components."""

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from logpulse.models import LogEntry

TOP_COMPONENTS_LIMIT = 10


@dataclass
class LogStats:
    total_entries: int = 0
    error_count: int = 0
    warning_count: int = 0
    component_count: int = 0
    level_counts: dict[str, int] = field(default_factory=dict)
    top_components: list[tuple[str, int]] = field(default_factory=list)
    start_ms: int | None = None
    end_ms: int | None = None

    @property
    def error_rate_percent(self) -> float:
        if self.total_entries == 0:
            return 0.0
        return round(self.error_count / self.total_entries * 100, 1)

    @property
    def duration_label(self) -> str:
        if self.start_ms is None or self.end_ms is None:
            return "N/A"
        diff = self.end_ms - self.start_ms
        return f"{diff // 60000}m {(diff % 60000) // 1000}s"


def top_components(counter: Counter, limit: int = TOP_COMPONENTS_LIMIT) -> list[tuple[str, int]]:
    """Most frequent components, ties broken by name."""
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))[:limit]


def compute_stats(entries: Iterable[LogEntry]) -> LogStats:
    """Consume an entry stream and produce the overview statistics."""
    level_counter = Counter()
    component_counter = Counter()
    errors = 0
    warnings = 0
    total = 0
    start_ms = None
    end_ms = None

    for entry in entries:
        total += 1
        level_counter[entry.trace_level] += 1
        component_counter[entry.component] += 1
        if entry.is_error:
            errors += 1
        elif entry.trace_level == "Warning":
            warnings += 1
        if start_ms is None or entry.timestamp_ms < start_ms:
            start_ms = entry.timestamp_ms
        if end_ms is None or entry.timestamp_ms > end_ms:
            end_ms = entry.timestamp_ms

    return LogStats(
        total_entries=total,
        error_count=errors,
        warning_count=warnings,
        component_count=len(component_counter),
        level_counts=dict(level_counter.most_common()),
        top_components=top_components(component_counter),
        start_ms=start_ms,
        end_ms=end_ms,
    )


def stats_to_dict(stats: LogStats) -> dict:
    return {
        "total_entries": stats.total_entries,
        "error_count": stats.error_count,
        "warning_count": stats.warning_count,
        "error_rate_percent": stats.error_rate_percent,
        "component_count": stats.component_count,
        "level_counts": stats.level_counts,
        "top_components": [{"name": name, "count": count} for name, count in stats.top_components],
        "start_ms": stats.start_ms,
        "end_ms": stats.end_ms,
        "duration": stats.duration_label,
    }


def format_stats_text(stats: LogStats) -> str:
    """Human-readable stats summary."""
    lines = []
    lines.append(f"Total entries: {stats.total_entries}")
    lines.append(f"Errors: {stats.error_count} ({stats.error_rate_percent}%)")
    lines.append(f"Warnings: {stats.warning_count}")
    lines.append(f"Time range: {stats.duration_label}")
    lines.append(f"Components: {stats.component_count}")
    lines.append("")

    lines.append("Level counts:")
    for level, count in stats.level_counts.items():
        lines.append(f"  {level:10s} {count}")
    lines.append("")

    if stats.top_components:
        lines.append("Top components:")
        for name, count in stats.top_components:
            lines.append(f"  {name:30s} {count}")
    else:
        lines.append("No components.")

    return "\n".join(lines)


def format_stats_json(stats: LogStats) -> str:
    """JSON stats output."""
    return json.dumps(stats_to_dict(stats), indent=2)
