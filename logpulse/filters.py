"""Filter predicates for log entries: search, level, component, time range."""

from typing import Callable, Iterable

from logpulse.models import Dataset, LogEntry, LogFilter, TimeRange


def filter_by_search(entry: LogEntry, keyword: str) -> bool:
    """True if keyword appears in the message or operation name (case-insensitive)."""
    needle = keyword.lower()
    if needle in entry.message.lower():
        return True
    return entry.operation_name is not None and needle in entry.operation_name.lower()


def filter_by_level(entry: LogEntry, level: str) -> bool:
    """Exact, case-sensitive trace level match."""
    return entry.trace_level == level


def filter_by_component(entry: LogEntry, component: str) -> bool:
    return entry.component == component


def filter_by_time_range(entry: LogEntry, time_range: TimeRange) -> bool:
    """True if the entry falls within [start, end], both ends inclusive."""
    return entry.timestamp_ms in time_range


def build_filter_chain(log_filter: LogFilter) -> Callable[[LogEntry], bool]:
    """Combine the active dimensions of a LogFilter into a single callable.

    Returns a function that ANDs all active predicates together.
    """
    predicates = []

    if log_filter.search:
        keyword = log_filter.search
        predicates.append(lambda entry, k=keyword: filter_by_search(entry, k))

    if log_filter.level:
        level = log_filter.level
        predicates.append(lambda entry, l=level: filter_by_level(entry, l))

    if log_filter.component:
        component = log_filter.component
        predicates.append(lambda entry, c=component: filter_by_component(entry, c))

    if not predicates:
        return lambda entry: True

    def combined(entry: LogEntry) -> bool:
        return all(p(entry) for p in predicates)

    return combined


def apply_time_range(entries: Iterable[LogEntry], time_range: TimeRange | None) -> list[LogEntry]:
    """Zoom pre-filter. None is the identity."""
    if time_range is None:
        return list(entries)
    return [e for e in entries if filter_by_time_range(e, time_range)]


def filter_entries(entries: Iterable[LogEntry], log_filter: LogFilter,
                   time_range: TimeRange | None = None) -> list[LogEntry]:
    """Entries inside the time range that satisfy every active filter, order preserved."""
    matches = build_filter_chain(log_filter)
    return [e for e in apply_time_range(entries, time_range) if matches(e)]


def apply_filters(dataset: Dataset, log_filter: LogFilter, time_range: TimeRange | None = None) -> list[LogEntry]:
    return filter_entries(dataset.entries, log_filter, time_range)


def unique_components(entries: Iterable[LogEntry]) -> list[str]:
    """Sorted distinct components. Pass the unfiltered entries so no choice disappears."""
    return sorted({e.component for e in entries})


def unique_levels(entries: Iterable[LogEntry]) -> list[str]:
    return sorted({e.trace_level for e in entries})
