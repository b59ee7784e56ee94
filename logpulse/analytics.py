"""Timeline aggregation: adaptive fixed-width time buckets over the full dataset."""

from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Sequence

from logpulse.models import EPOCH, Bucket, LogEntry, LogFilter, TimeRange

SHORT_SPAN_MS = 300_000      # 5 minutes
MEDIUM_SPAN_MS = 3_600_000   # 1 hour

LABEL_FORMAT = "%m/%d %H:%M:%S"


def bucket_width(span_ms: int) -> int:
    """Bucket width in ms for a dataset spanning `span_ms`."""
    if span_ms < SHORT_SPAN_MS:
        return 1_000
    if span_ms < MEDIUM_SPAN_MS:
        return 10_000
    return 60_000


def bucket_key(timestamp_ms: int, width: int) -> int:
    return (timestamp_ms // width) * width


def format_label(timestamp_ms: int) -> str:
    return (EPOCH + timedelta(milliseconds=timestamp_ms)).strftime(LABEL_FORMAT)


def build_buckets(entries: Iterable[LogEntry], fill_gaps: bool = False) -> list[Bucket]:
    """Count entries and errors per time bucket, sorted by bucket start.

    The width is chosen once from the total span. Only occupied buckets are emitted
    unless `fill_gaps` is set, in which case empty intervals get zero-count buckets
    and the result tiles [first bucket start, last bucket end) without holes.
    """
    timestamps = []
    errors = []
    for entry in entries:
        timestamps.append(entry.timestamp_ms)
        errors.append(entry.is_error)
    if not timestamps:
        return []

    width = bucket_width(max(timestamps) - min(timestamps))
    totals = defaultdict(lambda: {"count": 0, "errors": 0})

    for ts, is_error in zip(timestamps, errors):
        bucket = totals[bucket_key(ts, width)]
        bucket["count"] += 1
        if is_error:
            bucket["errors"] += 1

    if fill_gaps:
        first = bucket_key(min(timestamps), width)
        last = bucket_key(max(timestamps), width)
        keys = range(first, last + width, width)
    else:
        keys = sorted(totals)

    result = []
    for key in keys:
        counts = totals.get(key, {"count": 0, "errors": 0})
        result.append(Bucket(
            bucket_start=key,
            bucket_end=key + width,
            label=format_label(key),
            count=counts["count"],
            error_count=counts["errors"],
        ))
    return result


def selection_to_range(buckets: Sequence[Bucket], start_index: int, end_index: int) -> TimeRange:
    """Zoom range for a brush over bucket indices; the end covers the last bucket's full width."""
    if not 0 <= start_index <= end_index < len(buckets):
        raise ValueError(
            f"Invalid bucket selection [{start_index}, {end_index}] for {len(buckets)} bucket(s)"
        )
    return TimeRange(start=buckets[start_index].bucket_start, end=buckets[end_index].bucket_end)


def range_to_selection(buckets: Sequence[Bucket], time_range: TimeRange | None) -> tuple[int, int] | None:
    """Brush indices that display a zoom range. None when there is nothing to select."""
    if time_range is None or not buckets:
        return None

    start = next((i for i, b in enumerate(buckets) if b.bucket_start >= time_range.start), 0)

    end = len(buckets) - 1
    for i in range(len(buckets) - 1, -1, -1):
        # a bucket starting before the range end is at least partly inside it
        if buckets[i].bucket_start < time_range.end:
            end = i
            break

    return start, max(start, end)


@dataclass(frozen=True)
class BucketActivation:
    time_range: TimeRange
    log_filter: LogFilter
    selected: LogEntry | None = None


def activate_bucket(entries: Iterable[LogEntry], bucket: Bucket) -> BucketActivation | None:
    """Click-to-filter: zoom to the bucket and focus its errors, if it has any.

    Looks at entries in [bucket_start, bucket_end). A bucket holding no entries is a no-op.
    """
    in_bucket = [e for e in entries if bucket.bucket_start <= e.timestamp_ms < bucket.bucket_end]
    if not in_bucket:
        return None

    time_range = TimeRange(start=bucket.bucket_start, end=bucket.bucket_end)
    error_entries = [e for e in in_bucket if e.is_error]

    if not error_entries:
        return BucketActivation(time_range=time_range, log_filter=LogFilter())

    selected = error_entries[0] if len(error_entries) == 1 else None
    return BucketActivation(time_range=time_range, log_filter=LogFilter(level="Error"), selected=selected)
