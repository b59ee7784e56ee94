"""Tests for logpulse/analytics.py: timeline buckets, brush selection and bucket activation."""

import pytest

from logpulse.analytics import (
    activate_bucket,
    bucket_key,
    bucket_width,
    build_buckets,
    format_label,
    range_to_selection,
    selection_to_range,
)
from logpulse.models import Bucket, LogFilter, TimeRange


class TestBucketWidth:
    @pytest.mark.parametrize("span, width", [
        (0, 1_000),
        (299_999, 1_000),
        (300_000, 10_000),
        (3_599_999, 10_000),
        (3_600_000, 60_000),
        (86_400_000, 60_000),
    ])
    def test_thresholds(self, span, width):
        assert bucket_width(span) == width

    def test_bucket_key_floors(self):
        assert bucket_key(12_345, 1_000) == 12_000
        assert bucket_key(12_000, 1_000) == 12_000
        assert bucket_key(59_999, 10_000) == 50_000

    def test_label_is_utc(self, base_ms):
        assert format_label(base_ms) == "01/15 10:30:00"


class TestBuildBuckets:
    def test_empty(self):
        assert build_buckets([]) == []

    def test_scenario_counts(self, scenario_dataset):
        buckets = build_buckets(scenario_dataset.entries)
        assert sum(b.count for b in buckets) == 150
        assert sum(b.error_count for b in buckets) == 10
        assert all(b.bucket_end - b.bucket_start == 1_000 for b in buckets)

    def test_every_entry_in_exactly_one_bucket(self, scenario_dataset):
        buckets = build_buckets(scenario_dataset.entries)
        for e in scenario_dataset.entries:
            holders = [b for b in buckets if b.bucket_start <= e.timestamp_ms < b.bucket_end]
            assert len(holders) == 1

    def test_sorted_and_non_overlapping(self, scenario_dataset):
        buckets = build_buckets(scenario_dataset.entries)
        for prev, nxt in zip(buckets, buckets[1:]):
            assert prev.bucket_end <= nxt.bucket_start

    def test_sparse_by_default(self, entry):
        buckets = build_buckets([entry(0), entry(5_000)])
        assert len(buckets) == 2
        assert all(b.count > 0 for b in buckets)

    def test_fill_gaps_tiles_range(self, entry, base_ms):
        buckets = build_buckets([entry(0), entry(5_500)], fill_gaps=True)
        assert len(buckets) == 6
        assert buckets[0].bucket_start == base_ms
        assert buckets[-1].bucket_end == base_ms + 6_000
        assert [b.count for b in buckets] == [1, 0, 0, 0, 0, 1]
        for prev, nxt in zip(buckets, buckets[1:]):
            assert prev.bucket_end == nxt.bucket_start

    def test_width_from_total_span(self, entry):
        buckets = build_buckets([entry(0), entry(10 * 60_000)])
        assert all(b.bucket_end - b.bucket_start == 10_000 for b in buckets)

    def test_critical_counts_as_error(self, entry):
        buckets = build_buckets([entry(0, level="Critical"), entry(1, level="Warning")])
        assert buckets[0].count == 2
        assert buckets[0].error_count == 1

    def test_single_entry(self, entry, base_ms):
        buckets = build_buckets([entry(250)])
        assert buckets == [Bucket(
            bucket_start=base_ms,
            bucket_end=base_ms + 1_000,
            label="01/15 10:30:00",
            count=1,
            error_count=0,
        )]


def _buckets(*starts, width=1_000):
    return [Bucket(bucket_start=s, bucket_end=s + width, label="", count=1) for s in starts]


class TestSelection:
    def test_selection_to_range(self):
        buckets = _buckets(0, 1_000, 5_000)
        assert selection_to_range(buckets, 0, 2) == TimeRange(start=0, end=6_000)
        assert selection_to_range(buckets, 1, 1) == TimeRange(start=1_000, end=2_000)

    @pytest.mark.parametrize("start, end", [(-1, 0), (2, 1), (0, 3)])
    def test_invalid_selection(self, start, end):
        with pytest.raises(ValueError):
            selection_to_range(_buckets(0, 1_000, 2_000), start, end)

    def test_range_to_selection_none(self):
        assert range_to_selection(_buckets(0, 1_000), None) is None
        assert range_to_selection([], TimeRange(start=0, end=1)) is None

    def test_range_round_trips_selection(self):
        buckets = _buckets(0, 1_000, 2_000, 3_000)
        time_range = selection_to_range(buckets, 1, 2)
        assert range_to_selection(buckets, time_range) == (1, 2)

    def test_range_past_the_end(self):
        buckets = _buckets(0, 1_000, 2_000)
        assert range_to_selection(buckets, TimeRange(start=500, end=100_000)) == (1, 2)

    def test_range_before_every_bucket_start(self):
        buckets = _buckets(1_000, 2_000)
        assert range_to_selection(buckets, TimeRange(start=5_000, end=6_000)) == (0, 1)


class TestActivateBucket:
    def test_single_error_is_selected(self, entry, base_ms):
        error = entry(100, level="Error", message="boom")
        entries = [entry(0), error, entry(900)]
        bucket = build_buckets(entries)[0]

        activation = activate_bucket(entries, bucket)
        assert activation.time_range == TimeRange(start=base_ms, end=base_ms + 1_000)
        assert activation.log_filter == LogFilter(level="Error")
        assert activation.selected is error

    def test_several_errors_nothing_selected(self, entry):
        entries = [entry(0, level="Error"), entry(10, level="Critical"), entry(20)]
        activation = activate_bucket(entries, build_buckets(entries)[0])
        assert activation.log_filter == LogFilter(level="Error")
        assert activation.selected is None

    def test_no_errors_clears_filter(self, entry):
        entries = [entry(0), entry(10, level="Warning")]
        activation = activate_bucket(entries, build_buckets(entries)[0])
        assert activation.log_filter == LogFilter()
        assert activation.log_filter.is_empty
        assert activation.selected is None

    def test_empty_bucket_is_noop(self, entry, base_ms):
        entries = [entry(0), entry(3_000)]
        gap = build_buckets(entries, fill_gaps=True)[1]
        assert gap.count == 0
        assert activate_bucket(entries, gap) is None

    def test_bucket_end_is_exclusive(self, entry, base_ms):
        entries = [entry(0), entry(1_000, level="Error")]
        first = build_buckets(entries)[0]
        assert activate_bucket(entries, first).log_filter == LogFilter()
