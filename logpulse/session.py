"""Session state: the current Dataset plus the view parameters applied to it.

Ingestion holds the lock for its whole run and swaps the Dataset in one assignment,
so a query never sees a half-built Dataset. Queries copy a snapshot under the lock
and compute outside it.
"""

import logging
import threading
from typing import Iterable

from logpulse.analytics import BucketActivation, activate_bucket, build_buckets, range_to_selection, selection_to_range
from logpulse.filters import apply_time_range, filter_entries, unique_components, unique_levels
from logpulse.ingest import FATAL_MESSAGE, IngestionError, ingest, ingest_files
from logpulse.metrics import DEFAULT_MAX_POINTS, downsample
from logpulse.models import Bucket, Dataset, LogEntry, LogFilter, MetricPoint, Page, TimeRange
from logpulse.pagination import DEFAULT_PAGE_SIZE, paginate, total_pages
from logpulse.reader import expand_paths
from logpulse.stats import LogStats, compute_stats

logger = logging.getLogger(__name__)


class NoDatasetError(LookupError):
    """Raised by queries when nothing has been ingested yet."""


class LogSession:
    def __init__(self, page_size=DEFAULT_PAGE_SIZE, max_points=DEFAULT_MAX_POINTS, fill_gaps=False,
                 max_workers=8, encoding="utf-8"):
        self._lock = threading.Lock()
        self._page_size = page_size
        self._max_points = max_points
        self._fill_gaps = fill_gaps
        self._max_workers = max_workers
        self._encoding = encoding

        self._dataset: Dataset | None = None
        self._buckets: list[Bucket] = []
        self._positions: dict[int, int] = {}
        self._clear_view()

    @classmethod
    def from_config(cls, config):
        return cls(
            page_size=config["pagination"]["page_size"],
            max_points=config["metrics"]["max_points"],
            fill_gaps=config["analytics"]["fill_gaps"],
            max_workers=config["ingest"]["max_workers"],
            encoding=config["ingest"]["encoding"],
        )

    def _clear_view(self):
        self._filter = LogFilter()
        self._time_range: TimeRange | None = None
        self._page = 1
        self._selected: LogEntry | None = None

    def _replace(self, dataset: Dataset | None):
        # nothing is assigned until every derived structure is built
        buckets = build_buckets(dataset.entries, fill_gaps=self._fill_gaps) if dataset else []
        # entries are compared by identity; two lines can parse to equal entries
        positions = {id(e): i for i, e in enumerate(dataset.entries)} if dataset else {}

        self._dataset = dataset
        self._buckets = buckets
        self._positions = positions
        self._clear_view()

    # --- Ingestion ---

    def _publish(self, dataset: Dataset):
        try:
            self._replace(dataset)
        except Exception as exc:
            raise IngestionError(FATAL_MESSAGE) from exc
        logger.info("Loaded dataset %r (%d entries)", dataset.name, len(dataset))

    def load(self, sources: Iterable[tuple[str, str | bytes]]) -> Dataset:
        """Replace the current Dataset. On failure the previous state is kept and the error re-raised."""
        with self._lock:
            dataset = ingest(sources, max_workers=self._max_workers, encoding=self._encoding)
            self._publish(dataset)
        return dataset

    def load_paths(self, paths: Iterable[str]) -> Dataset:
        with self._lock:
            dataset = ingest_files(
                expand_paths(list(paths)),
                max_concurrency=self._max_workers,
                encoding=self._encoding,
            )
            self._publish(dataset)
        return dataset

    def reset(self):
        """Discard the Dataset and all view state."""
        with self._lock:
            self._replace(None)

    # --- View parameters ---

    @property
    def dataset(self) -> Dataset | None:
        return self._dataset

    @property
    def log_filter(self) -> LogFilter:
        return self._filter

    @property
    def time_range(self) -> TimeRange | None:
        return self._time_range

    @property
    def page(self) -> int:
        return self._page

    @property
    def selected(self) -> LogEntry | None:
        return self._selected

    def set_filter(self, log_filter: LogFilter):
        with self._lock:
            self._filter = log_filter
            self._page = 1

    def set_time_range(self, time_range: TimeRange | None):
        with self._lock:
            self._time_range = time_range
            self._page = 1

    def go_to_page(self, page: int) -> bool:
        """Move to `page` if it exists. Out-of-range requests are ignored."""
        if not 1 <= page <= self.current_page().total_pages:
            return False
        with self._lock:
            self._page = page
        return True

    def select_entry(self, index: int) -> LogEntry:
        dataset = self._require_dataset()
        if not 0 <= index < len(dataset):
            raise ValueError(f"No entry at index {index} in {len(dataset)} entries")
        entry = dataset.entries[index]
        with self._lock:
            self._selected = entry
        return entry

    def index_of(self, entry: LogEntry) -> int:
        """Position of an entry in the current Dataset, for detail lookups."""
        return self._positions[id(entry)]

    def clear_selection(self):
        with self._lock:
            self._selected = None

    def select_buckets(self, start_index: int, end_index: int) -> TimeRange:
        """Zoom to a brush selection over the timeline buckets."""
        self._require_dataset()
        time_range = selection_to_range(self._buckets, start_index, end_index)
        self.set_time_range(time_range)
        return time_range

    def activate_bucket(self, index: int) -> BucketActivation | None:
        """Apply the click-to-filter policy for one timeline bucket."""
        dataset = self._require_dataset()
        buckets = self._buckets
        if not 0 <= index < len(buckets):
            raise ValueError(f"No bucket at index {index} of {len(buckets)}")
        activation = activate_bucket(dataset.entries, buckets[index])
        if activation is None:
            return None
        with self._lock:
            self._time_range = activation.time_range
            self._filter = activation.log_filter
            self._page = 1
            if activation.selected is not None:
                self._selected = activation.selected
        return activation

    # --- Queries ---

    def _require_dataset(self) -> Dataset:
        dataset = self._dataset
        if dataset is None:
            raise NoDatasetError("No dataset loaded")
        return dataset

    def _snapshot(self):
        with self._lock:
            if self._dataset is None:
                raise NoDatasetError("No dataset loaded")
            return self._dataset, self._filter, self._time_range, self._page

    def ranged_entries(self) -> list[LogEntry]:
        """Entries inside the zoom range, before the table filter. Charts use these."""
        dataset, _, time_range, _ = self._snapshot()
        return apply_time_range(dataset.entries, time_range)

    def visible_entries(self) -> list[LogEntry]:
        dataset, log_filter, time_range, _ = self._snapshot()
        return filter_entries(dataset.entries, log_filter, time_range)

    def current_page(self) -> Page:
        dataset, log_filter, time_range, page = self._snapshot()
        visible = filter_entries(dataset.entries, log_filter, time_range)
        # a page can fall off the end only if the snapshot raced a filter change
        page = min(page, total_pages(len(visible), self._page_size))
        return paginate(visible, page, self._page_size)

    def filter_choices(self) -> dict[str, list[str]]:
        """Levels and components of the unfiltered dataset."""
        dataset = self._require_dataset()
        return {
            "levels": unique_levels(dataset.entries),
            "components": unique_components(dataset.entries),
        }

    def timeline(self) -> list[Bucket]:
        self._require_dataset()
        return list(self._buckets)

    def brush_selection(self) -> tuple[int, int] | None:
        self._require_dataset()
        return range_to_selection(self._buckets, self._time_range)

    def metrics(self) -> list[MetricPoint]:
        return downsample(self.ranged_entries(), self._max_points)

    def overview(self) -> LogStats:
        return compute_stats(self.ranged_entries())
