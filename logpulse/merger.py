"""Dataset merger: combine per-source results into one time-ordered Dataset."""

import logging
from typing import Iterable

from logpulse.models import Dataset, SourceResult

logger = logging.getLogger(__name__)

NO_RECORDS_MESSAGE = "No valid log records found. Please check your file selection."


class EmptyDatasetError(Exception):
    """Raised when no source contributed a single valid record."""

    def __init__(self, message: str = NO_RECORDS_MESSAGE):
        super().__init__(message)


def dataset_name(contributing: list[SourceResult]) -> str:
    """Name of the single contributing source, else "<N> Log Files Merged"."""
    if len(contributing) == 1:
        return contributing[0].source_id
    return f"{len(contributing)} Log Files Merged"


def merge_sources(results: Iterable[SourceResult]) -> Dataset:
    """Merge source results, given in input order, into a Dataset.

    Sources without entries are dropped. The sort is on the parsed timestamp only;
    because Python's sort is stable, entries with equal timestamps keep input order.

    Raises:
        EmptyDatasetError: if no entries survive.
    """
    contributing = [r for r in results if r.entries]

    entries = [e for r in contributing for e in r.entries]
    if not entries:
        raise EmptyDatasetError()

    entries.sort(key=lambda e: e.timestamp)

    name = dataset_name(contributing)
    logger.debug("Merged %d entries from %d source(s) into %r", len(entries), len(contributing), name)
    return Dataset(name=name, entries=tuple(entries), source_count=len(contributing))
