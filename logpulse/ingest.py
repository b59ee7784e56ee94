"""Concurrent multi-source ingestion.

Each source is parsed by its own worker (a thread for in-memory sources, an asyncio
task for files). A failure in one source only empties that source; the merge waits
for every worker and then sorts, so the result never depends on completion order.
"""

import asyncio
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable

from logpulse.merger import EmptyDatasetError, merge_sources
from logpulse.models import Dataset, SourceResult
from logpulse.reader import ingest_source, read_source
from logpulse.validator import RecordValidator

logger = logging.getLogger(__name__)

FATAL_MESSAGE = "Failed to process files. Please ensure they contain valid line-delimited JSON."
DEFAULT_MAX_WORKERS = 8


class IngestionError(Exception):
    """Raised when the batch as a whole fails. No Dataset is published."""


def _safe_ingest(source_id: str, content: str | bytes, validator: RecordValidator | None,
                 encoding: str) -> SourceResult:
    try:
        return ingest_source(source_id, content, validator=validator, encoding=encoding)
    except Exception as exc:
        logger.exception("Failed to parse source %s", source_id)
        return SourceResult(source_id=source_id, error=str(exc))


def _log_summary(results: list[SourceResult], dataset: Dataset) -> None:
    unreadable = sum(1 for r in results if r.error is not None)
    skipped = sum(r.skipped_count for r in results)
    logger.info(
        "Ingested %d source(s): %d contributing, %d unreadable, %d entries, %d line(s) skipped",
        len(results), dataset.source_count, unreadable, len(dataset), skipped,
    )


def _merge(results: list[SourceResult]) -> Dataset:
    try:
        dataset = merge_sources(results)
    except EmptyDatasetError:
        logger.info("No valid records in %d source(s)", len(results))
        raise
    except Exception as exc:
        raise IngestionError(FATAL_MESSAGE) from exc
    _log_summary(results, dataset)
    return dataset


def ingest(sources: Iterable[tuple[str, str | bytes]], max_workers: int | None = None,
           validator: RecordValidator | None = None, encoding: str = "utf-8") -> Dataset:
    """Ingest in-memory (identifier, content) sources into a Dataset.

    Raises:
        EmptyDatasetError: no source yielded a valid record (or no sources given).
        IngestionError: the batch failed as a whole.
    """
    sources = list(sources)
    if not sources:
        raise EmptyDatasetError()

    results: list[SourceResult | None] = [None] * len(sources)
    try:
        workers = min(max_workers or DEFAULT_MAX_WORKERS, len(sources))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(_safe_ingest, source_id, content, validator, encoding): index
                for index, (source_id, content) in enumerate(sources)
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()
    except Exception as exc:
        raise IngestionError(FATAL_MESSAGE) from exc

    return _merge(results)


async def _ingest_path(path: str, semaphore: asyncio.Semaphore, validator: RecordValidator | None,
                       encoding: str) -> SourceResult:
    source_id = os.path.basename(path) or path
    async with semaphore:
        try:
            content = await read_source(path, encoding=encoding)
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return SourceResult(source_id=source_id, error=str(exc))
        return await asyncio.to_thread(_safe_ingest, source_id, content, validator, encoding)


async def ingest_paths(paths: Iterable[str], max_concurrency: int = DEFAULT_MAX_WORKERS,
                       validator: RecordValidator | None = None, encoding: str = "utf-8") -> Dataset:
    """Read and ingest files concurrently. The source identifier is the file's base name."""
    paths = list(paths)
    if not paths:
        raise EmptyDatasetError()

    semaphore = asyncio.Semaphore(max_concurrency)
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [
                group.create_task(_ingest_path(path, semaphore, validator, encoding))
                for path in paths
            ]
    except Exception as exc:
        raise IngestionError(FATAL_MESSAGE) from exc

    return _merge([task.result() for task in tasks])


def ingest_files(paths: Iterable[str], **kwargs) -> Dataset:
    """Blocking wrapper around ingest_paths() for synchronous callers."""
    return asyncio.run(ingest_paths(paths, **kwargs))
