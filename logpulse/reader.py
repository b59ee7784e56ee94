"""Source ingestion: split one source into lines, parse each, and read files asynchronously."""

import glob
import logging
import os

import aiofiles

from logpulse.models import SourceResult
from logpulse.parser import parse_line
from logpulse.validator import RecordValidator

logger = logging.getLogger(__name__)


def ingest_source(source_id: str, content: str | bytes, validator: RecordValidator | None = None,
                  encoding: str = "utf-8") -> SourceResult:
    """Parse every line of one source and collect the accepted entries."""
    if isinstance(content, bytes):
        content = content.decode(encoding, errors="replace")
    # a UTF-8 byte-order mark survives plain utf-8 decoding
    content = content.removeprefix("\ufeff")

    entries = []
    line_count = 0
    for line in content.split("\n"):
        if not line.strip():
            continue
        line_count += 1
        entry = parse_line(line, source=source_id, validator=validator)
        if entry is not None:
            entries.append(entry)

    skipped = line_count - len(entries)
    if skipped:
        logger.debug("%s: skipped %d of %d lines", source_id, skipped, line_count)

    return SourceResult(
        source_id=source_id,
        entries=tuple(entries),
        line_count=line_count,
        skipped_count=skipped,
    )


async def read_source(path: str, encoding: str = "utf-8") -> str:
    """Read a whole file as text. I/O errors propagate to the caller."""
    async with aiofiles.open(path, mode="r", encoding=encoding, errors="replace") as f:
        return await f.read()


def _has_magic(path: str) -> bool:
    return any(c in path for c in ("*", "?", "["))


def expand_paths(raw_paths: list[str]) -> list[str]:
    """Expand globs and directories, deduplicate, keep order.

    Literal paths that do not exist are kept so ingestion can report them as
    unreadable sources instead of failing the whole batch.
    """
    expanded = []
    seen = set()

    def _add(path):
        if path not in seen:
            seen.add(path)
            expanded.append(path)

    for raw in raw_paths:
        if _has_magic(raw):
            matches = sorted(glob.glob(raw))
            if not matches:
                logger.warning("Pattern matched no files: %s", raw)
            for m in matches:
                if os.path.isfile(m):
                    _add(m)
        elif os.path.isdir(raw):
            for name in sorted(os.listdir(raw)):
                candidate = os.path.join(raw, name)
                if os.path.isfile(candidate):
                    _add(candidate)
        else:
            _add(raw)

    return expanded
