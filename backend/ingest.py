"""
Batch ingestion: read every uploaded file, then validate, normalize and aggregate.

Reads fan out concurrently and are joined before any parsing starts, so a batch
either yields one complete AnalysisResult or raises and leaves the caller's
previous result in place.
"""

import asyncio
import logging
from datetime import tzinfo
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import config
from aggregation import analyze
from models import AnalysisResult
from parser import load_records, normalize_events, validate_records

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


async def read_file(path: PathLike) -> bytes:
    return await asyncio.to_thread(Path(path).read_bytes)


async def read_files(paths: Sequence[PathLike]) -> List[bytes]:
    """Read all files concurrently; returns only once every read has finished."""
    return list(await asyncio.gather(*(read_file(p) for p in paths)))


def ingest_buffers(
    buffers: Iterable[bytes],
    tz: tzinfo,
    sources: Optional[Sequence[str]] = None,
    dedupe: bool = False,
    track_prefix: str = config.TRACK_URI_PREFIX,
) -> AnalysisResult:
    """
    Build an AnalysisResult from already-read file contents.

    Args:
        buffers: One buffer per uploaded file (JSON array or export ZIP)
        tz: Zone used for month and hour-of-day buckets
        sources: Optional names for error messages, parallel to buffers
        dedupe: Collapse identical repeated plays
        track_prefix: Required track URI prefix

    Returns:
        A fresh AnalysisResult; empty when nothing is eligible

    Raises:
        ParseError: If any buffer is not a valid history file
    """
    buffers = list(buffers)
    records = []
    for index, buffer in enumerate(buffers):
        source = sources[index] if sources else f"file {index + 1}"
        records.extend(load_records(buffer, source=source))

    eligible = validate_records(records, track_prefix)
    events = normalize_events(eligible, dedupe=dedupe)

    logger.info(
        "Ingested %d files: %d raw records, %d eligible events",
        len(buffers), len(records), len(events),
    )

    return analyze(events, tz, raw_count=len(records))


async def ingest_files(
    paths: Sequence[PathLike],
    tz: tzinfo,
    dedupe: bool = False,
    track_prefix: str = config.TRACK_URI_PREFIX,
) -> AnalysisResult:
    """
    Read and ingest a batch of files.

    Raises:
        OSError: If any file cannot be read
        ParseError: If any file is not a valid history file
    """
    buffers = await read_files(paths)
    return ingest_buffers(
        buffers,
        tz,
        sources=[Path(p).name for p in paths],
        dedupe=dedupe,
        track_prefix=track_prefix,
    )
