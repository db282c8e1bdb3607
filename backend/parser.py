import io
import logging
import zipfile
import zlib
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

import orjson

import config
from models import PlayEvent

logger = logging.getLogger(__name__)

# ZIP magic bytes
ZIP_MAGIC = b'PK\x03\x04'
UTF8_BOM = b'\xef\xbb\xbf'

# Everything zipfile can raise for a damaged, encrypted or unsupported member
ARCHIVE_READ_ERRORS = (zipfile.BadZipFile, KeyError, EOFError, zlib.error, RuntimeError, NotImplementedError)


class ParseError(Exception):
    """Raised when a whole uploaded buffer cannot be read as streaming history."""
    pass


def is_zip_file(file_bytes: bytes) -> bool:
    """Check if a buffer is a ZIP archive by magic bytes."""
    return file_bytes[:4] == ZIP_MAGIC


def parse_spotify_json(file_content: bytes, source: Optional[str] = None) -> List[dict]:
    """
    Decode a single streaming history JSON file into raw records.

    Args:
        file_content: Raw bytes (or text) of the JSON file
        source: Name used in error messages

    Returns:
        List of raw record objects, unvalidated

    Raises:
        ParseError: If JSON is malformed or is not an array
    """
    if isinstance(file_content, str):
        file_content = file_content.encode('utf-8')
    if file_content.startswith(UTF8_BOM):
        file_content = file_content[len(UTF8_BOM):]

    label = f" in {source}" if source else ""
    try:
        data = orjson.loads(file_content)
    except orjson.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON{label}: {e}") from e

    if not isinstance(data, list):
        raise ParseError(f"Expected JSON array of listening events{label}")

    return data


def parse_spotify_zip(file_content: bytes, source: Optional[str] = None) -> List[dict]:
    """
    Decode every streaming history JSON file inside an export archive.

    Members named like Streaming_History*.json are preferred; if the archive has
    none, every .json member is read. Members are read in name order.

    Raises:
        ParseError: If the archive is corrupt, has no JSON members, or any member is malformed
    """
    label = source or "archive"
    try:
        archive = zipfile.ZipFile(io.BytesIO(file_content))
    except zipfile.BadZipFile as e:
        raise ParseError(f"Invalid ZIP file {label}: {e}") from e

    with archive:
        json_names = sorted(
            name for name in archive.namelist()
            if name.lower().endswith('.json') and not name.endswith('/')
        )
        history_names = [n for n in json_names if 'streaming_history' in n.lower()]
        names = history_names or json_names
        if not names:
            raise ParseError(f"No streaming history JSON found in {label}")

        records = []
        for name in names:
            try:
                member = archive.read(name)
            except ARCHIVE_READ_ERRORS as e:
                raise ParseError(f"Could not read {name} from {label}: {e}") from e
            records.extend(parse_spotify_json(member, source=f"{label}:{name}"))

    return records


def load_records(file_content: bytes, source: Optional[str] = None) -> List[dict]:
    """Decode one uploaded buffer, JSON or ZIP, into raw records."""
    if is_zip_file(file_content):
        return parse_spotify_zip(file_content, source)
    return parse_spotify_json(file_content, source)


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse an export timestamp into an aware UTC datetime.

    Strings are ISO 8601 (Spotify uses a trailing Z); naive values are taken as UTC.
    Numbers are epoch seconds, or epoch milliseconds when too large to be seconds.
    Returns None when the value cannot be parsed.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    try:
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _text(value) -> str:
    return value if isinstance(value, str) else ""


def _optional_text(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def validate_record(entry, track_prefix: str = config.TRACK_URI_PREFIX) -> Optional[PlayEvent]:
    """
    Turn one raw record into a PlayEvent, or None if it is not eligible.

    Eligible means a non-blank track name, a non-blank artist name, a track URI
    starting with track_prefix, a parseable timestamp and a non-negative integer
    ms_played (missing counts as 0).
    """
    if not isinstance(entry, dict):
        return None

    track_name = entry.get('master_metadata_track_name')
    artist_name = entry.get('master_metadata_album_artist_name')
    track_uri = entry.get('spotify_track_uri')

    if not isinstance(track_name, str) or not track_name.strip():
        return None
    if not isinstance(artist_name, str) or not artist_name.strip():
        return None
    if not isinstance(track_uri, str) or not track_uri.startswith(track_prefix):
        return None

    timestamp = parse_timestamp(entry.get('ts'))
    if timestamp is None:
        return None

    ms_played = entry.get('ms_played')
    if ms_played is None:
        ms_played = 0
    if isinstance(ms_played, bool) or not isinstance(ms_played, (int, float)):
        return None
    if isinstance(ms_played, float) and not ms_played.is_integer():
        return None
    if ms_played < 0:
        return None

    return PlayEvent(
        timestamp=timestamp,
        ms_played=int(ms_played),
        track_name=track_name,
        artist_name=artist_name,
        track_id=track_uri,
        album_name=_optional_text(entry.get('master_metadata_album_album_name')),
        platform=_text(entry.get('platform')),
        reason_start=_text(entry.get('reason_start')),
        reason_end=_text(entry.get('reason_end')),
        shuffle=bool(entry.get('shuffle')),
        skipped=bool(entry.get('skipped')),
        offline=bool(entry.get('offline')),
        incognito=bool(entry.get('incognito_mode')),
        offline_timestamp=parse_timestamp(entry.get('offline_timestamp')),
    )


def validate_records(records: Iterable, track_prefix: str = config.TRACK_URI_PREFIX) -> List[PlayEvent]:
    """
    Keep only eligible play events. Malformed records are dropped, never raised.

    Args:
        records: Raw records from one or more files, already concatenated
        track_prefix: Required track URI prefix

    Returns:
        List of PlayEvent objects in input order
    """
    events = []
    dropped = 0

    for entry in records:
        event = validate_record(entry, track_prefix)
        if event is None:
            dropped += 1
            continue
        events.append(event)

    if dropped:
        logger.debug("Dropped %d ineligible records", dropped)

    return events


def normalize_events(events: Iterable[PlayEvent], dedupe: bool = False) -> Tuple[PlayEvent, ...]:
    """
    Build the canonical time-ascending log.

    The sort is stable, so plays sharing a timestamp keep their input order.

    Args:
        events: Eligible events in any order
        dedupe: Collapse plays identical on (timestamp, track_id, ms_played)

    Returns:
        Immutable tuple sorted by timestamp
    """
    ordered = sorted(events, key=lambda e: e.timestamp)

    if dedupe:
        seen = set()
        unique = []
        for event in ordered:
            dedup_key = (event.timestamp, event.track_id, event.ms_played)
            if dedup_key in seen:
                continue
            seen.add(dedup_key)
            unique.append(event)
        ordered = unique

    return tuple(ordered)
