import io
import struct
import zipfile
from datetime import timezone

import orjson
import pytest

from parser import normalize_events, validate_records


def make_record(ts, ms_played=180000, track="Song", artist="Artist", uri="spotify:track:abc", **extra):
    record = {
        "ts": ts,
        "platform": "ios",
        "ms_played": ms_played,
        "master_metadata_track_name": track,
        "master_metadata_album_artist_name": artist,
        "master_metadata_album_album_name": "Album",
        "spotify_track_uri": uri,
        "reason_start": "trackdone",
        "reason_end": "trackdone",
        "shuffle": False,
        "skipped": False,
        "offline": False,
        "offline_timestamp": None,
        "incognito_mode": False,
    }
    record.update(extra)
    return record


@pytest.fixture
def utc():
    return timezone.utc


@pytest.fixture
def scenario_a_events():
    records = [
        make_record("2023-01-01T10:00:00Z", ms_played=500000, artist="X", uri="spotify:track:1"),
        make_record("2023-01-01T10:30:00Z", ms_played=300000, artist="X", uri="spotify:track:2"),
        make_record("2023-03-01T09:00:00Z", ms_played=120000, artist="X", uri="spotify:track:3"),
    ]
    return normalize_events(validate_records(records))


def make_damaged_archive(name, count=200):
    """A DEFLATE export archive whose single member has a corrupted compressed stream."""
    buffer = io.BytesIO()
    records = [make_record(f"2023-01-01T10:{i % 60:02d}:00Z", track=f"Song {i}") for i in range(count)]
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(name, orjson.dumps(records))

    data = bytearray(buffer.getvalue())
    name_length, extra_length = struct.unpack("<HH", data[26:30])
    start = 30 + name_length + extra_length
    for offset in range(start + 2, start + 12):
        data[offset] ^= 0xFF
    return bytes(data)
