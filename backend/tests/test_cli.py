import orjson
import pytest

import config
from cli import main
from conftest import make_damaged_archive, make_record


@pytest.fixture
def history_file(tmp_path):
    path = tmp_path / "Streaming_History_Audio_2023.json"
    path.write_bytes(orjson.dumps([
        make_record("2023-01-01T10:00:00Z", ms_played=500000, artist="X", track="One", uri="spotify:track:1"),
        make_record("2023-01-01T10:30:00Z", ms_played=300000, artist="X", track="Two", uri="spotify:track:2"),
        make_record("2023-03-01T09:00:00Z", ms_played=120000, artist="Y", track="One", uri="spotify:track:1"),
    ]))
    return path


def test_text_report(history_file, capsys):
    assert main([str(history_file), "--timezone", "UTC"]) == 0
    out = capsys.readouterr().out
    assert "Total tracks played: 3" in out
    assert "X: 13.33 min" in out
    assert "2023-01: 13.33 min, skipped 0/2 (0.0%)" in out
    assert "One by X - 8.33 min (January 1, 2023)" in out


def test_most_replayed_report(history_file, capsys):
    assert main([str(history_file), "--timezone", "UTC", "--sort", "most-replayed"]) == 0
    out = capsys.readouterr().out
    assert "Listened 2 times, Total: 10.33 min" in out
    assert "page 1 of 1" in out


def test_json_report(history_file, capsys):
    assert main([str(history_file), "--timezone", "UTC", "--json", "--page-size", "2", "--page", "2"]) == 0
    payload = orjson.loads(capsys.readouterr().out)
    assert payload["event_count"] == 3
    assert payload["page"]["page"] == 2
    assert payload["page"]["total_pages"] == 2
    assert len(payload["page"]["rows"]) == 1
    assert payload["top_artists"][0]["artist"] == "X"
    assert payload["longest_gap"]["start"].startswith("2023-01-01T10:30")


def test_empty_history_is_not_an_error(tmp_path, capsys):
    path = tmp_path / "empty.json"
    path.write_bytes(orjson.dumps([make_record("2023-01-01T10:00:00Z", spotify_track_uri=None)]))
    assert main([str(path), "--timezone", "UTC"]) == 0
    assert "No listening history found" in capsys.readouterr().out


def test_bad_file_exits_1(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_bytes(b"nope")
    assert main([str(path), "--timezone", "UTC"]) == 1
    assert "bad.json" in capsys.readouterr().err


def test_missing_file_exits_1(tmp_path):
    assert main([str(tmp_path / "missing.json"), "--timezone", "UTC"]) == 1


def test_unknown_timezone_exits_2(history_file):
    assert main([str(history_file), "--timezone", "Not/AZone"]) == 2


def test_bad_page_size_exits_2(history_file):
    assert main([str(history_file), "--page-size", "0"]) == 2


def test_damaged_archive_exits_1(tmp_path, capsys):
    path = tmp_path / "my_spotify_data.zip"
    path.write_bytes(make_damaged_archive("Streaming_History_Audio_2023.json"))
    assert main([str(path), "--timezone", "UTC"]) == 1
    assert "my_spotify_data.zip" in capsys.readouterr().err


def test_unknown_log_level_falls_back(history_file, monkeypatch):
    monkeypatch.setattr(config, "LOG_LEVEL", "CHATTY")
    assert main([str(history_file), "--timezone", "UTC"]) == 0
