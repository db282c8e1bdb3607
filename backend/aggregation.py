from datetime import tzinfo
from typing import Dict, List, Optional, Sequence

from models import (
    AnalysisResult,
    ArtistStat,
    HourBucket,
    LongestGap,
    MonthBucket,
    PlayEvent,
    SkipBucket,
    TrackReplayStat,
    VolumeTotals,
)

UNKNOWN_ARTIST = "Unknown Artist"
MS_PER_MINUTE = 60000


def ms_to_minutes(ms: float) -> float:
    return ms / MS_PER_MINUTE


def month_key(event: PlayEvent, tz: tzinfo) -> str:
    """YYYY-MM of the event's calendar date in tz."""
    local = event.timestamp.astimezone(tz)
    return f"{local.year:04d}-{local.month:02d}"


def hour_label(hour: int) -> str:
    return f"{hour}:00-{hour + 1}:00"


def volume_totals(events: Sequence[PlayEvent]) -> VolumeTotals:
    """
    Sum listening time over a displayed sequence.

    Args:
        events: Whatever sequence is currently displayed (full log or replay view)

    Returns:
        VolumeTotals with total ms, minutes and the number of entries with a track name
    """
    total_ms = sum(event.ms_played or 0 for event in events)
    tracks_played = sum(1 for event in events if event.track_name and event.track_name.strip())
    return VolumeTotals(
        total_ms=total_ms,
        total_minutes=ms_to_minutes(total_ms),
        tracks_played=tracks_played,
    )


def artist_minutes(events: Sequence[PlayEvent]) -> List[ArtistStat]:
    """
    Total minutes per artist, in order of first appearance.

    Callers sort for display (see top_artists).
    """
    totals: Dict[str, float] = {}

    for event in events:
        artist = event.artist_name or UNKNOWN_ARTIST
        totals[artist] = totals.get(artist, 0.0) + ms_to_minutes(event.ms_played or 0)

    return [ArtistStat(artist=artist, minutes=minutes) for artist, minutes in totals.items()]


def top_artists(stats: Sequence[ArtistStat], limit: Optional[int] = None) -> List[ArtistStat]:
    """Artist stats by minutes, descending. Ties keep input order."""
    ranked = sorted(stats, key=lambda s: s.minutes, reverse=True)
    return ranked[:limit] if limit is not None else ranked


def monthly_minutes(events: Sequence[PlayEvent], tz: tzinfo) -> List[MonthBucket]:
    """
    Minutes listened per calendar month in tz.

    Returns:
        List of MonthBucket sorted by month key
    """
    totals: Dict[str, float] = {}

    for event in events:
        key = month_key(event, tz)
        totals[key] = totals.get(key, 0.0) + ms_to_minutes(event.ms_played or 0)

    return [MonthBucket(month=month, minutes=totals[month]) for month in sorted(totals)]


def monthly_skip_rates(events: Sequence[PlayEvent], tz: tzinfo) -> List[SkipBucket]:
    """
    Skipped and total plays per calendar month in tz.

    A bucket only exists once a play lands in it, so total_count is never zero.
    """
    counts: Dict[str, List[int]] = {}  # month -> [skipped, total]

    for event in events:
        bucket = counts.setdefault(month_key(event, tz), [0, 0])
        bucket[1] += 1
        if event.skipped:
            bucket[0] += 1

    return [
        SkipBucket(
            month=month,
            skipped_count=skipped,
            total_count=total,
            skip_rate_percent=skipped / total * 100,
        )
        for month, (skipped, total) in sorted(counts.items())
    ]


def hourly_minutes(events: Sequence[PlayEvent], tz: tzinfo) -> List[HourBucket]:
    """
    Minutes listened per local hour of day.

    Only hours with at least one play get a bucket. Sorted by numeric hour,
    so 9:00-10:00 comes before 10:00-11:00.
    """
    totals: Dict[str, float] = {}

    for event in events:
        label = hour_label(event.timestamp.astimezone(tz).hour)
        totals[label] = totals.get(label, 0.0) + ms_to_minutes(event.ms_played or 0)

    buckets = [HourBucket(hour_label=label, minutes=minutes) for label, minutes in totals.items()]
    buckets.sort(key=lambda b: b.hour)
    return buckets


def longest_gap(events: Sequence[PlayEvent]) -> Optional[LongestGap]:
    """
    Find the largest time between two adjacent plays.

    Args:
        events: Time-ascending log

    Returns:
        LongestGap for the first pair with the maximum delta, or None with fewer than 2 events
    """
    if len(events) < 2:
        return None

    best_index = 1
    best_delta = events[1].timestamp - events[0].timestamp

    for i in range(2, len(events)):
        delta = events[i].timestamp - events[i - 1].timestamp
        if delta > best_delta:
            best_delta = delta
            best_index = i

    return LongestGap(
        start_event=events[best_index - 1],
        end_event=events[best_index],
        minutes=best_delta.total_seconds() / 60,
    )


def track_replay_counts(events: Sequence[PlayEvent]) -> Dict[str, TrackReplayStat]:
    """
    Group plays by track identifier.

    Distinct identifiers stay distinct even when names match. The dict keeps
    first-occurrence order and each representative is that first play.
    """
    groups: Dict[str, list] = {}  # track_id -> [count, total_ms, first event]

    for event in events:
        if not event.track_id:
            continue
        group = groups.setdefault(event.track_id, [0, 0, event])
        group[0] += 1
        group[1] += event.ms_played or 0

    return {
        track_id: TrackReplayStat(
            track_id=track_id,
            count=count,
            total_ms_played=total_ms,
            representative=first,
        )
        for track_id, (count, total_ms, first) in groups.items()
    }


def analyze(events: Sequence[PlayEvent], tz: tzinfo, raw_count: int = 0) -> AnalysisResult:
    """Compute every aggregate over a normalized log into one result object."""
    events = tuple(events)
    return AnalysisResult(
        events=events,
        artist_stats=artist_minutes(events),
        monthly_minutes=monthly_minutes(events, tz),
        monthly_skips=monthly_skip_rates(events, tz),
        hourly_minutes=hourly_minutes(events, tz),
        longest_gap=longest_gap(events),
        track_replays=track_replay_counts(events),
        raw_count=raw_count,
    )
