from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class PlayEvent:
    timestamp: datetime  # always timezone-aware (UTC)
    ms_played: int
    track_name: str
    artist_name: str
    track_id: str
    album_name: Optional[str] = None
    platform: str = ""
    reason_start: str = ""
    reason_end: str = ""
    shuffle: bool = False
    skipped: bool = False
    offline: bool = False
    incognito: bool = False
    offline_timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            'ts': self.timestamp.isoformat(),
            'ms_played': self.ms_played,
            'track_name': self.track_name,
            'artist_name': self.artist_name,
            'album_name': self.album_name,
            'track_id': self.track_id,
            'platform': self.platform,
            'reason_start': self.reason_start,
            'reason_end': self.reason_end,
            'shuffle': self.shuffle,
            'skipped': self.skipped,
            'offline': self.offline,
            'incognito': self.incognito,
            'offline_timestamp': self.offline_timestamp.isoformat() if self.offline_timestamp else None,
        }


@dataclass(frozen=True)
class ArtistStat:
    artist: str
    minutes: float


@dataclass(frozen=True)
class MonthBucket:
    month: str  # YYYY-MM
    minutes: float


@dataclass(frozen=True)
class SkipBucket:
    month: str
    skipped_count: int
    total_count: int
    skip_rate_percent: float


@dataclass(frozen=True)
class HourBucket:
    hour_label: str  # e.g. "9:00-10:00"
    minutes: float

    @property
    def hour(self) -> int:
        return int(self.hour_label.split(':')[0])


@dataclass(frozen=True)
class LongestGap:
    start_event: PlayEvent
    end_event: PlayEvent
    minutes: float

    def to_dict(self) -> dict:
        return {
            'start': self.start_event.timestamp.isoformat(),
            'end': self.end_event.timestamp.isoformat(),
            'minutes': self.minutes,
        }


@dataclass(frozen=True)
class TrackReplayStat:
    track_id: str
    count: int
    total_ms_played: int
    representative: PlayEvent  # first occurrence in log order

    def to_dict(self) -> dict:
        return {
            'track_id': self.track_id,
            'track_name': self.representative.track_name,
            'artist_name': self.representative.artist_name,
            'count': self.count,
            'total_ms_played': self.total_ms_played,
        }


@dataclass(frozen=True)
class VolumeTotals:
    total_ms: int
    total_minutes: float
    tracks_played: int


@dataclass(frozen=True)
class AnalysisResult:
    """Everything derived from one ingested batch. Replaced wholesale on the next upload."""
    events: Tuple[PlayEvent, ...]
    artist_stats: List[ArtistStat]
    monthly_minutes: List[MonthBucket]
    monthly_skips: List[SkipBucket]
    hourly_minutes: List[HourBucket]
    longest_gap: Optional[LongestGap]
    track_replays: Dict[str, TrackReplayStat]
    raw_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.events

    def to_dict(self) -> dict:
        return {
            'raw_count': self.raw_count,
            'event_count': len(self.events),
            'artist_stats': [{'artist': s.artist, 'minutes': s.minutes} for s in self.artist_stats],
            'monthly_minutes': [{'month': b.month, 'minutes': b.minutes} for b in self.monthly_minutes],
            'monthly_skips': [
                {
                    'month': b.month,
                    'skipped': b.skipped_count,
                    'total': b.total_count,
                    'skip_rate': b.skip_rate_percent,
                }
                for b in self.monthly_skips
            ],
            'hourly_minutes': [{'hour': b.hour_label, 'minutes': b.minutes} for b in self.hourly_minutes],
            'longest_gap': self.longest_gap.to_dict() if self.longest_gap else None,
        }


@dataclass
class Page:
    items: List[PlayEvent]
    page: int
    total_pages: int
    page_size: int
    total_items: int
    mode: str
    totals: VolumeTotals
    replay_counts: Dict[str, TrackReplayStat] = field(default_factory=dict)
