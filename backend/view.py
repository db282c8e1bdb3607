import math
from datetime import tzinfo
from typing import Dict, List, Sequence
from urllib.parse import quote

import config
from aggregation import ms_to_minutes, track_replay_counts, volume_totals
from models import Page, PlayEvent, TrackReplayStat

CHRONOLOGICAL = 'chronological'
MOST_REPLAYED = 'most-replayed'
SORT_MODES = (CHRONOLOGICAL, MOST_REPLAYED)

SEARCH_URL = 'https://open.spotify.com/search/'


def format_date(event: PlayEvent, tz: tzinfo) -> str:
    """Long-form local date, e.g. 'January 1, 2023'."""
    local = event.timestamp.astimezone(tz)
    return f"{local:%B} {local.day}, {local.year}"


def search_url(event: PlayEvent) -> str:
    return SEARCH_URL + quote(event.track_name)


class ViewSequencer:
    """
    Ordering mode plus page cursor over a normalized log.

    The log itself is never reordered; each mode switch builds a new displayed list.
    """

    def __init__(self, events: Sequence[PlayEvent], page_size: int = config.PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.events = tuple(events)
        self.page_size = page_size
        self.mode = CHRONOLOGICAL
        self.page = 1
        self.replay_counts: Dict[str, TrackReplayStat] = {}
        self.displayed: List[PlayEvent] = list(self.events)

    @property
    def total_pages(self) -> int:
        # An empty view still reports page 1 of 1
        return max(1, math.ceil(len(self.displayed) / self.page_size))

    def sort_by_most_replayed(self):
        """One row per track id, most plays first; ties keep first-seen order."""
        self.replay_counts = track_replay_counts(self.events)
        ranked = sorted(self.replay_counts.values(), key=lambda s: s.count, reverse=True)
        self.displayed = [stat.representative for stat in ranked]
        self.mode = MOST_REPLAYED
        # Row count changes with the mode, so the cursor restarts on page 1
        self.page = 1

    def sort_chronologically(self):
        self.displayed = list(self.events)
        self.mode = CHRONOLOGICAL
        self.page = 1

    def set_mode(self, mode: str):
        if mode == MOST_REPLAYED:
            self.sort_by_most_replayed()
        elif mode == CHRONOLOGICAL:
            self.sort_chronologically()
        else:
            raise ValueError(f"Unknown sort mode: {mode}")

    def toggle(self):
        if self.mode == CHRONOLOGICAL:
            self.sort_by_most_replayed()
        else:
            self.sort_chronologically()

    def go_to(self, page: int) -> bool:
        """Move the cursor. Out-of-range pages leave it unchanged and return False."""
        if 1 <= page <= math.ceil(len(self.displayed) / self.page_size):
            self.page = page
            return True
        return False

    def next_page(self) -> bool:
        return self.go_to(self.page + 1)

    def previous_page(self) -> bool:
        return self.go_to(self.page - 1)

    def current_page(self) -> Page:
        start = (self.page - 1) * self.page_size
        return Page(
            items=self.displayed[start:start + self.page_size],
            page=self.page,
            total_pages=self.total_pages,
            page_size=self.page_size,
            total_items=len(self.displayed),
            mode=self.mode,
            totals=volume_totals(self.displayed),
            replay_counts=dict(self.replay_counts) if self.mode == MOST_REPLAYED else {},
        )

    def describe_row(self, event: PlayEvent, tz: tzinfo) -> dict:
        """Display fields for one row of the current page."""
        row = {
            'track_name': event.track_name,
            'artist_name': event.artist_name,
            'minutes': round(ms_to_minutes(event.ms_played), 2),
            'url': search_url(event),
        }
        if self.mode == MOST_REPLAYED:
            stat = self.replay_counts.get(event.track_id)
            row['count'] = stat.count if stat else 0
            row['total_minutes'] = round(ms_to_minutes(stat.total_ms_played if stat else 0), 2)
        else:
            row['date'] = format_date(event, tz)
        return row
