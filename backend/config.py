import logging
import os
from datetime import tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

# Pagination
PAGE_SIZE = int(os.getenv('HISTORY_PAGE_SIZE', '30'))

# Bucketing zone for month / hour-of-day aggregates
DEFAULT_TIMEZONE = os.getenv('HISTORY_TIMEZONE', 'UTC')

# Only plays with a track identifier in this namespace are analysed
TRACK_URI_PREFIX = os.getenv('HISTORY_TRACK_URI_PREFIX', 'spotify:track:')

LOG_LEVEL = os.getenv('HISTORY_LOG_LEVEL', 'WARNING')


def get_timezone(name: Optional[str] = None) -> tzinfo:
    """
    Resolve an IANA zone name, defaulting to HISTORY_TIMEZONE.

    Raises:
        ValueError: If the zone is unknown
    """
    name = name or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone: {name}") from e


def get_log_level(name: Optional[str] = None) -> int:
    """Numeric level for HISTORY_LOG_LEVEL; unknown names fall back to WARNING."""
    level = logging.getLevelName((name or LOG_LEVEL).upper())
    return level if isinstance(level, int) else logging.WARNING
