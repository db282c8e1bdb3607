import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import orjson

import config
from aggregation import top_artists
from ingest import ingest_files
from parser import ParseError
from view import SORT_MODES, ViewSequencer


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Summarize a streaming history export.",
    )
    parser.add_argument(
        "files",
        nargs="+",
        help="Streaming history JSON files or export ZIP archives.",
    )
    parser.add_argument(
        "--timezone",
        default=config.DEFAULT_TIMEZONE,
        help="IANA zone for monthly and hour-of-day buckets.",
    )
    parser.add_argument(
        "--sort",
        choices=SORT_MODES,
        default=SORT_MODES[0],
        help="Order of the listening entries page.",
    )
    parser.add_argument(
        "--page",
        type=int,
        default=1,
        help="Page of listening entries to show.",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=config.PAGE_SIZE,
        help="Entries per page.",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=10,
        help="Number of artists to list.",
    )
    parser.add_argument(
        "--dedupe",
        action="store_true",
        help="Collapse identical repeated plays (same time, track and duration).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON instead of text.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=config.get_log_level(), format="%(levelname)s %(name)s: %(message)s")

    if args.page_size < 1:
        print("--page-size must be >= 1", file=sys.stderr)
        return 2
    try:
        tz = config.get_timezone(args.timezone)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2

    try:
        result = asyncio.run(ingest_files(args.files, tz, dedupe=args.dedupe))
    except (ParseError, OSError) as e:
        print(f"Failed to load listening history: {e}", file=sys.stderr)
        return 1

    view = ViewSequencer(result.events, page_size=args.page_size)
    view.set_mode(args.sort)
    view.go_to(args.page)
    page = view.current_page()
    rows = [view.describe_row(event, tz) for event in page.items]

    if args.json:
        payload = result.to_dict()
        payload['top_artists'] = [
            {'artist': s.artist, 'minutes': s.minutes} for s in top_artists(result.artist_stats, args.top)
        ]
        payload['page'] = {
            'mode': page.mode,
            'page': page.page,
            'total_pages': page.total_pages,
            'page_size': page.page_size,
            'total_minutes': page.totals.total_minutes,
            'tracks_played': page.totals.tracks_played,
            'rows': rows,
        }
        sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode() + "\n")
        return 0

    if result.is_empty:
        print(f"No listening history found ({result.raw_count} records, none eligible).")
        return 0

    print(f"Total listening time: {page.totals.total_minutes:.2f} minutes")
    print(f"Total tracks played: {page.totals.tracks_played}")

    print("\nTop artists:")
    for stat in top_artists(result.artist_stats, args.top):
        print(f"  {stat.artist}: {stat.minutes:.2f} min")

    print("\nMonthly listening:")
    skips = {b.month: b for b in result.monthly_skips}
    for bucket in result.monthly_minutes:
        skip = skips[bucket.month]
        print(
            f"  {bucket.month}: {bucket.minutes:.2f} min, "
            f"skipped {skip.skipped_count}/{skip.total_count} ({skip.skip_rate_percent:.1f}%)"
        )

    print("\nTime of day:")
    for bucket in result.hourly_minutes:
        print(f"  {bucket.hour_label}: {bucket.minutes:.2f} min")

    if result.longest_gap:
        gap = result.longest_gap
        print(
            f"\nLongest break: {gap.minutes:.0f} minutes "
            f"({gap.start_event.timestamp.astimezone(tz):%Y-%m-%d %H:%M} to "
            f"{gap.end_event.timestamp.astimezone(tz):%Y-%m-%d %H:%M})"
        )

    print(f"\nListening entries ({page.mode}, page {page.page} of {page.total_pages}):")
    for row in rows:
        line = f"  {row['track_name']} by {row['artist_name']} - {row['minutes']:.2f} min"
        if 'count' in row:
            line += f" (Listened {row['count']} times, Total: {row['total_minutes']:.2f} min)"
        else:
            line += f" ({row['date']})"
        print(line)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
