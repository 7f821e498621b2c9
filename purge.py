#!/usr/bin/env python3
"""
purge.py - Delete review files flagged as belonging to another show

Pure DELETION operation. Never flags anything itself: reads wrongShow flags
written by reconcile.py --apply and removes the flagged files.

Safety:
- --dry-run is the DEFAULT (must pass --execute to actually delete)
- A file is deleted only when BOTH hold:
  1. wrongShow is exactly true
  2. the winning show named in wrongShowReason is in the registry and holds
     an unflagged review with the same normalized URL
- Flags that name no winner (e.g. "lacks score/text while other productions
  carry it") are never deleted automatically
"""

import re
import sys
import logging
import argparse
from collections import defaultdict
from pathlib import Path
from typing import Dict, Optional, Set

from reconciler.constants import STATE_DELETED
from reconciler.models import advance_state
from reconciler.store import RegistryError, ReviewStore, load_shows
from reconciler.tables import ReferenceTables

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

WINNER_PATTERN = re.compile(r'review belongs to (\S+) \(')


def winner_from_reason(reason) -> Optional[str]:
    """Show id named as the owner in a wrongShowReason, if any"""
    if not isinstance(reason, str):
        return None
    match = WINNER_PATTERN.search(reason)
    return match.group(1) if match else None


def unflagged_urls(by_show) -> Dict[str, Set[str]]:
    """show_id -> normalized URLs of its reviews that carry no resolution flag"""
    urls = defaultdict(set)
    for show_id, sightings in by_show.items():
        for sighting in sightings:
            if not sighting.is_resolved and sighting.norm_url:
                urls[show_id].add(sighting.norm_url)
    return urls


def purge_flagged(reviews_dir: Path, shows_path: Path, dry_run: bool = True) -> Dict[str, int]:
    """
    Delete (or dry-run) every wrongShow file whose owner is confirmed.

    Args:
        reviews_dir: Review files directory (one subdirectory per show)
        shows_path: Show registry JSON
        dry_run: If True, only report what would happen

    Returns:
        Statistics dict
    """
    stats = {
        'flagged': 0,
        'deleted': 0,
        'skipped_no_winner': 0,
        'skipped_unknown_winner': 0,
        'skipped_unconfirmed': 0,
        'errors': 0,
    }

    shows = load_shows(shows_path)
    store = ReviewStore(reviews_dir, ReferenceTables.default())
    by_show = store.load()
    owner_urls = unflagged_urls(by_show)

    for show_id in sorted(by_show):
        for sighting in by_show[show_id]:
            if sighting.data.get('wrongShow') is not True:
                continue
            stats['flagged'] += 1

            winner = winner_from_reason(sighting.data.get('wrongShowReason'))
            if winner is None:
                stats['skipped_no_winner'] += 1
                logger.debug(f"No winner named, keeping {sighting.label}")
                continue
            if winner not in shows:
                stats['skipped_unknown_winner'] += 1
                logger.warning(f"Winner {winner} not in registry, keeping {sighting.label}")
                continue
            if not sighting.norm_url or sighting.norm_url not in owner_urls.get(winner, set()):
                stats['skipped_unconfirmed'] += 1
                logger.warning(f"{winner} holds no unflagged review of {sighting.url}, keeping {sighting.label}")
                continue

            advance_state(sighting.state, STATE_DELETED)
            if dry_run:
                print(f"[DRY RUN] {sighting.label}")
                print(f"  -> belongs to {winner}")
                stats['deleted'] += 1
            else:
                try:
                    sighting.path.unlink()
                    stats['deleted'] += 1
                    logger.info(f"Deleted: {sighting.label} (belongs to {winner})")
                except OSError as e:
                    stats['errors'] += 1
                    logger.error(f"Error deleting {sighting.label}: {e}")

    return stats


def print_stats(stats: Dict[str, int], dry_run: bool):
    """Print summary statistics"""
    print("\n" + "=" * 60)
    if dry_run:
        print("DRY RUN SUMMARY (no files were deleted)")
    else:
        print("PURGE SUMMARY")
    print("=" * 60)
    print(f"  Flagged wrongShow:        {stats['flagged']:5d}")
    print(f"  {'Would delete' if dry_run else 'Deleted'}:             {stats['deleted']:5d}")
    print(f"  Skipped (no winner):      {stats['skipped_no_winner']:5d}")
    print(f"  Skipped (unknown winner): {stats['skipped_unknown_winner']:5d}")
    print(f"  Skipped (unconfirmed):    {stats['skipped_unconfirmed']:5d}")
    print(f"  Errors:                   {stats['errors']:5d}")
    print("=" * 60)

    if dry_run:
        print("\nTo execute, run again with --execute")


def main():
    parser = argparse.ArgumentParser(
        description='Delete review files flagged wrongShow by reconcile.py',
        epilog="""
SAFETY: Defaults to --dry-run. You must pass --execute to actually delete files.

Examples:
  python purge.py                           # Dry run with defaults
  python purge.py --execute                 # Actually delete files
  python purge.py --reviews-dir data/review-texts --shows data/shows.json --execute
        """
    )
    parser.add_argument('--reviews-dir', '-r', type=Path, default=Path('data/review-texts'),
                        help='Review files directory (default: data/review-texts)')
    parser.add_argument('--shows', '-s', type=Path, default=Path('data/shows.json'),
                        help='Show registry JSON (default: data/shows.json)')
    parser.add_argument('--execute', action='store_true',
                        help='Actually delete files (default is dry-run)')
    parser.add_argument('--dry-run', action='store_true', default=True,
                        help='Show what would be done without deleting (default)')

    args = parser.parse_args()

    # If --execute is passed, disable dry-run
    dry_run = not args.execute

    if dry_run:
        print("\n" + "=" * 60)
        print("DRY RUN MODE - no files will be deleted")
        print("=" * 60 + "\n")
    else:
        print("\n" + "=" * 60)
        print("EXECUTING PURGE")
        print(f"Reviews: {args.reviews_dir}")
        print("=" * 60 + "\n")

    try:
        stats = purge_flagged(args.reviews_dir, args.shows, dry_run)
    except RegistryError as e:
        logger.error(str(e))
        return 1

    print_stats(stats, dry_run)
    return 0 if stats['errors'] == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
