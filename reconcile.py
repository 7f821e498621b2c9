#!/usr/bin/env python3
"""
reconcile.py - Reconcile critic reviews across aggregator sources

Merges duplicate review sightings per show, resolves URLs shared across shows,
flags reviews of the wrong production, and assigns scores.

Safety:
- Dry run is the DEFAULT (must pass --apply to write review files)
- A change is only written when it alters a field: re-running is a no-op
- Files are rewritten atomically (temp file + rename)
- Nothing is ever deleted here (see purge.py)
"""

import sys
import logging
import argparse
from pathlib import Path

from reconciler.config import ConfigError, resolve_config
from reconciler.controller import Reconciler
from reconciler.report import print_summary, write_reports
from reconciler.store import RegistryError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description='Reconcile critic reviews: merge, resolve collisions, verify, score',
        epilog="""
SAFETY: Defaults to a dry run. You must pass --apply to modify review files.

Examples:
  python reconcile.py                                  # Dry run with defaults
  python reconcile.py --apply                          # Write changes
  python reconcile.py --reviews-dir data/review-texts --shows data/shows.json
  python reconcile.py --config config.yaml --output output/reconcile --verbose
        """
    )
    parser.add_argument('--reviews-dir', '-r', type=Path, default=None,
                        help='Review files directory, one subdirectory per show (default: from config)')
    parser.add_argument('--shows', '-s', type=Path, default=None,
                        help='Show registry JSON (default: from config)')
    parser.add_argument('--config', type=Path, default=Path('config.yaml'),
                        help='Configuration file (default: config.yaml)')
    parser.add_argument('--output', '-o', type=Path, default=None,
                        help='Report output directory (default: from config)')
    parser.add_argument('--apply', action='store_true',
                        help='Write changes to review files (default is dry run)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging (per-decision reasons)')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = resolve_config(args.config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if args.reviews_dir is not None:
        config.reviews_dir = args.reviews_dir
    if args.shows is not None:
        config.shows_path = args.shows
    if args.output is not None:
        config.output_dir = args.output

    if args.apply:
        print("\n" + "=" * 60)
        print("APPLYING CHANGES")
        print(f"Reviews: {config.reviews_dir}")
        print(f"Shows:   {config.shows_path}")
        print("=" * 60 + "\n")
    else:
        print("\n" + "=" * 60)
        print("DRY RUN MODE - no review files will be modified")
        print("=" * 60 + "\n")

    reconciler = Reconciler(config)
    try:
        result = reconciler.run(apply=args.apply)
    except RegistryError as e:
        logger.error(str(e))
        return 1

    write_reports(result, config.output_dir)
    print_summary(result)

    return 0


if __name__ == '__main__':
    sys.exit(main())
