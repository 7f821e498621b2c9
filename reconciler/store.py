#!/usr/bin/env python3
"""
File-backed review store

Layout:
    <reviews_dir>/<showId>/<outlet>--<critic>.json   one sighting per file
    <shows_path>                                      registry: [...] or {"shows": [...]}

Malformed review files are skipped with a warning so one bad file never aborts
a batch. A registry that cannot be read is fatal (RegistryError).
"""

import os
import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, List

from reconciler.models import ReviewSighting, Show
from reconciler.normalization import normalize_outlet, normalize_critic
from reconciler.tables import ReferenceTables

logger = logging.getLogger(__name__)

# Collector bookkeeping files that live alongside reviews
IGNORED_FILES = {'failed-fetches.json'}


class RegistryError(Exception):
    """Show registry (or the reviews directory) is missing or cannot be parsed"""


def load_shows(shows_path: Path) -> Dict[str, Show]:
    """Load the show registry keyed by show id"""
    if not shows_path.exists():
        raise RegistryError(f"Show registry not found: {shows_path}")
    try:
        with open(shows_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise RegistryError(f"Cannot parse show registry {shows_path}: {e}")

    entries = raw.get('shows') if isinstance(raw, dict) else raw
    if not isinstance(entries, list):
        raise RegistryError(f"Show registry {shows_path} must be a list or {{\"shows\": [...]}}")

    shows = {}
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get('id'):
            logger.warning(f"Skipping registry entry without id: {str(entry)[:80]}")
            continue
        shows[entry['id']] = Show.from_dict(entry)

    logger.info(f"Loaded show registry: {len(shows)} shows")
    return shows


def write_json_atomic(path: Path, data: dict):
    """Write JSON (indent 2, trailing newline) via temp file + rename"""
    tmp_path = path.with_name(path.name + '.tmp')
    with open(tmp_path, 'w', encoding='utf-8') as f:
        f.write(json.dumps(data, indent=2, ensure_ascii=False) + '\n')
    os.replace(tmp_path, path)


class ReviewStore:
    """Load per-show review directories into ReviewSighting objects"""

    def __init__(self, reviews_dir: Path, tables: ReferenceTables):
        self.reviews_dir = reviews_dir
        self.tables = tables
        self.stats = defaultdict(int)
        # Raw outlet names with no alias entry, logged once per store
        self.unknown_outlets = set()

    def _review_files(self, show_dir: Path) -> List[Path]:
        return [
            p for p in sorted(show_dir.glob('*.json'))
            if p.name not in IGNORED_FILES and not p.name.startswith('.')
        ]

    def read_review(self, path: Path) -> dict:
        """Parse one review file; raises ValueError for anything but a JSON object"""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        return data

    def make_sighting(self, path: Path, show_id: str, data: dict) -> ReviewSighting:
        outlet_raw = data.get('outletId') or data.get('outlet')
        return ReviewSighting(
            path=path,
            show_id=show_id,
            data=data,
            outlet_id=normalize_outlet(outlet_raw, self.tables, self.unknown_outlets),
            critic_id=normalize_critic(data.get('criticName'), self.tables),
        )

    def load(self) -> Dict[str, List[ReviewSighting]]:
        """
        Load every review sighting, grouped by show directory.

        Returns:
            show_id -> list of sightings, in filename order
        """
        if not self.reviews_dir.exists():
            raise RegistryError(f"Reviews directory not found: {self.reviews_dir}")

        by_show: Dict[str, List[ReviewSighting]] = {}
        show_dirs = [d for d in sorted(self.reviews_dir.iterdir()) if d.is_dir() and not d.name.startswith('.')]

        for show_dir in show_dirs:
            sightings = []
            for path in self._review_files(show_dir):
                try:
                    data = self.read_review(path)
                except (OSError, UnicodeDecodeError, ValueError) as e:
                    # json.JSONDecodeError is a ValueError
                    self.stats['malformed'] += 1
                    logger.warning(f"Skipping malformed review file {show_dir.name}/{path.name}: {e}")
                    continue
                sightings.append(self.make_sighting(path, show_dir.name, data))
                self.stats['files'] += 1
            by_show[show_dir.name] = sightings

        logger.info(f"Loaded {self.stats['files']} review files from {len(show_dirs)} show directories"
                    f" ({self.stats['malformed']} malformed)")
        return by_show
