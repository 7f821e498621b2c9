#!/usr/bin/env python3
"""
Reconciliation controller

Runs the pipeline stages in order over one in-memory snapshot of the store:

    load -> error-page hygiene -> merge -> collisions -> verification -> scoring

Each stage records the field updates it wants as Change objects. A change is
recorded only when it alters a value, so a second apply run finds nothing to
do. Dry run (the default) leaves every file untouched; apply groups changes per
file and writes each one atomically.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from reconciler.collisions import CollisionResolver
from reconciler.config import PipelineConfig, Thresholds
from reconciler.merge import SightingMerger
from reconciler.models import CanonicalReview, Collision, ProductionVerdict, ReviewSighting, ScoreResult, Show
from reconciler.production import ProductionVerifier, verdict_reason
from reconciler.scoring import ScoreCascade, score_updates
from reconciler.store import ReviewStore, load_shows, write_json_atomic
from reconciler.tables import ReferenceTables

logger = logging.getLogger(__name__)

STAGES = ['hygiene', 'collision', 'verification', 'scoring']

GARBAGE_REASON = 'Error/404 page content'


@dataclass
class Change:
    """Field updates for one sighting file, with the reason they were made"""
    sighting: ReviewSighting
    updates: Dict[str, Any]
    reason: str
    stage: str

    @property
    def path(self) -> Path:
        return self.sighting.path

    def to_record(self) -> dict:
        return {
            'file': self.sighting.label,
            'stage': self.stage,
            'fields': sorted(self.updates),
            'updates': self.updates,
            'reason': self.reason,
        }


class ChangeSet:
    """Ordered list of changes, grouped per file at apply time"""

    def __init__(self):
        self.changes: List[Change] = []
        self.by_stage = defaultdict(int)

    def __len__(self):
        return len(self.changes)

    def add(self, change: Change):
        self.changes.append(change)
        self.by_stage[change.stage] += 1

    def by_file(self) -> Dict[Path, List[Change]]:
        grouped: Dict[Path, List[Change]] = {}
        for change in self.changes:
            grouped.setdefault(change.path, []).append(change)
        return grouped


@dataclass
class RunResult:
    """Everything one run produced, for reporting"""
    apply: bool
    shows: Dict[str, Show]
    reviews: Dict[str, List[CanonicalReview]]
    collisions: List[Collision] = field(default_factory=list)
    verdicts: List[ProductionVerdict] = field(default_factory=list)
    scores: Dict[tuple, ScoreResult] = field(default_factory=dict)
    changes: ChangeSet = field(default_factory=ChangeSet)
    stats: Dict[str, int] = field(default_factory=dict)
    thresholds: Thresholds = field(default_factory=Thresholds)


class Reconciler:
    """Load, analyze and (optionally) write back the review store"""

    def __init__(self, config: PipelineConfig, tables: Optional[ReferenceTables] = None):
        self.config = config
        self.tables = tables or ReferenceTables.default(config.table_overrides)
        self.thresholds = config.thresholds
        self.stats = defaultdict(int)
        self.changes = ChangeSet()

        self.store = ReviewStore(config.reviews_dir, self.tables)
        self.merger = SightingMerger(self.tables, self.thresholds)
        self.cascade = ScoreCascade(self.thresholds)

    # ------------------------------------------------------------------
    # Change recording
    # ------------------------------------------------------------------

    def record(self, sighting: ReviewSighting, updates: Dict[str, Any], reason: str, stage: str) -> bool:
        """Record (and apply in memory) the subset of updates that changes the sighting"""
        diff = {name: value for name, value in updates.items() if sighting.data.get(name) != value}
        if not diff:
            return False
        sighting.data.update(diff)
        self.changes.add(Change(sighting, diff, reason, stage))
        return True

    def record_review(self, review: CanonicalReview, updates: Dict[str, Any], reason: str, stage: str,
                      skip_resolved: bool = True) -> int:
        """Write updates to every member of a canonical review; returns files changed"""
        changed = 0
        for member in review.members:
            if skip_resolved and member.is_resolved:
                self.stats[f'{stage}_skipped_resolved'] += 1
                continue
            if self.record(member, updates, reason, stage):
                changed += 1
        review.fields.update(updates)
        return changed

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def clean_error_pages(self, by_show: Dict[str, List[ReviewSighting]]):
        """Move captured 404/error-page text out of fullText"""
        limit = self.thresholds.error_page_max_chars
        for show_id in sorted(by_show):
            for sighting in by_show[show_id]:
                text = sighting.full_text
                if text is None or len(text) > limit:
                    continue
                lowered = text.lower()
                if not any(pattern in lowered for pattern in self.tables.error_page_patterns):
                    continue
                updates = {'garbageFullText': text, 'fullText': None, 'garbageReason': GARBAGE_REASON}
                if self.record(sighting, updates, GARBAGE_REASON, 'hygiene'):
                    self.stats['error_pages'] += 1

    def resolve_collisions(self, shows: Dict[str, Show], reviews: Dict[str, List[CanonicalReview]]) -> List[Collision]:
        resolver = CollisionResolver(shows, self.tables, self.thresholds)
        index = resolver.build_index(reviews)

        resolved = []
        for collision in resolver.find_collisions(index):
            # Earlier decisions in this run may have flagged a candidate or nulled its URL
            live = [c for c in collision.candidates if not c.is_flagged and collision.url in c.member_urls]
            if len({c.show_id for c in live}) < 2:
                self.stats['collisions_superseded'] += 1
                continue
            collision.candidates = live
            resolver.resolve(collision)
            resolved.append(collision)
            if collision.is_actionable:
                self.apply_collision(collision)

        for key, value in resolver.stats.items():
            self.stats[key] += value
        return resolved

    def apply_collision(self, collision: Collision):
        if collision.action == 'null_url':
            reason = f"Cross-show URL collision: {collision.reason}"
            for review in collision.candidates:
                for member in review.members:
                    if member.norm_url == collision.url:
                        self.record(member, {'url': None}, reason, 'collision')
                review.fields['url'] = next((m.url for m in review.members if m.url), None)
            self.stats['urls_nulled'] += 1
            return

        if collision.winner:
            reason = f"Cross-show URL collision: review belongs to {collision.winner} ({collision.reason})"
        else:
            reason = (f"Cross-show URL collision: review lacks score/text while other productions "
                      f"carry it ({collision.reason})")
        for loser in collision.losers:
            if self.record_review(loser, {'wrongShow': True, 'wrongShowReason': reason}, reason, 'collision'):
                self.stats['reviews_flagged_wrong_show'] += 1

    def verify_productions(self, shows: Dict[str, Show],
                           reviews: Dict[str, List[CanonicalReview]]) -> List[ProductionVerdict]:
        verifier = ProductionVerifier(shows, self.tables, self.thresholds)
        verdicts = verifier.verify_all(reviews)
        for verdict in verdicts:
            if not verdict.is_actionable:
                continue
            reason = verdict_reason(verdict)
            updates = {'wrongProduction': True, 'wrongProductionReason': reason}
            if self.record_review(verdict.review, updates, reason, 'verification'):
                self.stats['reviews_flagged_wrong_production'] += 1
        return verdicts

    def assign_scores(self, reviews: Dict[str, List[CanonicalReview]]) -> Dict[tuple, ScoreResult]:
        results = self.cascade.score_all(reviews)
        for show_id in sorted(reviews):
            for review in reviews[show_id]:
                result = results.get(review.key)
                if result is None:
                    continue
                if result.score is None:
                    reason = 'No score source applies'
                else:
                    reason = f"{result.source} ({result.detail})"
                updates = score_updates(result, keep_score=self.cascade.keeps_existing_score(review))
                self.record_review(review, updates, reason, 'scoring')
        return results

    # ------------------------------------------------------------------
    # Write-back
    # ------------------------------------------------------------------

    def write_changes(self):
        """Write every changed file once, continuing past per-file failures"""
        for path, changes in self.changes.by_file().items():
            sighting = changes[0].sighting
            try:
                write_json_atomic(path, sighting.data)
            except (OSError, TypeError, ValueError) as e:
                self.stats['errors'] += 1
                logger.error(f"Error writing {sighting.label}: {e}")
                continue
            self.stats['files_written'] += 1
            for change in changes:
                logger.info(f"Updated {sighting.label}: {', '.join(sorted(change.updates))} - {change.reason}")

    def print_changes(self):
        for changes in self.changes.by_file().values():
            print(f"[DRY RUN] {changes[0].sighting.label}")
            for change in changes:
                for name in sorted(change.updates):
                    value = repr(change.updates[name])
                    if len(value) > 60:
                        value = value[:57] + '...'
                    print(f"  {name} -> {value}  [{change.stage}] {change.reason}")

    # ------------------------------------------------------------------

    def run(self, apply: bool = False) -> RunResult:
        """
        Run every stage; write back only when apply is True.

        Raises:
            RegistryError: show registry or reviews directory unusable
        """
        shows = load_shows(self.config.shows_path)
        by_show = self.store.load()

        self.clean_error_pages(by_show)
        reviews = self.merger.merge_all(by_show)
        collisions = self.resolve_collisions(shows, reviews)
        verdicts = self.verify_productions(shows, reviews)
        scores = self.assign_scores(reviews)

        logger.info(f"{len(self.changes)} field changes across {len(self.changes.by_file())} files "
                    f"({', '.join(f'{s}={self.changes.by_stage[s]}' for s in STAGES)})")

        if apply:
            self.write_changes()
        else:
            self.print_changes()

        stats = {}
        for source in (self.store.stats, self.merger.stats, self.cascade.stats, self.stats):
            for key, value in source.items():
                stats[key] = stats.get(key, 0) + value

        return RunResult(
            apply=apply,
            shows=shows,
            reviews=reviews,
            collisions=collisions,
            verdicts=verdicts,
            scores=scores,
            changes=self.changes,
            stats=stats,
            thresholds=self.thresholds,
        )
