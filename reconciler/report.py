#!/usr/bin/env python3
"""
Audit report and console summary for a reconciliation run

Outputs (under the output directory):
    reconcile_report.json   summary, collisions, findings, changes
    canonical_reviews.csv   one row per canonical review
    show_breakdown.csv      per-show totals
    collisions.csv          every collision with its tier and confidence
    findings.csv            wrong-production verdicts
    score_sources.csv       scored reviews per source, with mean score
"""

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Dict, List

import pandas as pd

from reconciler.constants import CONFIDENCE_ORDER, TO_BE_CALCULATED
from reconciler.controller import STAGES, RunResult
from reconciler.merge import canonical_record, show_breakdown

logger = logging.getLogger(__name__)

COLLISION_COLUMNS = ['url', 'shows', 'tier', 'action', 'confidence', 'applied', 'winner', 'losers', 'reason']
FINDING_COLUMNS = [
    'showId', 'outlet', 'criticName', 'url', 'publishDate', 'classification', 'confidence',
    'applied', 'dateMismatch', 'genericIndicators', 'wrongFound', 'expectedFound', 'findings',
]
BREAKDOWN_COLUMNS = ['showId', 'totalReviews', 'withUrls', 'withText', 'needsText', 'needsScoring', 'flagged']


def collision_record(collision) -> dict:
    return {
        'url': collision.url,
        'shows': ';'.join(collision.show_ids),
        'tier': collision.tier,
        'action': collision.action,
        'confidence': collision.confidence,
        'applied': collision.is_actionable,
        'winner': collision.winner or '',
        'losers': ';'.join(sorted({r.show_id for r in collision.losers})),
        'reason': collision.reason,
    }


def finding_record(verdict) -> dict:
    review = verdict.review
    return {
        'showId': review.show_id,
        'outlet': review.outlet,
        'criticName': review.critic_name,
        'url': review.url or '',
        'publishDate': review.publish_date or '',
        'classification': verdict.classification,
        'confidence': verdict.confidence,
        'applied': verdict.is_actionable,
        'dateMismatch': verdict.date_mismatch,
        'genericIndicators': verdict.is_generic,
        'wrongFound': ';'.join(verdict.wrong_found),
        'expectedFound': ';'.join(verdict.expected_found),
        'findings': ' | '.join(f"[{f.severity}] {f.type}: {f.detail}" for f in verdict.findings),
    }


def breakdown_records(result: RunResult) -> List[dict]:
    return [
        show_breakdown(show_id, result.reviews[show_id], result.thresholds)
        for show_id in sorted(result.reviews)
    ]


def build_summary(result: RunResult) -> dict:
    stats = result.stats
    tiers = Counter(c.tier for c in result.collisions)
    confidences = Counter(c.confidence for c in result.collisions)
    classifications = Counter(v.classification for v in result.verdicts)
    sources = Counter(s.source or TO_BE_CALCULATED for s in result.scores.values())

    return {
        'mode': 'apply' if result.apply else 'dry-run',
        'generatedAt': pd.Timestamp.now().isoformat(timespec='seconds'),
        'shows': len(result.shows),
        'reviewFiles': stats.get('files', 0),
        'malformedFiles': stats.get('malformed', 0),
        'sightings': stats.get('sightings', 0),
        'canonicalReviews': stats.get('canonical', 0),
        'duplicatesMerged': stats.get('duplicates_merged', 0),
        'alreadyResolved': stats.get('already_resolved', 0),
        'missingShow': stats.get('missing_show', 0),
        'errorPages': stats.get('error_pages', 0),
        'collisions': len(result.collisions),
        'collisionsByTier': dict(sorted(tiers.items())),
        'collisionsByConfidence': {c: confidences[c] for c in CONFIDENCE_ORDER if confidences[c]},
        'collisionsApplied': sum(1 for c in result.collisions if c.is_actionable),
        'productionVerdicts': dict(sorted(classifications.items())),
        'scoreResults': dict(sorted(sources.items())),
        'changes': len(result.changes),
        'changesByStage': {s: result.changes.by_stage[s] for s in STAGES},
        'filesChanged': len(result.changes.by_file()),
        'filesWritten': stats.get('files_written', 0),
        'errors': stats.get('errors', 0),
    }


def build_report(result: RunResult) -> dict:
    return {
        'summary': build_summary(result),
        'collisions': [collision_record(c) for c in result.collisions],
        'findings': [finding_record(v) for v in result.verdicts],
        'changes': [c.to_record() for c in result.changes.changes],
    }


def score_source_table(records: List[dict]) -> pd.DataFrame:
    """Unflagged canonical reviews per score source (TO_BE_CALCULATED counted, never averaged)"""
    columns = ['scoreSource', 'reviews', 'meanScore']
    df = pd.DataFrame(records)
    if df.empty:
        return pd.DataFrame(columns=columns)
    df = df[~(df['wrongShow'] | df['wrongProduction'])].copy()
    df['scoreSource'] = df['scoreSource'].fillna(TO_BE_CALCULATED)
    df['assignedScore'] = pd.to_numeric(df['assignedScore'], errors='coerce')
    table = (
        df.groupby('scoreSource')
        .agg(reviews=('showId', 'size'), meanScore=('assignedScore', 'mean'))
        .reset_index()
        .sort_values('reviews', ascending=False)
    )
    table['meanScore'] = table['meanScore'].round(1)
    return table[columns]


def write_reports(result: RunResult, output_dir: Path) -> Dict[str, Path]:
    """Write the JSON report and CSV tables; returns name -> path"""
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = {}

    report_path = output_dir / 'reconcile_report.json'
    with open(report_path, 'w', encoding='utf-8') as f:
        json.dump(build_report(result), f, indent=2, ensure_ascii=False, default=str)
        f.write('\n')
    paths['report'] = report_path

    canonical = [canonical_record(r) for show_id in sorted(result.reviews) for r in result.reviews[show_id]]
    tables = {
        'canonical_reviews': pd.DataFrame(canonical),
        'show_breakdown': pd.DataFrame(breakdown_records(result), columns=BREAKDOWN_COLUMNS),
        'collisions': pd.DataFrame([collision_record(c) for c in result.collisions], columns=COLLISION_COLUMNS),
        'findings': pd.DataFrame([finding_record(v) for v in result.verdicts], columns=FINDING_COLUMNS),
        'score_sources': score_source_table(canonical),
    }
    for name, df in tables.items():
        path = output_dir / f'{name}.csv'
        df.to_csv(path, index=False)
        paths[name] = path

    logger.info(f"Wrote reports to {output_dir}")
    return paths


def print_summary(result: RunResult, show_limit: int = 20):
    """Console summary: stage counts, collision tiers, per-show breakdown"""
    summary = build_summary(result)

    print("\n" + "=" * 60)
    if result.apply:
        print("RECONCILIATION SUMMARY (applied)")
    else:
        print("DRY RUN SUMMARY (no files were modified)")
    print("=" * 60)
    print(f"  Shows in registry:      {summary['shows']:5d}")
    print(f"  Review files:           {summary['reviewFiles']:5d}")
    print(f"  Malformed (skipped):    {summary['malformedFiles']:5d}")
    print(f"  Already resolved:       {summary['alreadyResolved']:5d}")
    print(f"  Canonical reviews:      {summary['canonicalReviews']:5d}")
    print(f"  Duplicates merged:      {summary['duplicatesMerged']:5d}")
    print(f"  Error pages cleaned:    {summary['errorPages']:5d}")

    print(f"\nCOLLISIONS: {summary['collisions']} ({summary['collisionsApplied']} apply-level)")
    for tier, count in summary['collisionsByTier'].items():
        print(f"  {tier:20s}: {count:4d}")

    if summary['productionVerdicts']:
        print("\nWRONG-PRODUCTION VERDICTS:")
        for classification, count in summary['productionVerdicts'].items():
            print(f"  {classification:25s}: {count:4d}")

    print("\nSCORING:")
    for source, count in summary['scoreResults'].items():
        print(f"  {source:20s}: {count:4d}")

    print(f"\nCHANGES: {summary['changes']} across {summary['filesChanged']} files")
    for stage, count in summary['changesByStage'].items():
        print(f"  {stage:20s}: {count:4d}")
    if result.apply:
        print(f"  Files written:        {summary['filesWritten']:4d}")
    print(f"  Errors:               {summary['errors']:4d}")

    rows = breakdown_records(result)
    if rows:
        print("\nPER SHOW (most reviews first):")
        print(f"  {'show':32s} {'total':>5s} {'urls':>5s} {'text':>5s} {'noText':>6s} {'noScore':>7s} {'flag':>5s}")
        for row in sorted(rows, key=lambda r: (-r['totalReviews'], r['showId']))[:show_limit]:
            print(f"  {row['showId'][:32]:32s} {row['totalReviews']:5d} {row['withUrls']:5d} "
                  f"{row['withText']:5d} {row['needsText']:6d} {row['needsScoring']:7d} {row['flagged']:5d}")
        if len(rows) > show_limit:
            print(f"  ... {len(rows) - show_limit} more in show_breakdown.csv")
    print("=" * 60)

    if not result.apply:
        print("\nTo write changes, run again with --apply")
