#!/usr/bin/env python3
"""
Test suite for reconciler/controller.py — end-to-end dry run, apply, idempotence, reports
"""

import pytest
import sys
import json
import tempfile
from pathlib import Path
from unittest.mock import patch

import pandas as pd

sys.path.insert(0, str(Path(__file__).parent.parent))

from reconciler.config import PipelineConfig
from reconciler.controller import Reconciler
from reconciler.report import build_report, write_reports
from reconciler.store import RegistryError

URL = 'https://nyt.com/review-x'
TEXT = 'Diane Paulus stages the tribal love-rock musical as a joyous, aching celebration. ' * 3

SHOWS = [
    {'id': 'hair-2011', 'title': 'Hair', 'openingDate': '2011-03-31'},
    {'id': 'jajas-2023', 'title': 'Jajas', 'openingDate': '2023-10-05'},
    {'id': 'cabaret-2024', 'title': 'Cabaret', 'openingDate': '2024-04-21'},
]

REVIEWS = {
    'hair-2011/nytimes--ben-brantley.json': {
        'outlet': 'The New York Times', 'criticName': 'Ben Brantley', 'url': URL,
        'assignedScore': 85, 'scoreSource': 'llm-ensemble', 'fullText': TEXT,
    },
    'jajas-2023/nytimes--ben-brantley.json': {
        'outlet': 'The New York Times', 'criticName': 'Ben Brantley', 'url': URL,
    },
    'cabaret-2024/variety--frank-rizzo.json': {
        'outlet': 'Variety', 'criticName': 'Frank Rizzo', 'dtliThumb': 'Up', 'source': 'dtli',
    },
    'cabaret-2024/variety-dup.json': {
        'outlet': 'variety', 'criticName': 'FRANK RIZZO', 'bwwThumb': 'Up', 'source': 'bww',
    },
    'cabaret-2024/deadline--404.json': {
        'outlet': 'Deadline', 'fullText': 'Page not found. Perhaps searching can help.',
    },
}


def build_store(root: Path) -> PipelineConfig:
    reviews_dir = root / 'reviews'
    for name, data in REVIEWS.items():
        path = reviews_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2) + '\n', encoding='utf-8')
    (reviews_dir / 'cabaret-2024' / 'broken.json').write_text('{"outlet": ', encoding='utf-8')

    shows_path = root / 'shows.json'
    shows_path.write_text(json.dumps(SHOWS), encoding='utf-8')
    return PipelineConfig(reviews_dir=reviews_dir, shows_path=shows_path, output_dir=root / 'output')


def snapshot(reviews_dir: Path) -> dict:
    return {str(p.relative_to(reviews_dir)): p.read_bytes() for p in sorted(reviews_dir.rglob('*.json'))}


def read(config: PipelineConfig, name: str) -> dict:
    return json.loads((config.reviews_dir / name).read_text(encoding='utf-8'))


class TestDryRun:
    """Dry run never writes"""

    def test_files_untouched(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            before = snapshot(config.reviews_dir)

            result = Reconciler(config).run(apply=False)

            assert len(result.changes) > 0
            assert snapshot(config.reviews_dir) == before
            assert result.stats.get('files_written', 0) == 0

    def test_dry_run_output(self, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            Reconciler(config).run(apply=False)
            out = capsys.readouterr().out
            assert '[DRY RUN] jajas-2023/nytimes--ben-brantley.json' in out


class TestApply:
    """Apply writes the recorded changes"""

    def test_loser_flagged_with_winner(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            Reconciler(config).run(apply=True)

            jajas = read(config, 'jajas-2023/nytimes--ben-brantley.json')
            assert jajas['wrongShow'] is True
            assert 'hair-2011' in jajas['wrongShowReason']
            assert jajas['wrongShowReason'].startswith('Cross-show URL collision: review belongs to hair-2011')

            hair = read(config, 'hair-2011/nytimes--ben-brantley.json')
            assert 'wrongShow' not in hair
            assert hair['url'] == URL

    def test_scores_written_to_every_member(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            Reconciler(config).run(apply=True)

            for name in ('cabaret-2024/variety--frank-rizzo.json', 'cabaret-2024/variety-dup.json'):
                data = read(config, name)
                assert data['assignedScore'] == 80
                assert data['scoreSource'] == 'thumb'
                assert data['scoreDetail'] == 'thumb-dtli'

    def test_error_page_cleaned_and_unscored(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            Reconciler(config).run(apply=True)

            data = read(config, 'cabaret-2024/deadline--404.json')
            assert data['fullText'] is None
            assert data['garbageFullText'].startswith('Page not found')
            assert data['garbageReason'] == 'Error/404 page content'
            assert data['scoreStatus'] == 'TO_BE_CALCULATED'
            assert data.get('assignedScore') is None

    def test_malformed_file_skipped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            result = Reconciler(config).run(apply=True)
            assert result.stats['malformed'] == 1
            assert (config.reviews_dir / 'cabaret-2024' / 'broken.json').read_text() == '{"outlet": '

    def test_write_failure_counted_and_batch_continues(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            before = snapshot(config.reviews_dir)
            with patch('reconciler.controller.write_json_atomic', side_effect=OSError('disk full')):
                result = Reconciler(config).run(apply=True)
            assert result.stats['errors'] == len(result.changes.by_file())
            assert result.stats.get('files_written', 0) == 0
            assert snapshot(config.reviews_dir) == before

    def test_missing_registry_is_fatal(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            config.shows_path = Path(tmpdir) / 'missing.json'
            with pytest.raises(RegistryError):
                Reconciler(config).run(apply=True)


class TestApplyPreservesExistingDecisions:
    """Scores from elsewhere and weak verdicts survive an apply run untouched"""

    REVIEWS = {
        'our-town-2024/variety--frank-rizzo.json': {
            'outlet': 'Variety', 'criticName': 'Frank Rizzo', 'assignedScore': 78, 'scoreSource': 'archive',
        },
        'our-town-2024/vulture--sara-holdren.json': {
            'outlet': 'Vulture', 'criticName': 'Sara Holdren', 'humanReviewScore': 90, 'assignedScore': 90,
        },
        'our-town-2024/deadline--greg-evans.json': {
            'outlet': 'Deadline', 'criticName': 'Greg Evans',
            'fullText': 'The staging at Lincoln Center felt cramped and oddly lit.',
        },
    }

    def build(self, root: Path) -> PipelineConfig:
        reviews_dir = root / 'reviews'
        for name, data in self.REVIEWS.items():
            path = reviews_dir / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2) + '\n', encoding='utf-8')
        shows_path = root / 'shows.json'
        shows_path.write_text(json.dumps([{'id': 'our-town-2024', 'title': 'Our Town'}]), encoding='utf-8')
        return PipelineConfig(reviews_dir=reviews_dir, shows_path=shows_path, output_dir=root / 'output')

    def test_existing_scores_not_erased(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = self.build(Path(tmpdir))
            before = snapshot(config.reviews_dir)
            Reconciler(config).run(apply=True)
            after = snapshot(config.reviews_dir)

            for name in ('our-town-2024/variety--frank-rizzo.json', 'our-town-2024/vulture--sara-holdren.json'):
                assert after[name] == before[name]
            assert read(config, 'our-town-2024/variety--frank-rizzo.json')['assignedScore'] == 78

    def test_low_confidence_wrong_production_not_applied(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = self.build(Path(tmpdir))
            result = Reconciler(config).run(apply=True)

            assert [(v.classification, v.confidence) for v in result.verdicts] == [
                ('likely_wrong_production', 'low'),
            ]
            data = read(config, 'our-town-2024/deadline--greg-evans.json')
            assert 'wrongProduction' not in data
            assert result.changes.by_stage['verification'] == 0


class TestIdempotence:
    """A second apply run finds nothing to change"""

    def test_second_apply_is_noop(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            first = Reconciler(config).run(apply=True)
            after_first = snapshot(config.reviews_dir)

            second = Reconciler(config).run(apply=True)

            assert len(first.changes) > 0
            assert len(second.changes) == 0
            assert snapshot(config.reviews_dir) == after_first

    def test_second_run_reports_already_resolved(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            Reconciler(config).run(apply=True)
            second = Reconciler(config).run(apply=False)
            assert second.stats['already_resolved'] == 1
            assert second.collisions == []


class TestReports:
    """JSON report and CSV tables"""

    def test_report_contents(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            result = Reconciler(config).run(apply=False)
            report = build_report(result)

            assert report['summary']['mode'] == 'dry-run'
            assert report['summary']['collisionsByTier'] == {'non_revival_score': 1}
            assert report['summary']['canonicalReviews'] == 4
            assert report['collisions'][0]['winner'] == 'hair-2011'
            assert report['collisions'][0]['losers'] == 'jajas-2023'

    def test_written_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = build_store(Path(tmpdir))
            result = Reconciler(config).run(apply=False)
            paths = write_reports(result, config.output_dir)

            for name in ('report', 'canonical_reviews', 'show_breakdown', 'collisions',
                         'findings', 'score_sources'):
                assert paths[name].exists()

            collisions = pd.read_csv(paths['collisions'])
            assert collisions.loc[0, 'tier'] == 'non_revival_score'

            breakdown = pd.read_csv(paths['show_breakdown']).set_index('showId')
            assert breakdown.loc['cabaret-2024', 'totalReviews'] == 2

            sources = pd.read_csv(paths['score_sources']).set_index('scoreSource')
            assert sources.loc['thumb', 'reviews'] == 1
            assert 'TO_BE_CALCULATED' in sources.index
