#!/usr/bin/env python3
"""
Test suite for reconciler/store.py — review file loading, registry, atomic writes
"""

import pytest
import sys
import json
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from reconciler.models import advance_state
from reconciler.store import RegistryError, ReviewStore, load_shows, write_json_atomic
from reconciler.tables import ReferenceTables


def write_json(path: Path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding='utf-8')


class TestLoadShows:
    """Show registry parsing"""

    def test_list_form(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'shows.json'
            write_json(path, [{'id': 'hair-2011', 'title': 'Hair', 'openingDate': '2011-03-31'}])
            shows = load_shows(path)
            assert shows['hair-2011'].title == 'Hair'
            assert shows['hair-2011'].opening.year == 2011

    def test_wrapped_form(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'shows.json'
            write_json(path, {'shows': [{'id': 'hair-2011'}, {'title': 'no id'}]})
            shows = load_shows(path)
            assert list(shows) == ['hair-2011']
            assert shows['hair-2011'].title == 'hair-2011'

    def test_missing_registry(self):
        with pytest.raises(RegistryError):
            load_shows(Path('/nonexistent/shows.json'))

    def test_unparseable_registry(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'shows.json'
            path.write_text('{not json', encoding='utf-8')
            with pytest.raises(RegistryError):
                load_shows(path)

    def test_wrong_shape(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'shows.json'
            write_json(path, {'shows': 'nope'})
            with pytest.raises(RegistryError):
                load_shows(path)


class TestReviewStore:
    """Per-show review directories"""

    def test_load_groups_by_show(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            write_json(root / 'hair-2011' / 'nytimes--ben-brantley.json',
                       {'outlet': 'The New York Times', 'criticName': 'Ben Brantley'})
            write_json(root / 'jajas-2023' / 'variety--unknown.json', {'outlet': 'Variety'})
            by_show = ReviewStore(root, ReferenceTables.default()).load()

            assert sorted(by_show) == ['hair-2011', 'jajas-2023']
            sighting = by_show['hair-2011'][0]
            assert sighting.outlet_id == 'nytimes'
            assert sighting.critic_id == 'ben brantley'
            assert by_show['jajas-2023'][0].critic_id == 'unknown'

    def test_malformed_skipped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / 'hair-2011').mkdir()
            (root / 'hair-2011' / 'broken.json').write_text('{"outlet": ', encoding='utf-8')
            write_json(root / 'hair-2011' / 'list.json', [1, 2, 3])
            write_json(root / 'hair-2011' / 'good.json', {'outlet': 'Variety', 'criticName': 'Frank Rizzo'})
            store = ReviewStore(root, ReferenceTables.default())
            by_show = store.load()

            assert [s.path.name for s in by_show['hair-2011']] == ['good.json']
            assert store.stats['malformed'] == 2
            assert store.stats['files'] == 1

    def test_bookkeeping_and_hidden_files_ignored(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            write_json(root / 'hair-2011' / 'failed-fetches.json', {'outlet': 'x'})
            write_json(root / 'hair-2011' / '.draft.json', {'outlet': 'x'})
            write_json(root / '.cache' / 'a.json', {'outlet': 'x'})
            by_show = ReviewStore(root, ReferenceTables.default()).load()
            assert by_show == {'hair-2011': []}

    def test_unknown_outlets_tracked_per_store(self):
        tables = ReferenceTables.default()
        first = ReviewStore(Path('unused'), tables)
        first.make_sighting(Path('a.json'), 'hair-2011', {'outlet': 'Bistro Gazette'})
        first.make_sighting(Path('b.json'), 'hair-2011', {'outlet': 'bistro  gazette'})
        assert first.unknown_outlets == {'bistro gazette'}

        second = ReviewStore(Path('unused'), tables)
        assert second.unknown_outlets == set()

    def test_missing_reviews_dir(self):
        with pytest.raises(RegistryError):
            ReviewStore(Path('/nonexistent/reviews'), ReferenceTables.default()).load()


class TestWriteJsonAtomic:
    """Atomic write format"""

    def test_format_and_no_temp_left(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'review.json'
            write_json_atomic(path, {'criticName': 'Hélène', 'url': None})
            text = path.read_text(encoding='utf-8')
            assert text == '{\n  "criticName": "Hélène",\n  "url": null\n}\n'
            assert list(Path(tmpdir).iterdir()) == [path]


class TestReviewState:
    """Forward-only review lifecycle"""

    def test_forward(self):
        assert advance_state('unresolved', 'flagged') == 'flagged'
        assert advance_state('flagged', 'deleted') == 'deleted'

    def test_same_state_allowed(self):
        assert advance_state('flagged', 'flagged') == 'flagged'

    def test_backward_rejected(self):
        with pytest.raises(ValueError):
            advance_state('flagged', 'unresolved')

    def test_unknown_state(self):
        with pytest.raises(ValueError):
            advance_state('unresolved', 'archived')
