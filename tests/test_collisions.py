#!/usr/bin/env python3
"""
Test suite for reconciler/collisions.py — cross-show URL attribution rule chain
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from reconciler.collisions import CollisionResolver
from reconciler.config import Thresholds
from reconciler.merge import SightingMerger
from reconciler.models import Collision, Show
from reconciler.store import ReviewStore
from reconciler.tables import ReferenceTables

TABLES = ReferenceTables.default()
STORE = ReviewStore(Path('unused'), TABLES)
MERGER = SightingMerger(TABLES, Thresholds())

URL = 'https://nyt.com/review-x'
TEXT = 'A full review body that runs well past the one hundred character mark so it counts as text. ' * 2


def make_show(show_id, title=None, opening=None, **extra):
    raw = {'id': show_id, 'title': title or show_id, 'openingDate': opening}
    raw.update(extra)
    return Show.from_dict(raw)


def make_review(show_id, url=URL, **data):
    data.setdefault('outlet', 'NYT')
    data.setdefault('criticName', 'Jesse Green')
    data['url'] = url
    sighting = STORE.make_sighting(Path(f'{show_id}.json'), show_id, data)
    return MERGER.build_canonical(show_id, [sighting])


def resolver_for(*shows):
    return CollisionResolver({s.id: s for s in shows}, TABLES, Thresholds())


def resolve(resolver, *reviews):
    return resolver.resolve(Collision(url=URL, candidates=list(reviews)))


class TestIndex:
    """Cross-show index construction"""

    def test_collision_needs_two_shows(self):
        resolver = resolver_for(make_show('hair-2011'), make_show('jajas-2023'))
        index = resolver.build_index({
            'hair-2011': [make_review('hair-2011')],
            'jajas-2023': [make_review('jajas-2023')],
        })
        collisions = resolver.find_collisions(index)
        assert len(collisions) == 1
        assert collisions[0].show_ids == ['hair-2011', 'jajas-2023']

    def test_flagged_reviews_excluded(self):
        resolver = resolver_for(make_show('hair-2011'), make_show('jajas-2023'))
        index = resolver.build_index({
            'hair-2011': [make_review('hair-2011')],
            'jajas-2023': [make_review('jajas-2023', wrongShow=True)],
        })
        assert resolver.find_collisions(index) == []
        assert resolver.stats['already_flagged'] == 1

    def test_missing_show_excluded(self):
        resolver = resolver_for(make_show('hair-2011'))
        index = resolver.build_index({
            'hair-2011': [make_review('hair-2011')],
            'ghost-2020': [make_review('ghost-2020')],
        })
        assert resolver.find_collisions(index) == []
        assert resolver.stats['missing_show'] == 1

    def test_index_keys_are_normalized(self):
        resolver = resolver_for(make_show('a'), make_show('b'))
        index = resolver.build_index({
            'a': [make_review('a', url='HTTP://WWW.NYT.com/Review-X/?utm=1')],
            'b': [make_review('b', url=URL)],
        })
        assert list(index) == [URL]


class TestGenericUrl:
    """Five or more shows sharing a URL"""

    def test_generic_nulls_url(self):
        shows = [make_show(f'show-{i}') for i in range(5)]
        reviews = [make_review(s.id, assignedScore=80, fullText=TEXT) for s in shows]
        collision = resolve(resolver_for(*shows), *reviews)
        assert collision.tier == 'generic_url'
        assert collision.action == 'null_url'
        assert collision.confidence == 'certain'
        assert collision.is_actionable

    def test_generic_wins_over_unique_score(self):
        shows = [make_show(f'show-{i}') for i in range(6)]
        reviews = [make_review(shows[0].id, assignedScore=80)] + [make_review(s.id) for s in shows[1:]]
        collision = resolve(resolver_for(*shows), *reviews)
        assert collision.tier == 'generic_url'
        assert collision.losers == []


class TestDateProximity:
    """Publish date near exactly one opening"""

    def test_single_show_in_window(self):
        near = make_show('new-musical-2024', opening='2024-04-01')
        far = make_show('old-play-2022', opening='2022-01-01')
        collision = resolve(
            resolver_for(near, far),
            make_review(near.id, publishDate='2024-04-10'),
            make_review(far.id, publishDate='2024-04-10'),
        )
        assert collision.tier == 'date_proximity'
        assert collision.confidence == 'high'
        assert collision.winner == 'new-musical-2024'
        assert [r.show_id for r in collision.losers] == ['old-play-2022']
        assert '2024-04-10' in collision.reason
        assert '9 days' in collision.reason

    def test_both_in_window_is_provisional(self):
        a = make_show('first-show', opening='2024-04-01')
        b = make_show('second-show', opening='2024-05-01')
        collision = resolve(
            resolver_for(a, b),
            make_review(a.id, publishDate='2024-04-15'),
            make_review(b.id, publishDate='2024-04-15'),
        )
        assert collision.tier == 'date_provisional'
        assert collision.confidence == 'medium'
        assert collision.winner == 'first-show'
        assert not collision.is_actionable

    def test_later_tier_beats_provisional(self):
        a = make_show('first-show', opening='2024-04-01')
        b = make_show('second-show', opening='2024-05-01')
        collision = resolve(
            resolver_for(a, b),
            make_review(a.id, publishDate='2024-04-15'),
            make_review(b.id, publishDate='2024-04-15', assignedScore=70),
        )
        assert collision.tier == 'non_revival_score'
        assert collision.winner == 'second-show'


class TestRevivalTiers:
    """Same title, different production years"""

    def test_unique_score_wins(self):
        old = make_show('cabaret-1998', opening='1998-03-19')
        new = make_show('cabaret-2024', opening='2024-04-21')
        collision = resolve(
            resolver_for(old, new),
            make_review(old.id),
            make_review(new.id, assignedScore=88),
        )
        assert collision.tier == 'revival_score'
        assert collision.confidence == 'high'
        assert collision.winner == 'cabaret-2024'

    def test_unique_text_wins(self):
        old = make_show('cabaret-1998')
        new = make_show('cabaret-2024')
        collision = resolve(resolver_for(old, new), make_review(old.id, fullText=TEXT), make_review(new.id))
        assert collision.tier == 'revival_text'
        assert collision.winner == 'cabaret-1998'

    def test_signal_spread_flags_signalless(self):
        shows = [make_show('our-town-1988'), make_show('our-town-2002'), make_show('our-town-2024')]
        collision = resolve(
            resolver_for(*shows),
            make_review('our-town-1988'),
            make_review('our-town-2002', assignedScore=70),
            make_review('our-town-2024', assignedScore=85),
        )
        assert collision.tier == 'revival_signal'
        assert collision.confidence == 'high'
        assert collision.winner is None
        assert [r.show_id for r in collision.losers] == ['our-town-1988']

    def test_no_signal_most_recent_wins(self):
        old = make_show('doubt-2005', opening='2005-03-31')
        new = make_show('doubt-2024', opening='2024-03-07')
        collision = resolve(resolver_for(old, new), make_review(old.id), make_review(new.id))
        assert collision.tier == 'revival_recent'
        assert collision.confidence == 'medium'
        assert collision.winner == 'doubt-2024'
        assert not collision.is_actionable

    def test_both_scored_unresolved(self):
        old = make_show('cabaret-1998')
        new = make_show('cabaret-2024')
        collision = resolve(
            resolver_for(old, new),
            make_review(old.id, assignedScore=80),
            make_review(new.id, assignedScore=90),
        )
        assert collision.tier == 'unresolved'
        assert collision.action == 'none'


class TestNonRevivalTiers:
    """Different titles, two shows"""

    def test_hair_vs_jajas(self):
        hair = make_show('hair-2011', title='Hair', opening='2011-03-31')
        jajas = make_show('jajas-2023', title='Jajas', opening='2023-10-05')
        collision = resolve(
            resolver_for(hair, jajas),
            make_review('hair-2011', assignedScore=85, fullText=TEXT),
            make_review('jajas-2023'),
        )
        assert collision.tier == 'non_revival_score'
        assert collision.confidence == 'high'
        assert collision.winner == 'hair-2011'
        assert [r.show_id for r in collision.losers] == ['jajas-2023']
        assert 'hair-2011' in collision.reason

    def test_human_score_counts_as_score(self):
        a = make_show('alpha')
        b = make_show('beta')
        collision = resolve(resolver_for(a, b), make_review('alpha'), make_review('beta', humanReviewScore=75))
        assert collision.winner == 'beta'

    def test_double_bill_suppressed(self):
        a = make_show('alpha', opening='2024-04-01')
        b = make_show('beta', opening='2024-04-08')
        collision = resolve(resolver_for(a, b), make_review('alpha', assignedScore=80), make_review('beta'))
        assert collision.tier == 'double_bill'
        assert collision.action == 'none'
        assert collision.confidence == 'low'
        assert collision.losers == []

    def test_short_text_is_not_signal(self):
        a = make_show('alpha')
        b = make_show('beta')
        collision = resolve(resolver_for(a, b), make_review('alpha', fullText='x' * 100), make_review('beta'))
        assert collision.tier == 'no_signal'


class TestKnownMappingAndFallbacks:
    """Curated table, null-out, unresolved"""

    def test_known_mapping(self):
        play = make_show('water-for-elephants-play')
        musical = make_show('water-for-elephants-2024')
        collision = resolve(
            resolver_for(play, musical),
            make_review(play.id, assignedScore=60),
            make_review(musical.id, assignedScore=80),
        )
        assert collision.tier == 'known_mapping'
        assert collision.confidence == 'high'
        assert collision.winner == 'water-for-elephants-2024'
        assert [r.show_id for r in collision.losers] == ['water-for-elephants-play']

    def test_no_signal_no_dates_nulls_url(self):
        a = make_show('alpha')
        b = make_show('beta')
        collision = resolve(resolver_for(a, b), make_review('alpha'), make_review('beta'))
        assert collision.tier == 'no_signal'
        assert collision.action == 'null_url'
        assert collision.confidence == 'certain'

    def test_unresolved_names_title_pair(self):
        a = make_show('outsiders-play', title='The Outsiders')
        b = make_show('outsiders-musical', title='The Outsiders: A New Musical')
        resolver = resolver_for(a, b)
        collision = resolve(resolver, make_review(a.id, assignedScore=70), make_review(b.id, assignedScore=85))
        assert collision.tier == 'unresolved'
        assert collision.confidence == 'low'
        assert 'outsiders-musical / outsiders-play' in collision.reason

    def test_unrelated_titles_no_hint(self):
        resolver = resolver_for(make_show('alpha', title='Hair'), make_show('beta', title='Doubt'))
        assert resolver.mapping_hints(['alpha', 'beta']) == []

    def test_tier_counts(self):
        a = make_show('alpha')
        b = make_show('beta')
        resolver = resolver_for(a, b)
        resolve(resolver, make_review('alpha'), make_review('beta'))
        assert resolver.stats['tier_no_signal'] == 1
        assert resolver.stats['confidence_certain'] == 1
