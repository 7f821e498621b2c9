#!/usr/bin/env python3
"""
Cross-show collision resolver

A collision is one normalized URL carried by reviews filed under two or more
shows. Ownership is decided by an ordered rule chain; the first rule that
claims a collision decides it and no later rule looks at it.

Rule order:
1. [CERTAIN] generic_url       - >= 5 shows share the URL: nav/ad link, null it everywhere
2. [HIGH]    date_proximity    - 2-way non-revival: exactly one publishDate within 60 days of an opening
3. [HIGH]    revival_score     - revival set: exactly one candidate has a score
   [HIGH]    revival_text      - revival set: exactly one candidate has full text
   [HIGH]    revival_signal    - revival set of 3+: flag every candidate without score/text
   [MEDIUM]  revival_recent    - revival set, no signal anywhere: most recent production wins
4. [LOW]     double_bill       - 2-way non-revival, openings within 14 days: suppressed, no action
   [HIGH]    non_revival_score - 2-way non-revival: exactly one candidate has a score
   [HIGH]    non_revival_text  - 2-way non-revival: exactly one candidate has full text
5. [HIGH]    known_mapping     - curated wrongId -> correctId table
6. [CERTAIN] no_signal         - no score/text anywhere and no usable dates: null the URL
7. [MEDIUM]  date_provisional  - several publishDates within 60 days: closest wins provisionally
8. [LOW]     unresolved        - logged for curation of the known-mapping table

Only CERTAIN and HIGH decisions are applied; MEDIUM and LOW stay in the report.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional

from fuzzywuzzy import fuzz

from reconciler.config import Thresholds
from reconciler.models import CanonicalReview, Collision, Show
from reconciler.normalization import parse_date, strip_year_suffix, year_suffix
from reconciler.tables import ReferenceTables

logger = logging.getLogger(__name__)


def _ids(reviews: List[CanonicalReview]) -> str:
    return ', '.join(sorted({r.show_id for r in reviews}))


class CollisionResolver:
    """Find and resolve URLs shared across shows"""

    def __init__(self, shows: Dict[str, Show], tables: ReferenceTables, thresholds: Thresholds):
        self.shows = shows
        self.tables = tables
        self.thresholds = thresholds
        self.stats = defaultdict(int)
        self.rules = [
            self._generic_url,
            self._date_proximity,
            self._revival,
            self._non_revival,
            self._known_mapping,
            self._no_signal,
            self._date_provisional,
            self._unresolved,
        ]

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def is_eligible(self, review: CanonicalReview) -> bool:
        """Already-flagged reviews and reviews of unknown shows never take part"""
        if review.is_flagged:
            return False
        return review.show_id in self.shows

    def build_index(self, reviews_by_show: Dict[str, List[CanonicalReview]]) -> Dict[str, List[CanonicalReview]]:
        """normalized URL -> canonical reviews carrying it, across all shows"""
        index: Dict[str, List[CanonicalReview]] = defaultdict(list)
        for show_id in sorted(reviews_by_show):
            if show_id not in self.shows:
                self.stats['missing_show'] += len(reviews_by_show[show_id])
                logger.warning(f"Show {show_id} not in registry - {len(reviews_by_show[show_id])} reviews "
                               f"excluded from collision checks")
                continue
            for review in reviews_by_show[show_id]:
                if review.is_flagged:
                    self.stats['already_flagged'] += 1
                    continue
                for url in review.member_urls:
                    index[url].append(review)
        return index

    def find_collisions(self, index: Dict[str, List[CanonicalReview]]) -> List[Collision]:
        collisions = []
        for url in sorted(index):
            candidates = index[url]
            if len({c.show_id for c in candidates}) >= 2:
                collisions.append(Collision(url=url, candidates=list(candidates)))
        logger.info(f"Found {len(collisions)} cross-show URL collisions across {len(index)} URLs")
        return collisions

    # ------------------------------------------------------------------
    # Evidence helpers
    # ------------------------------------------------------------------

    def _has_score(self, review: CanonicalReview) -> bool:
        return review.has_score()

    def _has_text(self, review: CanonicalReview) -> bool:
        return review.has_text(self.thresholds.min_signal_text_chars)

    def _has_signal(self, review: CanonicalReview) -> bool:
        return self._has_score(review) or self._has_text(review)

    def _is_revival_set(self, collision: Collision) -> bool:
        return len({strip_year_suffix(sid) for sid in collision.show_ids}) == 1

    def _date_evidence(self, collision: Collision) -> List[dict]:
        """Candidates with both a publishDate and an opening date, closest first"""
        dated = []
        for review in collision.candidates:
            show = self.shows.get(review.show_id)
            published = parse_date(review.publish_date)
            opening = show.opening if show else None
            if published is None or opening is None:
                continue
            dated.append({
                'review': review,
                'days': abs((published - opening).days),
                'published': published.date().isoformat(),
                'opening': opening.date().isoformat(),
            })
        return sorted(dated, key=lambda d: (d['days'], d['review'].show_id))

    def _decide(self, collision: Collision, tier: str, action: str, confidence: str, reason: str,
                winner: Optional[str] = None, losers: Optional[List[CanonicalReview]] = None) -> Collision:
        collision.tier = tier
        collision.action = action
        collision.confidence = confidence
        collision.reason = reason
        collision.winner = winner
        collision.losers = list(losers or [])
        return collision

    def _winner_by(self, collision: Collision, predicate, tier: str, label: str, kind: str) -> Optional[Collision]:
        """Exactly one candidate satisfies predicate -> it wins at high confidence"""
        holders = [c for c in collision.candidates if predicate(c)]
        if len({c.show_id for c in holders}) != 1:
            return None
        winner = holders[0].show_id
        losers = [c for c in collision.candidates if c.show_id != winner]
        reason = f"{kind}; only {winner} has {label}, {_ids(losers)} does not"
        return self._decide(collision, tier, 'flag_losers', 'high', reason, winner, losers)

    # ------------------------------------------------------------------
    # Rules (each returns the decided collision, or None to pass)
    # ------------------------------------------------------------------

    def _generic_url(self, collision: Collision) -> Optional[Collision]:
        count = len(collision.show_ids)
        if count < self.thresholds.generic_url_show_count:
            return None
        reason = f"URL shared by {count} shows; treating as generic/navigation link"
        return self._decide(collision, 'generic_url', 'null_url', 'certain', reason)

    def _date_proximity(self, collision: Collision) -> Optional[Collision]:
        if len(collision.show_ids) != 2 or self._is_revival_set(collision):
            return None
        dated = self._date_evidence(collision)
        if not dated:
            return None

        window = self.thresholds.date_proximity_days
        closest = dated[0]
        second = dated[1] if len(dated) > 1 else None
        if closest['days'] > window or (second is not None and second['days'] <= window):
            return None

        winner = closest['review'].show_id
        reason = (f"publishDate {closest['published']} is {closest['days']} days from {winner} "
                  f"opening ({closest['opening']})")
        if second is not None:
            reason += f"; next closest is {second['days']} days from {second['review'].show_id}"
        losers = [c for c in collision.candidates if c.show_id != winner]
        return self._decide(collision, 'date_proximity', 'flag_losers', 'high', reason, winner, losers)

    def _revival(self, collision: Collision) -> Optional[Collision]:
        if not self._is_revival_set(collision):
            return None

        decided = (
            self._winner_by(collision, self._has_score, 'revival_score', 'an assigned score', 'revival')
            or self._winner_by(collision, self._has_text, 'revival_text', 'full review text', 'revival')
        )
        if decided:
            return decided

        with_signal = [c for c in collision.candidates if self._has_signal(c)]
        without_signal = [c for c in collision.candidates if not self._has_signal(c)]

        if len(collision.show_ids) >= 3 and len({c.show_id for c in with_signal}) >= 2 and without_signal:
            reason = (f"revival set of {len(collision.show_ids)}; {_ids(with_signal)} have score/text, "
                      f"{_ids(without_signal)} have none")
            return self._decide(collision, 'revival_signal', 'flag_losers', 'high', reason, None, without_signal)

        if with_signal:
            return None

        winner = self._most_recent(collision.show_ids)
        if winner is None:
            return None
        show = self.shows[winner]
        opened = show.opening_date or f"id year {show.year}"
        losers = [c for c in collision.candidates if c.show_id != winner]
        reason = f"revival set with no score/text; defaulting to most recent production {winner} (opened {opened})"
        return self._decide(collision, 'revival_recent', 'flag_losers', 'medium', reason, winner, losers)

    def _most_recent(self, show_ids: List[str]) -> Optional[str]:
        """Latest opening date, falling back to the -YYYY id suffix"""
        def sort_key(show_id):
            show = self.shows[show_id]
            opening = show.opening
            return (opening.value if opening is not None else -1, year_suffix(show_id) or 0, show_id)

        ranked = sorted(show_ids, key=sort_key, reverse=True)
        top = sort_key(ranked[0])
        if top[0] == -1 and top[1] == 0:
            return None
        return ranked[0]

    def _non_revival(self, collision: Collision) -> Optional[Collision]:
        if len(collision.show_ids) != 2 or self._is_revival_set(collision):
            return None

        first, second = (self.shows[sid] for sid in collision.show_ids)
        open_a, open_b = first.opening, second.opening
        if open_a is not None and open_b is not None:
            gap = abs((open_a - open_b).days)
            if gap <= self.thresholds.double_bill_days:
                reason = (f"{first.id} and {second.id} opened {gap} days apart; "
                          f"shared article, resolution suppressed")
                return self._decide(collision, 'double_bill', 'none', 'low', reason)

        return (
            self._winner_by(collision, self._has_score, 'non_revival_score', 'an assigned score', 'non-revival')
            or self._winner_by(collision, self._has_text, 'non_revival_text', 'full review text', 'non-revival')
        )

    def _known_mapping(self, collision: Collision) -> Optional[Collision]:
        ids = set(collision.show_ids)
        for wrong_id, correct_id in self.tables.known_show_mappings.items():
            if wrong_id in ids and correct_id in ids:
                losers = [c for c in collision.candidates if c.show_id == wrong_id]
                reason = f"known mapping: {wrong_id} reviews belong to {correct_id}"
                return self._decide(collision, 'known_mapping', 'flag_losers', 'high', reason, correct_id, losers)
        return None

    def _no_signal(self, collision: Collision) -> Optional[Collision]:
        if any(self._has_signal(c) for c in collision.candidates):
            return None
        if self._date_evidence(collision):
            return None
        reason = (f"no score/text on any of {len(collision.show_ids)} shows and no usable dates; "
                  f"treating as generic link")
        return self._decide(collision, 'no_signal', 'null_url', 'certain', reason)

    def _date_provisional(self, collision: Collision) -> Optional[Collision]:
        if len(collision.show_ids) != 2 or self._is_revival_set(collision):
            return None
        dated = self._date_evidence(collision)
        window = self.thresholds.date_proximity_days
        if len(dated) < 2 or dated[1]['days'] > window:
            return None
        closest, second = dated[0], dated[1]
        winner = closest['review'].show_id
        reason = (f"publishDate {closest['published']} is {closest['days']} days from {winner} "
                  f"but also {second['days']} days from {second['review'].show_id}")
        losers = [c for c in collision.candidates if c.show_id != winner]
        return self._decide(collision, 'date_provisional', 'flag_losers', 'medium', reason, winner, losers)

    def _unresolved(self, collision: Collision) -> Collision:
        reason = f"no tier could attribute URL shared by {', '.join(collision.show_ids)}"
        logger.warning(f"Unresolved collision {collision.url}: {', '.join(collision.show_ids)}")
        for hint in self.mapping_hints(collision.show_ids):
            logger.warning(f"  Near-identical titles {hint} - candidate for KNOWN_SHOW_MAPPINGS")
            reason += f"; near-identical titles {hint}"
        return self._decide(collision, 'unresolved', 'none', 'low', reason)

    def mapping_hints(self, show_ids: List[str]) -> List[str]:
        """Pairs of shows whose titles are near-identical (fuzzy token-set match)"""
        hints = []
        for i, a in enumerate(show_ids):
            for b in show_ids[i + 1:]:
                title_a = self.shows[a].title.lower()
                title_b = self.shows[b].title.lower()
                if fuzz.token_set_ratio(title_a, title_b) >= self.thresholds.fuzzy_title_hint:
                    hints.append(f"{a} / {b}")
        return hints

    # ------------------------------------------------------------------

    def resolve(self, collision: Collision) -> Collision:
        """Run the rule chain; the first rule to claim the collision decides it"""
        for rule in self.rules:
            decided = rule(collision)
            if decided is not None:
                self.stats[f'tier_{decided.tier}'] += 1
                self.stats[f'confidence_{decided.confidence}'] += 1
                logger.debug(f"[{decided.confidence}] {decided.url} -> {decided.tier}: {decided.reason}")
                return decided
        # _unresolved always claims
        raise AssertionError('collision rule chain fell through')
