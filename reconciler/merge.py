#!/usr/bin/env python3
"""
Sighting merge engine: collapse duplicate sightings within one show

Several aggregators report the same review with different URLs, excerpt
lengths and byline spellings. is_same_review() decides equivalence through a
cascade (any branch succeeding merges the pair):

1. Same normalized URL
2. Same (outletId, criticId) key
3. Same outlet, critic names match (names_match)
4. Same outlet, one critic unknown, excerpt similarity > 0.5
5. Same outlet, excerpt similarity > 0.7, or full-text prefix similarity > 0.8

Each incoming sighting is compared against every member of the groups built so
far (first matching group wins), so groups converge once any member matches.
"""

import re
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from reconciler.config import Thresholds
from reconciler.constants import FIRST_NON_NULL_FIELDS, SCORE_FIELDS
from reconciler.models import CanonicalReview, ReviewSighting, text_length
from reconciler.normalization import outlet_display_name, is_unknown_critic
from reconciler.similarity import similarity, names_match
from reconciler.tables import ReferenceTables

logger = logging.getLogger(__name__)


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class SightingMerger:
    """Group sightings per show and build one CanonicalReview per group"""

    def __init__(self, tables: ReferenceTables, thresholds: Thresholds):
        self.tables = tables
        self.thresholds = thresholds
        self.stats = defaultdict(int)

    def excerpt_key(self, sighting: ReviewSighting) -> Optional[str]:
        """Lowercase alphanumeric prefix of the best excerpt; None when too short to compare"""
        text = sighting.excerpt()
        if not text:
            return None
        key = re.sub(r'[^a-z0-9\s]', '', text.lower())
        key = ' '.join(key.split())[:self.thresholds.excerpt_key_chars]
        return key if len(key) > self.thresholds.min_excerpt_chars else None

    def _excerpt_similarity(self, a: ReviewSighting, b: ReviewSighting) -> float:
        key_a = self.excerpt_key(a)
        key_b = self.excerpt_key(b)
        if key_a is None or key_b is None:
            return 0.0
        return similarity(key_a, key_b)

    def _prefix_similarity(self, a: ReviewSighting, b: ReviewSighting) -> float:
        n = self.thresholds.full_text_prefix_chars
        return similarity(a.full_text[:n].lower(), b.full_text[:n].lower())

    def match_reason(self, a: ReviewSighting, b: ReviewSighting) -> Optional[str]:
        """Name of the first equivalence branch that holds, or None"""
        t = self.thresholds

        url_a = a.norm_url
        if url_a and url_a == b.norm_url:
            return 'url'

        if a.outlet_id != b.outlet_id:
            return None

        if a.critic_id == b.critic_id:
            return 'outlet_critic'

        name_a = a.data.get('criticName')
        name_b = b.data.get('criticName')
        if names_match(name_a, name_b, t.name_similarity):
            return 'critic_name'

        excerpt_sim = self._excerpt_similarity(a, b)
        if (is_unknown_critic(name_a) or is_unknown_critic(name_b)) and \
                excerpt_sim > t.unknown_critic_excerpt_similarity:
            return 'unknown_critic_excerpt'

        if excerpt_sim > t.excerpt_similarity:
            return 'excerpt'

        if a.full_text and b.full_text and self._prefix_similarity(a, b) > t.full_text_prefix_similarity:
            return 'full_text_prefix'

        return None

    def is_same_review(self, a: ReviewSighting, b: ReviewSighting) -> bool:
        return self.match_reason(a, b) is not None

    def group(self, sightings: List[ReviewSighting]) -> List[List[ReviewSighting]]:
        """Assign each sighting to the first running group with a matching member"""
        groups: List[List[ReviewSighting]] = []
        for sighting in sightings:
            target = None
            for members in groups:
                for member in members:
                    reason = self.match_reason(member, sighting)
                    if reason:
                        target = members
                        self.stats[f'matched_{reason}'] += 1
                        break
                if target is not None:
                    break
            if target is None:
                groups.append([sighting])
            else:
                target.append(sighting)
        return groups

    def build_canonical(self, show_id: str, members: List[ReviewSighting]) -> CanonicalReview:
        """
        Apply the field merge policy left to right over the group

        - url/date/ratings/thumbs/excerpts: first non-null wins
        - assignedScore travels with its scoreSource/detail from the same sighting
        - fullText: strictly longer wins (ties keep the earlier)
        - provenance: union of source names
        """
        fields = {}
        provenance: List[str] = []

        for member in members:
            data = member.data
            for name in FIRST_NON_NULL_FIELDS:
                if _is_empty(fields.get(name)) and not _is_empty(data.get(name)):
                    fields[name] = data[name]

            if text_length(data.get('fullText')) > text_length(fields.get('fullText')):
                fields['fullText'] = data['fullText']

            if fields.get('assignedScore') is None and data.get('assignedScore') is not None:
                for name in SCORE_FIELDS:
                    if name in data:
                        fields[name] = data[name]

            for source in member.sources:
                if source not in provenance:
                    provenance.append(source)

        first = members[0]
        named = next((m for m in members if not is_unknown_critic(m.data.get('criticName'))), None)
        lead = named or first
        raw_outlet = next((m.data.get('outlet') for m in members if m.data.get('outlet')), None)

        return CanonicalReview(
            show_id=show_id,
            outlet_id=first.outlet_id,
            critic_id=lead.critic_id,
            outlet=outlet_display_name(first.outlet_id, self.tables, raw_outlet),
            critic_name=(named.data.get('criticName').strip() if named else 'Unknown'),
            members=list(members),
            fields=fields,
            provenance=provenance,
        )

    def merge_show(self, show_id: str, sightings: List[ReviewSighting]) -> List[CanonicalReview]:
        """Merge one show's unresolved sightings into canonical reviews"""
        active = [s for s in sightings if not s.is_resolved]
        self.stats['already_resolved'] += len(sightings) - len(active)

        canonicals: Dict[tuple, CanonicalReview] = {}
        for members in self.group(active):
            canonical = self.build_canonical(show_id, members)
            existing = canonicals.get(canonical.key)
            if existing is not None:
                # Two groups resolved to the same (outlet, critic): fold into the first
                canonical = self.build_canonical(show_id, existing.members + members)
                self.stats['coalesced'] += 1
            canonicals[canonical.key] = canonical

        self.stats['sightings'] += len(active)
        self.stats['canonical'] += len(canonicals)
        self.stats['duplicates_merged'] += len(active) - len(canonicals)
        return list(canonicals.values())

    def merge_all(self, by_show: Dict[str, List[ReviewSighting]]) -> Dict[str, List[CanonicalReview]]:
        merged = {}
        for show_id in sorted(by_show):
            merged[show_id] = self.merge_show(show_id, by_show[show_id])
        logger.info(f"Merged {self.stats['sightings']} sightings into {self.stats['canonical']} canonical reviews "
                    f"({self.stats['duplicates_merged']} duplicates)")
        return merged


def show_breakdown(show_id: str, reviews: List[CanonicalReview], thresholds: Thresholds) -> dict:
    """Per-show aggregate counts for reporting"""
    return {
        'showId': show_id,
        'totalReviews': len(reviews),
        'withUrls': sum(1 for r in reviews if r.url),
        'withText': sum(1 for r in reviews if r.has_text(thresholds.with_text_chars)),
        'needsText': sum(1 for r in reviews if r.needs_text),
        'needsScoring': sum(1 for r in reviews if r.needs_scoring and not r.is_flagged),
        'flagged': sum(1 for r in reviews if r.is_flagged),
    }


def canonical_record(review: CanonicalReview) -> dict:
    """Flat record for the consolidated canonical review list"""
    return {
        'showId': review.show_id,
        'outletId': review.outlet_id,
        'outlet': review.outlet,
        'criticName': review.critic_name,
        'bestUrl': review.best_url,
        'publishDate': review.publish_date,
        'fullTextChars': text_length(review.full_text),
        'excerptSources': ','.join(sorted(review.excerpts())),
        'assignedScore': review.assigned_score,
        'scoreSource': review.score_source,
        'sources': ','.join(review.provenance),
        'needsText': review.needs_text,
        'needsScoring': review.needs_scoring,
        'wrongShow': review.wrong_show,
        'wrongProduction': review.wrong_production,
        'files': ';'.join(m.path.name for m in review.members),
    }
