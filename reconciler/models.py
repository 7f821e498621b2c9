#!/usr/bin/env python3
"""
Data containers for the review pipeline

ReviewSighting wraps one on-disk review file (its raw dict stays the source of
truth so updates can be written back). CanonicalReview is the merged record
for one (show, outlet, critic). Show is read-only registry metadata.
Collision and ProductionVerdict are per-run analysis results.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from reconciler.constants import (
    EXCERPT_FIELDS, RESOLVED_FLAGS, APPLY_CONFIDENCE,
    REVIEW_STATES, STATE_UNRESOLVED, STATE_FLAGGED,
)
from reconciler.normalization import normalize_url, parse_date, strip_year_suffix, year_suffix


def advance_state(current: str, target: str) -> str:
    """Move a review forward through unresolved -> flagged -> deleted; never backward"""
    if current not in REVIEW_STATES or target not in REVIEW_STATES:
        raise ValueError(f"Unknown review state: {current!r} -> {target!r}")
    if REVIEW_STATES.index(target) < REVIEW_STATES.index(current):
        raise ValueError(f"Review state cannot move backward: {current} -> {target}")
    return target


def text_length(value) -> int:
    return len(value) if isinstance(value, str) else 0


@dataclass
class ReviewSighting:
    """One review file as collected from one source"""
    path: Path
    show_id: str
    data: Dict[str, Any]
    outlet_id: str
    critic_id: str

    @property
    def url(self) -> Optional[str]:
        return self.data.get('url') or None

    @property
    def norm_url(self) -> Optional[str]:
        return normalize_url(self.data.get('url'))

    @property
    def full_text(self) -> Optional[str]:
        value = self.data.get('fullText')
        return value if isinstance(value, str) and value else None

    @property
    def sources(self) -> List[str]:
        names = []
        if self.data.get('source'):
            names.append(self.data['source'])
        for name in self.data.get('sources') or []:
            if name and name not in names:
                names.append(name)
        return names

    @property
    def state(self) -> str:
        if any(self.data.get(flag) for flag in RESOLVED_FLAGS):
            return STATE_FLAGGED
        return STATE_UNRESOLVED

    @property
    def is_resolved(self) -> bool:
        return self.state != STATE_UNRESOLVED

    def excerpt(self) -> Optional[str]:
        """First available excerpt (dtli > bww > showScore > nycTheatre), else fullText"""
        for name in EXCERPT_FIELDS:
            value = self.data.get(name)
            if isinstance(value, str) and value.strip():
                return value
        return self.full_text

    @property
    def label(self) -> str:
        return f"{self.show_id}/{self.path.name}"


@dataclass
class CanonicalReview:
    """Merged record for one (show, outlet, critic)"""
    show_id: str
    outlet_id: str
    critic_id: str
    outlet: str
    critic_name: str
    members: List[ReviewSighting] = field(default_factory=list)
    # Merged values under their on-disk field names
    fields: Dict[str, Any] = field(default_factory=dict)
    provenance: List[str] = field(default_factory=list)

    @property
    def key(self) -> tuple:
        return (self.show_id, self.outlet_id, self.critic_id)

    @property
    def url(self) -> Optional[str]:
        return self.fields.get('url') or None

    @property
    def best_url(self) -> Optional[str]:
        return self.fields.get('url') or self.fields.get('bwwUrl') or None

    @property
    def norm_url(self) -> Optional[str]:
        return normalize_url(self.fields.get('url'))

    @property
    def member_urls(self) -> List[str]:
        """Distinct normalized URLs across members (a group can hold several)"""
        urls = []
        for member in self.members:
            url = member.norm_url
            if url and url not in urls:
                urls.append(url)
        return urls

    @property
    def publish_date(self) -> Optional[str]:
        return self.fields.get('publishDate') or None

    @property
    def full_text(self) -> Optional[str]:
        value = self.fields.get('fullText')
        return value if isinstance(value, str) and value else None

    @property
    def assigned_score(self):
        return self.fields.get('assignedScore')

    @property
    def score_source(self) -> Optional[str]:
        return self.fields.get('scoreSource')

    def excerpts(self) -> Dict[str, str]:
        return {name: self.fields[name] for name in EXCERPT_FIELDS if self.fields.get(name)}

    def combined_text(self) -> str:
        """fullText plus every excerpt, for indicator scanning"""
        parts = [self.full_text] + [self.fields.get(name) for name in EXCERPT_FIELDS]
        return ' '.join(p for p in parts if isinstance(p, str) and p)

    def has_score(self) -> bool:
        return self.fields.get('assignedScore') is not None or self.fields.get('humanReviewScore') is not None

    def has_text(self, min_chars: int) -> bool:
        return text_length(self.full_text) > min_chars

    @property
    def needs_text(self) -> bool:
        return self.full_text is None

    @property
    def needs_scoring(self) -> bool:
        return self.fields.get('assignedScore') is None

    @property
    def is_flagged(self) -> bool:
        return any(m.is_resolved for m in self.members)

    @property
    def wrong_show(self) -> bool:
        return any(m.data.get('wrongShow') is True for m in self.members)

    @property
    def wrong_production(self) -> bool:
        return any(m.data.get('wrongProduction') is True for m in self.members)


@dataclass
class Show:
    """Registry metadata for one production (read-only)"""
    id: str
    title: str
    slug: Optional[str] = None
    venue: Optional[str] = None
    opening_date: Optional[str] = None
    previews_start_date: Optional[str] = None
    closing_date: Optional[str] = None
    cast: List[Dict[str, Any]] = field(default_factory=list)
    creative_team: List[Dict[str, Any]] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'Show':
        return cls(
            id=raw['id'],
            title=raw.get('title') or raw['id'],
            slug=raw.get('slug'),
            venue=raw.get('venue') or None,
            opening_date=raw.get('openingDate') or None,
            previews_start_date=raw.get('previewsStartDate') or None,
            closing_date=raw.get('closingDate') or None,
            cast=list(raw.get('cast') or []),
            creative_team=list(raw.get('creativeTeam') or []),
            tags=list(raw.get('tags') or []),
            type=raw.get('type'),
        )

    @property
    def opening(self) -> Optional[pd.Timestamp]:
        return parse_date(self.opening_date)

    @property
    def base_id(self) -> str:
        return strip_year_suffix(self.id)

    @property
    def year(self) -> Optional[int]:
        return year_suffix(self.id)

    def people(self) -> List[str]:
        """Cast then creative team names, in registry order"""
        names = []
        for entry in self.cast + self.creative_team:
            name = entry.get('name') if isinstance(entry, dict) else entry
            if isinstance(name, str) and name.strip():
                names.append(name.strip())
        return names


@dataclass
class Collision:
    """One normalized URL shared by reviews filed under two or more shows"""
    url: str
    candidates: List[CanonicalReview]
    tier: str = 'unresolved'
    action: str = 'none'  # 'null_url', 'flag_losers' or 'none'
    confidence: str = 'low'
    reason: str = ''
    winner: Optional[str] = None
    losers: List[CanonicalReview] = field(default_factory=list)

    @property
    def show_ids(self) -> List[str]:
        return sorted({c.show_id for c in self.candidates})

    @property
    def is_actionable(self) -> bool:
        return self.action != 'none' and self.confidence in APPLY_CONFIDENCE


@dataclass
class Finding:
    """One wrong-production signal attached to a review"""
    type: str
    severity: str
    detail: str


@dataclass
class ProductionVerdict:
    """Wrong-production classification for one review of a revival"""
    review: CanonicalReview
    classification: str  # likely_wrong_production, comparison_mentions, needs_review
    confidence: str
    findings: List[Finding] = field(default_factory=list)
    expected_found: List[str] = field(default_factory=list)
    wrong_found: List[str] = field(default_factory=list)
    is_generic: bool = False
    date_mismatch: bool = False

    @property
    def is_actionable(self) -> bool:
        return self.classification == 'likely_wrong_production' and self.confidence != 'low'


@dataclass
class ScoreResult:
    """Outcome of the score cascade for one review"""
    score: Optional[int]
    source: Optional[str]
    detail: Optional[str] = None
    confidence: Optional[str] = None
