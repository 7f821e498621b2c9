#!/usr/bin/env python3
"""
Wrong-production content verifier

A review filed under a revival (e.g. cabaret-2024) sometimes covers an earlier
production of the same title. Detection scans the review text for indicators of
the wrong production (old venues, old casts, old years) and checks whether the
URL or publishDate predates the production's preview window.

A wrong-indicator match does not count when the text around it reads as a
historical comparison ("Alan Cumming in 1998", "the role, previously played
by ..."), since critics routinely discuss earlier productions.
"""

import re
import logging
from collections import defaultdict
from typing import Dict, List, Optional

import pandas as pd

from reconciler.config import Thresholds
from reconciler.models import CanonicalReview, Finding, ProductionVerdict, Show
from reconciler.normalization import parse_date
from reconciler.tables import IndicatorSet, ReferenceTables

logger = logging.getLogger(__name__)

YEAR_SUFFIX = re.compile(r'-\d{4}$')
YEAR_COMPARISON = re.compile(r'\b(in|from|during|of|the)\s+\d{4}\b')
PREVIOUSLY_BY = re.compile(r'previously\s+(portrayed|played|performed)\s+by', re.IGNORECASE)
URL_YEAR = re.compile(r'/(\d{4})/')
PUBLISH_YEAR = re.compile(r'\b(20\d{2})\b')

LIKELY_WRONG = 'likely_wrong_production'
COMPARISON = 'comparison_mentions'
NEEDS_REVIEW = 'needs_review'


class ProductionVerifier:
    """Check reviews of revivals for content about a different production"""

    def __init__(self, shows: Dict[str, Show], tables: ReferenceTables, thresholds: Thresholds):
        self.shows = shows
        self.tables = tables
        self.thresholds = thresholds
        self.stats = defaultdict(int)

    def is_revival(self, show: Show) -> bool:
        """Year-suffixed id plus a revival tag, a curated indicator entry, or a classic title"""
        if not YEAR_SUFFIX.search(show.id):
            return False
        if show.type == 'revival' or 'revival' in show.tags:
            return True
        if show.id in self.tables.indicators:
            return True
        title = show.title.lower()
        return any(classic in title for classic in self.tables.classic_titles)

    def indicators_for(self, show: Show) -> IndicatorSet:
        """Curated indicators, or generic ones from registry metadata (expected only)"""
        curated = self.tables.indicators.get(show.id)
        if curated is not None:
            return curated

        expected = [str(show.year)] if show.year else []
        if show.venue:
            expected.append(show.venue)
        expected.extend(show.people()[:5])
        return IndicatorSet(
            expected=tuple(expected),
            wrong=(),
            min_wrong=self.thresholds.default_min_wrong_indicators,
            is_generic=True,
        )

    def should_ignore_match(self, text: str, indicator: str, index: int) -> bool:
        """True when the context around a match reads as history or comparison"""
        radius = self.thresholds.context_radius
        start = max(0, index - radius)
        end = min(len(text), index + len(indicator) + radius)
        context = text[start:end].lower()

        if any(phrase in context for phrase in self.tables.transfer_phrases):
            return True
        if any(phrase in context for phrase in self.tables.historical_phrases):
            return True
        if YEAR_COMPARISON.search(context):
            return True
        if PREVIOUSLY_BY.search(context):
            return True

        # "the role ... played by A, B and <indicator>"
        role_listing = r'role.{0,30}\b(by|include|including)\b.{0,100}' + re.escape(indicator.lower())
        return re.search(role_listing, context) is not None

    def find_wrong_indicators(self, text: str, indicators: IndicatorSet) -> List[str]:
        """Wrong indicators with at least one match that is not explained by context"""
        found = []
        for indicator in indicators.wrong:
            for match in re.finditer(re.escape(indicator), text, re.IGNORECASE):
                if not self.should_ignore_match(text, indicator, match.start()):
                    found.append(indicator)
                    break
        return found

    def find_expected_indicators(self, text: str, indicators: IndicatorSet) -> List[str]:
        return [ind for ind in indicators.expected if re.search(re.escape(ind), text, re.IGNORECASE)]

    def earliest_valid_year(self, show: Show) -> Optional[int]:
        """Year that opens the preview window before opening night"""
        opening = show.opening
        if opening is not None:
            return (opening - pd.DateOffset(months=self.thresholds.preview_window_months)).year
        if show.year:
            return show.year - 1
        return None

    def check_date_mismatch(self, review: CanonicalReview, show: Show) -> List[Finding]:
        """URL or publishDate year earlier than the production could have been reviewed"""
        earliest = self.earliest_valid_year(show)
        if earliest is None:
            return []

        findings = []
        for url in [review.url] + [m.url for m in review.members]:
            match = URL_YEAR.search(url or '')
            if not match:
                continue
            url_year = int(match.group(1))
            if 2000 <= url_year < earliest:
                findings.append(Finding(
                    'url_year_mismatch', 'high',
                    f"URL contains year {url_year}, earliest valid year for {show.id} is {earliest}"
                ))
                break

        published = review.publish_date
        match = PUBLISH_YEAR.search(published) if isinstance(published, str) else None
        if match:
            publish_year = int(match.group(1))
            if publish_year < earliest:
                findings.append(Finding(
                    'publish_date_mismatch', 'high',
                    f"publishDate {published} predates {show.id} (earliest valid year {earliest})"
                ))
        return findings

    def west_end_mentions(self, text: str) -> List[str]:
        lowered = text.lower()
        return [venue for venue in self.tables.west_end_venues if venue.lower() in lowered]

    def verify(self, review: CanonicalReview) -> Optional[ProductionVerdict]:
        """
        Classify one review of a revival.

        Returns:
            ProductionVerdict, or None when the review is clean (or not checkable)
        """
        show = self.shows.get(review.show_id)
        if show is None:
            self.stats['missing_show'] += 1
            return None
        if not self.is_revival(show) or review.is_flagged:
            return None

        self.stats['checked'] += 1
        indicators = self.indicators_for(show)
        text = review.combined_text()

        findings = self.check_date_mismatch(review, show)
        date_mismatch = bool(findings)

        wrong_found = self.find_wrong_indicators(text, indicators) if text else []
        expected_found = self.find_expected_indicators(text, indicators) if text else []
        for indicator in wrong_found:
            findings.append(Finding('wrong_indicator', 'medium', f"mentions '{indicator}'"))

        west_end = self.west_end_mentions(text) if text else []

        if len(wrong_found) < indicators.min_wrong and not date_mismatch:
            if west_end:
                self.stats['advisory'] += 1
                return ProductionVerdict(
                    review=review,
                    classification=NEEDS_REVIEW,
                    confidence='low',
                    findings=[Finding('west_end_venue', 'medium', f"mentions {', '.join(west_end)}")],
                    expected_found=expected_found,
                    is_generic=indicators.is_generic,
                )
            return None

        wrong_count = len(wrong_found)
        expected_count = len(expected_found)
        if date_mismatch:
            confidence = 'high'
        elif wrong_count >= 3 and expected_count == 0:
            confidence = 'high'
        elif wrong_count >= 2:
            confidence = 'medium' if expected_count > 0 else 'high'
        else:
            confidence = 'low'

        if date_mismatch or expected_count == 0:
            classification = LIKELY_WRONG
        elif expected_count >= 2:
            classification = COMPARISON
        else:
            classification = NEEDS_REVIEW

        if west_end:
            findings.append(Finding('west_end_venue', 'medium', f"mentions {', '.join(west_end)}"))

        self.stats[classification] += 1
        logger.debug(f"[{confidence}] {review.show_id} {review.outlet}/{review.critic_name}: {classification} "
                     f"(wrong={wrong_found}, expected={expected_found}, date_mismatch={date_mismatch})")
        return ProductionVerdict(
            review=review,
            classification=classification,
            confidence=confidence,
            findings=findings,
            expected_found=expected_found,
            wrong_found=wrong_found,
            is_generic=indicators.is_generic,
            date_mismatch=date_mismatch,
        )

    def verify_all(self, reviews_by_show: Dict[str, List[CanonicalReview]]) -> List[ProductionVerdict]:
        verdicts = []
        for show_id in sorted(reviews_by_show):
            for review in reviews_by_show[show_id]:
                verdict = self.verify(review)
                if verdict is not None:
                    verdicts.append(verdict)
        logger.info(f"Checked {self.stats['checked']} revival reviews: "
                    f"{self.stats[LIKELY_WRONG]} likely wrong production, "
                    f"{self.stats[COMPARISON]} comparison mentions, {self.stats[NEEDS_REVIEW]} need review")
        return verdicts


def verdict_reason(verdict: ProductionVerdict) -> str:
    """wrongProductionReason text for an applied verdict"""
    details = '; '.join(f.detail for f in verdict.findings if f.type != 'west_end_venue')
    return f"Wrong production ({verdict.confidence}): {details}"
