#!/usr/bin/env python3
"""
Score assignment cascade

Assigns a 0-100 score to each canonical review that lacks a trustworthy one,
stopping at the first source that produces a value:

1. llm-ensemble     existing llmScore (confidence not low, not needsReview)
2. extracted-grade  originalRating, trailing letter grade, "Grade:"/"Rating:" in text
3. thumb            DTLI thumb, then BWW thumb
4. designation      Critics' Pick
5. sentiment        weighted keyword lexicon over the review text

Nothing matches -> assignedScore stays null with scoreStatus TO_BE_CALCULATED.
There is no fallback score: an unscored review is left out of aggregates
rather than pulled toward the middle.
"""

import re
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from reconciler.config import Thresholds
from reconciler.constants import (
    LETTER_TO_SCORE, THUMB_TO_SCORE, STARS_OUT_OF_5, STARS_OUT_OF_4,
    DESIGNATION_TO_SCORE, SENTIMENT_TIERS, SENTIMENT_BANDS, TO_BE_CALCULATED,
    SCORE_SOURCES, SCORE_SOURCE_LLM, SCORE_SOURCE_GRADE, SCORE_SOURCE_THUMB,
    SCORE_SOURCE_DESIGNATION, SCORE_SOURCE_SENTIMENT, PLACEHOLDER_SCORE_SOURCES,
)
from reconciler.models import CanonicalReview, ScoreResult

logger = logging.getLogger(__name__)

LETTER_ONLY = re.compile(r'^\s*([A-D][+-]?|F)\s*$', re.IGNORECASE)
RATIO = re.compile(r'(\d+(?:\.\d+)?)\s*(?:/|out of)\s*(\d+(?:\.\d+)?)', re.IGNORECASE)
STARS = re.compile(r'(\d+(?:\.\d+)?)\s*stars?\b', re.IGNORECASE)
TRAILING_LETTER = re.compile(r'\s([A-D][+-]?|F)\s*$')
LABELLED_LETTER = re.compile(r'(?:[Gg]rade:\s*|[Rr]ating[:\s]+)([A-D][+-]?|F)(?![\w+-])')


def clamp_score(value: float) -> int:
    return int(max(1, min(100, round(value))))


def _in_range(score) -> bool:
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return False
    return 1 <= score <= 100


def stars_to_score(stars: float, scale: float) -> Optional[int]:
    """Star/ratio rating -> 0-100 via the fixed tables, interpolating off-table values"""
    if scale <= 0 or stars < 0 or stars > scale:
        return None
    table = {5: STARS_OUT_OF_5, 4: STARS_OUT_OF_4}.get(scale)
    if table is not None and stars in table:
        return clamp_score(table[stars])
    return clamp_score(stars / scale * 100)


def _number(value: str):
    number = float(value)
    return int(number) if number.is_integer() else number


def parse_rating(rating) -> Optional[ScoreResult]:
    """
    Parse an explicit originalRating.

    Examples:
        >>> parse_rating('B+').score
        87
        >>> parse_rating('3.5 out of 4').score
        88
        >>> parse_rating('4 stars').detail
        'stars-4/5'
    """
    if isinstance(rating, (int, float)) and not isinstance(rating, bool):
        rating = str(rating)
    if not isinstance(rating, str) or not rating.strip():
        return None

    match = LETTER_ONLY.match(rating)
    if match:
        letter = match.group(1).upper()
        return ScoreResult(LETTER_TO_SCORE[letter], SCORE_SOURCE_GRADE, f'letter-{letter}', 'high')

    match = RATIO.search(rating)
    if match:
        value, scale = _number(match.group(1)), _number(match.group(2))
        score = stars_to_score(value, scale)
        if score is not None:
            return ScoreResult(score, SCORE_SOURCE_GRADE, f'stars-{value}/{scale}', 'high')

    match = STARS.search(rating)
    if match:
        value = _number(match.group(1))
        score = stars_to_score(value, 5)
        if score is not None:
            return ScoreResult(score, SCORE_SOURCE_GRADE, f'stars-{value}/5', 'high')

    return None


def letter_in_text(text: str) -> Optional[ScoreResult]:
    """Letter grade at the very end of the text, or after a Grade:/Rating: label"""
    if not text:
        return None
    match = TRAILING_LETTER.search(text[-10:])
    if match is None:
        match = LABELLED_LETTER.search(text)
    if match is None:
        return None
    letter = match.group(1).upper()
    return ScoreResult(LETTER_TO_SCORE[letter], SCORE_SOURCE_GRADE, f'letter-{letter}', 'medium')


def _key(value: str) -> str:
    return re.sub(r'[^a-z]', '', value.lower())


DESIGNATION_INDEX = {_key(name): (name, score) for name, score in DESIGNATION_TO_SCORE.items()}


def sentiment_score(text: str) -> Optional[ScoreResult]:
    """Keyword-lexicon score; None when no lexicon word appears"""
    lowered = text.lower()
    positive = negative = 0.0
    for _name, words, weight, polarity in SENTIMENT_TIERS:
        hits = sum(1 for word in words if word in lowered)
        if polarity == 'positive':
            positive += hits * weight
        else:
            negative += hits * weight

    if positive + negative == 0:
        return None

    ratio = positive / (positive + negative + 0.1)
    for threshold, score, method, confidence in SENTIMENT_BANDS:
        if threshold is None or ratio > threshold:
            return ScoreResult(score, SCORE_SOURCE_SENTIMENT, method, confidence)
    return None


class ScoreCascade:
    """Ordered score sources, first success wins"""

    def __init__(self, thresholds: Thresholds):
        self.thresholds = thresholds
        self.stats = defaultdict(int)
        self.rules = [
            self._from_llm,
            self._from_grade,
            self._from_thumb,
            self._from_designation,
            self._from_sentiment,
        ]

    def is_placeholder(self, review: CanonicalReview) -> bool:
        return review.score_source in PLACEHOLDER_SCORE_SOURCES

    def is_trusted(self, review: CanonicalReview) -> bool:
        """A human score, or any in-range assignedScore not written as a placeholder"""
        if _in_range(review.fields.get('humanReviewScore')):
            return True
        return _in_range(review.assigned_score) and not self.is_placeholder(review)

    def keeps_existing_score(self, review: CanonicalReview) -> bool:
        """An unscorable review still keeps a non-placeholder score already on disk"""
        return review.assigned_score is not None and not self.is_placeholder(review)

    def _from_llm(self, review: CanonicalReview) -> Optional[ScoreResult]:
        llm = review.fields.get('llmScore')
        if not isinstance(llm, dict) or llm.get('score') is None:
            return None
        if llm.get('confidence') == 'low':
            return None
        ensemble = review.fields.get('ensembleData')
        if isinstance(ensemble, dict) and ensemble.get('needsReview'):
            return None
        try:
            score = clamp_score(float(llm['score']))
        except (TypeError, ValueError):
            return None
        return ScoreResult(score, SCORE_SOURCE_LLM, 'llm-ensemble', llm.get('confidence'))

    def _from_grade(self, review: CanonicalReview) -> Optional[ScoreResult]:
        for name in ('originalRating', 'originalScore'):
            result = parse_rating(review.fields.get(name))
            if result:
                return result
        for text in (review.full_text, review.fields.get('dtliExcerpt'), review.fields.get('bwwExcerpt')):
            if isinstance(text, str):
                result = letter_in_text(text)
                if result:
                    return result
        return None

    def _from_thumb(self, review: CanonicalReview) -> Optional[ScoreResult]:
        for field_name, label in (('dtliThumb', 'dtli'), ('bwwThumb', 'bww')):
            thumb = review.fields.get(field_name)
            if not isinstance(thumb, str):
                continue
            thumb = thumb.strip().capitalize()
            if thumb in THUMB_TO_SCORE:
                return ScoreResult(THUMB_TO_SCORE[thumb], SCORE_SOURCE_THUMB, f'thumb-{label}', 'medium')
        return None

    def _from_designation(self, review: CanonicalReview) -> Optional[ScoreResult]:
        designation = review.fields.get('designation')
        if not isinstance(designation, str):
            return None
        entry = DESIGNATION_INDEX.get(_key(designation))
        if entry is None:
            return None
        name, score = entry
        return ScoreResult(score, SCORE_SOURCE_DESIGNATION, f'designation-{name}', 'medium')

    def _from_sentiment(self, review: CanonicalReview) -> Optional[ScoreResult]:
        text = review.combined_text()
        if len(text) < self.thresholds.min_sentiment_chars:
            return None
        return sentiment_score(text)

    def score(self, review: CanonicalReview) -> Optional[ScoreResult]:
        """
        Run the cascade for one review.

        Returns:
            None when the review is skipped (flagged, or already trusted);
            otherwise a ScoreResult, with score None when nothing applied
        """
        if review.wrong_show or review.wrong_production:
            self.stats['skipped_flagged'] += 1
            return None
        if self.is_trusted(review):
            self.stats['already_scored'] += 1
            return None

        for rule in self.rules:
            result = rule(review)
            if result is not None:
                self.stats[result.source] += 1
                return result

        self.stats['to_be_calculated'] += 1
        return ScoreResult(None, None)

    def score_all(self, reviews_by_show: Dict[str, List[CanonicalReview]]) -> Dict[tuple, ScoreResult]:
        results = {}
        for show_id in sorted(reviews_by_show):
            for review in reviews_by_show[show_id]:
                result = self.score(review)
                if result is not None:
                    results[review.key] = result
        scored = sum(self.stats[source] for source in SCORE_SOURCES)
        logger.info(f"Scored {scored} reviews, {self.stats['to_be_calculated']} left TO_BE_CALCULATED, "
                    f"{self.stats['already_scored']} already scored")
        return results


def score_updates(result: ScoreResult, keep_score: bool = False) -> dict:
    """Field updates that record a cascade result on disk"""
    if result.score is None:
        if keep_score:
            return {'scoreStatus': TO_BE_CALCULATED}
        return {'assignedScore': None, 'scoreSource': None, 'scoreStatus': TO_BE_CALCULATED}
    return {
        'assignedScore': result.score,
        'scoreSource': result.source,
        'scoreDetail': result.detail,
        'scoreConfidence': result.confidence,
        'scoreStatus': None,
    }
