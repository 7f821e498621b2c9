#!/usr/bin/env python3
"""
String similarity primitives for critic-name and excerpt matching

similarity() is the normalized edit-distance ratio; names_match() layers cheap
structural checks (containment, shared first/last token) in front of it so
surname-only and first-name-only bylines match without edit distance.
Both are total over any input, including None and empty strings.
"""

from typing import Optional

import Levenshtein

from reconciler.normalization import normalize_critic_name

DEFAULT_NAME_THRESHOLD = 0.85

# Containment needs both sides at least this long ("al" is inside too many names)
MIN_CONTAINMENT_CHARS = 3


def similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    1 - editDistance(a, b) / max(len(a), len(b))

    Returns 1.0 for two empty strings and 0.0 when exactly one is empty.
    """
    a = a if isinstance(a, str) else ''
    b = b if isinstance(b, str) else ''
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


def names_match(name1: Optional[str], name2: Optional[str],
                threshold: float = DEFAULT_NAME_THRESHOLD) -> bool:
    """
    Decide whether two critic bylines name the same person

    Checked in order, first success wins:
    1. Exact match after normalization
    2. Containment ("Green" in "Jesse Green"), both sides >= 3 chars
    3. Shared first token longer than 2 chars
    4. Shared last token longer than 3 chars
    5. Edit-distance similarity above threshold

    Examples:
        >>> names_match("Green", "Jesse Green")
        True
        >>> names_match("Jesse", "Jesse Green")
        True
        >>> names_match("Jesse Green", "Helen Shaw")
        False
    """
    n1 = normalize_critic_name(name1)
    n2 = normalize_critic_name(name2)
    if not n1 or not n2:
        return False

    if n1 == n2:
        return True

    if len(n1) >= MIN_CONTAINMENT_CHARS and len(n2) >= MIN_CONTAINMENT_CHARS:
        if n1 in n2 or n2 in n1:
            return True

    tokens1 = n1.split()
    tokens2 = n2.split()

    if tokens1[0] == tokens2[0] and len(tokens1[0]) > 2:
        return True

    if tokens1[-1] == tokens2[-1] and len(tokens1[-1]) > 3:
        return True

    return similarity(n1, n2) > threshold
