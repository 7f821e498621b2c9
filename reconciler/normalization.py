#!/usr/bin/env python3
"""
Shared identifier normalization for the review pipeline

CRITICAL: These functions produce the comparison keys for every later stage.
The same normalization MUST be used for:
1. Building the per-show merge groups
2. Building the cross-show URL index
3. Matching a purge candidate back to its winning review

If these differ, collisions and duplicates are missed silently.

All functions are total: bad input yields None or a fallback id, never an
exception.
"""

import re
import logging
import unicodedata
from datetime import date
from typing import Optional, Set

import pandas as pd

from reconciler.constants import OUTLET_DOMAIN_SUFFIXES, UNKNOWN_ID
from reconciler.tables import ReferenceTables

logger = logging.getLogger(__name__)


def _strip_diacritics(value: str) -> str:
    value = unicodedata.normalize('NFD', value)
    return ''.join(c for c in value if unicodedata.category(c) != 'Mn')


def normalize_url(url) -> Optional[str]:
    """
    Normalize a review URL into a comparison key

    Steps:
    1. Trim and lowercase
    2. Drop fragment and query string
    3. Drop trailing slashes
    4. http:// -> https://
    5. Drop leading www.

    Args:
        url: Raw URL (any type)

    Returns:
        Normalized URL, or None for empty/unparseable input

    Examples:
        >>> normalize_url("HTTP://WWW.Example.com/Page/?utm_source=x#frag")
        'https://example.com/page'
    """
    if not isinstance(url, str):
        return None

    key = url.strip().lower()
    key = key.split('#', 1)[0]
    key = key.split('?', 1)[0]
    key = key.rstrip('/')

    if key.startswith('http://'):
        key = 'https://' + key[len('http://'):]
    if key.startswith('https://www.'):
        key = 'https://' + key[len('https://www.'):]
    elif key.startswith('www.'):
        key = key[len('www.'):]

    # Nothing left but a scheme, or embedded whitespace: not a usable link
    if not key or key in ('http:', 'https:', 'https://') or re.search(r'\s', key):
        return None
    return key


def slugify(text) -> str:
    """Lowercase hyphenated slug: apostrophes dropped, & -> and, punctuation stripped"""
    if not isinstance(text, str) or not text:
        return ''
    slug = text.lower().strip()
    slug = re.sub(r"['’]", '', slug)
    slug = slug.replace('&', 'and')
    slug = re.sub(r'[^\w\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    return slug.strip('-')


def _outlet_domain_label(value: str) -> Optional[str]:
    """'https://www.nytimes.com/2024/...' -> 'nytimes'; None if value is not domain-like"""
    if ' ' in value or '.' not in value:
        return None
    host = re.sub(r'^https?://', '', value).split('/', 1)[0]
    if host.startswith('www.'):
        host = host[len('www.'):]
    for suffix in OUTLET_DOMAIN_SUFFIXES:
        if host.endswith(suffix):
            return host[:-len(suffix)]
    return host


def normalize_outlet(name, tables: ReferenceTables, unknown: Optional[Set[str]] = None) -> str:
    """
    Map a free-text outlet name or domain to its canonical outlet id

    Unknown names fall through to a slug of the raw input (never dropped) and
    are logged once per caller-supplied `unknown` set so the alias table can
    be extended.

    Examples:
        "The New York Times" -> 'nytimes'
        "nytimes.com"        -> 'nytimes'
        "Bistro Gazette"     -> 'bistro-gazette'
    """
    if not isinstance(name, str) or not name.strip():
        return UNKNOWN_ID

    lower = ' '.join(name.lower().split())
    index = tables.outlet_index

    if lower in index:
        return index[lower]
    if lower.startswith('the ') and lower[4:] in index:
        return index[lower[4:]]

    label = _outlet_domain_label(lower)
    if label and label in index:
        return index[label]

    slug = slugify(name) or UNKNOWN_ID
    if unknown is not None and lower not in unknown:
        unknown.add(lower)
        logger.info(f"Unknown outlet '{name}' -> '{slug}' (add to OUTLET_ALIASES if recurring)")
    return slug


def outlet_display_name(outlet_id: str, tables: ReferenceTables, raw_name: Optional[str] = None) -> str:
    """Canonical display name, falling back to the raw label, then the id"""
    if outlet_id in tables.outlet_display_names:
        return tables.outlet_display_names[outlet_id]
    if isinstance(raw_name, str) and raw_name.strip():
        return raw_name.strip()
    return outlet_id


def normalize_critic_name(name) -> str:
    """
    Comparison form of a critic byline: lowercase letters and single spaces

    Examples:
        >>> normalize_critic_name("  Jesse  GREEN ")
        'jesse green'
        >>> normalize_critic_name("J. Kelly Nestruck")
        'j kelly nestruck'
    """
    if not isinstance(name, str):
        return ''
    value = _strip_diacritics(name).lower()
    value = re.sub(r'[^a-z\s]', '', value)
    return ' '.join(value.split())


def normalize_critic(name, tables: Optional[ReferenceTables] = None) -> str:
    """
    Canonical critic id: the comparison form, with known typo variants mapped

    Empty or letterless input (and the literal byline "unknown") -> 'unknown'.
    """
    value = normalize_critic_name(name)
    if not value or value == UNKNOWN_ID:
        return UNKNOWN_ID
    if tables is not None:
        value = tables.critic_aliases.get(value, value)
    return value


def is_unknown_critic(name) -> bool:
    """True when a byline carries no usable critic identity"""
    return normalize_critic_name(name) in ('', UNKNOWN_ID)


def parse_date(value) -> Optional[pd.Timestamp]:
    """Flexible date parse ('2024-04-01', 'April 1, 2024', ISO timestamps); None if unusable"""
    if not isinstance(value, (str, date)) or (isinstance(value, str) and not value.strip()):
        return None
    try:
        ts = pd.to_datetime(value, errors='coerce')
    except (TypeError, ValueError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts.normalize()


def strip_year_suffix(show_id: str) -> str:
    """'cabaret-2024' -> 'cabaret'; ids without a -YYYY suffix are returned as-is"""
    return re.sub(r'-\d{4}$', '', show_id or '')


def year_suffix(show_id: str) -> Optional[int]:
    """'cabaret-2024' -> 2024"""
    match = re.search(r'-(\d{4})$', show_id or '')
    return int(match.group(1)) if match else None
