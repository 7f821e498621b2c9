#!/usr/bin/env python3
"""
Curated reference tables, loaded once and passed explicitly

ReferenceTables bundles the static lookup data from reconciler.constants into
one immutable object. The normalizer, resolver and verifier take it as an
argument instead of importing globals, so tests can hand in small fixture
tables. Overrides from config.yaml are merged over the defaults.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from reconciler.constants import (
    OUTLET_ALIASES, OUTLET_DISPLAY_NAMES, CRITIC_ALIASES,
    KNOWN_SHOW_MAPPINGS, WRONG_PRODUCTION_INDICATORS,
    CLASSIC_REVIVAL_TITLES, TRANSFER_PHRASES, HISTORICAL_PHRASES,
    WEST_END_VENUES, ERROR_PAGE_PATTERNS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndicatorSet:
    """Expected/wrong indicator terms for one revival"""
    expected: Tuple[str, ...]
    wrong: Tuple[str, ...]
    min_wrong: int
    is_generic: bool = False


def _strip_the(value: str) -> str:
    return value[4:] if value.startswith('the ') else value


def _build_alias_index(aliases: Mapping[str, List[str]]) -> Dict[str, str]:
    """variant -> canonical id, with and without a leading 'the '"""
    index = {}
    for canonical, variants in aliases.items():
        for variant in [canonical] + list(variants):
            key = variant.lower().strip()
            # First table entry wins if two outlets claim the same variant
            index.setdefault(key, canonical)
            index.setdefault(_strip_the(key), canonical)
    return index


def _build_indicators(raw: Mapping[str, dict]) -> Dict[str, IndicatorSet]:
    indicators = {}
    for show_id, entry in raw.items():
        indicators[show_id] = IndicatorSet(
            expected=tuple(entry.get('expected_indicators', [])),
            wrong=tuple(entry.get('wrong_indicators', [])),
            min_wrong=int(entry.get('min_wrong_indicators', 2)),
        )
    return indicators


@dataclass(frozen=True)
class ReferenceTables:
    """Immutable bundle of curated lookup tables"""
    outlet_index: Mapping[str, str]
    outlet_display_names: Mapping[str, str]
    critic_aliases: Mapping[str, str]
    known_show_mappings: Mapping[str, str]
    indicators: Mapping[str, IndicatorSet]
    classic_titles: Tuple[str, ...]
    transfer_phrases: Tuple[str, ...]
    historical_phrases: Tuple[str, ...]
    west_end_venues: Tuple[str, ...]
    error_page_patterns: Tuple[str, ...]

    @classmethod
    def default(cls, overrides: Optional[dict] = None) -> 'ReferenceTables':
        """
        Build tables from reconciler.constants, merging optional overrides.

        Supported override keys (from the `tables:` section of config.yaml):
            outlet_aliases:              {canonical_id: [variants]}
            outlet_display_names:        {canonical_id: display name}
            known_show_mappings:         {wrong_id: correct_id}
            wrong_production_indicators: {show_id: {expected_indicators, wrong_indicators, min_wrong_indicators}}
        """
        overrides = overrides or {}

        outlet_aliases = {k: list(v) for k, v in OUTLET_ALIASES.items()}
        for canonical, variants in (overrides.get('outlet_aliases') or {}).items():
            outlet_aliases.setdefault(canonical, []).extend(variants or [])

        display_names = dict(OUTLET_DISPLAY_NAMES)
        display_names.update(overrides.get('outlet_display_names') or {})

        mappings = dict(KNOWN_SHOW_MAPPINGS)
        mappings.update(overrides.get('known_show_mappings') or {})

        indicator_table = dict(WRONG_PRODUCTION_INDICATORS)
        indicator_table.update(overrides.get('wrong_production_indicators') or {})

        if overrides:
            logger.info(f"Applied table overrides: {', '.join(sorted(overrides))}")

        return cls(
            outlet_index=MappingProxyType(_build_alias_index(outlet_aliases)),
            outlet_display_names=MappingProxyType(display_names),
            critic_aliases=MappingProxyType(dict(CRITIC_ALIASES)),
            known_show_mappings=MappingProxyType(mappings),
            indicators=MappingProxyType(_build_indicators(indicator_table)),
            classic_titles=tuple(CLASSIC_REVIVAL_TITLES),
            transfer_phrases=tuple(TRANSFER_PHRASES),
            historical_phrases=tuple(HISTORICAL_PHRASES),
            west_end_venues=tuple(WEST_END_VENUES),
            error_page_patterns=tuple(ERROR_PAGE_PATTERNS),
        )
