#!/usr/bin/env python3
"""
Pipeline configuration: tuned thresholds and paths

Every empirically tuned constant lives in Thresholds so it can be adjusted in
config.yaml (or in a test) without touching the algorithms that read it.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration file is unreadable or names an unknown setting"""


@dataclass(frozen=True)
class Thresholds:
    """Tunable thresholds for merge, collision, verification and scoring"""
    # Merge / similarity
    name_similarity: float = 0.85
    unknown_critic_excerpt_similarity: float = 0.5
    excerpt_similarity: float = 0.7
    full_text_prefix_similarity: float = 0.8
    full_text_prefix_chars: int = 200
    min_excerpt_chars: int = 20
    excerpt_key_chars: int = 100
    # Cross-show collisions
    date_proximity_days: int = 60
    double_bill_days: int = 14
    generic_url_show_count: int = 5
    min_signal_text_chars: int = 100
    fuzzy_title_hint: int = 85
    # Wrong-production verification
    preview_window_months: int = 6
    context_radius: int = 150
    default_min_wrong_indicators: int = 2
    # Scoring and reporting
    min_sentiment_chars: int = 30
    with_text_chars: int = 200
    error_page_max_chars: int = 500


@dataclass
class PipelineConfig:
    """Resolved configuration for one run"""
    reviews_dir: Path = Path('data/review-texts')
    shows_path: Path = Path('data/shows.json')
    output_dir: Path = Path('output')
    thresholds: Thresholds = field(default_factory=Thresholds)
    # Optional overrides merged over the built-in tables
    table_overrides: Optional[dict] = None


def load_config(config_path: Path) -> dict:
    """Load configuration from YAML file"""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def build_thresholds(raw: Optional[dict]) -> Thresholds:
    """Apply a `thresholds:` mapping over the defaults, rejecting unknown keys"""
    if not raw:
        return Thresholds()
    known = {f.name for f in fields(Thresholds)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ConfigError(f"Unknown threshold(s): {', '.join(unknown)}")

    values = {}
    defaults = Thresholds()
    for key, value in raw.items():
        default = getattr(defaults, key)
        try:
            values[key] = type(default)(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Threshold {key} must be {type(default).__name__}, got {value!r}")
    return replace(defaults, **values)


def resolve_config(config_path: Optional[Path]) -> PipelineConfig:
    """
    Build the run configuration from an optional YAML file.

    A missing file is not an error: every setting has a default. A file that
    exists but cannot be parsed raises ConfigError.
    """
    config = PipelineConfig()
    if config_path is None:
        return config
    if not config_path.exists():
        logger.info(f"Config file not found: {config_path} - using defaults")
        return config

    try:
        raw = load_config(config_path)
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {config_path}: {e}")
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a mapping at top level")

    if raw.get('reviews_dir'):
        config.reviews_dir = Path(raw['reviews_dir'])
    if raw.get('shows_path'):
        config.shows_path = Path(raw['shows_path'])
    if raw.get('output_dir'):
        config.output_dir = Path(raw['output_dir'])
    config.thresholds = build_thresholds(raw.get('thresholds'))
    config.table_overrides = raw.get('tables') or None

    logger.info(f"Loaded configuration from {config_path}")
    return config
