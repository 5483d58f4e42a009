"""
Settings for the analytics job and CLI.

Values come from the environment (a local .env file is loaded first).
Calculations never read these directly; the job passes them in.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from analytics.calculations.concentration import (
    CONCENTRATION_THRESHOLD_PCT,
    DEFAULT_SECTOR_RULES,
    KeywordRule,
    SectorRules,
    TypeRule,
)
from analytics.calculations.volatility import MONTHS_PER_YEAR

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when settings or a rule file cannot be loaded."""
    pass


@dataclass(frozen=True)
class AnalyticsSettings:
    sector_rules_path: Optional[Path] = None
    risk_free_rate: float = 0.0
    benchmark_return: float = 0.0
    concentration_threshold: float = CONCENTRATION_THRESHOLD_PCT
    periods_per_year: int = MONTHS_PER_YEAR
    output_dir: Path = Path('./data/processed/analytics')
    log_level: str = 'INFO'


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def load_settings() -> AnalyticsSettings:
    """
    Build settings from environment variables.

    Environment:
        ANALYTICS_SECTOR_RULES: YAML rule table path (built-in table if unset)
        ANALYTICS_RISK_FREE_RATE: percent, default 0
        ANALYTICS_BENCHMARK_RETURN: percent, default 0
        ANALYTICS_CONCENTRATION_THRESHOLD: percent, default 30
        ANALYTICS_PERIODS_PER_YEAR: default 12 (monthly returns)
        ANALYTICS_OUTPUT_DIR: default ./data/processed/analytics
        ANALYTICS_LOG_LEVEL: default INFO

    Raises:
        ConfigError: If a numeric variable cannot be parsed
    """
    rules_path = os.getenv('ANALYTICS_SECTOR_RULES')

    return AnalyticsSettings(
        sector_rules_path=Path(rules_path) if rules_path else None,
        risk_free_rate=_env_float('ANALYTICS_RISK_FREE_RATE', 0.0),
        benchmark_return=_env_float('ANALYTICS_BENCHMARK_RETURN', 0.0),
        concentration_threshold=_env_float('ANALYTICS_CONCENTRATION_THRESHOLD',
                                           CONCENTRATION_THRESHOLD_PCT),
        periods_per_year=_env_int('ANALYTICS_PERIODS_PER_YEAR', MONTHS_PER_YEAR),
        output_dir=Path(os.getenv('ANALYTICS_OUTPUT_DIR', './data/processed/analytics')),
        log_level=os.getenv('ANALYTICS_LOG_LEVEL', 'INFO').upper()
    )


def sector_rules_from_mapping(config: Dict[str, Any]) -> SectorRules:
    """
    Build a SectorRules table from parsed YAML.

    Expected shape:
        fallback_sector: Other
        asset_types:
          MUTUAL_FUND:
            sector: Equity
            name_keywords:
              - sector: Debt
                keywords: [debt, bond]

    Raises:
        ConfigError: If the structure is invalid
    """
    if not isinstance(config, dict) or 'asset_types' not in config:
        raise ConfigError("Sector rules missing 'asset_types' section")

    asset_types = config['asset_types']
    if not isinstance(asset_types, dict):
        raise ConfigError("'asset_types' must be a mapping of asset type to rule")

    by_asset_type = {}
    for asset_type, rule in asset_types.items():
        if not isinstance(rule, dict) or not isinstance(rule.get('sector'), str):
            raise ConfigError(f"Rule for {asset_type} needs a 'sector' string")

        keyword_rules = []
        for entry in rule.get('name_keywords') or []:
            if not isinstance(entry, dict):
                raise ConfigError(f"Keyword rule for {asset_type} must be a mapping")
            keywords = entry.get('keywords')
            if (not isinstance(entry.get('sector'), str)
                    or not isinstance(keywords, list)
                    or not all(isinstance(k, str) for k in keywords)):
                raise ConfigError(
                    f"Keyword rule for {asset_type} needs 'sector' and a list of 'keywords'"
                )
            keyword_rules.append(KeywordRule(entry['sector'], tuple(keywords)))

        by_asset_type[str(asset_type)] = TypeRule(rule['sector'], tuple(keyword_rules))

    fallback = config.get('fallback_sector', DEFAULT_SECTOR_RULES.fallback_sector)
    if not isinstance(fallback, str):
        raise ConfigError("'fallback_sector' must be a string")

    return SectorRules(by_asset_type=by_asset_type, fallback_sector=fallback)


def load_sector_rules(config_path: Optional[Path] = None) -> SectorRules:
    """
    Load the sector rule table from a YAML file.

    Args:
        config_path: Rule file; None returns the built-in table

    Raises:
        ConfigError: If the file is missing or malformed
    """
    if config_path is None:
        return DEFAULT_SECTOR_RULES

    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigError(f"Sector rules file not found: {config_path}")

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse sector rules: {e}")

    rules = sector_rules_from_mapping(config)
    logger.info("Loaded %d sector rules from %s", len(rules.by_asset_type), config_file)
    return rules
