"""
Sector concentration calculation utilities.
Pure functions for sector classification, allocation percentages and an
entropy-based diversification score.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np

from analytics.guardrails import InvalidArgumentError, require_real, require_records, require_text
from analytics.models import AssetSnapshot, SectorAnalysis

CONCENTRATION_THRESHOLD_PCT = 30.0


@dataclass(frozen=True)
class KeywordRule:
    """Assign `sector` when the lower-cased asset name contains any keyword."""
    sector: str
    keywords: Tuple[str, ...]

    def __post_init__(self):
        require_text(self.sector, 'sector')
        keywords = require_records(self.keywords, str, 'keywords')
        object.__setattr__(self, 'keywords', tuple(k.lower() for k in keywords))

    def matches(self, name: str) -> bool:
        lowered = name.lower()
        return any(keyword in lowered for keyword in self.keywords)


@dataclass(frozen=True)
class TypeRule:
    """Sector for one asset type; keyword rules are tried in order first."""
    sector: str
    keyword_rules: Tuple[KeywordRule, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'keyword_rules', tuple(self.keyword_rules))


@dataclass(frozen=True)
class SectorRules:
    """Classification table: asset type -> rule, plus a fallback sector."""
    by_asset_type: Mapping[str, TypeRule]
    fallback_sector: str = 'Other'

    def __post_init__(self):
        object.__setattr__(self, 'by_asset_type', MappingProxyType(dict(self.by_asset_type)))


DEFAULT_SECTOR_RULES = SectorRules(
    by_asset_type={
        'STOCK': TypeRule('Equity'),
        'MUTUAL_FUND': TypeRule('Equity', (
            KeywordRule('Debt', ('debt', 'bond')),
            KeywordRule('Gold', ('gold',)),
            KeywordRule('Liquid', ('liquid',)),
        )),
        'GOLD': TypeRule('Gold'),
        'PPF': TypeRule('Debt'),
        'EPF': TypeRule('Debt'),
        'FIXED_DEPOSIT': TypeRule('Debt'),
    },
    fallback_sector='Other'
)


def classify_sector(asset: AssetSnapshot, rules: SectorRules = DEFAULT_SECTOR_RULES) -> str:
    """
    Map an asset to its sector bucket.

    Asset types match exactly; names match case-insensitively by substring.
    """
    rule = rules.by_asset_type.get(asset.asset_type)
    if rule is None:
        return rules.fallback_sector

    for keyword_rule in rule.keyword_rules:
        if keyword_rule.matches(asset.name):
            return keyword_rule.sector

    return rule.sector


def sector_allocation(
    assets: Sequence[AssetSnapshot],
    rules: SectorRules = DEFAULT_SECTOR_RULES
) -> Dict[str, float]:
    """
    Sum current value per sector.

    Returns:
        Dictionary mapping sector to total value, in order of first appearance
    """
    if not isinstance(rules, SectorRules):
        raise InvalidArgumentError(f"rules must be SectorRules, got {type(rules).__name__}")

    allocation: Dict[str, float] = {}
    for asset in require_records(assets, AssetSnapshot, 'assets'):
        sector = classify_sector(asset, rules)
        allocation[sector] = allocation.get(sector, 0.0) + asset.current_value

    return allocation


def sector_percentages(allocation: Mapping[str, float]) -> Dict[str, float]:
    """
    Convert sector values to percentages of the total.

    Returns:
        Dictionary mapping sector to percent; empty when the total is 0
    """
    total_value = sum(allocation.values())
    if total_value <= 0:
        return {}

    # value * 100 / total keeps round shares exact (30000 of 100000 -> 30.0)
    return {sector: value * 100.0 / total_value for sector, value in allocation.items()}


def diversification_score(percentages: Mapping[str, float]) -> float:
    """
    Normalized Shannon entropy of the sector split.

    Formula: score = (-sum(p_i * ln p_i) / ln(n)) * 100 with p_i = pct_i / 100

    n counts every sector present, including zero-valued ones.

    Returns:
        Score in [0, 100]: 100 = even split, 0 = one sector or no sectors
    """
    if not percentages:
        return 0.0

    max_entropy = np.log(len(percentages))
    if max_entropy == 0:
        return 0.0

    shares = np.array([require_real(p, 'percentage') for p in percentages.values()]) / 100
    shares = shares[shares > 0]
    entropy = -np.sum(shares * np.log(shares))

    return float(np.clip(entropy / max_entropy * 100, 0.0, 100.0))


def concentration_warnings(
    percentages: Mapping[str, float],
    threshold: float = CONCENTRATION_THRESHOLD_PCT
) -> List[str]:
    """Warn for every sector strictly above `threshold` percent."""
    limit = require_real(threshold, 'threshold')
    return [
        f"High exposure to {sector} ({pct:.1f}%)"
        for sector, pct in percentages.items()
        if pct > limit
    ]


def analyze_sector_diversification(
    assets: Sequence[AssetSnapshot],
    rules: SectorRules = DEFAULT_SECTOR_RULES,
    threshold: float = CONCENTRATION_THRESHOLD_PCT
) -> SectorAnalysis:
    """
    Classify holdings, compute sector percentages, diversification score
    and concentration warnings.

    Args:
        assets: Portfolio holdings (order irrelevant)
        rules: Sector classification table
        threshold: Percent above which a sector triggers a warning

    Returns:
        SectorAnalysis; empty percentages, score 0 and no warnings when the
        portfolio has no value
    """
    percentages = sector_percentages(sector_allocation(assets, rules))

    return SectorAnalysis(
        sector_percentages=percentages,
        diversification_score=diversification_score(percentages),
        warnings=tuple(concentration_warnings(percentages, threshold))
    )
