"""
Core value records shared across the analytics engine.

Inputs are validated on construction; outputs are frozen bundles whose
mapping and list fields are read-only views.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from analytics.guardrails import (
    InvalidArgumentError,
    require_non_negative,
    require_real,
    require_text,
    require_timestamp,
)


def _freeze_mapping(instance: Any, attr: str) -> None:
    value = getattr(instance, attr)
    if not isinstance(value, Mapping):
        raise InvalidArgumentError(
            f"{attr} must be a mapping, got {type(value).__name__}"
        )
    object.__setattr__(instance, attr, MappingProxyType(dict(value)))


# Inputs

@dataclass(frozen=True)
class CashFlow:
    """Dated cash flow. Outflows (investments) negative, inflows positive."""
    timestamp: datetime
    amount: float

    def __post_init__(self):
        object.__setattr__(self, 'timestamp', require_timestamp(self.timestamp, 'timestamp'))
        object.__setattr__(self, 'amount', require_real(self.amount, 'amount'))


@dataclass(frozen=True)
class AssetSnapshot:
    """One holding's valuation at evaluation time."""
    current_value: float
    invested_amount: float
    asset_type: str
    name: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'current_value',
                           require_non_negative(self.current_value, 'current_value'))
        object.__setattr__(self, 'invested_amount',
                           require_non_negative(self.invested_amount, 'invested_amount'))
        require_text(self.asset_type, 'asset_type')
        require_text(self.name, 'name')


@dataclass(frozen=True)
class TransactionRecord:
    """Ledger entry; timestamp is only needed for cash-flow conversion."""
    type: str
    amount: float
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        require_text(self.type, 'type')
        object.__setattr__(self, 'amount', require_non_negative(self.amount, 'amount'))
        if self.timestamp is not None:
            object.__setattr__(self, 'timestamp',
                               require_timestamp(self.timestamp, 'timestamp'))


# Outputs

@dataclass(frozen=True)
class XirrResult:
    rate: float
    converged: bool
    iterations: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rate': self.rate,
            'converged': self.converged,
            'iterations': self.iterations
        }


@dataclass(frozen=True)
class BenchmarkComparison:
    portfolio_return: float
    benchmark_return: float
    alpha: float
    outperformed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'portfolio_return': self.portfolio_return,
            'benchmark_return': self.benchmark_return,
            'alpha': self.alpha,
            'outperformed': self.outperformed
        }


@dataclass(frozen=True)
class SectorAnalysis:
    sector_percentages: Mapping[str, float]
    diversification_score: float
    warnings: Tuple[str, ...] = ()

    def __post_init__(self):
        _freeze_mapping(self, 'sector_percentages')
        object.__setattr__(self, 'warnings', tuple(self.warnings))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sector_percentages': dict(self.sector_percentages),
            'diversification_score': self.diversification_score,
            'warnings': list(self.warnings)
        }


@dataclass(frozen=True)
class DividendSummary:
    total_dividends: float
    dividend_count: int
    # Stays empty until transactions carry an asset link.
    dividends_by_asset: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        _freeze_mapping(self, 'dividends_by_asset')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_dividends': self.total_dividends,
            'dividend_count': self.dividend_count,
            'dividends_by_asset': dict(self.dividends_by_asset)
        }


@dataclass(frozen=True)
class RiskMetrics:
    portfolio_return: float
    volatility: float
    sharpe_ratio: float
    max_drawdown: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'portfolio_return': self.portfolio_return,
            'volatility': self.volatility,
            'sharpe_ratio': self.sharpe_ratio,
            'max_drawdown': self.max_drawdown
        }


@dataclass(frozen=True)
class DrawdownProfile:
    """
    Largest peak-to-trough decline of a simulated index.

    Periods are positions in the index series: 0 is the base value before
    any return is applied, k is the value after the k-th return.
    """
    max_drawdown: float
    peak_period: int
    trough_period: int
    recovery_period: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'max_drawdown': self.max_drawdown,
            'peak_period': self.peak_period,
            'trough_period': self.trough_period,
            'recovery_period': self.recovery_period
        }
