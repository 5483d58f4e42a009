"""
Metrics aggregator - composes the analytics calculations into one document.
Pure functions: every value is derived from the arguments, nothing is read
from the clock or the environment.
"""

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from analytics.calculations.cash_flows import (
    INFLOW_TYPES,
    OUTFLOW_TYPES,
    cash_flows_from_transactions,
    dividend_summary,
)
from analytics.calculations.concentration import (
    CONCENTRATION_THRESHOLD_PCT,
    DEFAULT_SECTOR_RULES,
    SectorRules,
    analyze_sector_diversification,
)
from analytics.calculations.drawdown import drawdown_profile, max_drawdown
from analytics.calculations.returns import (
    compare_to_benchmark,
    portfolio_return,
    portfolio_totals,
    solve_money_weighted_return,
)
from analytics.calculations.volatility import (
    MONTHS_PER_YEAR,
    annualized_volatility,
    sharpe_ratio,
)
from analytics.guardrails import InvalidArgumentError, require_real, require_records, require_series
from analytics.models import AssetSnapshot, CashFlow, RiskMetrics, TransactionRecord

CALCULATION_VERSION = '1.0.0'


def calculate_risk_metrics(
    assets: Sequence[AssetSnapshot],
    periodic_returns: Sequence[float],
    risk_free_rate: float,
    periods_per_year: int = MONTHS_PER_YEAR
) -> RiskMetrics:
    """
    Bundle portfolio return, volatility, Sharpe ratio and max drawdown.

    Args:
        assets: Portfolio holdings
        periodic_returns: Chronological percentage returns
        risk_free_rate: Percent per year
        periods_per_year: Annualization factor for volatility

    Returns:
        RiskMetrics
    """
    ret = portfolio_return(assets)
    vol = annualized_volatility(periodic_returns, periods_per_year)

    return RiskMetrics(
        portfolio_return=ret,
        volatility=vol,
        sharpe_ratio=sharpe_ratio(ret, risk_free_rate, vol),
        max_drawdown=max_drawdown(periodic_returns)
    )


def _counted_transactions(transactions: List[TransactionRecord]) -> List[TransactionRecord]:
    return [tx for tx in transactions if tx.type in OUTFLOW_TYPES | INFLOW_TYPES]


def _valuation_instant(as_of_date: date, transactions: List[TransactionRecord]) -> datetime:
    """Midnight of as_of_date, in the transactions' timezone when they carry one."""
    if isinstance(as_of_date, datetime):
        instant = as_of_date
    else:
        instant = datetime.combine(as_of_date, time.min)

    if instant.tzinfo is None:
        tzinfo = transactions[0].timestamp.tzinfo
        if tzinfo is not None and transactions[0].timestamp.utcoffset() is not None:
            instant = instant.replace(tzinfo=tzinfo)

    return instant


def _resolve_cash_flows(
    cash_flows: List[CashFlow],
    transactions: List[TransactionRecord],
    terminal_value: float,
    as_of_date: date
) -> Tuple[List[CashFlow], Optional[str]]:
    """Pick explicit cash flows, else derive them from dated transactions."""
    if cash_flows:
        return cash_flows, 'cash_flows'

    counted = _counted_transactions(transactions)
    if counted and all(tx.timestamp is not None for tx in counted):
        derived = cash_flows_from_transactions(
            counted, terminal_value, _valuation_instant(as_of_date, counted)
        )
        return derived, 'transactions'

    return [], None


def compose_portfolio_metrics(
    assets: Sequence[AssetSnapshot],
    as_of_date: date,
    transactions: Sequence[TransactionRecord] = (),
    cash_flows: Sequence[CashFlow] = (),
    periodic_returns: Sequence[float] = (),
    benchmark_return: float = 0.0,
    risk_free_rate: float = 0.0,
    sector_rules: SectorRules = DEFAULT_SECTOR_RULES,
    concentration_threshold: float = CONCENTRATION_THRESHOLD_PCT,
    periods_per_year: int = MONTHS_PER_YEAR
) -> Dict[str, Any]:
    """
    Compose every portfolio metric into a JSON-ready dictionary.

    The money-weighted return uses explicit cash_flows when given; otherwise
    it is derived from transactions (BUY/SIP/SELL/DIVIDEND, all dated) plus
    the portfolio's current value at as_of_date. Without either it is None.

    Args:
        assets: Portfolio holdings
        as_of_date: Valuation date
        transactions: Ledger entries (dividends, optionally dated trades)
        cash_flows: Explicit cash-flow series for the money-weighted return
        periodic_returns: Chronological percentage returns for risk metrics
        benchmark_return: Benchmark return in percent
        risk_free_rate: Risk-free rate in percent
        sector_rules: Sector classification table
        concentration_threshold: Percent above which a sector is flagged
        periods_per_year: Annualization factor

    Returns:
        Complete portfolio metrics dictionary

    Raises:
        InvalidArgumentError: If any input violates the caller contract
    """
    if not isinstance(as_of_date, date):
        raise InvalidArgumentError(
            f"as_of_date must be a date, got {type(as_of_date).__name__}"
        )

    holdings = require_records(assets, AssetSnapshot, 'assets')
    ledger = require_records(transactions, TransactionRecord, 'transactions')
    flows = require_records(cash_flows, CashFlow, 'cash_flows')
    returns = require_series(periodic_returns, 'periodic_returns')
    rate = require_real(risk_free_rate, 'risk_free_rate')

    total_value, total_invested = portfolio_totals(holdings)

    benchmark = compare_to_benchmark(holdings, benchmark_return)
    sectors = analyze_sector_diversification(holdings, sector_rules, concentration_threshold)
    dividends = dividend_summary(ledger)
    risk = calculate_risk_metrics(holdings, returns, rate, periods_per_year)
    drawdown = drawdown_profile(returns)

    series, flow_source = _resolve_cash_flows(flows, ledger, total_value, as_of_date)
    mwr: Optional[Dict[str, Any]] = None
    if series:
        mwr = solve_money_weighted_return(series).to_dict()
        mwr['cash_flow_count'] = len(series)

    return {
        'as_of_date': as_of_date.isoformat(),
        'portfolio': {
            'total_current_value': total_value,
            'total_invested': total_invested,
            'num_assets': len(holdings)
        },
        'returns': {
            'portfolio_return': benchmark.portfolio_return,
            'money_weighted_return': mwr,
            'benchmark': benchmark.to_dict()
        },
        'diversification': sectors.to_dict(),
        'dividends': dividends.to_dict(),
        'risk': risk.to_dict(),
        'drawdown': drawdown.to_dict(),
        'metadata': {
            'calculation_version': CALCULATION_VERSION,
            'cash_flow_source': flow_source,
            'return_periods': len(returns),
            'periods_per_year': periods_per_year,
            'risk_free_rate': rate,
            'concentration_threshold': concentration_threshold
        }
    }


def count_calculated_metrics(metrics: Dict[str, Any]) -> int:
    """Count non-null headline metrics in a composed document."""
    headline = [
        metrics.get('returns', {}).get('portfolio_return'),
        metrics.get('returns', {}).get('money_weighted_return'),
        metrics.get('returns', {}).get('benchmark', {}).get('alpha'),
        metrics.get('diversification', {}).get('diversification_score'),
        metrics.get('dividends', {}).get('total_dividends'),
    ]
    headline.extend(metrics.get('risk', {}).values())
    return sum(1 for value in headline if value is not None)
