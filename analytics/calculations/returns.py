"""
Returns calculation utilities.
Pure functions for money-weighted return (XIRR), CAGR, portfolio return,
benchmark comparison and periodic returns from valuations.
"""

import logging
import math
from typing import Any, List, Mapping, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from analytics.guardrails import (
    InvalidArgumentError,
    require_consistent_timezones,
    require_real,
    require_records,
    require_series,
)
from analytics.models import AssetSnapshot, BenchmarkComparison, CashFlow, XirrResult

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25
SECONDS_PER_YEAR = DAYS_PER_YEAR * 24 * 60 * 60

# Newton-Raphson parameters
INITIAL_GUESS = 0.10
TOLERANCE = 1e-7
DERIVATIVE_FLOOR = 1e-10
MAX_ITERATIONS = 100


def year_fractions(cash_flows: Sequence[CashFlow]) -> np.ndarray:
    """
    Years elapsed since the first flow, for flows already in time order.

    Formula: t_i = (timestamp_i - timestamp_0) / 365.25 days
    """
    if not cash_flows:
        return np.array([])

    first = cash_flows[0].timestamp
    return np.array([
        (flow.timestamp - first).total_seconds() / SECONDS_PER_YEAR
        for flow in cash_flows
    ])


def solve_money_weighted_return(
    cash_flows: Sequence[CashFlow],
    guess: float = INITIAL_GUESS,
    tolerance: float = TOLERANCE,
    max_iterations: int = MAX_ITERATIONS
) -> XirrResult:
    """
    Solve for the annualized rate r with sum(a_i / (1+r)^t_i) = 0.

    Newton-Raphson from `guess`:
        f(r)  = sum(a_i * (1+r)^-t_i)
        f'(r) = sum(-t_i * a_i * (1+r)^(-t_i-1))
        r'    = r - f(r) / f'(r)

    Stops when |r' - r| < tolerance (converged). Stops early, unconverged,
    when |f'(r)| < 1e-10 or when an iterate leaves the real domain. After
    max_iterations the last rate is returned as a best-effort estimate.

    Args:
        cash_flows: Flows in any order; sorted by timestamp before solving
        guess: Starting rate as a decimal
        tolerance: Convergence threshold on the rate step
        max_iterations: Iteration cap

    Returns:
        XirrResult with rate as a percentage (15.0 = 15%)

    Raises:
        InvalidArgumentError: If cash_flows is not a collection of CashFlow
    """
    flows = require_records(cash_flows, CashFlow, 'cash_flows')

    if len(flows) < 2:
        return XirrResult(rate=0.0, converged=False, iterations=0)

    require_consistent_timezones([f.timestamp for f in flows], 'cash_flows')

    ordered = sorted(flows, key=lambda f: f.timestamp)
    years = year_fractions(ordered)
    amounts = np.array([f.amount for f in ordered])

    rate = require_real(guess, 'guess')

    with np.errstate(all='ignore'):
        for iteration in range(1, max_iterations + 1):
            factors = np.power(1.0 + rate, years)
            f = float(np.sum(amounts / factors))
            df = float(np.sum(-years * amounts / (factors * (1.0 + rate))))

            if not (math.isfinite(f) and math.isfinite(df)):
                logger.debug("XIRR left the real domain at rate %s (iteration %d)",
                             rate, iteration)
                return XirrResult(rate=rate * 100, converged=False, iterations=iteration)

            # Near-zero derivative: numerically unstable step
            if abs(df) < DERIVATIVE_FLOOR:
                logger.debug("XIRR derivative vanished at rate %s (iteration %d)",
                             rate, iteration)
                return XirrResult(rate=rate * 100, converged=False, iterations=iteration)

            new_rate = rate - f / df
            if not math.isfinite(new_rate):
                logger.debug("XIRR step overflowed at rate %s (iteration %d)",
                             rate, iteration)
                return XirrResult(rate=rate * 100, converged=False, iterations=iteration)

            if abs(new_rate - rate) < tolerance:
                return XirrResult(rate=new_rate * 100, converged=True, iterations=iteration)

            rate = new_rate

    logger.debug("XIRR did not converge after %d iterations, last rate %s",
                 max_iterations, rate)
    return XirrResult(rate=rate * 100, converged=False, iterations=max_iterations)


def money_weighted_return(cash_flows: Sequence[CashFlow]) -> float:
    """
    Annualized money-weighted return (XIRR) as a percentage.

    Returns 0 for fewer than 2 flows. Non-convergence is not signalled here;
    use solve_money_weighted_return for the converged flag.
    """
    return solve_money_weighted_return(cash_flows).rate


def cagr(beginning_value: float, ending_value: float, years: float) -> float:
    """
    Calculate compound annual growth rate.

    Formula: CAGR = ((ending / beginning)^(1/years) - 1) * 100

    Returns:
        CAGR as a percentage; 0 when beginning <= 0, years <= 0 or the
        root has no real value (negative ending with a fractional exponent)
    """
    beginning = require_real(beginning_value, 'beginning_value')
    ending = require_real(ending_value, 'ending_value')
    span = require_real(years, 'years')

    if beginning <= 0 or span <= 0:
        return 0.0

    try:
        growth = math.pow(ending / beginning, 1.0 / span)
    except OverflowError:
        logger.debug("CAGR overflow for ratio %s over %s years", ending / beginning, span)
        return math.inf
    except ValueError:
        logger.debug("CAGR has no real root for ratio %s over %s years", ending / beginning, span)
        return 0.0

    return (growth - 1) * 100


def portfolio_totals(assets: Sequence[AssetSnapshot]) -> Tuple[float, float]:
    """Return (total current value, total invested amount)."""
    holdings = require_records(assets, AssetSnapshot, 'assets')
    total_value = sum(a.current_value for a in holdings)
    total_invested = sum(a.invested_amount for a in holdings)
    return total_value, total_invested


def portfolio_return(assets: Sequence[AssetSnapshot]) -> float:
    """
    Simple return of the whole portfolio on invested capital.

    Formula: (sum(current) - sum(invested)) / sum(invested) * 100

    Returns:
        Return as a percentage, 0 when nothing is invested
    """
    total_value, total_invested = portfolio_totals(assets)

    if total_invested <= 0:
        return 0.0

    return ((total_value - total_invested) / total_invested) * 100


def compare_to_benchmark(
    assets: Sequence[AssetSnapshot],
    benchmark_return: float
) -> BenchmarkComparison:
    """
    Compare portfolio return with a benchmark return (both percentages).

    alpha = portfolio_return - benchmark_return; outperformed when alpha > 0.
    """
    benchmark = require_real(benchmark_return, 'benchmark_return')
    portfolio = portfolio_return(assets)
    alpha = portfolio - benchmark

    return BenchmarkComparison(
        portfolio_return=portfolio,
        benchmark_return=benchmark,
        alpha=alpha,
        outperformed=alpha > 0
    )


def periodic_returns(values: Sequence[float]) -> List[float]:
    """
    Percentage change between consecutive valuations.

    Formula: R_t = (V_t / V_{t-1} - 1) * 100

    Periods whose previous value is 0 have no defined return and are skipped.

    Example:
        values = [100, 110, 99] -> [10.0, -10.0]
    """
    series = require_series(values, 'values')

    if len(series) < 2:
        return []

    previous = np.array(series[:-1])
    current = np.array(series[1:])
    defined = previous != 0

    with np.errstate(divide='ignore', invalid='ignore'):
        changes = (current[defined] / previous[defined] - 1) * 100

    return [float(r) for r in changes]


def monthly_returns(valuations: Union[pd.Series, Mapping[Any, float]]) -> List[float]:
    """
    Monthly percentage returns from dated valuations.

    Keeps the last valuation in each calendar month, then takes the
    percentage change between consecutive months.

    Args:
        valuations: pandas Series indexed by date, or mapping of date -> value

    Returns:
        Chronological list of monthly returns (percent)

    Raises:
        InvalidArgumentError: If dates cannot be parsed or values are not numeric
    """
    if isinstance(valuations, pd.Series):
        series = valuations.copy()
    elif isinstance(valuations, Mapping):
        series = pd.Series(dict(valuations), dtype=object)
    else:
        raise InvalidArgumentError(
            f"valuations must be a pandas Series or mapping, got {type(valuations).__name__}"
        )

    if series.empty:
        return []

    values = require_series(series.tolist(), 'valuations')

    try:
        index = pd.to_datetime(series.index)
    except (ValueError, TypeError) as e:
        raise InvalidArgumentError(f"valuation dates could not be parsed: {e}")

    series = pd.Series(values, index=index).sort_index()
    month_end = series.groupby(series.index.to_period('M')).last()

    return periodic_returns(month_end.tolist())
