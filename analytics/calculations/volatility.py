"""
Volatility calculation utilities.
Pure functions for annualized volatility of periodic returns and the
Sharpe ratio.
"""

import math
from typing import Sequence

import numpy as np

from analytics.guardrails import InvalidArgumentError, require_real, require_series

# Returns are assumed to be sampled monthly
MONTHS_PER_YEAR = 12


def annualized_volatility(
    periodic_returns: Sequence[float],
    periods_per_year: int = MONTHS_PER_YEAR
) -> float:
    """
    Calculate annualized volatility of a return series.

    Formula: σ = std_population(returns) × √periods_per_year

    Args:
        periodic_returns: Percentage returns per period (5.0 = 5%)
        periods_per_year: Annualization factor (12 for monthly data)

    Returns:
        Annualized volatility in percentage points; 0 for fewer than 2 returns
    """
    returns = require_series(periodic_returns, 'periodic_returns')
    periods = require_real(periods_per_year, 'periods_per_year')
    if periods <= 0:
        raise InvalidArgumentError(f"periods_per_year must be positive, got {periods}")

    if len(returns) < 2:
        return 0.0

    # Population standard deviation (ddof=0)
    std_dev = np.std(np.array(returns), ddof=0)

    return float(std_dev * math.sqrt(periods))


def sharpe_ratio(portfolio_return: float, risk_free_rate: float, volatility: float) -> float:
    """
    Excess return per unit of volatility.

    Formula: (portfolio_return - risk_free_rate) / volatility

    Returns:
        Ratio, or 0 when volatility is 0 (undefined)
    """
    excess = require_real(portfolio_return, 'portfolio_return') - require_real(risk_free_rate, 'risk_free_rate')
    vol = require_real(volatility, 'volatility')

    if vol == 0:
        return 0.0

    return excess / vol
