"""
Projection calculators.
Future value of fixed deposits, recurring deposits, SIPs and lumpsum
investments, rounded half-up to 2 decimals.
"""

import math
from decimal import ROUND_HALF_UP, Decimal

from analytics.guardrails import require_real

FD_COMPOUNDING_PER_YEAR = 4  # quarterly
MONTHS_PER_YEAR = 12


def round_currency(value: float) -> float:
    """Round half-up to 2 decimals using the shortest decimal repr of value."""
    if not math.isfinite(value):
        return value
    return float(Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def fixed_deposit_maturity(principal: float, annual_rate: float, years: float) -> float:
    """
    Maturity amount with quarterly compounding.

    Formula: A = P × (1 + r/4)^(4t)
    """
    p = require_real(principal, 'principal')
    r = require_real(annual_rate, 'annual_rate') / 100
    t = require_real(years, 'years')

    base = 1 + r / FD_COMPOUNDING_PER_YEAR
    if base <= 0:
        return 0.0

    return round_currency(p * _growth(base, FD_COMPOUNDING_PER_YEAR * t))


def _growth(base: float, periods: float) -> float:
    # Overflow means the value is beyond float range, not an error
    try:
        return math.pow(base, periods)
    except OverflowError:
        return math.inf


def _annuity_due(monthly_amount: float, monthly_rate: float, months: float) -> float:
    # FV = P × ((1+i)^n - 1) / i × (1+i); deposits at the start of each month
    if monthly_rate == 0:
        return monthly_amount * months
    if 1 + monthly_rate <= 0:
        return 0.0
    growth = _growth(1 + monthly_rate, months)
    return monthly_amount * ((growth - 1) / monthly_rate) * (1 + monthly_rate)


def recurring_deposit_maturity(monthly_amount: float, annual_rate: float, years: float) -> float:
    """
    Recurring deposit maturity over whole months.

    Months are truncated: int(years × 12).
    """
    p = require_real(monthly_amount, 'monthly_amount')
    i = require_real(annual_rate, 'annual_rate') / 100 / MONTHS_PER_YEAR
    months = int(require_real(years, 'years') * MONTHS_PER_YEAR)

    return round_currency(_annuity_due(p, i, months))


def sip_future_value(monthly_amount: float, annual_rate: float, years: float) -> float:
    """
    Future value of a monthly SIP.

    Formula: FV = P × [(1+i)^n - 1] × (1+i) / i with i = r/12, n = 12t
    """
    p = require_real(monthly_amount, 'monthly_amount')
    i = require_real(annual_rate, 'annual_rate') / 100 / MONTHS_PER_YEAR
    n = require_real(years, 'years') * MONTHS_PER_YEAR

    return round_currency(_annuity_due(p, i, n))


def lumpsum_future_value(principal: float, annual_rate: float, years: float) -> float:
    """
    Future value of a single investment.

    Formula: A = P × (1 + r)^t
    """
    p = require_real(principal, 'principal')
    r = require_real(annual_rate, 'annual_rate') / 100
    t = require_real(years, 'years')

    if 1 + r <= 0:
        return 0.0

    return round_currency(p * _growth(1 + r, t))
