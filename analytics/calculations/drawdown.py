"""
Drawdown and recovery calculation utilities.
Pure functions simulating a cumulative index from periodic returns.
"""

from typing import Sequence

import numpy as np

from analytics.guardrails import require_series
from analytics.models import DrawdownProfile

BASE_INDEX = 100.0


def cumulative_index(periodic_returns: Sequence[float]) -> np.ndarray:
    """
    Compound percentage returns onto an index starting at 100.

    Input order is chronological and is never re-sorted.

    Returns:
        Array of len(returns) + 1 index values; element 0 is the base
    """
    returns = require_series(periodic_returns, 'periodic_returns')
    growth = np.concatenate(([BASE_INDEX], 1 + np.array(returns, dtype=float) / 100))
    return np.cumprod(growth)


def _drawdown_series(index: np.ndarray) -> np.ndarray:
    running_peak = np.maximum.accumulate(index)
    return (running_peak - index) / running_peak * 100


def max_drawdown(periodic_returns: Sequence[float]) -> float:
    """
    Largest peak-to-trough decline of the simulated index.

    Formula: max over t of (peak_t - index_t) / peak_t × 100

    Returns:
        Max drawdown as a positive percentage; 0 for an empty or never
        declining series
    """
    index = cumulative_index(periodic_returns)
    if len(index) < 2:
        return 0.0

    return float(max(0.0, np.max(_drawdown_series(index))))


def drawdown_profile(periodic_returns: Sequence[float]) -> DrawdownProfile:
    """
    Max drawdown with the periods of its peak, trough and recovery.

    Recovery is the first period after the trough whose index regains the
    peak value (None if it never does). With no decline at all, peak,
    trough and recovery coincide at period 0.
    """
    index = cumulative_index(periodic_returns)
    drawdowns = _drawdown_series(index)

    trough_idx = int(np.argmax(drawdowns))
    depth = float(max(0.0, drawdowns[trough_idx]))

    if depth == 0.0:
        return DrawdownProfile(max_drawdown=0.0, peak_period=0, trough_period=0, recovery_period=0)

    peak_value = np.max(index[:trough_idx + 1])
    peak_idx = int(np.argmax(index[:trough_idx + 1]))

    recovery_idx = None
    regained = np.flatnonzero(index[trough_idx + 1:] >= peak_value)
    if regained.size > 0:
        recovery_idx = trough_idx + 1 + int(regained[0])

    return DrawdownProfile(
        max_drawdown=depth,
        peak_period=peak_idx,
        trough_period=trough_idx,
        recovery_period=recovery_idx
    )
