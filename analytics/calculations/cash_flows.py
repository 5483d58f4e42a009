"""
Transaction aggregation utilities.
Pure functions for dividend totals and for turning ledger transactions into
a cash-flow series for the money-weighted return.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from analytics.guardrails import (
    InvalidArgumentError,
    require_consistent_timezones,
    require_non_negative,
    require_records,
    require_timestamp,
)
from analytics.models import CashFlow, DividendSummary, TransactionRecord

DIVIDEND = 'DIVIDEND'

# Sign convention: money leaving the investor is negative
OUTFLOW_TYPES = frozenset({'BUY', 'SIP'})
INFLOW_TYPES = frozenset({'SELL', DIVIDEND})


def dividend_summary(transactions: Sequence[TransactionRecord]) -> DividendSummary:
    """
    Total and count of DIVIDEND transactions (type matched exactly).

    The per-asset breakdown stays empty: transactions carry no asset link.
    """
    dividends = [
        tx for tx in require_records(transactions, TransactionRecord, 'transactions')
        if tx.type == DIVIDEND
    ]

    return DividendSummary(
        total_dividends=sum(tx.amount for tx in dividends),
        dividend_count=len(dividends)
    )


def cash_flows_from_transactions(
    transactions: Sequence[TransactionRecord],
    terminal_value: float = 0.0,
    as_of: Optional[datetime] = None
) -> List[CashFlow]:
    """
    Build a money-weighted-return series from ledger transactions.

    BUY and SIP become outflows, SELL and DIVIDEND inflows; other types are
    ignored. A positive terminal_value is appended at as_of as a final
    inflow, standing for redeeming the holding at its current value.

    Args:
        transactions: Ledger entries; counted types need a timestamp
        terminal_value: Current value of the holding(s)
        as_of: Valuation instant for terminal_value

    Returns:
        Cash flows sorted by timestamp

    Raises:
        InvalidArgumentError: If a counted transaction has no timestamp,
            terminal_value is positive without as_of, or naive and
            timezone-aware timestamps are mixed
    """
    records = require_records(transactions, TransactionRecord, 'transactions')
    terminal = require_non_negative(terminal_value, 'terminal_value')

    flows = []
    for i, tx in enumerate(records):
        if tx.type in OUTFLOW_TYPES:
            amount = -tx.amount
        elif tx.type in INFLOW_TYPES:
            amount = tx.amount
        else:
            continue

        if tx.timestamp is None:
            raise InvalidArgumentError(
                f"transactions[{i}] ({tx.type}) has no timestamp"
            )
        flows.append(CashFlow(timestamp=tx.timestamp, amount=amount))

    if terminal > 0:
        if as_of is None:
            raise InvalidArgumentError("as_of is required with a positive terminal_value")
        flows.append(CashFlow(timestamp=require_timestamp(as_of, 'as_of'), amount=terminal))

    require_consistent_timezones([f.timestamp for f in flows], 'transactions')
    return sorted(flows, key=lambda f: f.timestamp)
