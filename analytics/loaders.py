"""
Portfolio snapshot loader - YAML/JSON file to analytics records.

Snapshot layout (JSON is valid YAML, so both parse):

    as_of: 2024-06-30
    assets:
      - {name: ..., asset_type: STOCK, current_value: ..., invested_amount: ...}
    transactions:
      - {type: DIVIDEND, amount: ..., timestamp: 2024-03-15}
    cash_flows:
      - {timestamp: 2023-06-30, amount: -100000}
    monthly_returns: [1.2, -0.4]
    valuations:
      - {date: 2024-01-31, value: 100000}

monthly_returns wins over valuations when both are present.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import yaml

from analytics.calculations.returns import monthly_returns
from analytics.models import AssetSnapshot, CashFlow, TransactionRecord

logger = logging.getLogger(__name__)

ASSET_COLUMNS = ['name', 'asset_type', 'current_value', 'invested_amount']
TRANSACTION_COLUMNS = ['type', 'amount', 'timestamp']
CASH_FLOW_COLUMNS = ['timestamp', 'amount']
VALUATION_COLUMNS = ['date', 'value']


class SnapshotLoadError(Exception):
    """Raised when a portfolio snapshot cannot be read."""
    pass


@dataclass(frozen=True)
class PortfolioSnapshot:
    assets: Tuple[AssetSnapshot, ...]
    transactions: Tuple[TransactionRecord, ...] = ()
    cash_flows: Tuple[CashFlow, ...] = ()
    periodic_returns: Tuple[float, ...] = ()
    as_of: Optional[date] = None


def _records_frame(raw: Any, section: str, columns: List[str]) -> pd.DataFrame:
    """Tabulate one list section, checking it is a list of mappings."""
    if raw is None:
        return pd.DataFrame(columns=columns)
    if not isinstance(raw, list) or not all(isinstance(r, dict) for r in raw):
        raise SnapshotLoadError(f"'{section}' must be a list of mappings")

    df = pd.DataFrame(raw)
    for column in columns:
        if column not in df.columns:
            df[column] = None
    return df


def _require_columns(df: pd.DataFrame, section: str, required: List[str]) -> None:
    for column in required:
        if df[column].isna().any():
            raise SnapshotLoadError(f"'{section}' entries need a '{column}' value")


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or pd.isna(value):
        return None
    try:
        return pd.Timestamp(value).to_pydatetime()
    except (ValueError, TypeError) as e:
        raise SnapshotLoadError(f"Invalid timestamp {value!r}: {e}")


def _parse_assets(raw: Any) -> Tuple[AssetSnapshot, ...]:
    df = _records_frame(raw, 'assets', ASSET_COLUMNS)
    _require_columns(df, 'assets', ['asset_type', 'current_value'])

    df['name'] = df['name'].fillna('').astype(str)
    df['invested_amount'] = df['invested_amount'].fillna(0.0)

    return tuple(
        AssetSnapshot(
            current_value=row.current_value,
            invested_amount=row.invested_amount,
            asset_type=str(row.asset_type),
            name=row.name
        )
        for row in df[ASSET_COLUMNS].itertuples(index=False)
    )


def _parse_transactions(raw: Any) -> Tuple[TransactionRecord, ...]:
    df = _records_frame(raw, 'transactions', TRANSACTION_COLUMNS)
    _require_columns(df, 'transactions', ['type', 'amount'])

    return tuple(
        TransactionRecord(
            type=str(row.type),
            amount=row.amount,
            timestamp=_to_datetime(row.timestamp)
        )
        for row in df[TRANSACTION_COLUMNS].itertuples(index=False)
    )


def _parse_cash_flows(raw: Any) -> Tuple[CashFlow, ...]:
    df = _records_frame(raw, 'cash_flows', CASH_FLOW_COLUMNS)
    _require_columns(df, 'cash_flows', CASH_FLOW_COLUMNS)

    return tuple(
        CashFlow(timestamp=_to_datetime(row.timestamp), amount=row.amount)
        for row in df[CASH_FLOW_COLUMNS].itertuples(index=False)
    )


def _parse_returns(config: Dict[str, Any]) -> Tuple[float, ...]:
    if config.get('monthly_returns') is not None:
        raw = config['monthly_returns']
        if not isinstance(raw, list):
            raise SnapshotLoadError("'monthly_returns' must be a list of numbers")
        return tuple(raw)

    df = _records_frame(config.get('valuations'), 'valuations', VALUATION_COLUMNS)
    if df.empty:
        return ()
    _require_columns(df, 'valuations', VALUATION_COLUMNS)

    valuations = pd.Series(df['value'].tolist(), index=df['date'].tolist())
    return tuple(monthly_returns(valuations))


def parse_snapshot(config: Dict[str, Any]) -> PortfolioSnapshot:
    """
    Convert a parsed snapshot mapping into records.

    Raises:
        SnapshotLoadError: If sections are missing or malformed
        InvalidArgumentError: If values violate the record contracts
    """
    if not isinstance(config, dict):
        raise SnapshotLoadError("Snapshot must be a mapping")
    if 'assets' not in config:
        raise SnapshotLoadError("Snapshot missing 'assets' section")

    as_of = config.get('as_of')
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    elif isinstance(as_of, str):
        as_of = _to_datetime(as_of).date()
    elif as_of is not None and not isinstance(as_of, date):
        # Numbers would parse as epoch offsets
        raise SnapshotLoadError(
            f"'as_of' must be a date or ISO date string, got {as_of!r}"
        )

    return PortfolioSnapshot(
        assets=_parse_assets(config['assets']),
        transactions=_parse_transactions(config.get('transactions')),
        cash_flows=_parse_cash_flows(config.get('cash_flows')),
        periodic_returns=_parse_returns(config),
        as_of=as_of
    )


def load_snapshot(snapshot_path: Path) -> PortfolioSnapshot:
    """
    Read a portfolio snapshot file.

    Args:
        snapshot_path: YAML or JSON file

    Returns:
        PortfolioSnapshot

    Raises:
        SnapshotLoadError: If the file is missing, unparsable or malformed
    """
    path = Path(snapshot_path)
    if not path.exists():
        raise SnapshotLoadError(f"Snapshot file not found: {snapshot_path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise SnapshotLoadError(f"Failed to parse snapshot {path}: {e}")

    snapshot = parse_snapshot(config)
    logger.info(
        "Loaded snapshot %s: %d assets, %d transactions, %d cash flows, %d return periods",
        path.name, len(snapshot.assets), len(snapshot.transactions),
        len(snapshot.cash_flows), len(snapshot.periodic_returns)
    )
    return snapshot
