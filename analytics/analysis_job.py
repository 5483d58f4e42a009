"""
Orchestrated analysis job - snapshot file to portfolio metrics JSON.
Loads the snapshot, calls the pure calculations, persists the document.
"""

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from analytics.calculations.concentration import SectorRules
from analytics.config import AnalyticsSettings, load_sector_rules, load_settings
from analytics.loaders import load_snapshot
from analytics.metrics_aggregator import compose_portfolio_metrics, count_calculated_metrics

logger = logging.getLogger(__name__)


def analyze_portfolio(
    snapshot_path: Path,
    output_path: Path,
    as_of_date: Optional[date] = None,
    benchmark_return: Optional[float] = None,
    risk_free_rate: Optional[float] = None,
    sector_rules: Optional[SectorRules] = None,
    settings: Optional[AnalyticsSettings] = None
) -> Dict[str, Any]:
    """
    Run the complete analysis for one snapshot and save results to JSON.

    Arguments left as None fall back to the snapshot (as_of) and then to
    settings (benchmark, risk-free rate, sector rules, threshold).

    Args:
        snapshot_path: Portfolio snapshot (YAML/JSON)
        output_path: Where to write the metrics JSON
        as_of_date: Valuation date override
        benchmark_return: Benchmark return in percent
        risk_free_rate: Risk-free rate in percent
        sector_rules: Sector classification table
        settings: Environment settings (loaded if not given)

    Returns:
        Dictionary with job status and summary; failures are reported in it
        rather than raised
    """
    start_time = datetime.now()

    try:
        if settings is None:
            settings = load_settings()
        if sector_rules is None:
            sector_rules = load_sector_rules(settings.sector_rules_path)

        snapshot = load_snapshot(Path(snapshot_path))

        as_of = as_of_date or snapshot.as_of or date.today()

        metrics = compose_portfolio_metrics(
            assets=snapshot.assets,
            as_of_date=as_of,
            transactions=snapshot.transactions,
            cash_flows=snapshot.cash_flows,
            periodic_returns=snapshot.periodic_returns,
            benchmark_return=(settings.benchmark_return
                              if benchmark_return is None else benchmark_return),
            risk_free_rate=(settings.risk_free_rate
                            if risk_free_rate is None else risk_free_rate),
            sector_rules=sector_rules,
            concentration_threshold=settings.concentration_threshold,
            periods_per_year=settings.periods_per_year
        )

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w') as f:
            json.dump(metrics, f, indent=2, default=str)

        duration = (datetime.now() - start_time).total_seconds()
        logger.info("Analyzed %s -> %s in %.2fs", snapshot_path, output_path, duration)

        return {
            'snapshot': str(snapshot_path),
            'status': 'completed',
            'output_path': str(output_path),
            'as_of_date': as_of.isoformat(),
            'metrics_calculated': count_calculated_metrics(metrics),
            'assets': len(snapshot.assets),
            'warnings': metrics['diversification']['warnings'],
            'duration_seconds': duration
        }

    except Exception as e:
        logger.error("Analysis failed for %s: %s", snapshot_path, e)
        return {
            'snapshot': str(snapshot_path),
            'status': 'failed',
            'error_message': str(e),
            'output_path': None,
            'metrics_calculated': 0,
            'duration_seconds': (datetime.now() - start_time).total_seconds()
        }


def batch_analyze_portfolios(
    snapshot_paths: List[Path],
    output_dir: Path,
    as_of_date: Optional[date] = None,
    settings: Optional[AnalyticsSettings] = None
) -> Dict[str, Any]:
    """
    Run analysis for several snapshots, writing <stem>.json into output_dir.

    Returns:
        Summary of batch results
    """
    if settings is None:
        settings = load_settings()

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    start_time = datetime.now()
    results = [
        analyze_portfolio(
            snapshot_path=path,
            output_path=output_dir / f'{Path(path).stem}.json',
            as_of_date=as_of_date,
            settings=settings
        )
        for path in snapshot_paths
    ]

    completed = [r for r in results if r['status'] == 'completed']

    return {
        'total_snapshots': len(snapshot_paths),
        'completed': len(completed),
        'failed': len(results) - len(completed),
        'success_rate': len(completed) / len(snapshot_paths) if snapshot_paths else 0,
        'duration_seconds': (datetime.now() - start_time).total_seconds(),
        'results': results
    }
