#!/usr/bin/env python3
"""
CLI tool for analyzing a portfolio snapshot.
Usage: analyze-portfolio SNAPSHOT [options]
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

from analytics.analysis_job import analyze_portfolio
from analytics.config import ConfigError, load_sector_rules, load_settings


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description='Compute risk/return metrics for a portfolio snapshot',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  analyze-portfolio portfolio.yml
  analyze-portfolio portfolio.yml --benchmark-return 12.5 --risk-free-rate 6.8
  analyze-portfolio portfolio.json --output ./out/metrics.json --as-of 2024-06-30
        """
    )

    parser.add_argument('snapshot', help='Portfolio snapshot file (YAML or JSON)')
    parser.add_argument('--output',
                        help='Output JSON path (default: $ANALYTICS_OUTPUT_DIR/{SNAPSHOT}.json)')
    parser.add_argument('--as-of',
                        type=date.fromisoformat,
                        help='Valuation date (YYYY-MM-DD, default: snapshot as_of or today)')
    parser.add_argument('--benchmark-return',
                        type=float,
                        help='Benchmark return in percent (default: $ANALYTICS_BENCHMARK_RETURN)')
    parser.add_argument('--risk-free-rate',
                        type=float,
                        help='Risk-free rate in percent (default: $ANALYTICS_RISK_FREE_RATE)')
    parser.add_argument('--sector-rules',
                        help='Sector rules YAML (default: $ANALYTICS_SECTOR_RULES or built-in)')
    parser.add_argument('--quiet', '-q',
                        action='store_true',
                        help='Minimal output (just success/failure)')

    args = parser.parse_args(argv)

    try:
        settings = load_settings()
        rules_path = Path(args.sector_rules) if args.sector_rules else settings.sector_rules_path
        sector_rules = load_sector_rules(rules_path)
    except ConfigError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    snapshot_path = Path(args.snapshot)
    if not snapshot_path.exists():
        print(f"ERROR: Snapshot not found: {snapshot_path}", file=sys.stderr)
        sys.exit(1)

    output_path = Path(args.output) if args.output else settings.output_dir / f'{snapshot_path.stem}.json'

    if not args.quiet:
        print(f"Analyzing {snapshot_path}")
        print()

    result = analyze_portfolio(
        snapshot_path=snapshot_path,
        output_path=output_path,
        as_of_date=args.as_of,
        benchmark_return=args.benchmark_return,
        risk_free_rate=args.risk_free_rate,
        sector_rules=sector_rules,
        settings=settings
    )

    if result['status'] != 'completed':
        print(f"ERROR: Analysis failed for {snapshot_path}: {result['error_message']}", file=sys.stderr)
        sys.exit(1)

    if args.quiet:
        print(f"{snapshot_path} analysis complete: {result['output_path']}")
        sys.exit(0)

    print("Analysis completed")
    print(f"  As of: {result['as_of_date']}")
    print(f"  Assets: {result['assets']}")
    print(f"  Metrics calculated: {result['metrics_calculated']}")
    print(f"  Results saved to: {result['output_path']}")
    for warning in result['warnings']:
        print(f"  WARNING: {warning}")
    print()

    _show_quick_summary(result['output_path'])
    sys.exit(0)


def _show_quick_summary(output_path: str):
    """Show the headline numbers of a metrics file."""
    with open(output_path, 'r') as f:
        metrics = json.load(f)

    returns = metrics['returns']
    risk = metrics['risk']

    print("Quick Summary:")
    print(f"  Portfolio return: {returns['portfolio_return']:+.2f}%")

    mwr = returns['money_weighted_return']
    if mwr is not None:
        note = '' if mwr['converged'] else ' (did not converge)'
        print(f"  Money-weighted return: {mwr['rate']:+.2f}%{note}")

    benchmark = returns['benchmark']
    print(f"  Alpha vs benchmark: {benchmark['alpha']:+.2f}%")
    print(f"  Diversification score: {metrics['diversification']['diversification_score']:.1f}/100")
    print(f"  Volatility: {risk['volatility']:.2f}%  Sharpe: {risk['sharpe_ratio']:.2f}")
    print(f"  Max drawdown: {risk['max_drawdown']:.2f}%")
    print()


if __name__ == '__main__':
    main()
