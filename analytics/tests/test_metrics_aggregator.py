"""
Tests for metrics aggregator - composing every calculation into one document.
"""

import json
import math
from datetime import date, datetime, timedelta, timezone

import pytest

from analytics.calculations.concentration import KeywordRule, SectorRules, TypeRule
from analytics.calculations.drawdown import max_drawdown
from analytics.guardrails import InvalidArgumentError
from analytics.metrics_aggregator import (
    CALCULATION_VERSION,
    calculate_risk_metrics,
    compose_portfolio_metrics,
    count_calculated_metrics,
)
from analytics.models import AssetSnapshot, CashFlow, TransactionRecord

AS_OF = date(2024, 6, 30)


@pytest.fixture
def assets():
    return [
        AssetSnapshot(60000.0, 50000.0, 'STOCK', 'Infosys'),
        AssetSnapshot(25000.0, 24000.0, 'MUTUAL_FUND', 'HDFC Corporate Bond Fund'),
        AssetSnapshot(15000.0, 12000.0, 'GOLD', 'Gold coins'),
    ]


@pytest.fixture
def dated_transactions():
    return [
        TransactionRecord('BUY', 86000.0, datetime(2023, 6, 30)),
        TransactionRecord('DIVIDEND', 500.0, datetime(2024, 3, 15)),
        TransactionRecord('DIVIDEND', 250.5, datetime(2024, 5, 10)),
    ]


class TestCalculateRiskMetrics:

    def test_bundle(self, assets):
        returns = [1.0, -1.0, 1.0, -1.0]

        risk = calculate_risk_metrics(assets, returns, risk_free_rate=4.0)

        expected_return = (100000 - 86000) / 86000 * 100
        assert risk.portfolio_return == pytest.approx(expected_return)
        assert risk.volatility == pytest.approx(math.sqrt(12))
        assert risk.sharpe_ratio == pytest.approx((expected_return - 4.0) / math.sqrt(12))
        assert risk.max_drawdown == pytest.approx(max_drawdown(returns))

    def test_no_returns(self, assets):
        risk = calculate_risk_metrics(assets, [], risk_free_rate=6.0)

        assert risk.volatility == 0.0
        assert risk.sharpe_ratio == 0.0
        assert risk.max_drawdown == 0.0


class TestComposePortfolioMetrics:

    def test_document_structure(self, assets, dated_transactions):
        metrics = compose_portfolio_metrics(
            assets, AS_OF,
            transactions=dated_transactions,
            periodic_returns=[2.0, -1.0, 3.0],
            benchmark_return=12.0,
            risk_free_rate=6.5
        )

        assert set(metrics) == {
            'as_of_date', 'portfolio', 'returns', 'diversification',
            'dividends', 'risk', 'drawdown', 'metadata'
        }
        assert metrics['as_of_date'] == '2024-06-30'
        assert metrics['portfolio'] == {
            'total_current_value': 100000.0,
            'total_invested': 86000.0,
            'num_assets': 3
        }
        assert metrics['metadata']['calculation_version'] == CALCULATION_VERSION
        assert metrics['metadata']['return_periods'] == 3
        assert metrics['metadata']['risk_free_rate'] == 6.5

    def test_json_serializable(self, assets, dated_transactions):
        metrics = compose_portfolio_metrics(assets, AS_OF, transactions=dated_transactions)

        assert json.loads(json.dumps(metrics)) == metrics

    def test_benchmark_and_sectors(self, assets):
        metrics = compose_portfolio_metrics(assets, AS_OF, benchmark_return=20.0)

        benchmark = metrics['returns']['benchmark']
        assert benchmark['alpha'] == pytest.approx(benchmark['portfolio_return'] - 20.0)
        assert benchmark['outperformed'] is False

        diversification = metrics['diversification']
        assert diversification['sector_percentages'] == {'Equity': 60.0, 'Debt': 25.0, 'Gold': 15.0}
        assert diversification['warnings'] == ['High exposure to Equity (60.0%)']

    def test_dividends(self, assets, dated_transactions):
        metrics = compose_portfolio_metrics(assets, AS_OF, transactions=dated_transactions)

        assert metrics['dividends']['total_dividends'] == pytest.approx(750.5)
        assert metrics['dividends']['dividend_count'] == 2

    def test_money_weighted_return_from_transactions(self, assets, dated_transactions):
        metrics = compose_portfolio_metrics(assets, AS_OF, transactions=dated_transactions)

        mwr = metrics['returns']['money_weighted_return']
        assert metrics['metadata']['cash_flow_source'] == 'transactions'
        assert mwr['converged'] is True
        assert mwr['cash_flow_count'] == 4
        # 86k grows to 100k plus dividends in one year
        assert 16.0 < mwr['rate'] < 18.0

    def test_explicit_cash_flows_win(self, assets, dated_transactions):
        start = datetime(2023, 1, 1)
        flows = [
            CashFlow(start, -100000.0),
            CashFlow(start + timedelta(days=365.25), 115000.0),
        ]

        metrics = compose_portfolio_metrics(
            assets, AS_OF, transactions=dated_transactions, cash_flows=flows
        )

        mwr = metrics['returns']['money_weighted_return']
        assert metrics['metadata']['cash_flow_source'] == 'cash_flows'
        assert mwr['rate'] == pytest.approx(15.0, abs=0.01)
        assert mwr['cash_flow_count'] == 2

    def test_timezone_aware_transactions(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        assets = [AssetSnapshot(110.0, 100.0, 'STOCK', 'X')]
        transactions = [TransactionRecord('BUY', 100.0, datetime(2023, 1, 1, tzinfo=ist))]

        metrics = compose_portfolio_metrics(assets, date(2024, 1, 1), transactions=transactions)

        mwr = metrics['returns']['money_weighted_return']
        assert metrics['metadata']['cash_flow_source'] == 'transactions'
        assert mwr['converged'] is True
        assert mwr['cash_flow_count'] == 2
        # 365 days at 365.25 per year, slightly above 10%
        assert mwr['rate'] == pytest.approx(10.0, abs=0.02)

    def test_mixed_timezone_transactions_rejected(self, assets):
        transactions = [
            TransactionRecord('BUY', 86000.0, datetime(2023, 6, 30, tzinfo=timezone.utc)),
            TransactionRecord('SELL', 1000.0, datetime(2024, 1, 15)),
        ]

        with pytest.raises(InvalidArgumentError):
            compose_portfolio_metrics(assets, AS_OF, transactions=transactions)

    def test_undated_transactions_give_no_money_weighted_return(self, assets):
        transactions = [TransactionRecord('BUY', 86000.0), TransactionRecord('DIVIDEND', 10.0)]

        metrics = compose_portfolio_metrics(assets, AS_OF, transactions=transactions)

        assert metrics['returns']['money_weighted_return'] is None
        assert metrics['metadata']['cash_flow_source'] is None
        assert metrics['dividends']['dividend_count'] == 1

    def test_custom_rules_and_threshold(self, assets):
        rules = SectorRules(
            by_asset_type={'STOCK': TypeRule('Equity', (KeywordRule('IT', ('infosys',)),))},
            fallback_sector='Other'
        )

        metrics = compose_portfolio_metrics(
            assets, AS_OF, sector_rules=rules, concentration_threshold=50.0
        )

        assert metrics['diversification']['sector_percentages'] == {'IT': 60.0, 'Other': 40.0}
        assert metrics['diversification']['warnings'] == ['High exposure to IT (60.0%)']
        assert metrics['metadata']['concentration_threshold'] == 50.0

    def test_empty_portfolio(self):
        metrics = compose_portfolio_metrics([], AS_OF)

        assert metrics['portfolio']['num_assets'] == 0
        assert metrics['returns']['portfolio_return'] == 0.0
        assert metrics['diversification']['sector_percentages'] == {}
        assert metrics['drawdown'] == {
            'max_drawdown': 0.0, 'peak_period': 0, 'trough_period': 0, 'recovery_period': 0
        }

    def test_rejects_bad_inputs(self, assets):
        with pytest.raises(InvalidArgumentError):
            compose_portfolio_metrics(assets, '2024-06-30')

        with pytest.raises(InvalidArgumentError):
            compose_portfolio_metrics(assets, AS_OF, periodic_returns=[1.0, float('nan')])

        with pytest.raises(InvalidArgumentError):
            compose_portfolio_metrics([{'current_value': 1}], AS_OF)


class TestCountCalculatedMetrics:

    def test_counts_non_null(self, assets, dated_transactions):
        without_mwr = compose_portfolio_metrics(assets, AS_OF)
        with_mwr = compose_portfolio_metrics(assets, AS_OF, transactions=dated_transactions)

        assert count_calculated_metrics(without_mwr) == 8
        assert count_calculated_metrics(with_mwr) == 9

    def test_empty_document(self):
        assert count_calculated_metrics({}) == 0
