"""
Tests for portfolio snapshot loading.
"""

import json
from datetime import date, datetime
from pathlib import Path

import pytest

from analytics.guardrails import InvalidArgumentError
from analytics.loaders import SnapshotLoadError, load_snapshot, parse_snapshot

FIXTURES = Path(__file__).parent / 'fixtures'


class TestLoadSnapshot:

    def test_sample_portfolio(self):
        snapshot = load_snapshot(FIXTURES / 'sample_portfolio.yml')

        assert snapshot.as_of == date(2024, 6, 30)
        assert len(snapshot.assets) == 3
        assert snapshot.assets[1].name == 'HDFC Corporate Bond Fund'
        assert snapshot.assets[1].asset_type == 'MUTUAL_FUND'
        assert sum(a.current_value for a in snapshot.assets) == 100000.0
        assert [tx.type for tx in snapshot.transactions] == ['BUY', 'DIVIDEND', 'DIVIDEND']
        assert snapshot.transactions[0].timestamp == datetime(2023, 6, 30)
        assert snapshot.periodic_returns == (2.0, -1.0, 3.0, -5.0, 4.0, 1.5)
        assert snapshot.cash_flows == ()

    def test_json_snapshot(self, tmp_path):
        path = tmp_path / 'portfolio.json'
        path.write_text(json.dumps({
            'as_of': '2024-06-30',
            'assets': [{'asset_type': 'PPF', 'current_value': 5000, 'invested_amount': 4000}],
            'cash_flows': [
                {'timestamp': '2023-06-30', 'amount': -4000},
                {'timestamp': '2024-06-30', 'amount': 5000}
            ]
        }))

        snapshot = load_snapshot(path)

        assert snapshot.as_of == date(2024, 6, 30)
        assert snapshot.assets[0].name == ''
        assert [f.amount for f in snapshot.cash_flows] == [-4000.0, 5000.0]
        assert snapshot.cash_flows[0].timestamp == datetime(2023, 6, 30)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SnapshotLoadError, match="not found"):
            load_snapshot(tmp_path / 'missing.yml')

    def test_unparsable_file(self, tmp_path):
        path = tmp_path / 'broken.yml'
        path.write_text("assets: [unclosed\n")

        with pytest.raises(SnapshotLoadError, match="Failed to parse"):
            load_snapshot(path)


class TestParseSnapshot:

    def test_minimal(self):
        snapshot = parse_snapshot({'assets': []})

        assert snapshot.assets == ()
        assert snapshot.transactions == ()
        assert snapshot.periodic_returns == ()
        assert snapshot.as_of is None

    def test_missing_invested_amount_defaults_to_zero(self):
        snapshot = parse_snapshot({'assets': [{'asset_type': 'GOLD', 'current_value': 10}]})

        assert snapshot.assets[0].invested_amount == 0.0

    def test_valuations_become_monthly_returns(self):
        snapshot = parse_snapshot({
            'assets': [],
            'valuations': [
                {'date': date(2024, 1, 10), 'value': 90},
                {'date': date(2024, 1, 31), 'value': 100},
                {'date': date(2024, 2, 29), 'value': 110},
                {'date': date(2024, 3, 31), 'value': 99},
            ]
        })

        assert snapshot.periodic_returns == pytest.approx((10.0, -10.0))

    def test_monthly_returns_win_over_valuations(self):
        snapshot = parse_snapshot({
            'assets': [],
            'monthly_returns': [1.5],
            'valuations': [{'date': date(2024, 1, 31), 'value': 100}]
        })

        assert snapshot.periodic_returns == (1.5,)

    def test_datetime_as_of_truncated_to_date(self):
        snapshot = parse_snapshot({'assets': [], 'as_of': datetime(2024, 6, 30, 15, 30)})

        assert snapshot.as_of == date(2024, 6, 30)

    @pytest.mark.parametrize("config,message", [
        ([], "must be a mapping"),
        ({}, "missing 'assets'"),
        ({'assets': {'asset_type': 'STOCK'}}, "list of mappings"),
        ({'assets': [{'current_value': 1}]}, "asset_type"),
        ({'assets': [], 'transactions': [{'type': 'BUY'}]}, "amount"),
        ({'assets': [], 'cash_flows': [{'amount': -5}]}, "timestamp"),
        ({'assets': [], 'monthly_returns': 'flat'}, "monthly_returns"),
    ])
    def test_malformed_sections(self, config, message):
        with pytest.raises(SnapshotLoadError, match=message):
            parse_snapshot(config)

    @pytest.mark.parametrize("as_of", [20240630, 2024.5, True, ['2024-06-30']])
    def test_non_date_as_of_rejected(self, as_of):
        with pytest.raises(SnapshotLoadError, match="as_of"):
            parse_snapshot({'assets': [], 'as_of': as_of})

    def test_string_as_of(self):
        snapshot = parse_snapshot({'assets': [], 'as_of': '2024-06-30'})

        assert snapshot.as_of == date(2024, 6, 30)

    def test_invalid_timestamp(self):
        with pytest.raises(SnapshotLoadError, match="Invalid timestamp"):
            parse_snapshot({'assets': [], 'cash_flows': [{'timestamp': 'soon', 'amount': 1}]})

    def test_record_contract_violation(self):
        with pytest.raises(InvalidArgumentError):
            parse_snapshot({'assets': [{'asset_type': 'STOCK', 'current_value': -10}]})
