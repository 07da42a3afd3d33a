"""Tests for analytics.performance."""
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from analytics.performance import (
    PerformanceMetrics,
    PortfolioHistoryPoint,
    Transaction,
    TransactionType,
    average_holding_period,
    calculate_performance,
    max_drawdown,
    sharpe_ratio,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def history(values: list[float]) -> list[PortfolioHistoryPoint]:
    return [PortfolioHistoryPoint(date=T0 + timedelta(days=i), value=v) for i, v in enumerate(values)]


def tx(kind: TransactionType, day: float, qty: float = 1.0, price: float = 100.0, **kw) -> Transaction:
    return Transaction(type=kind, symbol=kw.pop("symbol", "BTC"), quantity=qty, price_per_unit=price,
                       transaction_date=T0 + timedelta(days=day), **kw)


class TestDrawdown:
    def test_documented_example(self):
        pct, value = max_drawdown(history([1000, 1200, 900, 1100]))
        assert pct == pytest.approx(25.0)
        assert value == pytest.approx(300.0)

    def test_unsorted_input_is_sorted(self):
        points = history([1000, 1200, 900, 1100])
        pct, _ = max_drawdown(list(reversed(points)))
        assert pct == pytest.approx(25.0)

    def test_too_short(self):
        assert max_drawdown([]) == (0.0, 0.0)
        assert max_drawdown(history([500])) == (0.0, 0.0)

    def test_monotonic_rise(self):
        assert max_drawdown(history([1, 2, 3, 4])) == (0.0, 0.0)


class TestSharpe:
    def test_needs_more_than_two_points(self):
        assert sharpe_ratio(history([100, 110])) == 0.0

    def test_zero_volatility(self):
        assert sharpe_ratio(history([100, 100, 100, 100])) == 0.0

    def test_matches_formula(self):
        values = [100, 102, 101, 105, 104, 108]
        returns = np.diff(values) / np.array(values[:-1])
        expected = (returns.mean() * 252 - 0.04) / (returns.std() * np.sqrt(252))
        assert sharpe_ratio(history(values)) == pytest.approx(expected)

    def test_losing_series_negative(self):
        assert sharpe_ratio(history([100, 97, 95, 96, 90])) < 0

    def test_skips_non_positive_base(self):
        assert sharpe_ratio(history([0, 0, 0])) == 0.0


class TestHoldingPeriod:
    def test_fifo_pairs(self):
        txs = [
            tx(TransactionType.BUY, 0, qty=1),
            tx(TransactionType.BUY, 10, qty=1),
            tx(TransactionType.SELL, 20, qty=1.5),
        ]
        # lot 1 fully consumed after 20 days, lot 2 partially after 10 days
        assert average_holding_period(txs) == pytest.approx(15.0)

    def test_symbols_matched_separately(self):
        txs = [
            tx(TransactionType.BUY, 0, symbol="btc"),
            tx(TransactionType.BUY, 5, symbol="ETH"),
            tx(TransactionType.SELL, 8, symbol="BTC"),
        ]
        assert average_holding_period(txs) == pytest.approx(8.0)

    def test_transfers_participate(self):
        txs = [tx(TransactionType.TRANSFER_IN, 0), tx(TransactionType.TRANSFER_OUT, 3)]
        assert average_holding_period(txs) == pytest.approx(3.0)

    def test_no_pairs(self):
        assert average_holding_period([tx(TransactionType.BUY, 0)]) == 0.0
        assert average_holding_period([tx(TransactionType.SELL, 0)]) == 0.0


class TestCalculatePerformance:
    def test_trade_statistics(self):
        txs = [
            tx(TransactionType.BUY, 0, qty=3),
            tx(TransactionType.SELL, 1, realized_profit_loss=200.0),
            tx(TransactionType.SELL, 2, realized_profit_loss=-50.0),
            tx(TransactionType.SELL, 3, price=150.0, cost_basis_per_unit=100.0),
        ]
        m = calculate_performance(txs, history([1000, 1200, 900, 1100]), total_return=100.0)
        assert m.number_of_trades == 3
        assert m.winning_trades == 2
        assert m.losing_trades == 1
        assert m.win_rate == pytest.approx(200 / 3)
        assert m.average_win == pytest.approx(125.0)
        assert m.average_loss == pytest.approx(50.0)
        assert m.profit_factor == pytest.approx(2.5)
        assert m.max_drawdown == pytest.approx(25.0)
        assert m.total_return == 100.0
        assert m.risk_reward_ratio == "1:2.5"

    def test_buys_are_not_trades(self):
        m = calculate_performance([tx(TransactionType.BUY, 0, realized_profit_loss=10.0)], [])
        assert m.number_of_trades == 0
        assert m.win_rate == 0.0

    def test_sell_without_pnl_is_ungraded(self):
        m = calculate_performance([tx(TransactionType.SELL, 0)], [])
        assert m.number_of_trades == 1
        assert m.winning_trades == 0
        assert m.win_rate == 0.0

    def test_no_losses(self):
        m = calculate_performance([tx(TransactionType.SELL, 0, realized_profit_loss=5.0)], [])
        assert m.profit_factor == 0.0
        assert m.risk_reward_ratio == "N/A"
        assert m.win_rate == 100.0


class TestLabels:
    @pytest.mark.parametrize("sharpe,label", [
        (-0.1, "Poor"), (0.0, "Below Average"), (1.0, "Good"),
        (2.5, "Very Good"), (3.0, "Excellent"),
    ])
    def test_sharpe_rating(self, sharpe, label):
        assert PerformanceMetrics(sharpe_ratio=sharpe).sharpe_rating == label

    @pytest.mark.parametrize("days,label", [
        (0.5, "Day Trading"), (7, "Swing Trading"), (89.9, "Swing Trading"), (90, "Long-term Holding"),
    ])
    def test_holding_description(self, days, label):
        assert PerformanceMetrics(average_holding_period_days=days).holding_period_description == label
