"""
Portfolio performance metrics.

Computed from a transaction ledger plus a portfolio value history:
  - win/loss statistics over closed trades (sells)
  - maximum peak-to-trough drawdown
  - annualised Sharpe ratio from daily simple returns
  - average holding period, matching buys to sells FIFO per symbol
"""
from collections import defaultdict, deque
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from pydantic import BaseModel

TRADING_DAYS = 252
RISK_FREE_RATE = 0.04
SECONDS_PER_DAY = 86400.0


class TransactionType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"

    @property
    def is_incoming(self) -> bool:
        return self in (TransactionType.BUY, TransactionType.TRANSFER_IN)


class Transaction(BaseModel):
    type: TransactionType
    symbol: str
    quantity: float
    price_per_unit: float
    transaction_date: datetime
    cost_basis_per_unit: Optional[float] = None
    realized_profit_loss: Optional[float] = None
    gas_fee: float = 0.0

    @property
    def profit_loss(self) -> Optional[float]:
        """Recorded realized P/L, else derived from the cost basis; None when neither is known."""
        if self.realized_profit_loss is not None:
            return self.realized_profit_loss
        if self.cost_basis_per_unit is not None:
            return (self.price_per_unit - self.cost_basis_per_unit) * self.quantity
        return None


class PortfolioHistoryPoint(BaseModel):
    date: datetime
    value: float


class PerformanceMetrics(BaseModel):
    total_return: float = 0.0
    total_return_percentage: float = 0.0
    win_rate: float = 0.0                  # percent of closed trades with P/L >= 0
    average_win: float = 0.0
    average_loss: float = 0.0              # positive magnitude
    profit_factor: float = 0.0
    max_drawdown: float = 0.0              # percent
    max_drawdown_value: float = 0.0
    sharpe_ratio: float = 0.0
    number_of_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    average_holding_period_days: float = 0.0

    @property
    def sharpe_rating(self) -> str:
        s = self.sharpe_ratio
        if s < 0: return "Poor"
        if s < 1: return "Below Average"
        if s < 2: return "Good"
        if s < 3: return "Very Good"
        return "Excellent"

    @property
    def holding_period_description(self) -> str:
        days = self.average_holding_period_days
        if days < 7:
            return "Day Trading"
        if days < 90:
            return "Swing Trading"
        return "Long-term Holding"

    @property
    def risk_reward_ratio(self) -> str:
        if self.average_loss == 0:
            return "N/A"
        return f"1:{self.average_win / self.average_loss:.1f}"


def _win_loss(trades: Sequence[Transaction]) -> tuple[int, int, float, float]:
    pnl = pd.Series([t.profit_loss for t in trades], dtype=float).dropna()
    wins = pnl[pnl >= 0]
    losses = pnl[pnl < 0].abs()
    avg_win = float(wins.mean()) if len(wins) else 0.0
    avg_loss = float(losses.mean()) if len(losses) else 0.0
    return len(wins), len(losses), avg_win, avg_loss


def _history_values(history: Sequence[PortfolioHistoryPoint]) -> pd.Series:
    ordered = sorted(history, key=lambda p: p.date)
    return pd.Series([p.value for p in ordered], dtype=float)


def max_drawdown(history: Sequence[PortfolioHistoryPoint]) -> tuple[float, float]:
    """Largest decline from a running peak as (percent, value). (0, 0) for fewer than two points."""
    if len(history) < 2:
        return 0.0, 0.0
    values = _history_values(history)
    peak = values.cummax()
    gap = peak - values
    pct = (gap / peak.where(peak > 0) * 100).fillna(0.0)
    if pct.max() <= 0:
        return 0.0, 0.0
    worst = int(pct.to_numpy().argmax())
    return float(pct.iloc[worst]), float(gap.iloc[worst])


def sharpe_ratio(history: Sequence[PortfolioHistoryPoint], risk_free_rate: float = RISK_FREE_RATE) -> float:
    if len(history) <= 2:
        return 0.0
    values = _history_values(history)
    previous = values.shift(1)
    returns = ((values - previous) / previous)[previous > 0]
    if returns.empty:
        return 0.0

    std = float(np.std(returns.to_numpy(), ddof=0))
    if np.isclose(std, 0.0):
        return 0.0
    annual_return = float(returns.mean()) * TRADING_DAYS
    annual_std = std * np.sqrt(TRADING_DAYS)
    return float((annual_return - risk_free_rate) / annual_std)


def average_holding_period(transactions: Sequence[Transaction]) -> float:
    """Mean days held across FIFO-matched lots; transfers count as buys and sells."""
    lots: dict[str, deque] = defaultdict(deque)
    periods: list[float] = []

    for tx in sorted(transactions, key=lambda t: t.transaction_date):
        queue = lots[tx.symbol.upper()]
        if tx.type.is_incoming:
            queue.append([tx.transaction_date, tx.quantity])
            continue

        remaining = tx.quantity
        while remaining > 0 and queue:
            bought_at, quantity = queue[0]
            periods.append((tx.transaction_date - bought_at).total_seconds() / SECONDS_PER_DAY)
            if quantity <= remaining:
                remaining -= quantity
                queue.popleft()
            else:
                queue[0][1] = quantity - remaining
                remaining = 0

    return float(np.mean(periods)) if periods else 0.0


def calculate_performance(transactions: Sequence[Transaction],
                          history: Sequence[PortfolioHistoryPoint],
                          total_return: float = 0.0,
                          total_return_percentage: float = 0.0) -> PerformanceMetrics:
    closed = [t for t in transactions if t.type is TransactionType.SELL]
    wins, losses, avg_win, avg_loss = _win_loss(closed)
    graded = wins + losses
    drawdown_pct, drawdown_value = max_drawdown(history)

    return PerformanceMetrics(
        total_return=total_return,
        total_return_percentage=total_return_percentage,
        win_rate=wins / graded * 100 if graded else 0.0,
        average_win=avg_win,
        average_loss=avg_loss,
        profit_factor=abs(avg_win / avg_loss) if avg_loss != 0 else 0.0,
        max_drawdown=drawdown_pct,
        max_drawdown_value=drawdown_value,
        sharpe_ratio=sharpe_ratio(history),
        number_of_trades=len(closed),
        winning_trades=wins,
        losing_trades=losses,
        average_holding_period_days=average_holding_period(transactions),
    )
