"""Dashboard aggregation (pure functions)."""

from finance_tracker.aggregation.aggregator import (
    activity_series,
    available_goals,
    goal_progress,
    monthly_expense,
    monthly_net_income,
    recent_transactions,
    split_debts,
    summarize,
    total_balance,
)

__all__ = [
    "activity_series",
    "available_goals",
    "goal_progress",
    "monthly_expense",
    "monthly_net_income",
    "recent_transactions",
    "split_debts",
    "summarize",
    "total_balance",
]
