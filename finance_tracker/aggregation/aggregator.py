"""
Aggregator

Pure functions from a snapshot of records to dashboard figures.

Snapshots are re-delivered in full on every change, so everything here
must be safe to recompute at any time: no I/O, no caching, no mutation
of the inputs, and results that do not depend on input order.

Time handling:
- Without `now`, or with a naive `now`, dates are read in the system's
  local zone, each at the UTC offset in force on that date (Firestore
  returns aware UTC timestamps).
- With an aware `now`, dates are read in now's timezone. Naive
  transaction dates are wall-clock time in that zone.
- All windows are inclusive lower bounds with no upper bound: a
  transaction dated in the future is counted.
"""

from collections import defaultdict
from datetime import datetime, timedelta, tzinfo
from decimal import Decimal
from typing import Iterable, Optional

from finance_tracker.models import (
    ActivityBucket,
    DashboardSummary,
    Debt,
    DebtType,
    Goal,
    Transaction,
    TransactionType,
    Wallet,
)


ZERO = Decimal("0")


def _resolve_now(now: Optional[datetime]) -> tuple[datetime, Optional[tzinfo]]:
    """(aware now, zone to read dates in). A zone of None is the system local zone."""
    if now is None:
        return datetime.now().astimezone(), None
    if now.tzinfo is None:
        return now.astimezone(), None
    return now, now.tzinfo


def _local(value: datetime, zone: Optional[tzinfo]) -> datetime:
    """value as an aware wall-clock time in zone."""
    if zone is None:
        return value.astimezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def _month_start(now: datetime, zone: Optional[tzinfo]) -> datetime:
    start = _local(now, zone).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if zone is None:
        # Midnight on the 1st at the offset of the 1st, not of today
        return start.replace(tzinfo=None).astimezone()
    return start


def total_balance(wallets: Iterable[Wallet]) -> Decimal:
    """Sum of all wallet balances."""
    return sum((wallet.balance for wallet in wallets), ZERO)


def _this_month(
    transactions: Iterable[Transaction],
    type: TransactionType,
    now: datetime,
    zone: Optional[tzinfo],
) -> list[Transaction]:
    start = _month_start(now, zone)
    return [
        t for t in transactions
        if t.type == type and _local(t.date, zone) >= start
    ]


def _net_income(transactions, now, zone) -> Decimal:
    incomes = _this_month(transactions, TransactionType.INCOME, now, zone)
    return sum((t.amount - t.allocated_amount for t in incomes), ZERO)


def _expense(transactions, now, zone) -> Decimal:
    expenses = _this_month(transactions, TransactionType.EXPENSE, now, zone)
    return sum((t.amount for t in expenses), ZERO)


def _activity(transactions, window_days, now, zone) -> list[ActivityBucket]:
    start = now - timedelta(days=window_days)

    income: dict = defaultdict(lambda: ZERO)
    expense: dict = defaultdict(lambda: ZERO)
    for t in transactions:
        when = _local(t.date, zone)
        if when < start:
            continue
        day = when.date()
        if t.type == TransactionType.INCOME:
            income[day] += t.amount
        else:
            expense[day] += t.amount

    return [
        ActivityBucket(day=day, income=income.get(day, ZERO), expense=expense.get(day, ZERO))
        for day in sorted(set(income) | set(expense))
    ]


def _recent(transactions, limit, zone) -> list[Transaction]:
    ordered = sorted(transactions, key=lambda t: _local(t.date, zone), reverse=True)
    return ordered[:limit]


def monthly_net_income(
    transactions: Iterable[Transaction],
    now: Optional[datetime] = None,
) -> Decimal:
    """
    Income this calendar month minus what those incomes sent to goals.

    e.g. incomes of 100 (20 allocated) and 50 (nothing allocated) -> 130
    """
    return _net_income(transactions, *_resolve_now(now))


def monthly_expense(
    transactions: Iterable[Transaction],
    now: Optional[datetime] = None,
) -> Decimal:
    """Expenses this calendar month."""
    return _expense(transactions, *_resolve_now(now))


def activity_series(
    transactions: Iterable[Transaction],
    window_days: int = 30,
    now: Optional[datetime] = None,
) -> list[ActivityBucket]:
    """
    Per-day income and expense totals for transactions dated at or after
    now - window_days.

    Only days that have transactions get a bucket. Buckets come back
    oldest first whatever the input order.
    """
    return _activity(transactions, window_days, *_resolve_now(now))


def goal_progress(goal: Goal) -> Decimal:
    """saved / target. Not capped: an over-saved goal reports more than 1."""
    return goal.saved_amount / goal.target_amount


def recent_transactions(
    transactions: Iterable[Transaction],
    limit: int = 5,
    now: Optional[datetime] = None,
) -> list[Transaction]:
    """The newest `limit` transactions by date."""
    _, zone = _resolve_now(now)
    return _recent(transactions, limit, zone)


def summarize(
    wallets: Iterable[Wallet],
    transactions: Iterable[Transaction],
    window_days: int = 30,
    recent_limit: int = 5,
    now: Optional[datetime] = None,
) -> DashboardSummary:
    """Every dashboard figure from one snapshot, all at the same `now`."""
    now, zone = _resolve_now(now)
    transactions = list(transactions)
    return DashboardSummary(
        total_balance=total_balance(wallets),
        monthly_net_income=_net_income(transactions, now, zone),
        monthly_expense=_expense(transactions, now, zone),
        activity=_activity(transactions, window_days, now, zone),
        recent_transactions=_recent(transactions, recent_limit, zone),
    )


def available_goals(goals: Iterable[Goal]) -> list[Goal]:
    """Goals that can still receive allocations."""
    return [goal for goal in goals if not goal.is_reached]


def split_debts(debts: Iterable[Debt]) -> tuple[list[Debt], list[Debt]]:
    """(debts I owe, debts owed to me), input order kept."""
    i_owe, owed_to_me = [], []
    for debt in debts:
        (i_owe if debt.type == DebtType.I_OWE else owed_to_me).append(debt)
    return i_owe, owed_to_me
