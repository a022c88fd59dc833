"""
Finance Tracker - Source Package

A personal finance tracker for wallets, income/expense transactions,
savings goals and debts, backed by a hosted document database.

DESIGN PRINCIPLES:
1. One user intent → one atomic batch of writes
2. Balances move by atomic increments, never read-modify-write
3. Dashboard figures are pure functions of the current snapshot
4. Every record is scoped to its owner
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
