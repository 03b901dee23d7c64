"""
Finance Tracker - Source Package

A personal finance tracker: transactions to receive and to pay,
bank-like accounts, income sources and savings goals, with
dashboard summaries derived from those records.

DESIGN PRINCIPLES:
1. Derived figures are computed, never stored
2. Every balance change has exactly one inverse
3. Fail early, fail visibly
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
