"""
Aggregation Engine

DESIGN DECISION: Every figure here is a pure function of the current
collections. Nothing is cached or persisted, so a summary can never
disagree with the records it was computed from. Callers simply call
again after each confirmed mutation.

All arithmetic is Decimal; there is no rounding in the sums, so
totals are exact.
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from finance_tracker.engine.frequency import monthly_income
from finance_tracker.models.finance import (
    Account,
    IncomeSource,
    PatrimonySnapshot,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from finance_tracker.models.summary import (
    CategoryExpense,
    FinancialSummary,
    OverviewBar,
    PatrimonyPoint,
    PatrimonyTrend,
)


ZERO = Decimal("0")


def filter_transactions(
    transactions: Iterable[Transaction],
    transaction_type: TransactionType,
    status: Optional[TransactionStatus] = None,
) -> list[Transaction]:
    """Transactions of one direction, optionally narrowed to one status."""
    return [
        t for t in transactions
        if t.transaction_type == transaction_type
        and (status is None or t.status == status)
    ]


def _total(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), ZERO)


def total_account_balance(accounts: Iterable[Account]) -> Decimal:
    """Sum of the balances of all active accounts."""
    return sum((a.balance for a in accounts if a.is_active), ZERO)


def compute_summary(
    transactions: Sequence[Transaction],
    accounts: Sequence[Account],
    income_sources: Sequence[IncomeSource],
) -> FinancialSummary:
    """
    Derive the dashboard figures.

    Args:
        transactions: All of the user's transactions
        accounts: All accounts, including deactivated ones (ignored)
        income_sources: All income sources, including paused ones (ignored)
    """
    receivable = TransactionType.RECEIVABLE
    payable = TransactionType.PAYABLE
    pending = TransactionStatus.PENDING
    paid = TransactionStatus.PAID

    total_receivables = _total(filter_transactions(transactions, receivable))
    total_payables = _total(filter_transactions(transactions, payable))
    pending_receivables = _total(filter_transactions(transactions, receivable, pending))
    pending_payables = _total(filter_transactions(transactions, payable, pending))
    total_balance = total_account_balance(accounts)

    return FinancialSummary(
        total_receivables=total_receivables,
        total_payables=total_payables,
        pending_receivables=pending_receivables,
        pending_payables=pending_payables,
        paid_receivables=_total(filter_transactions(transactions, receivable, paid)),
        paid_payables=_total(filter_transactions(transactions, payable, paid)),
        balance=total_receivables - total_payables,
        total_balance=total_balance,
        projected_balance=total_balance + pending_receivables - pending_payables,
        monthly_income=monthly_income(income_sources),
    )


def expenses_by_category(transactions: Iterable[Transaction]) -> list[CategoryExpense]:
    """
    Payables grouped by category, largest first.

    Percentages are of the total of all payables and rounded to two places.
    """
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in filter_transactions(transactions, TransactionType.PAYABLE):
        totals[t.category.value] += t.amount

    grand_total = sum(totals.values(), ZERO)
    if grand_total == 0:
        return []

    slices = [
        CategoryExpense(
            category=category,
            value=value,
            percentage=(value * 100 / grand_total).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            ),
        )
        for category, value in totals.items()
    ]
    return sorted(slices, key=lambda s: s.value, reverse=True)


def monthly_overview(transactions: Sequence[Transaction]) -> list[OverviewBar]:
    """Total vs realized (paid) amounts for receivables and payables."""
    bars = []
    for label, transaction_type in (
        ("Receivables", TransactionType.RECEIVABLE),
        ("Payables", TransactionType.PAYABLE),
    ):
        bars.append(OverviewBar(
            label=label,
            total=_total(filter_transactions(transactions, transaction_type)),
            realized=_total(filter_transactions(
                transactions, transaction_type, TransactionStatus.PAID
            )),
        ))
    return bars


def patrimony_trend(snapshots: Sequence[PatrimonySnapshot]) -> PatrimonyTrend:
    """
    Net-worth history from the daily snapshots.

    percent_change compares the last snapshot with the first; it is 0
    when the first value is not positive.
    """
    points = [
        PatrimonyPoint(snapshot_date=s.snapshot_date, total_balance=s.total_balance)
        for s in sorted(snapshots, key=lambda s: s.snapshot_date)
    ]
    if not points:
        return PatrimonyTrend()

    first = points[0].total_balance
    last = points[-1].total_balance
    change = ZERO
    if first > 0:
        change = ((last - first) * 100 / first).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
    return PatrimonyTrend(points=points, percent_change=change)
