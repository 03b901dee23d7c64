"""
Frequency Normalizer

Converts income amounts with different recurrences into a
monthly-equivalent figure so they can be summed.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from finance_tracker.models.finance import IncomeFrequency, IncomeSource


CENTS = Decimal("0.01")

# One-time income is not part of the recurring monthly total
MONTHLY_MULTIPLIERS = {
    IncomeFrequency.WEEKLY: 4,
    IncomeFrequency.BIWEEKLY: 2,
    IncomeFrequency.MONTHLY: 1,
    IncomeFrequency.ONE_TIME: 0,
}


def to_monthly(amount: Decimal, frequency: Union[IncomeFrequency, str]) -> Decimal:
    """
    Monthly-equivalent contribution of one income amount.

    Unrecognized frequencies are treated as monthly.
    """
    try:
        frequency = IncomeFrequency(frequency)
    except ValueError:
        return amount

    if frequency is IncomeFrequency.YEARLY:
        return amount / 12
    return amount * MONTHLY_MULTIPLIERS[frequency]


def monthly_income(sources: Iterable[IncomeSource]) -> Decimal:
    """
    Sum of the monthly equivalents of all active income sources.

    The exact sum is rounded to cents once, after adding everything up.
    """
    total = sum(
        (to_monthly(s.amount, s.frequency) for s in sources if s.is_active),
        Decimal("0"),
    )
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)
