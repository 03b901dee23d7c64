"""
Transaction status state machine.

Two states, pending and paid; toggling is its own inverse. Each
transition maps to exactly one signed change of the settlement
account's balance, and the reverse transition maps to its negation.
"""

from decimal import Decimal

from finance_tracker.models.finance import Transaction, TransactionStatus, TransactionType


def next_status(status: TransactionStatus) -> TransactionStatus:
    if status == TransactionStatus.PENDING:
        return TransactionStatus.PAID
    return TransactionStatus.PENDING


def settlement_delta(transaction: Transaction, new_status: TransactionStatus) -> Decimal:
    """
    Signed balance change caused by moving `transaction` to `new_status`.

    payable    pending -> paid  : -amount (money leaves the account)
    payable    paid -> pending  : +amount
    receivable pending -> paid  : +amount (money arrives)
    receivable paid -> pending  : -amount
    """
    if new_status == transaction.status:
        return Decimal("0")
    inflow = transaction.transaction_type == TransactionType.RECEIVABLE
    settling = new_status == TransactionStatus.PAID
    return transaction.amount if inflow == settling else -transaction.amount
