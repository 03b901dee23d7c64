"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.finance import (
    RECORD_MODELS,
    Account,
    AccountInput,
    AccountType,
    AmountInput,
    FinancialGoal,
    GoalInput,
    IncomeFrequency,
    IncomeSource,
    IncomeSourceInput,
    PatrimonySnapshot,
    RecordKind,
    Transaction,
    TransactionCategory,
    TransactionInput,
    TransactionStatus,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from finance_tracker.models.summary import (
    CategoryExpense,
    FinancialSummary,
    GoalNotification,
    GoalProgress,
    OverviewBar,
    PatrimonyPoint,
    PatrimonyTrend,
    UrgencyTier,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "RECORD_MODELS",
    "Account",
    "AccountType",
    "FinancialGoal",
    "IncomeFrequency",
    "IncomeSource",
    "PatrimonySnapshot",
    "RecordKind",
    "Transaction",
    "TransactionCategory",
    "TransactionStatus",
    "TransactionType",
    # Input
    "AccountInput",
    "AmountInput",
    "GoalInput",
    "IncomeSourceInput",
    "TransactionInput",
    "ValidationIssue",
    "ValidationResult",
    # Derived views
    "CategoryExpense",
    "FinancialSummary",
    "GoalNotification",
    "GoalProgress",
    "OverviewBar",
    "PatrimonyPoint",
    "PatrimonyTrend",
    "UrgencyTier",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
