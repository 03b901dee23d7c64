"""
Core Data Models for Finance Tracker

These models define the strict schemas for all records the tracker keeps.
They are designed to:
1. Enforce type safety at runtime
2. Reject money values with more than two fractional digits
3. Be serializable for storage and logging
4. Never change in place (records are frozen; updates produce copies)

DESIGN DECISION: Stored records and user input are separate models.
Input models carry only what a user types; the store assigns identity
and timestamps when it inserts the record.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    RECEIVABLE = "receivable"  # Money expected to come in
    PAYABLE = "payable"        # Money expected to go out


class TransactionStatus(str, Enum):
    """
    Settlement status of a transaction.

    Only two states exist. Toggling is its own inverse.
    """
    PENDING = "pending"
    PAID = "paid"


class TransactionCategory(str, Enum):
    """
    Fixed category labels.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent grouping in the expenses-by-category chart.
    """
    TRABALHO = "Trabalho"
    FREELANCE = "Freelance"
    MORADIA = "Moradia"
    CONTAS = "Contas"
    ALIMENTACAO = "Alimentação"
    TRANSPORTE = "Transporte"
    SAUDE = "Saúde"
    LAZER = "Lazer"
    EDUCACAO = "Educação"
    CARTOES = "Cartões"
    OUTROS = "Outros"


class AccountType(str, Enum):
    """Kind of bank-like account."""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SAVINGS = "savings"
    INVESTMENT = "investment"


class IncomeFrequency(str, Enum):
    """Recurrence of an income source."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    ONE_TIME = "one-time"


class RecordKind(str, Enum):
    """Collections held by the record store."""
    TRANSACTIONS = "transactions"
    ACCOUNTS = "accounts"
    INCOME_SOURCES = "income_sources"
    GOALS = "goals"
    PATRIMONY_SNAPSHOTS = "patrimony_snapshots"


_RECORD_CONFIG = ConfigDict(str_strip_whitespace=True, frozen=True)
_INPUT_CONFIG = ConfigDict(str_strip_whitespace=True)


# =============================================================================
# STORED RECORDS
# =============================================================================

class Transaction(BaseModel):
    """
    Money owed to or by the user.

    CRITICAL: Only `status` may change after creation, and only through
    the controller's toggle, which also moves an account balance.
    """
    model_config = _RECORD_CONFIG

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    due_date: date
    transaction_type: TransactionType
    status: TransactionStatus = TransactionStatus.PENDING
    category: TransactionCategory
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_paid(self) -> bool:
        return self.status == TransactionStatus.PAID


class Account(BaseModel):
    """
    A bank-like account.

    Accounts are soft-deleted (is_active=False) so that historical
    balance math stays consistent.
    """
    model_config = _RECORD_CONFIG

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    balance: Decimal = Field(default=Decimal("0"), decimal_places=2)
    color: str = Field(default="blue", min_length=1, max_length=50)
    account_type: AccountType = AccountType.SECONDARY
    description: Optional[str] = Field(default=None, max_length=200)
    icon: str = Field(default="wallet", min_length=1, max_length=50)
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)


class IncomeSource(BaseModel):
    """A recurring (or one-off) source of income."""
    model_config = _RECORD_CONFIG

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    frequency: IncomeFrequency = IncomeFrequency.MONTHLY
    is_active: bool = True
    color: str = Field(default="green", min_length=1, max_length=50)
    icon: str = Field(default="briefcase", min_length=1, max_length=50)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class FinancialGoal(BaseModel):
    """
    A savings goal.

    current_amount may exceed target_amount; progress display clamps at 100%.
    is_completed is set only by explicit user action, never inferred.
    """
    model_config = _RECORD_CONFIG

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    target_amount: Decimal = Field(..., gt=0, decimal_places=2)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    deadline: Optional[date] = None
    color: str = Field(default="blue", min_length=1, max_length=50)
    icon: str = Field(default="target", min_length=1, max_length=50)
    is_completed: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PatrimonySnapshot(BaseModel):
    """Total balance recorded once per calendar day."""
    model_config = _RECORD_CONFIG

    id: UUID = Field(default_factory=uuid4)
    total_balance: Decimal = Field(..., decimal_places=2)
    snapshot_date: date
    created_at: datetime = Field(default_factory=datetime.utcnow)


RECORD_MODELS: dict[RecordKind, type[BaseModel]] = {
    RecordKind.TRANSACTIONS: Transaction,
    RecordKind.ACCOUNTS: Account,
    RecordKind.INCOME_SOURCES: IncomeSource,
    RecordKind.GOALS: FinancialGoal,
    RecordKind.PATRIMONY_SNAPSHOTS: PatrimonySnapshot,
}


# =============================================================================
# USER INPUT
# =============================================================================

class TransactionInput(BaseModel):
    """What the user fills in to add a transaction."""
    model_config = _INPUT_CONFIG

    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    due_date: date
    transaction_type: TransactionType
    status: TransactionStatus = TransactionStatus.PENDING
    category: TransactionCategory


class AccountInput(BaseModel):
    """What the user fills in to add an account."""
    model_config = _INPUT_CONFIG

    name: str = Field(..., min_length=1, max_length=100)
    balance: Decimal = Field(default=Decimal("0"), decimal_places=2)
    color: str = Field(default="blue", min_length=1, max_length=50)
    account_type: AccountType
    description: Optional[str] = Field(default=None, max_length=200)
    icon: str = Field(default="wallet", min_length=1, max_length=50)


class IncomeSourceInput(BaseModel):
    """What the user fills in to add an income source."""
    model_config = _INPUT_CONFIG

    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    frequency: IncomeFrequency
    color: str = Field(default="green", min_length=1, max_length=50)
    icon: str = Field(default="briefcase", min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)


class GoalInput(BaseModel):
    """What the user fills in to add a savings goal."""
    model_config = _INPUT_CONFIG

    name: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal = Field(..., gt=0, decimal_places=2)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    deadline: Optional[date] = None
    color: str = Field(default="blue", min_length=1, max_length=50)
    icon: str = Field(default="target", min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)


class AmountInput(BaseModel):
    """A positive money amount typed into a deposit/withdraw dialog."""

    amount: Decimal = Field(..., gt=0, decimal_places=2)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'out_of_range', 'too_precise')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields, precision)
    Stage 2: Semantic validation (date windows, configured maxima)
    """

    record_kind: RecordKind
    validated_at: datetime = Field(default_factory=datetime.utcnow)

    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @model_validator(mode='after')
    def check_semantic_requires_schema(self) -> 'ValidationResult':
        """Semantic checks only run on schema-valid input."""
        if self.semantic_valid and not self.schema_valid:
            raise ValueError("semantic_valid cannot be True when schema_valid is False")
        return self

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid and not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
