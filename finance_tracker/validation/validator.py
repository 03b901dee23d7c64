"""
Two-Stage Input Validation

DESIGN DECISION: User input is validated in two distinct stages
before any store call is attempted:

STAGE 1 - SCHEMA VALIDATION:
- Type checking
- Required field presence
- Money values limited to two fractional digits
- Enum membership (categories, account types, frequencies)

STAGE 2 - SEMANTIC VALIDATION:
- Due dates inside the accepted window
- Amounts under the configured maxima
- Goal deadlines already in the past (warning only)

IMPORTANT: Validation NEVER silently fixes issues. Amounts with
too many decimals are rejected, not rounded.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from finance_tracker.config import AppSettings, get_settings
from finance_tracker.models.finance import (
    AccountInput,
    AmountInput,
    GoalInput,
    IncomeSourceInput,
    RecordKind,
    TransactionInput,
    ValidationIssue,
    ValidationResult,
)


INPUT_MODELS: dict[RecordKind, type[BaseModel]] = {
    RecordKind.TRANSACTIONS: TransactionInput,
    RecordKind.ACCOUNTS: AccountInput,
    RecordKind.INCOME_SOURCES: IncomeSourceInput,
    RecordKind.GOALS: GoalInput,
}

# pydantic error type -> our issue type
_ISSUE_TYPES = {
    "missing": "missing",
    "decimal_max_places": "too_precise",
    "greater_than": "out_of_range",
    "greater_than_equal": "out_of_range",
    "less_than": "out_of_range",
    "less_than_equal": "out_of_range",
    "string_too_short": "invalid_length",
    "string_too_long": "invalid_length",
    "enum": "invalid_choice",
}


class ValidationError(ValueError):
    """User input rejected before reaching the store."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            f"{i.field}: {i.message}" for i in result.issues if i.severity == "error"
        )
        super().__init__(f"Invalid {result.record_kind.value} input: {messages}")

    @property
    def issues(self) -> list[ValidationIssue]:
        return self.result.issues


class RecordValidator:
    """
    Validates user input through a two-stage pipeline.

    Stage 1: Schema validation against the input models
    Stage 2: Semantic validation against configured limits
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        kind: RecordKind,
        data: Union[dict[str, Any], BaseModel],
    ) -> tuple[Optional[BaseModel], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_input_or_None, list_of_issues)
        """
        if isinstance(data, BaseModel):
            data = data.model_dump()
        try:
            return INPUT_MODELS[kind].model_validate(data), []
        except PydanticValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in err["loc"]) or "input",
                    issue_type=_ISSUE_TYPES.get(err["type"], "invalid_value"),
                    message=err["msg"],
                )
                for err in e.errors()
            ]
            return None, issues

    def _check_amount(self, field: str, value: Decimal, issues: list[ValidationIssue]) -> None:
        limit = self._settings.max_transaction_amount
        if value > limit:
            issues.append(ValidationIssue(
                field=field,
                issue_type="out_of_range",
                message=f"Amount must not exceed {limit}",
            ))

    def _validate_semantic(
        self,
        kind: RecordKind,
        parsed: BaseModel,
        today: date,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Only runs on input that passed stage 1.
        """
        issues: list[ValidationIssue] = []

        if kind == RecordKind.TRANSACTIONS:
            self._check_amount("amount", parsed.amount, issues)
            earliest = self._settings.earliest_due_date
            latest = today + timedelta(days=365 * self._settings.max_due_date_years_ahead)
            if parsed.due_date < earliest:
                issues.append(ValidationIssue(
                    field="due_date",
                    issue_type="out_of_range",
                    message=f"Due date must not be before {earliest.isoformat()}",
                ))
            elif parsed.due_date > latest:
                issues.append(ValidationIssue(
                    field="due_date",
                    issue_type="out_of_range",
                    message=f"Due date must not be after {latest.isoformat()}",
                ))

        elif kind == RecordKind.ACCOUNTS:
            limit = self._settings.max_account_balance
            if abs(parsed.balance) > limit:
                issues.append(ValidationIssue(
                    field="balance",
                    issue_type="out_of_range",
                    message=f"Balance must be within ±{limit}",
                ))

        elif kind == RecordKind.INCOME_SOURCES:
            self._check_amount("amount", parsed.amount, issues)

        elif kind == RecordKind.GOALS:
            self._check_amount("target_amount", parsed.target_amount, issues)
            self._check_amount("current_amount", parsed.current_amount, issues)
            if parsed.deadline is not None and parsed.deadline < today:
                issues.append(ValidationIssue(
                    field="deadline",
                    issue_type="past_date",
                    message="Deadline is already in the past",
                    severity="warning",
                ))

        return issues

    def validate(
        self,
        kind: RecordKind,
        data: Union[dict[str, Any], BaseModel],
        today: Optional[date] = None,
    ) -> tuple[Optional[BaseModel], ValidationResult]:
        """
        Run the full two-stage validation pipeline.

        Returns:
            (parsed_input_or_None, ValidationResult with all issues found)
        """
        today = today or date.today()
        parsed, issues = self._validate_schema(kind, data)
        schema_valid = parsed is not None

        semantic_valid = False
        if schema_valid:
            semantic_issues = self._validate_semantic(kind, parsed, today)
            issues.extend(semantic_issues)
            semantic_valid = not any(i.severity == "error" for i in semantic_issues)

        result = ValidationResult(
            record_kind=kind,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=issues,
        )
        return (parsed if result.is_valid else None), result

    def parse(
        self,
        kind: RecordKind,
        data: Union[dict[str, Any], BaseModel],
        today: Optional[date] = None,
    ) -> BaseModel:
        """Validate and return the parsed input, or raise ValidationError."""
        parsed, result = self.validate(kind, data, today)
        if parsed is None:
            raise ValidationError(result)
        return parsed

    def parse_amount(self, kind: RecordKind, value: Any) -> Decimal:
        """Validate a positive deposit/withdraw amount."""
        try:
            amount = AmountInput(amount=value).amount
        except PydanticValidationError as e:
            raise ValidationError(ValidationResult(
                record_kind=kind,
                schema_valid=False,
                semantic_valid=False,
                issues=[
                    ValidationIssue(
                        field="amount",
                        issue_type=_ISSUE_TYPES.get(err["type"], "invalid_value"),
                        message=err["msg"],
                    )
                    for err in e.errors()
                ],
            ))
        issues: list[ValidationIssue] = []
        self._check_amount("amount", amount, issues)
        if issues:
            raise ValidationError(ValidationResult(
                record_kind=kind,
                schema_valid=True,
                semantic_valid=False,
                issues=issues,
            ))
        return amount

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show next to the form.
        """
        if result.is_valid and not result.issues:
            return "✅ All checks passed!"

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        warnings = [i for i in result.issues if i.severity == "warning"]

        if errors:
            lines.append("❌ Please fix the following:")
            for issue in errors:
                lines.append(f"   • {issue.field}: {issue.message}")

        if warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for issue in warnings:
                lines.append(f"   • {issue.field}: {issue.message}")

        return "\n".join(lines)
