"""Tests for two-stage input validation."""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from finance_tracker.config import AppSettings
from finance_tracker.models.finance import (
    AccountType,
    RecordKind,
    TransactionInput,
    TransactionType,
)
from finance_tracker.validation import RecordValidator, ValidationError


TODAY = date(2025, 6, 15)


@pytest.fixture
def validator():
    return RecordValidator(AppSettings())


def transaction_data(**overrides):
    data = {
        "description": "Conta de luz",
        "amount": "120.50",
        "due_date": TODAY,
        "transaction_type": "payable",
        "category": "Contas",
    }
    data.update(overrides)
    return data


class TestSchemaValidation:
    """Stage 1: types, required fields, precision."""

    def test_valid_transaction(self, validator):
        parsed, result = validator.validate(RecordKind.TRANSACTIONS, transaction_data(), TODAY)
        assert result.is_valid
        assert isinstance(parsed, TransactionInput)
        assert parsed.amount == Decimal("120.50")
        assert parsed.transaction_type == TransactionType.PAYABLE

    def test_too_many_decimals_rejected_not_rounded(self, validator):
        parsed, result = validator.validate(
            RecordKind.TRANSACTIONS, transaction_data(amount="10.005"), TODAY
        )
        assert parsed is None
        assert not result.schema_valid
        assert result.issues[0].field == "amount"
        assert result.issues[0].issue_type == "too_precise"

    def test_missing_field(self, validator):
        data = transaction_data()
        del data["description"]
        _, result = validator.validate(RecordKind.TRANSACTIONS, data, TODAY)
        assert any(i.issue_type == "missing" and i.field == "description" for i in result.issues)

    def test_unknown_category(self, validator):
        _, result = validator.validate(
            RecordKind.TRANSACTIONS, transaction_data(category="Pets"), TODAY
        )
        assert not result.is_valid
        assert result.issues[0].field == "category"

    def test_blank_description_rejected(self, validator):
        _, result = validator.validate(
            RecordKind.TRANSACTIONS, transaction_data(description="   "), TODAY
        )
        assert not result.is_valid

    def test_account_requires_type(self, validator):
        _, result = validator.validate(RecordKind.ACCOUNTS, {"name": "Nubank"}, TODAY)
        assert not result.is_valid

        parsed, result = validator.validate(
            RecordKind.ACCOUNTS, {"name": "Nubank", "account_type": "savings"}, TODAY
        )
        assert result.is_valid
        assert parsed.account_type == AccountType.SAVINGS


class TestSemanticValidation:
    """Stage 2: configured limits and date windows."""

    def test_due_date_too_far_ahead(self, validator):
        far = TODAY + timedelta(days=365 * 6)
        _, result = validator.validate(
            RecordKind.TRANSACTIONS, transaction_data(due_date=far), TODAY
        )
        assert result.schema_valid
        assert not result.semantic_valid

    def test_due_date_before_earliest(self, validator):
        _, result = validator.validate(
            RecordKind.TRANSACTIONS, transaction_data(due_date=date(1999, 12, 31)), TODAY
        )
        assert result.issues[0].issue_type == "out_of_range"

    def test_amount_over_maximum(self):
        validator = RecordValidator(AppSettings(max_transaction_amount=Decimal("1000")))
        _, result = validator.validate(
            RecordKind.TRANSACTIONS, transaction_data(amount="1000.01"), TODAY
        )
        assert not result.is_valid

    def test_past_goal_deadline_is_only_a_warning(self, validator):
        parsed, result = validator.validate(
            RecordKind.GOALS,
            {"name": "Viagem", "target_amount": "3000", "deadline": TODAY - timedelta(days=1)},
            TODAY,
        )
        assert parsed is not None
        assert result.is_valid
        assert result.issues[0].severity == "warning"

    def test_negative_opening_balance_allowed(self, validator):
        parsed, _ = validator.validate(
            RecordKind.ACCOUNTS,
            {"name": "Cheque especial", "balance": "-200.00", "account_type": "secondary"},
            TODAY,
        )
        assert parsed.balance == Decimal("-200.00")


class TestParse:
    """Raising helpers used by the controller."""

    def test_parse_raises_with_issues(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.parse(RecordKind.TRANSACTIONS, transaction_data(amount="0"), TODAY)
        assert exc_info.value.issues[0].field == "amount"
        assert isinstance(exc_info.value, ValueError)

    def test_parse_amount(self, validator):
        assert validator.parse_amount(RecordKind.GOALS, "25.50") == Decimal("25.50")

    @pytest.mark.parametrize("value", ["0", "-5", "1.234", "abc"])
    def test_parse_amount_rejects(self, validator, value):
        with pytest.raises(ValidationError):
            validator.parse_amount(RecordKind.GOALS, value)

    def test_user_friendly_summary(self, validator):
        _, result = validator.validate(
            RecordKind.TRANSACTIONS, transaction_data(amount="1.001"), TODAY
        )
        summary = validator.get_user_friendly_summary(result)
        assert "Please fix" in summary
        assert "amount" in summary

    def test_user_friendly_summary_all_passed(self, validator):
        _, result = validator.validate(RecordKind.TRANSACTIONS, transaction_data(), TODAY)
        assert "All checks passed" in validator.get_user_friendly_summary(result)
