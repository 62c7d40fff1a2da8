"""
Tests for Kwik Kash

Test strategy:
1. Unit tests for individual components (models, calculator, ledgers, validators)
2. Integration tests for the session (with in-memory storage and a fake model)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from kwik_kash.models.budget import (
    BudgetState,
    EmergencyFundEntry,
    EmergencyFundEntryType,
    ExpenseCategory,
    FixedExpense,
    Goal,
    Transaction,
    UserProfile,
    UserRole,
)
from kwik_kash.models.inputs import (
    GoalInput,
    TransactionInput,
    TransactionPatch,
    ValidationIssue,
    ValidationResult,
)
from kwik_kash.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestBudgetModels:
    """Tests for budget-related Pydantic models."""

    def test_profile_derives_budget(self, profile):
        """Derived fields come from income and fixed expenses."""
        assert profile.monthly_needs == Decimal("15000.00")
        assert profile.monthly_wants == Decimal("21000.00")
        assert profile.monthly_savings == Decimal("14000.00")
        assert profile.daily_spending_limit == Decimal("700.00")

    def test_profile_recomputes_after_income_change(self, profile):
        """Changing income changes the budget on the next read."""
        profile.income = Decimal("65000")
        assert profile.monthly_wants == Decimal("30000.00")
        assert profile.daily_spending_limit == Decimal("1000.00")

    def test_derived_fields_cannot_be_assigned(self, profile):
        """There is no way to write a derived field directly."""
        with pytest.raises((AttributeError, ValueError)):
            profile.daily_spending_limit = Decimal("5000")

    def test_derived_fields_in_payload_are_ignored(self, profile):
        """A stale stored budget never overrides income and expenses."""
        payload = profile.model_dump(mode="json")
        payload["daily_spending_limit"] = "99999"
        payload["monthly_wants"] = "1"

        loaded = UserProfile.model_validate(payload)
        assert loaded.daily_spending_limit == Decimal("700.00")
        assert loaded.monthly_wants == Decimal("21000.00")

    def test_profile_serializes_derived_fields(self, profile):
        """Serialized profile carries the budget for storage and the AI snapshot."""
        payload = profile.model_dump(mode="json")
        assert "monthly_savings" in payload
        assert Decimal(payload["monthly_savings"]) == Decimal("14000.00")

    def test_profile_rejects_negative_income(self):
        with pytest.raises(ValidationError):
            UserProfile(role=UserRole.STUDENT, income=Decimal("-1"))

    def test_fixed_expense_timeline_stamps_start_date(self):
        """A timeline without a start date starts now."""
        emi = FixedExpense(name="Car EMI", amount=Decimal("8000"), timeline_months=24)
        assert emi.start_date is not None
        assert emi.start_date.tzinfo is not None

    def test_fixed_expense_without_timeline_has_no_start(self):
        rent = FixedExpense(name="Rent", amount=Decimal("12000"))
        assert rent.start_date is None

    def test_transaction_requires_positive_amount(self):
        with pytest.raises(ValidationError):
            Transaction(amount=Decimal("0"), category=ExpenseCategory.OTHER, description="x")

    def test_transaction_category_is_enumerated(self):
        with pytest.raises(ValidationError):
            Transaction(amount=Decimal("10"), category="Gadgets", description="x")

    def test_naive_datetimes_are_taken_as_utc(self):
        tx = Transaction(
            amount=Decimal("10"),
            category=ExpenseCategory.GROCERIES,
            description="Milk",
            date=datetime(2025, 1, 1, 9, 30),
        )
        assert tx.date.tzinfo == timezone.utc

    def test_goal_remaining_amount(self):
        goal = Goal(
            name="Laptop",
            target_amount=Decimal("80000"),
            current_amount=Decimal("78000"),
            monthly_contribution=Decimal("5000"),
        )
        assert goal.remaining_amount == Decimal("2000")
        assert goal.is_complete is False

    def test_emergency_entry_requires_positive_amount(self):
        with pytest.raises(ValidationError):
            EmergencyFundEntry(amount=Decimal("0"), type=EmergencyFundEntryType.DEPOSIT)

    def test_state_onboarding_flag(self, profile):
        assert BudgetState(user_id="u").onboarding_complete is False
        assert BudgetState(user_id="u", profile=profile).onboarding_complete is True


class TestInputSchemas:
    """Tests for boundary input schemas."""

    def test_transaction_input_strips_description(self):
        data = TransactionInput(amount="120.50", category="Groceries", description="  Veg  ")
        assert data.description == "Veg"
        assert data.category == ExpenseCategory.GROCERIES

    def test_transaction_patch_rejects_date(self):
        """Date is immutable, so a patch cannot carry one."""
        with pytest.raises(ValidationError):
            TransactionPatch(date="2025-01-01T00:00:00Z")

    def test_empty_patch_is_rejected(self):
        with pytest.raises(ValidationError):
            TransactionPatch()

    def test_goal_name_minimum_length(self):
        with pytest.raises(ValidationError):
            GoalInput(name="A", target_amount="1000", monthly_contribution="100")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            description="Transaction logged",
        )
        assert event.event_type == AuditEventType.TRANSACTION_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.GOAL_CONTRIBUTION,
            user_id="user-1",
            description="Contributed",
            details={"requested_amount": "5000"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "goal_contribution"
        assert log_dict["user_id"] == "user-1"
        assert log_dict["details"]["requested_amount"] == "5000"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            description="Profile updated",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "profile_updated"  # event_type
        assert row[11] == "True"  # is_user_action

    def test_builder_transaction_added(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.transaction_added(
            user_id="user-1",
            transaction_id="tx-1",
            amount="250.00",
            category="Food & Dining",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.TRANSACTION_ADDED
        assert event.entity_id == "tx-1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_builder_emergency_withdrawal(self):
        event = AuditEventBuilder.emergency_fund_changed(
            user_id="user-1",
            entry_id="e-1",
            entry_type="withdrawal",
            requested="500",
            balance="0",
            correlation_id=uuid4(),
        )
        assert event.event_type == AuditEventType.EMERGENCY_FUND_WITHDRAWAL
        assert event.details["balance_after"] == "0"

    def test_builder_advice_fallback_is_warning(self):
        event = AuditEventBuilder.advice_requested(
            user_id="user-1",
            flow="spending_alerts",
            used_fallback=True,
            correlation_id=uuid4(),
        )
        assert event.event_type == AuditEventType.ADVICE_FALLBACK_USED
        assert event.severity == AuditSeverity.WARNING

    def test_builder_persistence_failed(self):
        event = AuditEventBuilder.persistence_failed(
            user_id="user-1",
            record_key="kwik-kash-goals",
            error_message="disk full",
        )
        assert event.event_type == AuditEventType.PERSISTENCE_FAILED
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_name="TransactionInput",
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            schema_name="GoalInput",
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="monthly_contribution",
                    issue_type="over_budget",
                    message="Exceeds savings",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


class TestExpenseCategories:
    """Tests for the expense category enum."""

    def test_all_categories_exist(self):
        """Test that expected categories exist."""
        expected = [
            "Food & Dining", "Groceries", "Transport", "Shopping",
            "Entertainment", "Utilities", "Rent/EMI", "Healthcare",
            "Education", "Other",
        ]
        for cat in expected:
            assert ExpenseCategory(cat) is not None
        assert len(ExpenseCategory) == len(expected)

    def test_role_values(self):
        assert {r.value for r in UserRole} == {"Student", "Professional", "Housewife"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
