"""
Two-Stage Input Validation

DESIGN DECISION: Every user action is validated in two distinct stages
before any ledger is called:

STAGE 1 - SCHEMA VALIDATION:
- Type checking and enum membership (categories, roles, actions)
- Required field presence
- Bounds (amount > 0, name length, timeline in months)
- Pydantic does the work; its errors become ValidationIssues

STAGE 2 - SEMANTIC VALIDATION:
- Checks against the current budget
- Planned goal contributions vs monthly savings
- Fixed expenses vs income
- Unusually large transactions
- Withdrawals larger than the emergency fund

Stage 2 only ever produces warnings. Errors come from stage 1 and block
the action; warnings are shown but let it through.

IMPORTANT: Validation NEVER silently fixes input.
It reports issues so the user can correct them.
"""

from decimal import Decimal
from typing import Any, Mapping, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from kwik_kash.config import AppSettings, get_settings
from kwik_kash.models.budget import BudgetState, EmergencyFundAction
from kwik_kash.models.inputs import (
    EmergencyFundActionInput,
    GoalInput,
    GoalPatch,
    ProfileInput,
    TransactionInput,
    TransactionPatch,
    ValidationIssue,
    ValidationResult,
)


SchemaT = TypeVar("SchemaT", bound=BaseModel)


class InputValidator:
    """
    Parses raw user input into typed schemas and checks it against
    the current budget state.

    Stage 1: Schema validation (no state needed)
    Stage 2: Semantic validation (needs the state for budget checks)
    """

    def __init__(
        self,
        state: Optional[BudgetState] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        """
        Initialize validator.

        Args:
            state: The session's budget state. If None, only checks
                   that need no state are run in stage 2.
            app_settings: Thresholds. Defaults to the global settings.
        """
        self._state = state
        self._settings = app_settings or get_settings().app

    def _validate_schema(
        self,
        schema: type[SchemaT],
        raw: Mapping[str, Any],
    ) -> tuple[Optional[SchemaT], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_input_or_None, list_of_issues)
        """
        try:
            return schema.model_validate(dict(raw)), []
        except ValidationError as e:
            issues = []
            for error in e.errors():
                field = ".".join(str(part) for part in error["loc"]) or "input"
                issues.append(ValidationIssue(
                    field=field,
                    issue_type=_issue_type(error["type"]),
                    message=error["msg"],
                    severity="error",
                    suggested_fix=_suggested_fix(error["type"]),
                ))
            return None, issues

    def _validate_semantic(
        self,
        parsed: BaseModel,
        goal_id: Optional[str] = None,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        goal_id names the goal a GoalPatch edits, so its old contribution
        is replaced rather than counted twice.

        Returns: list_of_issues (warnings only)
        """
        issues = []
        profile = self._state.profile if self._state is not None else None

        # Unusually large transaction
        max_amount = Decimal(str(self._settings.max_transaction_amount))
        if isinstance(parsed, (TransactionInput, TransactionPatch)):
            if parsed.amount is not None and parsed.amount > max_amount:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message=f"Amount ({self._settings.format_amount(parsed.amount)}) seems unusually high",
                    severity="warning",
                    suggested_fix="Please verify this amount is correct",
                ))

        # Fixed expenses leave nothing to spend
        if isinstance(parsed, ProfileInput):
            needs = sum((e.amount for e in parsed.fixed_expenses), Decimal("0"))
            if needs > parsed.income:
                issues.append(ValidationIssue(
                    field="fixed_expenses",
                    issue_type="over_budget",
                    message=(
                        f"Fixed expenses ({self._settings.format_amount(needs)}) exceed "
                        f"income ({self._settings.format_amount(parsed.income)}); "
                        "there will be no discretionary budget"
                    ),
                    severity="warning",
                    suggested_fix="Review your fixed expenses or income",
                ))

        # Planned goal contributions vs savings
        if (
            isinstance(parsed, (GoalInput, GoalPatch))
            and parsed.monthly_contribution is not None
            and profile is not None
        ):
            planned = sum(
                (g.monthly_contribution for g in self._state.goals if g.id != goal_id),
                Decimal("0")
            ) + parsed.monthly_contribution
            if planned > profile.monthly_savings:
                issues.append(ValidationIssue(
                    field="monthly_contribution",
                    issue_type="over_budget",
                    message=(
                        f"Planned goal contributions ({self._settings.format_amount(planned)}) "
                        f"exceed monthly savings ({self._settings.format_amount(profile.monthly_savings)})"
                    ),
                    severity="warning",
                    suggested_fix="Lower the monthly contribution or extend the timeline",
                ))

        # Over-withdrawal empties the fund
        if (
            isinstance(parsed, EmergencyFundActionInput)
            and parsed.action == EmergencyFundAction.WITHDRAW
            and profile is not None
            and parsed.amount > profile.emergency_fund.current
        ):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="exceeds_balance",
                message=(
                    f"Withdrawal ({self._settings.format_amount(parsed.amount)}) is more than "
                    f"the fund balance ({self._settings.format_amount(profile.emergency_fund.current)}); "
                    "the balance will be set to zero"
                ),
                severity="warning",
                suggested_fix="Withdraw at most the current balance",
            ))

        return issues

    def validate(
        self,
        schema: type[SchemaT],
        raw: Mapping[str, Any],
        goal_id: Optional[str] = None,
    ) -> tuple[Optional[SchemaT], ValidationResult]:
        """
        Run the full two-stage validation pipeline.

        Args:
            schema: The input schema class (e.g. TransactionInput)
            raw: Raw user input
            goal_id: The goal being edited, for GoalPatch

        Returns:
            (parsed input or None, ValidationResult with all issues found)
        """
        parsed, all_issues = self._validate_schema(schema, raw)
        schema_valid = parsed is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_issues = self._validate_semantic(parsed, goal_id)
            all_issues.extend(semantic_issues)
            semantic_valid = not any(i.severity == "error" for i in semantic_issues)

        result = ValidationResult(
            schema_name=schema.__name__,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
        )
        return parsed, result

    def parse(
        self,
        schema: type[SchemaT],
        raw: Mapping[str, Any],
        goal_id: Optional[str] = None,
    ) -> tuple[SchemaT, ValidationResult]:
        """Like validate(), but raises ValidationFailedError on any error."""
        parsed, result = self.validate(schema, raw, goal_id)
        if parsed is None or result.has_errors:
            raise ValidationFailedError(result)
        return parsed, result

    @staticmethod
    def get_user_friendly_summary(result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show next to the form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.field}: {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please note:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)


def _issue_type(pydantic_type: str) -> str:
    if pydantic_type == "missing":
        return "missing"
    if pydantic_type == "extra_forbidden":
        return "not_editable"
    return "invalid_value"


def _suggested_fix(pydantic_type: str) -> Optional[str]:
    if pydantic_type == "missing":
        return "This field is required"
    if pydantic_type == "extra_forbidden":
        return "Remove this field; it cannot be set here"
    if pydantic_type in ("greater_than", "greater_than_equal"):
        return "Enter a larger amount"
    if pydantic_type == "enum":
        return "Pick one of the listed options"
    return None


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ValidationFailedError(Exception):
    """Raised when user input fails validation. Carries the full result."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            f"{i.field}: {i.message}" for i in result.issues if i.severity == "error"
        )
        super().__init__(f"{result.schema_name} is invalid: {messages}")
