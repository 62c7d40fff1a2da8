"""
Input Schemas for Kwik Kash

Every user action arrives as a raw dict (a form post, a chat message)
and is parsed into one of these schemas BEFORE any ledger is touched.

DESIGN DECISION: Patches use extra="forbid". A transaction patch that
tries to change 'date' or 'id' is a validation error, not a silent no-op.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from kwik_kash.models.budget import (
    EmergencyFundAction,
    ExpenseCategory,
    FixedExpenseCategory,
    UserRole,
)


# =============================================================================
# PROFILE INPUTS
# =============================================================================

class FixedExpenseInput(BaseModel):
    """One row of the fixed expenses form. id is present when editing."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    category: FixedExpenseCategory = FixedExpenseCategory.OTHER
    timeline_months: Optional[int] = Field(default=None, ge=1, le=600)
    start_date: Optional[datetime] = None


class ProfileInput(BaseModel):
    """Onboarding and settings form."""
    model_config = ConfigDict(extra="forbid")

    role: UserRole
    income: Decimal = Field(..., ge=0, decimal_places=2)
    fixed_expenses: list[FixedExpenseInput] = Field(default_factory=list)


# =============================================================================
# TRANSACTION INPUTS
# =============================================================================

class TransactionInput(BaseModel):
    """Daily check-in form."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    category: ExpenseCategory
    description: str = Field(..., min_length=1, max_length=200)


class TransactionPatch(BaseModel):
    """Edit of an existing transaction. The date cannot be changed."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    category: Optional[ExpenseCategory] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)

    @model_validator(mode='after')
    def require_a_change(self) -> 'TransactionPatch':
        if not self.model_fields_set:
            raise ValueError("Nothing to update")
        return self


# =============================================================================
# GOAL INPUTS
# =============================================================================

class GoalInput(BaseModel):
    """New goal form."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: str = Field(..., min_length=2, max_length=100)
    target_amount: Decimal = Field(..., gt=0, decimal_places=2)
    monthly_contribution: Decimal = Field(..., gt=0, decimal_places=2)
    timeline_months: Optional[int] = Field(default=None, ge=1, le=600)


class GoalPatch(BaseModel):
    """Edit of a goal's parameters. Balance and history are not editable."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    target_amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    monthly_contribution: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    timeline_months: Optional[int] = Field(default=None, ge=1, le=600)

    @model_validator(mode='after')
    def require_a_change(self) -> 'GoalPatch':
        if not self.model_fields_set:
            raise ValueError("Nothing to update")
        return self


class GoalContributionInput(BaseModel):
    """Manual contribution to a goal."""
    model_config = ConfigDict(extra="forbid")

    amount: Decimal = Field(..., gt=0, decimal_places=2)


# =============================================================================
# EMERGENCY FUND INPUTS
# =============================================================================

class EmergencyFundActionInput(BaseModel):
    """Deposit / withdraw dialog."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    action: EmergencyFundAction
    amount: Decimal = Field(..., ge=1, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=500)


class EmergencyFundTargetInput(BaseModel):
    """Target dialog. No check against the current balance."""
    model_config = ConfigDict(extra="forbid")

    target: Decimal = Field(..., ge=0, decimal_places=2)


# =============================================================================
# ASSISTANT INPUT
# =============================================================================

class AssistantQueryInput(BaseModel):
    """A question typed into the finance assistant."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    query: str = Field(..., min_length=1, max_length=1000)


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
        description="Type of issue (e.g., 'missing', 'invalid_value', 'over_budget')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage input validation.

    Stage 1: Schema validation (types, required fields, bounds)
    Stage 2: Semantic validation (checks against the current budget)
    """

    schema_name: str = Field(
        ...,
        description="Name of the input schema being validated"
    )
    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)

    # Warnings don't block but should be shown
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
