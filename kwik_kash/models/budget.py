"""
Core Data Models for Kwik Kash

These models define the strict schemas for all budget data held by a
session and written to storage. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage (JSON)
4. Keep derived budget numbers impossible to edit by hand

DESIGN DECISION: The needs/wants/savings split and the daily limit are
computed properties on UserProfile, backed by calculate_budget().
They are included when a profile is serialized (so storage and the AI
snapshot can read them) but ignored when a profile is loaded, so a stale
copy can never override income and fixed expenses.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)

from kwik_kash.budget.calculator import BudgetBreakdown, calculate_budget


def utc_now() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from older records are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class UserRole(str, Enum):
    """Who the user is. Drives role-specific advice."""
    STUDENT = "Student"
    PROFESSIONAL = "Professional"
    HOUSEWIFE = "Housewife"


class ExpenseCategory(str, Enum):
    """
    Categories for day-to-day (discretionary) transactions.

    DESIGN DECISION: A fixed list rather than free text, so spending can
    be grouped reliably for the dashboard and for AI alerts.
    """
    FOOD_AND_DINING = "Food & Dining"
    GROCERIES = "Groceries"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    UTILITIES = "Utilities"
    RENT_EMI = "Rent/EMI"
    HEALTHCARE = "Healthcare"
    EDUCATION = "Education"
    OTHER = "Other"


class FixedExpenseCategory(str, Enum):
    """Categories for recurring monthly 'Needs'."""
    HOUSING = "Housing"
    UTILITIES = "Utilities"
    LOAN_EMI = "Loan/EMI"
    INSURANCE = "Insurance"
    SUBSCRIPTIONS = "Subscriptions"
    EDUCATION = "Education"
    TRANSPORT = "Transport"
    OTHER = "Other"


class EmergencyFundEntryType(str, Enum):
    """Direction of an emergency fund history entry."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class EmergencyFundAction(str, Enum):
    """What the user asked the emergency fund to do."""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


# =============================================================================
# PROFILE
# =============================================================================

class FixedExpense(BaseModel):
    """
    A recurring monthly 'Need' (rent, EMI, insurance...).

    Time-bound expenses (EMIs, loans) carry a timeline; start_date is
    stamped with the current time when a timeline is given without one.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Expense name, e.g. 'Rent'"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Monthly amount"
    )
    category: FixedExpenseCategory = FixedExpenseCategory.OTHER
    timeline_months: Optional[int] = Field(
        default=None,
        ge=1,
        le=600,
        description="Number of months the expense runs for (EMIs, loans)"
    )
    start_date: Optional[UtcDatetime] = None

    @model_validator(mode='after')
    def stamp_start_date(self) -> 'FixedExpense':
        if self.timeline_months and self.start_date is None:
            self.start_date = utc_now()
        return self


class EmergencyFundEntry(BaseModel):
    """One deposit or withdrawal. Records the amount the user asked for."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    date: UtcDatetime = Field(default_factory=utc_now)
    type: EmergencyFundEntryType
    notes: Optional[str] = Field(default=None, max_length=500)


class EmergencyFund(BaseModel):
    """The single reserve balance, its target and its history."""

    current: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    target: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    history: list[EmergencyFundEntry] = Field(default_factory=list)


class UserProfile(BaseModel):
    """
    The onboarded user's income, fixed expenses and emergency fund.

    Budget fields are read-only and always derived from income and
    fixed_expenses. Assigning to them raises AttributeError.
    """
    model_config = ConfigDict(validate_assignment=True)

    role: UserRole
    income: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Monthly income"
    )
    fixed_expenses: list[FixedExpense] = Field(default_factory=list)
    emergency_fund: EmergencyFund = Field(default_factory=EmergencyFund)

    @property
    def budget(self) -> BudgetBreakdown:
        return calculate_budget(self.income, self.fixed_expenses)

    @computed_field
    @property
    def monthly_needs(self) -> Decimal:
        return self.budget.monthly_needs

    @computed_field
    @property
    def monthly_wants(self) -> Decimal:
        return self.budget.monthly_wants

    @computed_field
    @property
    def monthly_savings(self) -> Decimal:
        return self.budget.monthly_savings

    @computed_field
    @property
    def daily_spending_limit(self) -> Decimal:
        return self.budget.daily_spending_limit

    def get_fixed_expense(self, expense_id: str) -> Optional[FixedExpense]:
        return next((e for e in self.fixed_expenses if e.id == expense_id), None)


# =============================================================================
# GOALS
# =============================================================================

class GoalContribution(BaseModel):
    """A single contribution event. Keeps the full amount given."""

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    date: UtcDatetime = Field(default_factory=utc_now)


class Goal(BaseModel):
    """
    A named savings target.

    current_amount never exceeds target_amount after a contribution and
    never goes down: there is no withdraw-from-goal operation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal = Field(..., gt=0, decimal_places=2)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    monthly_contribution: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Planned monthly saving towards this goal"
    )
    timeline_months: Optional[int] = Field(default=None, ge=1, le=600)
    start_date: Optional[UtcDatetime] = None
    contributions: list[GoalContribution] = Field(default_factory=list)

    @property
    def remaining_amount(self) -> Decimal:
        return max(self.target_amount - self.current_amount, Decimal("0"))

    @property
    def is_complete(self) -> bool:
        return self.current_amount >= self.target_amount


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """A logged day-to-day expense. The date is fixed at creation."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    category: ExpenseCategory
    description: str = Field(..., min_length=1, max_length=200)
    date: UtcDatetime = Field(default_factory=utc_now)


# =============================================================================
# SESSION STATE
# =============================================================================

class BudgetState(BaseModel):
    """
    Everything one user's session owns.

    This object is passed explicitly to the ledgers, the reports and the
    AI snapshot builder. There is no module-level state anywhere.
    """

    user_id: str = Field(..., min_length=1)
    profile: Optional[UserProfile] = None
    goals: list[Goal] = Field(default_factory=list)
    # Newest first
    transactions: list[Transaction] = Field(default_factory=list)
    # expense id -> ["YYYY-MM", ...] months marked as paid
    fixed_expense_payments: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def onboarding_complete(self) -> bool:
        return self.profile is not None
