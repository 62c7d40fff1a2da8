"""
Budget Calculator

The single authority for the needs / wants / savings split.

    needs       = sum of fixed expenses
    disposable  = max(income - needs, 0)
    wants       = disposable * 0.6
    savings     = disposable - wants          (i.e. 0.4 of disposable)
    daily limit = wants / 30                  (0 when there are no wants)

DESIGN DECISION: Disposable income is floored at zero BEFORE splitting.
A user whose fixed expenses exceed their income has no wants and no
savings; we never store a negative budget line.

Nothing else in the codebase is allowed to compute these numbers.
UserProfile exposes them as read-only properties that call
calculate_budget(), so they cannot drift from income and fixed expenses.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from pydantic import BaseModel, Field


WANTS_RATIO = Decimal("0.6")
SAVINGS_RATIO = Decimal("0.4")
DAYS_PER_MONTH = Decimal("30")

_CENT = Decimal("0.01")


class HasAmount(Protocol):
    amount: Decimal


class BudgetBreakdown(BaseModel):
    """Derived monthly budget for a profile."""

    monthly_needs: Decimal = Field(..., ge=0)
    monthly_wants: Decimal = Field(..., ge=0)
    monthly_savings: Decimal = Field(..., ge=0)
    daily_spending_limit: Decimal = Field(..., ge=0)

    @property
    def disposable_income(self) -> Decimal:
        return self.monthly_wants + self.monthly_savings


def quantize_money(value: Decimal) -> Decimal:
    """Round to paise, half up."""
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def calculate_budget(
    income: Decimal,
    fixed_expenses: Iterable[HasAmount],
) -> BudgetBreakdown:
    """
    Derive the monthly budget from income and fixed expenses.

    Pure function. wants + savings always equals the (floored)
    disposable income exactly, since savings takes the remainder after
    rounding wants.
    """
    needs = sum((Decimal(expense.amount) for expense in fixed_expenses), Decimal("0"))
    disposable = max(Decimal(income) - needs, Decimal("0"))

    wants = quantize_money(disposable * WANTS_RATIO)
    savings = quantize_money(disposable) - wants
    daily_limit = quantize_money(wants / DAYS_PER_MONTH) if wants > 0 else Decimal("0.00")

    return BudgetBreakdown(
        monthly_needs=quantize_money(needs),
        monthly_wants=wants,
        monthly_savings=savings,
        daily_spending_limit=daily_limit,
    )
