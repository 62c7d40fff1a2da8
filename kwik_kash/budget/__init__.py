"""Budget derivation package."""

from kwik_kash.budget.calculator import (
    DAYS_PER_MONTH,
    SAVINGS_RATIO,
    WANTS_RATIO,
    BudgetBreakdown,
    calculate_budget,
    quantize_money,
)

__all__ = [
    "DAYS_PER_MONTH",
    "SAVINGS_RATIO",
    "WANTS_RATIO",
    "BudgetBreakdown",
    "calculate_budget",
    "quantize_money",
]
