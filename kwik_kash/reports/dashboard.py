"""
Dashboard Report

DESIGN DECISION: Reports are DETERMINISTIC and read-only.
They aggregate the session's BudgetState and never mutate it. The AI
flows never compute these numbers; they only see what this module and
the snapshot builder hand them.

Numbers shown:
- Income vs overall spending
- Today's spending vs the daily limit
- Goals: total target, total saved, planned monthly contributions
- Emergency allocation: savings left after planned goal contributions
- Spending by category, largest first
- The most recent transactions
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from kwik_kash.budget.calculator import quantize_money
from kwik_kash.ledgers.fixed_expenses import FixedExpenseLedger
from kwik_kash.ledgers.goals import GoalLedger
from kwik_kash.ledgers.transactions import TransactionLedger
from kwik_kash.models.budget import BudgetState, ExpenseCategory, Transaction


RECENT_TRANSACTIONS_SHOWN = 7

_ZERO = Decimal("0.00")


class CategoryTotal(BaseModel):
    """Spending in one category."""
    category: ExpenseCategory
    total: Decimal
    share_percent: Decimal = Field(..., description="Share of overall spending")


class DeadlineSummary(BaseModel):
    """A time-bound fixed expense that ends soon."""
    expense_id: str
    name: str
    end_date: datetime
    remaining_months: int


class DashboardSummary(BaseModel):
    """Everything the dashboard displays, computed from one state."""

    # Budget
    income: Decimal = _ZERO
    monthly_needs: Decimal = _ZERO
    monthly_wants: Decimal = _ZERO
    monthly_savings: Decimal = _ZERO
    daily_spending_limit: Decimal = _ZERO

    # Spending
    total_spending: Decimal = _ZERO
    spending_vs_income_percent: Decimal = _ZERO
    todays_spending: Decimal = _ZERO
    remaining_today: Decimal = Field(
        default=_ZERO,
        description="Daily limit minus today's spending, floored at 0"
    )
    is_on_track: bool = True

    # Goals and emergency fund
    total_goal_target: Decimal = _ZERO
    total_goal_saved: Decimal = _ZERO
    planned_goal_contributions: Decimal = _ZERO
    emergency_allocation: Decimal = Field(
        default=_ZERO,
        description="max(0, monthly savings - planned goal contributions)"
    )
    emergency_fund_current: Decimal = _ZERO
    emergency_fund_target: Decimal = _ZERO

    category_breakdown: list[CategoryTotal] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(default_factory=list)
    upcoming_deadlines: list[DeadlineSummary] = Field(default_factory=list)


def build_dashboard(
    state: BudgetState,
    today: Optional[date] = None,
    deadline_window_months: int = 3,
) -> DashboardSummary:
    """
    Aggregate a BudgetState into the dashboard numbers.

    Args:
        state: The session's state
        today: The UTC day to report on (default: today in UTC)
        deadline_window_months: How far ahead to look for ending EMIs

    Returns:
        DashboardSummary. All zeros when the user has not onboarded.
    """
    today = today or datetime.now(timezone.utc).date()
    now = datetime.combine(today, time(12, 0), tzinfo=timezone.utc)

    def clock() -> datetime:
        return now

    transactions = TransactionLedger(state, clock)
    goals = GoalLedger(state, clock)

    total_spending = sum((t.amount for t in state.transactions), _ZERO)
    category_breakdown = [
        CategoryTotal(
            category=category,
            total=total,
            share_percent=quantize_money(total / total_spending * 100),
        )
        for category, total in sorted(
            transactions.spending_by_category().items(),
            key=lambda item: item[1],
            reverse=True,
        )
    ]

    summary = DashboardSummary(
        total_spending=total_spending,
        todays_spending=transactions.get_todays_spending(today),
        total_goal_target=sum((g.target_amount for g in state.goals), _ZERO),
        total_goal_saved=sum((g.current_amount for g in state.goals), _ZERO),
        planned_goal_contributions=goals.get_total_goal_contributions(),
        category_breakdown=category_breakdown,
        recent_transactions=state.transactions[:RECENT_TRANSACTIONS_SHOWN],
    )

    profile = state.profile
    if profile is None:
        return summary

    summary.income = profile.income
    summary.monthly_needs = profile.monthly_needs
    summary.monthly_wants = profile.monthly_wants
    summary.monthly_savings = profile.monthly_savings
    summary.daily_spending_limit = profile.daily_spending_limit

    if profile.income > 0:
        summary.spending_vs_income_percent = quantize_money(
            total_spending / profile.income * 100
        )

    left_today = profile.daily_spending_limit - summary.todays_spending
    summary.remaining_today = max(left_today, _ZERO)
    summary.is_on_track = left_today >= 0

    summary.emergency_allocation = max(
        profile.monthly_savings - summary.planned_goal_contributions,
        _ZERO
    )
    summary.emergency_fund_current = profile.emergency_fund.current
    summary.emergency_fund_target = profile.emergency_fund.target

    fixed = FixedExpenseLedger(state, clock)
    summary.upcoming_deadlines = [
        DeadlineSummary(
            expense_id=status.expense_id,
            name=status.name,
            end_date=status.end_date,
            remaining_months=status.remaining_months,
        )
        for status in fixed.upcoming_deadlines(deadline_window_months)
    ]

    return summary
