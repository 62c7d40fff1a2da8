"""
Fixed Expense Ledger

A per-month "paid" checklist for the profile's fixed expenses, plus
timeline tracking for time-bound expenses such as EMIs.

The checklist lives in BudgetState.fixed_expense_payments as
{expense_id: ["YYYY-MM", ...]}. It is for the user's records only and
never changes the budget numbers.
"""

import calendar
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from kwik_kash.budget.calculator import quantize_money
from kwik_kash.ledgers.base import BaseLedger, EntryNotFoundError
from kwik_kash.models.budget import FixedExpense


def month_key(moment: datetime) -> str:
    """'YYYY-MM' for a datetime."""
    return f"{moment.year:04d}-{moment.month:02d}"


def add_months(moment: datetime, months: int) -> datetime:
    """Same day-of-month N months later, clamped to the month's last day."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def full_months_between(later: datetime, earlier: datetime) -> int:
    """Whole calendar months from earlier to later (0 if later is earlier)."""
    if later <= earlier:
        return 0
    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)
    if add_months(earlier, months) > later:
        months -= 1
    return max(months, 0)


@dataclass(frozen=True)
class TimelineStatus:
    """Where a time-bound fixed expense stands today."""
    expense_id: str
    name: str
    amount: Decimal
    start_date: datetime
    end_date: datetime
    total_months: int
    elapsed_months: int

    @property
    def remaining_months(self) -> int:
        return max(self.total_months - self.elapsed_months, 0)

    @property
    def progress_percent(self) -> Decimal:
        return quantize_money(
            Decimal(min(self.elapsed_months, self.total_months)) / self.total_months * 100
        )

    @property
    def is_complete(self) -> bool:
        return self.elapsed_months >= self.total_months


class FixedExpenseLedger(BaseLedger):
    """Monthly payment checklist and EMI timelines."""

    def current_month(self) -> str:
        return month_key(self.now())

    def toggle_logged_status(self, expense_id: str, month: Optional[str] = None) -> bool:
        """
        Flip the paid mark of an expense for a month (default: this month).

        Returns:
            True if the expense is now marked paid for that month.
        """
        profile = self.require_profile()
        if profile.get_fixed_expense(expense_id) is None:
            raise EntryNotFoundError(f"Fixed expense {expense_id} not found")

        month = month or month_key(self.now())
        months = self.state.fixed_expense_payments.setdefault(expense_id, [])

        if month in months:
            months.remove(month)
            if not months:
                del self.state.fixed_expense_payments[expense_id]
            return False

        months.append(month)
        months.sort()
        return True

    def logged_expense_ids(self, month: Optional[str] = None) -> list[str]:
        month = month or month_key(self.now())
        return [
            expense_id
            for expense_id, months in self.state.fixed_expense_payments.items()
            if month in months
        ]

    def is_logged(self, expense_id: str, month: Optional[str] = None) -> bool:
        month = month or month_key(self.now())
        return month in self.state.fixed_expense_payments.get(expense_id, [])

    def prune_payment_log(self) -> list[str]:
        """Drop checklist entries of expenses no longer on the profile."""
        profile = self.state.profile
        known = {e.id for e in profile.fixed_expenses} if profile else set()
        removed = [
            expense_id
            for expense_id in self.state.fixed_expense_payments
            if expense_id not in known
        ]
        for expense_id in removed:
            del self.state.fixed_expense_payments[expense_id]
        return removed

    def timeline_status(
        self,
        expense: FixedExpense,
        today: Optional[datetime] = None
    ) -> Optional[TimelineStatus]:
        """None for open-ended expenses."""
        if not expense.timeline_months or expense.start_date is None:
            return None

        now = today or self.now()
        end_date = add_months(expense.start_date, expense.timeline_months)
        elapsed = min(
            full_months_between(now, expense.start_date),
            expense.timeline_months
        )
        return TimelineStatus(
            expense_id=expense.id,
            name=expense.name,
            amount=expense.amount,
            start_date=expense.start_date,
            end_date=end_date,
            total_months=expense.timeline_months,
            elapsed_months=elapsed,
        )

    def upcoming_deadlines(
        self,
        within_months: int = 3,
        today: Optional[datetime] = None
    ) -> list[TimelineStatus]:
        """Time-bound expenses that end in the future, within the window."""
        profile = self.state.profile
        if profile is None:
            return []

        now = today or self.now()
        upcoming = []
        for expense in profile.fixed_expenses:
            status = self.timeline_status(expense, now)
            if status is None or status.end_date <= now:
                continue
            if full_months_between(status.end_date, now) <= within_months:
                upcoming.append(status)

        return sorted(upcoming, key=lambda s: s.end_date)
