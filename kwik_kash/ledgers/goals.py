"""
Goal Ledger

Named savings targets. A goal's balance only moves through
contribute_to_goal(), which clamps at the target: any excess is
discarded, not carried over. There is no withdraw-from-goal operation.
"""

from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from kwik_kash.budget.calculator import DAYS_PER_MONTH, quantize_money
from kwik_kash.ledgers.base import (
    AmountLike,
    BaseLedger,
    EntryNotFoundError,
    to_positive_amount,
)
from kwik_kash.models.budget import Goal, GoalContribution
from kwik_kash.models.inputs import GoalPatch


EDITABLE_FIELDS = ("name", "target_amount", "monthly_contribution", "timeline_months")


class GoalLedger(BaseLedger):
    """Create, edit and fund goals on a BudgetState."""

    def add_goal(
        self,
        name: str,
        target_amount: AmountLike,
        monthly_contribution: AmountLike,
        timeline_months: Optional[int] = None
    ) -> Goal:
        goal = Goal(
            name=name,
            target_amount=to_positive_amount(target_amount, "target_amount"),
            monthly_contribution=to_positive_amount(
                monthly_contribution, "monthly_contribution"
            ),
            timeline_months=timeline_months,
            start_date=self.now() if timeline_months else None,
        )
        self.state.goals.append(goal)
        return goal

    def update_goal(
        self,
        goal_id: str,
        patch: Union[GoalPatch, Mapping[str, Any]]
    ) -> Goal:
        """
        Shallow-merge new parameters into a goal.

        When a timeline is set on a goal that never had a start date,
        the start date becomes now. Balance and contributions are kept.
        """
        goal = self._require(goal_id)

        if isinstance(patch, GoalPatch):
            changes = patch.model_dump(exclude_unset=True)
        else:
            changes = {k: v for k, v in patch.items() if k in EDITABLE_FIELDS}

        # Only the timeline can be cleared
        changes = {
            k: v for k, v in changes.items()
            if v is not None or k == "timeline_months"
        }
        for field in ("target_amount", "monthly_contribution"):
            if changes.get(field) is not None:
                changes[field] = to_positive_amount(changes[field], field)

        merged = {**goal.model_dump(), **changes}
        if merged.get("timeline_months") and merged.get("start_date") is None:
            merged["start_date"] = self.now()

        updated = Goal.model_validate(merged)
        self.state.goals[self.state.goals.index(goal)] = updated
        return updated

    def contribute_to_goal(self, goal_id: str, amount: AmountLike) -> Goal:
        """
        Add money to a goal.

        The contribution record keeps the full amount given; the balance
        is clamped at target_amount.
        """
        amount = to_positive_amount(amount)
        goal = self._require(goal_id)

        goal.contributions.append(GoalContribution(amount=amount, date=self.now()))
        goal.current_amount = min(goal.current_amount + amount, goal.target_amount)
        return goal

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return next((g for g in self.state.goals if g.id == goal_id), None)

    def get_total_goal_contributions(self) -> Decimal:
        """Planned monthly contributions across all goals."""
        return sum(
            (g.monthly_contribution for g in self.state.goals),
            Decimal("0")
        )

    @staticmethod
    def goal_progress(goal: Goal) -> Decimal:
        """Percent of the target reached, 0-100."""
        percent = goal.current_amount / goal.target_amount * 100
        return quantize_money(min(percent, Decimal("100")))

    @staticmethod
    def suggested_daily_saving(goal: Goal) -> Optional[Decimal]:
        """Daily amount that reaches the target within the timeline."""
        if not goal.timeline_months:
            return None
        return quantize_money(
            goal.target_amount / (goal.timeline_months * DAYS_PER_MONTH)
        )

    def _require(self, goal_id: str) -> Goal:
        goal = self.get_goal(goal_id)
        if goal is None:
            raise EntryNotFoundError(f"Goal {goal_id} not found")
        return goal
