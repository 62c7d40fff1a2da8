"""
Profile Ledger

Onboarding and the settings page both write the profile through here.
The budget split is never part of the input: UserProfile derives it
from income and fixed expenses on every read.
"""

from typing import Any, Iterable, Mapping, Union

from kwik_kash.ledgers.base import AmountLike, BaseLedger
from kwik_kash.ledgers.fixed_expenses import FixedExpenseLedger
from kwik_kash.models.budget import EmergencyFund, FixedExpense, UserProfile, UserRole
from kwik_kash.models.inputs import FixedExpenseInput


class ProfileLedger(BaseLedger):
    """Create or replace the user's profile, keeping the emergency fund."""

    def update_profile(
        self,
        role: Union[UserRole, str],
        income: AmountLike,
        fixed_expenses: Iterable[Union[FixedExpenseInput, Mapping[str, Any]]] = ()
    ) -> UserProfile:
        existing = self.state.profile
        expenses = [self._build_expense(item) for item in fixed_expenses]

        profile = UserProfile(
            role=UserRole(role),
            income=income,
            fixed_expenses=expenses,
            emergency_fund=(
                existing.emergency_fund if existing is not None else EmergencyFund()
            ),
        )
        self.state.profile = profile

        FixedExpenseLedger(self.state, self._clock).prune_payment_log()
        return profile

    def _build_expense(self, item: Union[FixedExpenseInput, Mapping[str, Any]]) -> FixedExpense:
        if isinstance(item, FixedExpenseInput):
            data = item.model_dump(exclude_none=True)
        else:
            data = {k: v for k, v in item.items() if v is not None}

        # An edited EMI keeps the start date it was first given
        previous = None
        if self.state.profile is not None and data.get("id"):
            previous = self.state.profile.get_fixed_expense(data["id"])
        if data.get("timeline_months") and "start_date" not in data:
            if previous is not None and previous.start_date is not None:
                data["start_date"] = previous.start_date
            else:
                data["start_date"] = self.now()

        return FixedExpense.model_validate(data)
