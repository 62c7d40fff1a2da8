"""
Emergency Fund Ledger

A single reserve balance with a target and a deposit/withdrawal history.

DESIGN DECISION: Withdrawing more than the balance is allowed. The
stored balance is floored at zero while the history entry keeps the
amount the user asked for, so balance and history can disagree after
an over-withdrawal.
"""

from decimal import Decimal
from typing import Optional, Union

from kwik_kash.budget.calculator import quantize_money
from kwik_kash.ledgers.base import (
    AmountLike,
    BaseLedger,
    InvalidAmountError,
    to_amount,
    to_positive_amount,
)
from kwik_kash.models.budget import (
    EmergencyFund,
    EmergencyFundAction,
    EmergencyFundEntry,
    EmergencyFundEntryType,
)


class EmergencyFundLedger(BaseLedger):
    """Deposits, withdrawals and the target of the profile's emergency fund."""

    @property
    def fund(self) -> EmergencyFund:
        return self.require_profile().emergency_fund

    def update_emergency_fund(
        self,
        action: Union[EmergencyFundAction, str],
        amount: AmountLike,
        notes: Optional[str] = None
    ) -> EmergencyFundEntry:
        """
        Deposit into or withdraw from the fund.

        Returns the history entry that was appended.
        """
        action = EmergencyFundAction(action)
        amount = to_positive_amount(amount)
        fund = self.fund

        entry = EmergencyFundEntry(
            amount=amount,
            type=(
                EmergencyFundEntryType.DEPOSIT
                if action == EmergencyFundAction.DEPOSIT
                else EmergencyFundEntryType.WITHDRAWAL
            ),
            notes=notes or None,
            date=self.now(),
        )

        if entry.type == EmergencyFundEntryType.DEPOSIT:
            fund.current = fund.current + amount
        else:
            fund.current = max(fund.current - amount, Decimal("0"))
        fund.history.append(entry)
        return entry

    def set_emergency_fund_target(self, target: AmountLike) -> EmergencyFund:
        """Overwrite the target. Not checked against the current balance."""
        target = to_amount(target, "target")
        if target < 0:
            raise InvalidAmountError(f"target must not be negative, got {target}")
        fund = self.fund
        fund.target = target
        return fund

    def history_newest_first(self) -> list[EmergencyFundEntry]:
        return sorted(reversed(self.fund.history), key=lambda e: e.date, reverse=True)

    def progress_percent(self) -> Decimal:
        fund = self.fund
        if fund.target <= 0:
            return Decimal("0.00")
        return quantize_money(min(fund.current / fund.target * 100, Decimal("100")))
