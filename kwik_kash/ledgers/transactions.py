"""
Transaction Ledger

Day-to-day expenses logged at check-in. Transactions are kept newest
first and can be edited (amount, category, description) or deleted.
The date is fixed when the transaction is created.

DESIGN DECISION: "Today" is the UTC calendar day. A transaction counts
towards today's spending when its UTC date equals the clock's UTC date.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from kwik_kash.ledgers.base import (
    AmountLike,
    BaseLedger,
    EntryNotFoundError,
    to_positive_amount,
)
from kwik_kash.models.budget import ExpenseCategory, Transaction
from kwik_kash.models.inputs import TransactionPatch


EDITABLE_FIELDS = ("amount", "category", "description")


@dataclass(frozen=True)
class DailyLimitNotice:
    """
    Informational notice raised by every transaction that leaves today's
    spending above the daily limit. It never blocks the transaction.
    """
    spent_today: Decimal
    daily_limit: Decimal
    transaction_id: str

    @property
    def overspent_by(self) -> Decimal:
        return self.spent_today - self.daily_limit

    @property
    def message(self) -> str:
        return (
            f"You've spent ₹{self.spent_today:.2f} today, "
            f"which is over your ₹{self.daily_limit:.2f} limit."
        )


def utc_day(value: datetime) -> date:
    return value.astimezone(timezone.utc).date()


class TransactionLedger(BaseLedger):
    """Append, edit and delete transactions on a BudgetState."""

    def add_transaction(
        self,
        amount: AmountLike,
        category: Union[ExpenseCategory, str],
        description: str
    ) -> tuple[Transaction, Optional[DailyLimitNotice]]:
        """
        Log a new expense at the current time.

        Returns:
            The stored transaction, and a DailyLimitNotice when today's
            spending is over the daily limit after it.
        """
        amount = to_positive_amount(amount)
        spent_before = self.get_todays_spending()

        transaction = Transaction(
            amount=amount,
            category=ExpenseCategory(category),
            description=description,
            date=self.now(),
        )
        self.state.transactions.insert(0, transaction)

        notice = None
        profile = self.state.profile
        if profile is not None:
            limit = profile.daily_spending_limit
            spent_after = spent_before + transaction.amount
            if spent_after > limit:
                notice = DailyLimitNotice(
                    spent_today=spent_after,
                    daily_limit=limit,
                    transaction_id=transaction.id,
                )

        return transaction, notice

    def update_transaction(
        self,
        transaction_id: str,
        patch: Union[TransactionPatch, Mapping[str, Any]]
    ) -> Transaction:
        """Merge amount/category/description into an existing transaction."""
        index = self._index_of(transaction_id)

        if isinstance(patch, TransactionPatch):
            changes = patch.model_dump(exclude_unset=True)
        else:
            changes = {k: v for k, v in patch.items() if k in EDITABLE_FIELDS}

        if changes.get("amount") is not None:
            changes["amount"] = to_positive_amount(changes["amount"])
        changes = {k: v for k, v in changes.items() if v is not None}

        current = self.state.transactions[index]
        updated = Transaction.model_validate({**current.model_dump(), **changes})
        self.state.transactions[index] = updated
        return updated

    def delete_transaction(self, transaction_id: str) -> Transaction:
        index = self._index_of(transaction_id)
        return self.state.transactions.pop(index)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next(
            (t for t in self.state.transactions if t.id == transaction_id),
            None
        )

    def todays_transactions(self, today: Optional[date] = None) -> list[Transaction]:
        day = today or utc_day(self.now())
        return [t for t in self.state.transactions if utc_day(t.date) == day]

    def get_todays_spending(self, today: Optional[date] = None) -> Decimal:
        """Sum of today's transactions. Decimal('0') when there are none."""
        return sum(
            (t.amount for t in self.todays_transactions(today)),
            Decimal("0")
        )

    def spending_by_category(self) -> dict[ExpenseCategory, Decimal]:
        totals: dict[ExpenseCategory, Decimal] = {}
        for t in self.state.transactions:
            totals[t.category] = totals.get(t.category, Decimal("0")) + t.amount
        return totals

    def _index_of(self, transaction_id: str) -> int:
        for i, t in enumerate(self.state.transactions):
            if t.id == transaction_id:
                return i
        raise EntryNotFoundError(f"Transaction {transaction_id} not found")
