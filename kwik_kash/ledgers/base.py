"""
Ledger Base

All ledgers edit one BudgetState in place. The state is handed in by the
caller (normally a BudgetSession) and there is no module-level store.

DESIGN DECISION: Ledgers are synchronous and never touch storage.
Persisting and auditing a mutation is the session's job, so every
ledger can be unit tested with a bare BudgetState and a fixed clock.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Union

from kwik_kash.models.budget import BudgetState, UserProfile, utc_now


Clock = Callable[[], datetime]
AmountLike = Union[Decimal, int, float, str]
CENT = Decimal("0.01")


class BaseLedger:
    """Holds the state reference and the clock shared by every ledger."""

    def __init__(self, state: BudgetState, clock: Optional[Clock] = None):
        self.state = state
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock()

    def require_profile(self) -> UserProfile:
        if self.state.profile is None:
            raise ProfileRequiredError(
                f"User {self.state.user_id} has not completed onboarding"
            )
        return self.state.profile


def to_positive_amount(value: AmountLike, field: str = "amount") -> Decimal:
    """
    Coerce a money value to Decimal and reject anything not strictly
    positive or with more than two decimal places.

    Floats go through str() so 0.1 stays 0.1.
    """
    amount = to_amount(value, field)
    if amount <= 0:
        raise InvalidAmountError(f"{field} must be greater than 0, got {value}")
    return amount


def to_amount(value: AmountLike, field: str = "amount") -> Decimal:
    """Coerce to a finite Decimal with at most two decimal places."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        if not amount.is_finite():
            raise InvalidAmountError(f"{field} must be a finite number, got {value}")
        if amount != amount.quantize(CENT):
            raise InvalidAmountError(
                f"{field} has more than two decimal places: {value}"
            )
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(f"{field} is not a number: {value!r}") from e
    return amount


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LedgerError(Exception):
    """Base exception for ledger misuse."""
    pass


class EntryNotFoundError(LedgerError):
    """Raised when a transaction, goal or expense id is unknown."""
    pass


class InvalidAmountError(LedgerError):
    """Raised when an amount is zero, negative or not a number."""
    pass


class ProfileRequiredError(LedgerError):
    """Raised when an operation needs an onboarded profile."""
    pass
