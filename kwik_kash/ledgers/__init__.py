"""
Ledgers Package

Synchronous operations over an explicit BudgetState:
- Profile: onboarding and settings
- Transactions: check-ins and today's spending
- Goals: savings targets and contributions
- Emergency fund: deposits, withdrawals and target
- Fixed expenses: monthly paid checklist and EMI timelines
"""

from kwik_kash.ledgers.base import (
    BaseLedger,
    EntryNotFoundError,
    InvalidAmountError,
    LedgerError,
    ProfileRequiredError,
)
from kwik_kash.ledgers.emergency_fund import EmergencyFundLedger
from kwik_kash.ledgers.fixed_expenses import (
    FixedExpenseLedger,
    TimelineStatus,
    add_months,
    month_key,
)
from kwik_kash.ledgers.goals import GoalLedger
from kwik_kash.ledgers.profile import ProfileLedger
from kwik_kash.ledgers.transactions import DailyLimitNotice, TransactionLedger

__all__ = [
    "BaseLedger",
    "DailyLimitNotice",
    "EmergencyFundLedger",
    "EntryNotFoundError",
    "FixedExpenseLedger",
    "GoalLedger",
    "InvalidAmountError",
    "LedgerError",
    "ProfileLedger",
    "ProfileRequiredError",
    "TimelineStatus",
    "TransactionLedger",
    "add_months",
    "month_key",
]
