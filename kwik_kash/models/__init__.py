"""
Data Models Package

This package contains all Pydantic models used in Kwik Kash.
All data flowing through the system must conform to these schemas.
"""

from kwik_kash.models.budget import (
    BudgetState,
    EmergencyFund,
    EmergencyFundAction,
    EmergencyFundEntry,
    EmergencyFundEntryType,
    ExpenseCategory,
    FixedExpense,
    FixedExpenseCategory,
    Goal,
    GoalContribution,
    Transaction,
    UserProfile,
    UserRole,
    utc_now,
)
from kwik_kash.models.inputs import (
    AssistantQueryInput,
    EmergencyFundActionInput,
    EmergencyFundTargetInput,
    FixedExpenseInput,
    GoalContributionInput,
    GoalInput,
    GoalPatch,
    ProfileInput,
    TransactionInput,
    TransactionPatch,
    ValidationIssue,
    ValidationResult,
)
from kwik_kash.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Budget models
    "BudgetState",
    "EmergencyFund",
    "EmergencyFundAction",
    "EmergencyFundEntry",
    "EmergencyFundEntryType",
    "ExpenseCategory",
    "FixedExpense",
    "FixedExpenseCategory",
    "Goal",
    "GoalContribution",
    "Transaction",
    "UserProfile",
    "UserRole",
    "utc_now",
    # Input schemas
    "AssistantQueryInput",
    "EmergencyFundActionInput",
    "EmergencyFundTargetInput",
    "FixedExpenseInput",
    "GoalContributionInput",
    "GoalInput",
    "GoalPatch",
    "ProfileInput",
    "TransactionInput",
    "TransactionPatch",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
