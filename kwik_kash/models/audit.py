"""
Audit trail models.

Each session action that changes a user's budget (or fails to) produces
one AuditEvent. Events are written once and never edited; the session
reads them back to show a user what happened to their numbers.
"""

import json
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from kwik_kash.models.budget import UtcDatetime, utc_now


class AuditEventType(str, Enum):
    PROFILE_UPDATED = "profile_updated"

    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    DAILY_LIMIT_EXCEEDED = "daily_limit_exceeded"

    GOAL_ADDED = "goal_added"
    GOAL_UPDATED = "goal_updated"
    GOAL_CONTRIBUTION = "goal_contribution"

    EMERGENCY_FUND_DEPOSIT = "emergency_fund_deposit"
    EMERGENCY_FUND_WITHDRAWAL = "emergency_fund_withdrawal"
    EMERGENCY_FUND_TARGET_SET = "emergency_fund_target_set"

    FIXED_EXPENSE_PAYMENT_TOGGLED = "fixed_expense_payment_toggled"

    ADVICE_REQUESTED = "advice_requested"
    ADVICE_FALLBACK_USED = "advice_fallback_used"

    VALIDATION_FAILED = "validation_failed"
    PERSISTENCE_FAILED = "persistence_failed"

    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Maps one-to-one onto the log levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Column order of an event row in the audit worksheet.
SHEET_FIELDS = (
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details",
    "error_message",
    "is_user_action",
)


class AuditEvent(BaseModel):
    """
    One entry of the audit trail.

    entity_type/entity_id point at the record the event is about
    ("transaction", "goal", "emergency_fund", ...). Events raised by the
    same user action share a correlation_id.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: UtcDatetime = Field(default_factory=utc_now)

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the budget state; None for process-level events"
    )
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific payload, kept JSON-friendly"
    )
    error_message: Optional[str] = None
    is_user_action: bool = Field(
        default=False,
        description="True when a user request caused the event directly"
    )

    def to_log_dict(self) -> dict:
        """Mapping passed as keyword fields to structlog."""
        data = self.model_dump(mode="json", exclude={"details"})
        data["details"] = self.details
        return data

    def to_sheets_row(self) -> list:
        """Cells in SHEET_FIELDS order. Empty values become ""."""
        data = self.to_log_dict()
        data["timestamp"] = self.timestamp.isoformat()
        data["details"] = json.dumps(self.details, default=str) if self.details else ""
        data["is_user_action"] = str(self.is_user_action)
        return ["" if data[name] is None else data[name] for name in SHEET_FIELDS]


class AuditEventBuilder:
    """
    Named constructors for the events the session emits.

        AuditEventBuilder.goal_added(user_id, goal.id, goal.name, "50000.00", cid)
    """

    @staticmethod
    def profile_updated(
        user_id: str,
        income: str,
        fixed_expense_count: int,
        daily_limit: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            user_id=user_id,
            entity_type="profile",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Profile updated and budget recalculated",
            details={
                "income": income,
                "fixed_expense_count": fixed_expense_count,
                "daily_spending_limit": daily_limit,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_added(
        user_id: str,
        transaction_id: str,
        amount: str,
        category: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction logged: {category} - ₹{amount}",
            details={
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        user_id: str,
        transaction_id: str,
        changed_fields: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction edited: {', '.join(changed_fields)}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        user_id: str,
        transaction_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def daily_limit_exceeded(
        user_id: str,
        spent_today: str,
        daily_limit: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DAILY_LIMIT_EXCEEDED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="profile",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Daily limit exceeded: ₹{spent_today} spent of ₹{daily_limit}",
            details={
                "spent_today": spent_today,
                "daily_spending_limit": daily_limit,
            },
        )

    @staticmethod
    def goal_added(
        user_id: str,
        goal_id: str,
        name: str,
        target: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_ADDED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal added: {name}",
            details={"name": name, "target_amount": target},
            is_user_action=True,
        )

    @staticmethod
    def goal_updated(
        user_id: str,
        goal_id: str,
        changed_fields: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_UPDATED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal edited: {', '.join(changed_fields)}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def goal_contribution(
        user_id: str,
        goal_id: str,
        requested: str,
        current: str,
        target: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CONTRIBUTION,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Contributed ₹{requested} to goal",
            details={
                "requested_amount": requested,
                "current_amount": current,
                "target_amount": target,
            },
            is_user_action=True,
        )

    @staticmethod
    def emergency_fund_changed(
        user_id: str,
        entry_id: str,
        entry_type: str,
        requested: str,
        balance: str,
        correlation_id: UUID
    ) -> AuditEvent:
        is_withdrawal = entry_type == "withdrawal"
        return AuditEvent(
            event_type=(
                AuditEventType.EMERGENCY_FUND_WITHDRAWAL
                if is_withdrawal
                else AuditEventType.EMERGENCY_FUND_DEPOSIT
            ),
            user_id=user_id,
            entity_type="emergency_fund",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Emergency fund {entry_type}: ₹{requested}",
            details={
                "requested_amount": requested,
                "balance_after": balance,
            },
            is_user_action=True,
        )

    @staticmethod
    def emergency_fund_target_set(
        user_id: str,
        target: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EMERGENCY_FUND_TARGET_SET,
            user_id=user_id,
            entity_type="emergency_fund",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Emergency fund target set to ₹{target}",
            details={"target": target},
            is_user_action=True,
        )

    @staticmethod
    def fixed_expense_payment_toggled(
        user_id: str,
        expense_id: str,
        month: str,
        is_paid: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_EXPENSE_PAYMENT_TOGGLED,
            user_id=user_id,
            entity_type="fixed_expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Fixed expense marked {'paid' if is_paid else 'unpaid'} for {month}",
            details={"month": month, "is_paid": is_paid},
            is_user_action=True,
        )

    @staticmethod
    def advice_requested(
        user_id: str,
        flow: str,
        used_fallback: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.ADVICE_FALLBACK_USED
                if used_fallback
                else AuditEventType.ADVICE_REQUESTED
            ),
            severity=AuditSeverity.WARNING if used_fallback else AuditSeverity.INFO,
            user_id=user_id,
            entity_type="advice",
            correlation_id=correlation_id,
            description=(
                f"AI {flow} unavailable, fallback returned"
                if used_fallback
                else f"AI {flow} generated"
            ),
            details={"flow": flow, "used_fallback": used_fallback},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        user_id: str,
        schema_name: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="input",
            correlation_id=correlation_id,
            description=f"{schema_name} rejected with {len(issues)} issues",
            details={
                "schema": schema_name,
                "issues": issues,
            },
        )

    @staticmethod
    def persistence_failed(
        user_id: str,
        record_key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="record",
            entity_id=record_key,
            correlation_id=correlation_id,
            description=f"Could not persist {record_key}",
            error_message=error_message,
            details={"record_key": record_key},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Unexpected failure: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"{service} call failed",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
