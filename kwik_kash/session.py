"""
Budget Session for Kwik Kash

This module ties together all the components and defines the
end-to-end flow of every user action:

    raw input → validate → ledger mutation → persist → audit

DESIGN DECISION: The session is the single owner of a user's
BudgetState. There is no global store: the state is an explicit object
created (or loaded) here and handed to the ledgers, the reports and the
AI snapshot builder.

The session enforces the boundaries:
- Nothing reaches a ledger without passing input validation
- Every mutation is written through to storage immediately
- A failed write is audited, never raised: the in-memory state stays
  the source of truth for the rest of the session
- AI failures never propagate (the agent returns fallbacks)
- Every step is audited
"""

from datetime import date
from typing import Any, Iterable, Mapping, Optional, TypeVar, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError

from kwik_kash.agents import (
    AdvisoryAgent,
    AssistantReply,
    ExpenseRecommendations,
    FinancialSnapshot,
    SpendingAlerts,
    SpendingForecast,
    build_snapshot,
)
from kwik_kash.audit import AuditLogger, configure_logging, create_correlation_id
from kwik_kash.config import AppSettings, get_settings
from kwik_kash.ledgers import (
    DailyLimitNotice,
    EmergencyFundLedger,
    FixedExpenseLedger,
    GoalLedger,
    ProfileLedger,
    TransactionLedger,
)
from kwik_kash.ledgers.base import Clock, ProfileRequiredError
from kwik_kash.ledgers.transactions import utc_day
from kwik_kash.models.audit import AuditEvent, AuditEventBuilder
from kwik_kash.models.budget import (
    BudgetState,
    EmergencyFund,
    EmergencyFundEntry,
    Goal,
    Transaction,
    UserProfile,
)
from kwik_kash.models.inputs import (
    AssistantQueryInput,
    EmergencyFundActionInput,
    EmergencyFundTargetInput,
    GoalContributionInput,
    GoalInput,
    GoalPatch,
    ProfileInput,
    TransactionInput,
    TransactionPatch,
)
from kwik_kash.reports import DashboardSummary, build_dashboard
from kwik_kash.services.storage import (
    BudgetStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    InMemoryBudgetStorage,
    JsonFileBudgetStorage,
    RecordKey,
    StorageError,
)
from kwik_kash.validation import InputValidator, ValidationFailedError


logger = structlog.get_logger("kwik_kash.session")

SchemaT = TypeVar("SchemaT", bound=BaseModel)
AdviceT = TypeVar("AdviceT", bound=BaseModel)
RawInput = Union[Mapping[str, Any], BaseModel]


class BudgetSession:
    """
    One user's budgeting session.

    Usage:
        session = await BudgetSession.open("user-42", storage=storage)
        profile, warnings = await session.update_profile({...})
        tx, notice, warnings = await session.add_transaction({...})
    """

    def __init__(
        self,
        user_id: str,
        storage: Optional[BudgetStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        advisor: Optional[AdvisoryAgent] = None,
        app_settings: Optional[AppSettings] = None,
        clock: Optional[Clock] = None,
        state: Optional[BudgetState] = None,
    ):
        """
        Args:
            user_id: Owner of the session
            storage: Where records are written through. If None, the
                     session lives in memory only.
            audit_logger: Defaults to a local-only AuditLogger
            advisor: Defaults to a Gemini-backed AdvisoryAgent
            app_settings: Thresholds and display settings
            clock: Source of "now" for every ledger (tests pin this)
            state: Start from an existing state instead of an empty one
        """
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = app_settings or get_settings().app
        self._advisor = advisor or AdvisoryAgent(currency_symbol=self._settings.currency_symbol)
        self._clock = clock
        self._bind(state or BudgetState(user_id=user_id))

    def _bind(self, state: BudgetState) -> None:
        """Point every ledger at a (new) state object."""
        self._state = state
        self.profiles = ProfileLedger(state, self._clock)
        self.transactions = TransactionLedger(state, self._clock)
        self.goals = GoalLedger(state, self._clock)
        self.emergency_fund = EmergencyFundLedger(state, self._clock)
        self.fixed_expenses = FixedExpenseLedger(state, self._clock)
        self._validator = InputValidator(state, self._settings)

    @property
    def state(self) -> BudgetState:
        return self._state

    @property
    def user_id(self) -> str:
        return self._state.user_id

    @classmethod
    async def open(
        cls,
        user_id: str,
        storage: Optional[BudgetStorageInterface] = None,
        **kwargs: Any,
    ) -> "BudgetSession":
        """Create a session and load the user's saved state."""
        session = cls(user_id, storage=storage, **kwargs)
        await session.load()
        return session

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    async def load(self) -> BudgetState:
        """
        Load every record of the user from storage.

        A record that cannot be read or parsed is logged and left at its
        empty default; loading never fails.
        """
        state = BudgetState(user_id=self.user_id)
        if self._storage is None:
            self._bind(state)
            return state

        for key in RecordKey:
            try:
                payload = await self._storage.load_record(self.user_id, key)
                if payload is None:
                    continue
                if key == RecordKey.PROFILE:
                    state.profile = UserProfile.model_validate(payload)
                elif key == RecordKey.GOALS:
                    state.goals = [Goal.model_validate(g) for g in payload]
                elif key == RecordKey.TRANSACTIONS:
                    state.transactions = [Transaction.model_validate(t) for t in payload]
                elif key == RecordKey.FIXED_EXPENSE_PAYMENTS:
                    state.fixed_expense_payments = {
                        str(k): list(v) for k, v in dict(payload).items()
                    }
            except (StorageError, ValidationError, TypeError, ValueError) as e:
                await self._audit_logger.log_error(
                    error_type="state_load_failed",
                    error_message=str(e),
                    details={"user_id": self.user_id, "record_key": key.value},
                )

        self._bind(state)
        return state

    def _payload(self, key: RecordKey) -> Any:
        state = self._state
        if key == RecordKey.PROFILE:
            return state.profile.model_dump(mode="json") if state.profile else None
        if key == RecordKey.GOALS:
            return [g.model_dump(mode="json") for g in state.goals]
        if key == RecordKey.TRANSACTIONS:
            return [t.model_dump(mode="json") for t in state.transactions]
        return {k: list(v) for k, v in state.fixed_expense_payments.items()}

    async def _persist(
        self,
        keys: Iterable[RecordKey],
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Write records through to storage.

        Returns False if any write failed. Failures are audited, not raised.
        """
        if self._storage is None:
            return True

        all_saved = True
        for key in keys:
            try:
                await self._storage.save_record(self.user_id, key, self._payload(key))
            except StorageError as e:
                all_saved = False
                await self._audit_logger.log_persistence_failed(
                    user_id=self.user_id,
                    record_key=self._storage.record_name(key),
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
        return all_saved

    async def _audit(self, event: AuditEvent) -> None:
        await self._audit_logger.log(event)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    async def _validate(
        self,
        schema: type[SchemaT],
        raw: RawInput,
        correlation_id: UUID,
        goal_id: Optional[str] = None,
    ) -> tuple[SchemaT, list[str]]:
        """
        Parse raw input at the boundary.

        Returns:
            (parsed input, warnings)

        Raises:
            ValidationFailedError: the action is rejected and nothing
            reaches the ledgers
        """
        if isinstance(raw, BaseModel):
            raw = raw.model_dump(exclude_unset=True)

        parsed, result = self._validator.validate(schema, raw, goal_id)
        if parsed is None or result.has_errors:
            await self._audit_logger.log_validation_failed(
                user_id=self.user_id,
                schema_name=result.schema_name,
                issues=[i.model_dump() for i in result.issues],
                correlation_id=correlation_id,
            )
            raise ValidationFailedError(result)
        return parsed, result.warnings

    # =========================================================================
    # PROFILE
    # =========================================================================

    async def update_profile(self, raw: RawInput) -> tuple[UserProfile, list[str]]:
        """
        Onboard or edit the profile. The budget is re-derived on read.

        Removing a fixed expense also drops its paid checklist.
        """
        correlation_id = create_correlation_id()
        data, warnings = await self._validate(ProfileInput, raw, correlation_id)

        profile = self.profiles.update_profile(
            role=data.role,
            income=data.income,
            fixed_expenses=data.fixed_expenses,
        )
        await self._persist(
            [RecordKey.PROFILE, RecordKey.FIXED_EXPENSE_PAYMENTS], correlation_id
        )
        await self._audit(AuditEventBuilder.profile_updated(
            user_id=self.user_id,
            income=str(profile.income),
            fixed_expense_count=len(profile.fixed_expenses),
            daily_limit=str(profile.daily_spending_limit),
            correlation_id=correlation_id,
        ))
        return profile, warnings

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def add_transaction(
        self,
        raw: RawInput,
    ) -> tuple[Transaction, Optional[DailyLimitNotice], list[str]]:
        """
        Daily check-in.

        Returns:
            (transaction, notice if this one crossed the daily limit, warnings)
        """
        correlation_id = create_correlation_id()
        data, warnings = await self._validate(TransactionInput, raw, correlation_id)

        transaction, notice = self.transactions.add_transaction(
            data.amount, data.category, data.description
        )
        await self._persist([RecordKey.TRANSACTIONS], correlation_id)
        await self._audit(AuditEventBuilder.transaction_added(
            user_id=self.user_id,
            transaction_id=transaction.id,
            amount=str(transaction.amount),
            category=transaction.category.value,
            correlation_id=correlation_id,
        ))
        if notice is not None:
            await self._audit(AuditEventBuilder.daily_limit_exceeded(
                user_id=self.user_id,
                spent_today=str(notice.spent_today),
                daily_limit=str(notice.daily_limit),
                correlation_id=correlation_id,
            ))
        return transaction, notice, warnings

    async def update_transaction(
        self,
        transaction_id: str,
        raw: RawInput,
    ) -> tuple[Transaction, list[str]]:
        """Edit amount, category or description. The date never changes."""
        correlation_id = create_correlation_id()
        patch, warnings = await self._validate(TransactionPatch, raw, correlation_id)

        transaction = self.transactions.update_transaction(transaction_id, patch)
        await self._persist([RecordKey.TRANSACTIONS], correlation_id)
        await self._audit(AuditEventBuilder.transaction_updated(
            user_id=self.user_id,
            transaction_id=transaction_id,
            changed_fields=sorted(patch.model_fields_set),
            correlation_id=correlation_id,
        ))
        return transaction, warnings

    async def delete_transaction(self, transaction_id: str) -> Transaction:
        correlation_id = create_correlation_id()
        transaction = self.transactions.delete_transaction(transaction_id)
        await self._persist([RecordKey.TRANSACTIONS], correlation_id)
        await self._audit(AuditEventBuilder.transaction_deleted(
            user_id=self.user_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))
        return transaction

    # =========================================================================
    # GOALS
    # =========================================================================

    async def add_goal(self, raw: RawInput) -> tuple[Goal, list[str]]:
        correlation_id = create_correlation_id()
        data, warnings = await self._validate(GoalInput, raw, correlation_id)

        goal = self.goals.add_goal(
            name=data.name,
            target_amount=data.target_amount,
            monthly_contribution=data.monthly_contribution,
            timeline_months=data.timeline_months,
        )
        await self._persist([RecordKey.GOALS], correlation_id)
        await self._audit(AuditEventBuilder.goal_added(
            user_id=self.user_id,
            goal_id=goal.id,
            name=goal.name,
            target=str(goal.target_amount),
            correlation_id=correlation_id,
        ))
        return goal, warnings

    async def update_goal(self, goal_id: str, raw: RawInput) -> tuple[Goal, list[str]]:
        correlation_id = create_correlation_id()
        patch, warnings = await self._validate(GoalPatch, raw, correlation_id, goal_id)

        goal = self.goals.update_goal(goal_id, patch)
        await self._persist([RecordKey.GOALS], correlation_id)
        await self._audit(AuditEventBuilder.goal_updated(
            user_id=self.user_id,
            goal_id=goal_id,
            changed_fields=sorted(patch.model_fields_set),
            correlation_id=correlation_id,
        ))
        return goal, warnings

    async def contribute_to_goal(self, goal_id: str, raw: RawInput) -> Goal:
        """Manual contribution. The balance is clamped at the target."""
        correlation_id = create_correlation_id()
        data, _ = await self._validate(GoalContributionInput, raw, correlation_id)

        goal = self.goals.contribute_to_goal(goal_id, data.amount)
        await self._persist([RecordKey.GOALS], correlation_id)
        await self._audit(AuditEventBuilder.goal_contribution(
            user_id=self.user_id,
            goal_id=goal_id,
            requested=str(data.amount),
            current=str(goal.current_amount),
            target=str(goal.target_amount),
            correlation_id=correlation_id,
        ))
        return goal

    # =========================================================================
    # EMERGENCY FUND
    # =========================================================================

    async def update_emergency_fund(
        self,
        raw: RawInput,
    ) -> tuple[EmergencyFundEntry, list[str]]:
        """Deposit or withdraw. Over-withdrawal floors the balance at 0."""
        correlation_id = create_correlation_id()
        data, warnings = await self._validate(EmergencyFundActionInput, raw, correlation_id)

        entry = self.emergency_fund.update_emergency_fund(
            data.action, data.amount, data.notes
        )
        await self._persist([RecordKey.PROFILE], correlation_id)
        await self._audit(AuditEventBuilder.emergency_fund_changed(
            user_id=self.user_id,
            entry_id=entry.id,
            entry_type=entry.type.value,
            requested=str(entry.amount),
            balance=str(self.emergency_fund.fund.current),
            correlation_id=correlation_id,
        ))
        return entry, warnings

    async def set_emergency_fund_target(self, raw: RawInput) -> EmergencyFund:
        correlation_id = create_correlation_id()
        data, _ = await self._validate(EmergencyFundTargetInput, raw, correlation_id)

        fund = self.emergency_fund.set_emergency_fund_target(data.target)
        await self._persist([RecordKey.PROFILE], correlation_id)
        await self._audit(AuditEventBuilder.emergency_fund_target_set(
            user_id=self.user_id,
            target=str(fund.target),
            correlation_id=correlation_id,
        ))
        return fund

    # =========================================================================
    # FIXED EXPENSE CHECKLIST
    # =========================================================================

    async def toggle_fixed_expense_paid(
        self,
        expense_id: str,
        month: Optional[str] = None,
    ) -> bool:
        """Flip this month's paid mark. Returns the new state of the mark."""
        correlation_id = create_correlation_id()
        month = month or self.fixed_expenses.current_month()

        is_paid = self.fixed_expenses.toggle_logged_status(expense_id, month)
        await self._persist([RecordKey.FIXED_EXPENSE_PAYMENTS], correlation_id)
        await self._audit(AuditEventBuilder.fixed_expense_payment_toggled(
            user_id=self.user_id,
            expense_id=expense_id,
            month=month,
            is_paid=is_paid,
            correlation_id=correlation_id,
        ))
        return is_paid

    # =========================================================================
    # REPORTS
    # =========================================================================

    def dashboard(self, today: Optional[date] = None) -> DashboardSummary:
        if today is None and self._clock is not None:
            today = utc_day(self._clock())
        return build_dashboard(
            self._state,
            today=today,
            deadline_window_months=self._settings.deadline_window_months,
        )

    async def activity(self, limit: int = 50) -> list[AuditEvent]:
        """This user's recent audit trail, newest first."""
        return await self._audit_logger.recent_events(limit=limit, user_id=self.user_id)

    # =========================================================================
    # AI ADVISORY
    # =========================================================================

    def _snapshot(self) -> Optional[FinancialSnapshot]:
        """None until the user has onboarded."""
        try:
            return build_snapshot(self._state, self._settings.recent_transactions_for_ai)
        except ProfileRequiredError:
            logger.info("advice_without_profile", user_id=self.user_id)
            return None

    async def _without_profile(
        self, flow: str, result: AdviceT, correlation_id: UUID
    ) -> AdviceT:
        await self._audit_logger.log_advice(
            user_id=self.user_id,
            flow=flow,
            used_fallback=True,
            correlation_id=correlation_id,
        )
        return result

    async def _audit_advice(self, flow: str, used_fallback: bool, correlation_id: UUID) -> None:
        if used_fallback:
            await self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=f"{flow} fell back to the static reply",
                correlation_id=correlation_id,
            )
        await self._audit_logger.log_advice(
            user_id=self.user_id,
            flow=flow,
            used_fallback=used_fallback,
            correlation_id=correlation_id,
        )

    async def get_expense_recommendations(self) -> ExpenseRecommendations:
        correlation_id = create_correlation_id()
        snapshot = self._snapshot()
        if snapshot is None:
            return await self._without_profile(
                "expense_recommendations", ExpenseRecommendations.fallback(), correlation_id
            )
        result = await self._advisor.get_expense_recommendations(snapshot)
        await self._audit_advice("expense_recommendations", result.used_fallback, correlation_id)
        return result

    async def get_spending_alerts(self) -> SpendingAlerts:
        correlation_id = create_correlation_id()
        snapshot = self._snapshot()
        if snapshot is None:
            return await self._without_profile(
                "spending_alerts", SpendingAlerts.fallback(), correlation_id
            )
        result = await self._advisor.get_spending_alerts(snapshot)
        await self._audit_advice("spending_alerts", result.used_fallback, correlation_id)
        return result

    async def forecast_spending(
        self,
        seasonal_trends: Optional[dict] = None,
    ) -> SpendingForecast:
        correlation_id = create_correlation_id()
        snapshot = self._snapshot()
        if snapshot is None:
            return SpendingForecast.not_enough_data()
        result = await self._advisor.forecast_spending(snapshot, seasonal_trends)
        if result.has_enough_data:
            await self._audit_advice("spending_forecast", result.used_fallback, correlation_id)
        return result

    async def ask_assistant(self, raw: Union[str, RawInput]) -> AssistantReply:
        correlation_id = create_correlation_id()
        if isinstance(raw, str):
            raw = {"query": raw}
        data, _ = await self._validate(AssistantQueryInput, raw, correlation_id)

        snapshot = self._snapshot()
        if snapshot is None:
            return await self._without_profile(
                "finance_assistant", AssistantReply.fallback(), correlation_id
            )
        result = await self._advisor.ask_assistant(data.query, snapshot)
        await self._audit_advice("finance_assistant", result.used_fallback, correlation_id)
        return result

    # =========================================================================
    # LOGOUT
    # =========================================================================

    async def reset(self) -> None:
        """Forget everything about this user, in memory and in storage."""
        if self._storage is not None:
            try:
                await self._storage.delete_records(self.user_id)
            except StorageError as e:
                await self._audit_logger.log_persistence_failed(
                    user_id=self.user_id,
                    record_key="*",
                    error_message=str(e),
                )
        self._bind(BudgetState(user_id=self.user_id))


# =============================================================================
# FACTORY
# =============================================================================

def create_app_components(
    use_storage: bool = True,
) -> tuple[Optional[BudgetStorageInterface], AuditLogger, AdvisoryAgent]:
    """
    Factory function to create the shared application components.

    Args:
        use_storage: Whether to set up the configured storage backend.
                    Set to False for purely in-memory sessions.

    Returns:
        (budget_storage, audit_logger, advisor)
    """
    settings = get_settings()
    app = settings.app
    configure_logging(app.debug_mode)
    advisor = AdvisoryAgent(currency_symbol=app.currency_symbol)

    if not use_storage:
        return None, AuditLogger(), advisor

    storage_settings = settings.storage
    if storage_settings.backend == "memory":
        return InMemoryBudgetStorage(storage_settings.key_prefix), AuditLogger(), advisor

    if storage_settings.backend == "json":
        storage = JsonFileBudgetStorage(
            storage_settings.data_dir,
            key_prefix=storage_settings.key_prefix,
        )
        return storage, AuditLogger(), advisor

    try:
        sheets_client = GoogleSheetsClient()
        storage = GoogleSheetsBudgetStorage(sheets_client, storage_settings.key_prefix)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        return storage, audit_logger, advisor
    except Exception as e:
        # Sheets not configured - continue in memory
        logger.warning("storage_not_configured", backend="google_sheets", error=str(e))
        return InMemoryBudgetStorage(storage_settings.key_prefix), AuditLogger(), advisor


async def open_session(
    user_id: str,
    use_storage: bool = True,
    clock: Optional[Clock] = None,
) -> BudgetSession:
    """Create the app components and load a session for one user."""
    storage, audit_logger, advisor = create_app_components(use_storage)
    return await BudgetSession.open(
        user_id,
        storage=storage,
        audit_logger=audit_logger,
        advisor=advisor,
        clock=clock,
    )
