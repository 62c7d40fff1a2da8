"""
Integration tests for BudgetSession.

Storage is in memory and the Gemini model is faked, so every test
runs the full validate → mutate → persist → audit flow offline.
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from kwik_kash.agents import (
    ALERTS_FALLBACK,
    ASSISTANT_FALLBACK,
    AdvisoryAgent,
    ExpenseRecommendations,
)
from kwik_kash.audit import AuditLogger
from kwik_kash.ledgers import EntryNotFoundError
from kwik_kash.models.audit import AuditEventType, AuditSeverity
from kwik_kash.services.storage import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    RecordKey,
    StorageError,
)
from kwik_kash.session import BudgetSession
from kwik_kash.validation import ValidationFailedError

from tests.conftest import FakeModel


PROFILE_FORM = {
    "role": "Professional",
    "income": "50000",
    "fixed_expenses": [
        {"name": "Rent", "amount": "12000", "category": "Housing"},
        {"name": "Internet", "amount": "3000", "category": "Utilities"},
    ],
}


class FailingBudgetStorage(InMemoryBudgetStorage):
    """Every write fails; reads work."""

    async def save_record(self, user_id, key, payload):
        raise StorageError("disk full")


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def storage():
    return InMemoryBudgetStorage()


@pytest.fixture
def model():
    return FakeModel(text=json.dumps({"alerts": "Dining is up."}))


@pytest.fixture
def make_session(storage, audit_storage, model, app_settings, clock):
    def factory(backend=storage):
        return BudgetSession(
            "user-1",
            storage=backend,
            audit_logger=AuditLogger(audit_storage),
            advisor=AdvisoryAgent(model=model),
            app_settings=app_settings,
            clock=clock,
        )
    return factory


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


class TestProfileFlow:
    """Onboarding through the session."""

    @pytest.mark.asyncio
    async def test_onboarding_writes_through(self, make_session, storage, audit_storage):
        session = make_session()
        profile, warnings = await session.update_profile(PROFILE_FORM)

        assert profile.daily_spending_limit == Decimal("700.00")
        assert warnings == []
        stored = await storage.load_record("user-1", RecordKey.PROFILE)
        assert stored["income"] == "50000"
        assert Decimal(stored["monthly_savings"]) == Decimal("14000.00")
        assert AuditEventType.PROFILE_UPDATED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_invalid_profile_leaves_state_untouched(self, make_session, audit_storage, storage):
        session = make_session()
        with pytest.raises(ValidationFailedError) as exc_info:
            await session.update_profile({"role": "Astronaut", "income": "-5"})

        assert exc_info.value.result.error_count == 2
        assert session.state.profile is None
        assert storage.record_names("user-1") == []
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]


class TestTransactionFlow:
    """Daily check-ins through the session."""

    @pytest.mark.asyncio
    async def test_add_and_notice(self, make_session, storage, audit_storage):
        session = make_session()
        await session.update_profile(PROFILE_FORM)

        _, notice, _ = await session.add_transaction(
            {"amount": "500", "category": "Food & Dining", "description": "Lunch"}
        )
        assert notice is None
        tx, notice, _ = await session.add_transaction(
            {"amount": "300", "category": "Shopping", "description": "Shirt"}
        )
        assert notice is not None
        assert notice.transaction_id == tx.id

        stored = await storage.load_record("user-1", RecordKey.TRANSACTIONS)
        assert [t["description"] for t in stored] == ["Shirt", "Lunch"]
        assert event_types(audit_storage).count(AuditEventType.DAILY_LIMIT_EXCEEDED) == 1

    @pytest.mark.asyncio
    async def test_large_amount_returns_warning(self, make_session):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        _, _, warnings = await session.add_transaction(
            {"amount": "200000", "category": "Shopping", "description": "Sofa"}
        )
        assert len(warnings) == 1

    @pytest.mark.asyncio
    async def test_update_and_delete(self, make_session, storage):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        tx, _, _ = await session.add_transaction(
            {"amount": "100", "category": "Groceries", "description": "Veg"}
        )

        updated, _ = await session.update_transaction(tx.id, {"amount": "120"})
        assert updated.amount == Decimal("120")
        assert updated.date == tx.date

        await session.delete_transaction(tx.id)
        assert await storage.load_record("user-1", RecordKey.TRANSACTIONS) == []
        with pytest.raises(EntryNotFoundError):
            await session.delete_transaction(tx.id)

    @pytest.mark.asyncio
    async def test_patch_with_date_is_rejected(self, make_session):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        tx, _, _ = await session.add_transaction(
            {"amount": "100", "category": "Groceries", "description": "Veg"}
        )
        with pytest.raises(ValidationFailedError):
            await session.update_transaction(tx.id, {"date": "2020-01-01T00:00:00Z"})
        assert session.transactions.get_transaction(tx.id).date == tx.date


class TestGoalsAndFunds:
    """Goals, the emergency fund and the fixed expense checklist."""

    @pytest.mark.asyncio
    async def test_goal_contribution_clamps(self, make_session, storage):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        goal, _ = await session.add_goal(
            {"name": "Laptop", "target_amount": "80000", "monthly_contribution": "5000"}
        )
        await session.contribute_to_goal(goal.id, {"amount": "78000"})
        goal = await session.contribute_to_goal(goal.id, {"amount": "5000"})

        assert goal.current_amount == Decimal("80000")
        stored = await storage.load_record("user-1", RecordKey.GOALS)
        assert Decimal(stored[0]["current_amount"]) == Decimal("80000")

    @pytest.mark.asyncio
    async def test_non_positive_contribution_rejected(self, make_session):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        goal, _ = await session.add_goal(
            {"name": "Laptop", "target_amount": "80000", "monthly_contribution": "5000"}
        )
        with pytest.raises(ValidationFailedError):
            await session.contribute_to_goal(goal.id, {"amount": "0"})

    @pytest.mark.asyncio
    async def test_update_goal(self, make_session):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        goal, _ = await session.add_goal(
            {"name": "Laptop", "target_amount": "80000", "monthly_contribution": "5000"}
        )
        updated, _ = await session.update_goal(goal.id, {"timeline_months": 16})
        assert updated.start_date is not None

    @pytest.mark.asyncio
    async def test_update_goal_over_savings_warns(self, make_session):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        goal, _ = await session.add_goal(
            {"name": "Laptop", "target_amount": "80000", "monthly_contribution": "1000"}
        )
        updated, warnings = await session.update_goal(
            goal.id, {"monthly_contribution": "50000"}
        )
        assert updated.monthly_contribution == Decimal("50000")
        assert len(warnings) == 1
        assert "exceed monthly savings" in warnings[0]

    @pytest.mark.asyncio
    async def test_emergency_over_withdrawal(self, make_session, audit_storage):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        await session.update_emergency_fund({"action": "deposit", "amount": "1000"})
        entry, warnings = await session.update_emergency_fund(
            {"action": "withdraw", "amount": "2500"}
        )

        assert session.state.profile.emergency_fund.current == Decimal("0")
        assert entry.amount == Decimal("2500")
        assert len(warnings) == 1
        assert AuditEventType.EMERGENCY_FUND_WITHDRAWAL in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_emergency_target(self, make_session):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        fund = await session.set_emergency_fund_target({"target": "150000"})
        assert fund.target == Decimal("150000")

    @pytest.mark.asyncio
    async def test_toggle_fixed_expense(self, make_session, storage):
        session = make_session()
        profile, _ = await session.update_profile(PROFILE_FORM)
        rent = profile.fixed_expenses[0]

        assert await session.toggle_fixed_expense_paid(rent.id) is True
        stored = await storage.load_record("user-1", RecordKey.FIXED_EXPENSE_PAYMENTS)
        assert stored == {rent.id: ["2025-03"]}


class TestPersistence:
    """Write-through, load and failures."""

    @pytest.mark.asyncio
    async def test_reload_round_trip(self, make_session):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        await session.add_transaction(
            {"amount": "250", "category": "Transport", "description": "Cab"}
        )
        await session.add_goal(
            {"name": "Trip", "target_amount": "30000", "monthly_contribution": "2500"}
        )

        reloaded = make_session()
        await reloaded.load()
        assert reloaded.state.model_dump() == session.state.model_dump()
        assert reloaded.state.profile.daily_spending_limit == Decimal("700.00")

    @pytest.mark.asyncio
    async def test_corrupt_record_is_skipped(self, make_session, storage, audit_storage):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        await storage.save_record("user-1", RecordKey.GOALS, [{"name": "no target"}])

        reloaded = make_session()
        state = await reloaded.load()
        assert state.profile is not None
        assert state.goals == []
        assert AuditEventType.SYSTEM_ERROR in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_failed_write_keeps_session_going(self, make_session, audit_storage):
        session = make_session(FailingBudgetStorage())
        profile, _ = await session.update_profile(PROFILE_FORM)

        assert session.state.profile is profile
        failures = [
            e for e in audit_storage.events
            if e.event_type == AuditEventType.PERSISTENCE_FAILED
        ]
        assert len(failures) == 2
        assert failures[0].severity == AuditSeverity.ERROR
        assert failures[0].error_message == "disk full"

    @pytest.mark.asyncio
    async def test_reset_clears_storage_and_state(self, make_session, storage):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        await session.reset()
        assert session.state.profile is None
        assert storage.record_names("user-1") == []

    @pytest.mark.asyncio
    async def test_without_storage(self, audit_storage, app_settings, clock):
        session = BudgetSession(
            "user-1",
            audit_logger=AuditLogger(audit_storage),
            advisor=AdvisoryAgent(model=FakeModel()),
            app_settings=app_settings,
            clock=clock,
        )
        await session.update_profile(PROFILE_FORM)
        assert session.state.profile is not None


class TestAdviceAndReports:
    """AI flows and the dashboard through the session."""

    @pytest.mark.asyncio
    async def test_alerts_are_audited(self, make_session, audit_storage):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        result = await session.get_spending_alerts()
        assert result.alerts == "Dining is up."
        assert event_types(audit_storage)[-1] == AuditEventType.ADVICE_REQUESTED

    @pytest.mark.asyncio
    async def test_fallback_is_audited_as_warning(self, make_session, audit_storage, model):
        model.error = RuntimeError("quota")
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        result = await session.get_expense_recommendations()
        assert result.used_fallback
        last = audit_storage.events[-1]
        assert last.event_type == AuditEventType.ADVICE_FALLBACK_USED
        assert last.severity == AuditSeverity.WARNING
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_ask_assistant_accepts_text(self, make_session, model):
        model.text = json.dumps({"response": "Yes, you can afford it."})
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        reply = await session.ask_assistant("Can I buy a phone?")
        assert reply.response == "Yes, you can afford it."

    @pytest.mark.asyncio
    async def test_empty_question_rejected(self, make_session, model):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        with pytest.raises(ValidationFailedError):
            await session.ask_assistant("   ")
        assert model.prompts == []

    @pytest.mark.asyncio
    async def test_dashboard_uses_clock(self, make_session):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        await session.add_transaction(
            {"amount": "200", "category": "Groceries", "description": "Veg"}
        )
        summary = session.dashboard()
        assert summary.todays_spending == Decimal("200")
        assert summary.remaining_today == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_dashboard_counts_utc_day_for_offset_clock(
        self, storage, audit_storage, model, app_settings
    ):
        """01:00 in IST on the 16th is still the 15th in UTC."""
        ist = timezone(timedelta(hours=5, minutes=30))
        session = BudgetSession(
            "user-1",
            storage=storage,
            audit_logger=AuditLogger(audit_storage),
            advisor=AdvisoryAgent(model=model),
            app_settings=app_settings,
            clock=lambda: datetime(2025, 3, 16, 1, 0, tzinfo=ist),
        )
        await session.update_profile(PROFILE_FORM)
        await session.add_transaction(
            {"amount": "200", "category": "Groceries", "description": "Veg"}
        )
        summary = session.dashboard()
        assert summary.todays_spending == Decimal("200")
        assert summary.remaining_today == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_activity_is_newest_first(self, make_session):
        session = make_session()
        await session.update_profile(PROFILE_FORM)
        await session.add_goal(
            {"name": "Trip", "target_amount": "30000", "monthly_contribution": "2500"}
        )
        events = await session.activity()
        assert [e.event_type for e in events] == [
            AuditEventType.GOAL_ADDED,
            AuditEventType.PROFILE_UPDATED,
        ]


class TestAdviceBeforeOnboarding:
    """Advisory flows before a profile exists end in their fallbacks."""

    @pytest.mark.asyncio
    async def test_recommendations_fallback(self, make_session, audit_storage, model):
        result = await make_session().get_expense_recommendations()

        assert result.used_fallback
        assert result.recommendations == ExpenseRecommendations.fallback().recommendations
        assert model.prompts == []
        assert event_types(audit_storage) == [AuditEventType.ADVICE_FALLBACK_USED]

    @pytest.mark.asyncio
    async def test_alerts_fallback(self, make_session, audit_storage, model):
        result = await make_session().get_spending_alerts()

        assert result.used_fallback
        assert result.alerts == ALERTS_FALLBACK
        assert model.prompts == []
        assert event_types(audit_storage) == [AuditEventType.ADVICE_FALLBACK_USED]

    @pytest.mark.asyncio
    async def test_forecast_has_not_enough_data(self, make_session, audit_storage, model):
        result = await make_session().forecast_spending()

        assert result.has_enough_data is False
        assert result.predicted_limit == "Not enough data"
        assert model.prompts == []
        assert event_types(audit_storage) == []

    @pytest.mark.asyncio
    async def test_assistant_fallback(self, make_session, audit_storage, model):
        reply = await make_session().ask_assistant("Can I buy a phone?")

        assert reply.used_fallback
        assert reply.response == ASSISTANT_FALLBACK
        assert model.prompts == []
        assert event_types(audit_storage) == [AuditEventType.ADVICE_FALLBACK_USED]
