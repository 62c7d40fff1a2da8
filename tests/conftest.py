"""Shared fixtures: a pinned clock, onboarded states and a fake Gemini model."""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from kwik_kash.config import AppSettings
from kwik_kash.models.budget import (
    BudgetState,
    FixedExpense,
    FixedExpenseCategory,
    UserProfile,
    UserRole,
)


NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeModel:
    """Stands in for genai.GenerativeModel. Records every prompt."""

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def app_settings():
    return AppSettings(max_transaction_amount=100000.0)


@pytest.fixture
def profile():
    """income 50000, needs 15000 → wants 21000, savings 14000, limit 700."""
    return UserProfile(
        role=UserRole.PROFESSIONAL,
        income=Decimal("50000"),
        fixed_expenses=[
            FixedExpense(name="Rent", amount=Decimal("12000"), category=FixedExpenseCategory.HOUSING),
            FixedExpense(name="Internet", amount=Decimal("3000"), category=FixedExpenseCategory.UTILITIES),
        ],
    )


@pytest.fixture
def state(profile):
    return BudgetState(user_id="user-1", profile=profile)


@pytest.fixture
def empty_state():
    return BudgetState(user_id="user-1")
