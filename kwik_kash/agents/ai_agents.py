"""
AI Advisory Agent for Kwik Kash

DESIGN DECISION: Every advisory flow is a single "call, catch, substitute
a static fallback" round trip to Gemini:
- ONE call per user action. No retry, no backoff, no timeout beyond the
  client's default.
- ANY failure (network error, blocked or empty response, unparseable
  JSON, output that does not fit the result schema) is logged and
  replaced with a fixed, user-facing fallback payload.
- Nothing here ever raises into the caller.

CRITICAL BOUNDARIES:

1. The model only sees a FinancialSnapshot built from the session state.
   It never computes the budget; the numbers in the snapshot come from
   calculate_budget() and the ledgers.

2. The model's answer is advice, not data. Nothing it returns is written
   back into the state.

FLOWS:
- Expense recommendations: a short list of concrete cuts
- Spending alerts: one proactive alert tied to a goal
- Spending forecast: a predicted daily limit plus an alert
- Finance assistant: free-form questions, scenario simulation and
  role-specific tips
"""

import json
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel, Field, ValidationError

from kwik_kash.config import GeminiSettings, get_settings
from kwik_kash.ledgers.base import ProfileRequiredError
from kwik_kash.models.budget import BudgetState


logger = structlog.get_logger("kwik_kash.agents")


# =============================================================================
# FALLBACKS - Shown when the AI service cannot answer
# =============================================================================

RECOMMENDATIONS_FALLBACK = (
    "Sorry, I am having trouble generating recommendations right now. "
    "Please try again in a moment."
)
ALERTS_FALLBACK = "The AI service is temporarily unavailable. Please try again later."
FORECAST_FALLBACK = "Could not generate a forecast at this time."
ASSISTANT_FALLBACK = (
    "Sorry, I am having trouble connecting to my knowledge base right now. "
    "Please try again in a moment."
)

NOT_ENOUGH_DATA_LIMIT = "Not enough data"
NOT_ENOUGH_DATA_ALERTS = "Log some expenses before getting a forecast."

DEFAULT_SEASONAL_TRENDS = {"holidays": "none"}


# =============================================================================
# SNAPSHOT - What the model is allowed to see
# =============================================================================

class FixedExpenseSnapshot(BaseModel):
    name: str
    amount: float


class GoalSnapshot(BaseModel):
    name: str
    target_amount: float
    monthly_contribution: float
    timeline_months: Optional[int] = None


class ExpenseSnapshot(BaseModel):
    amount: float
    category: str
    date: str


class FinancialSnapshot(BaseModel):
    """
    Structured financial summary sent to the language model.

    Built from the session state by build_snapshot(). Floats are fine
    here: the snapshot is only ever rendered into a prompt.
    """

    role: str
    income: float
    fixed_expenses: list[FixedExpenseSnapshot] = Field(default_factory=list)
    goals: list[GoalSnapshot] = Field(default_factory=list)
    recent_expenses: list[ExpenseSnapshot] = Field(
        default_factory=list,
        description="Most recent transactions, newest first"
    )
    monthly_savings: float = 0.0
    daily_spending_limit: float = 0.0
    emergency_fund: float = 0.0


def build_snapshot(state: BudgetState, recent_limit: int = 30) -> FinancialSnapshot:
    """
    Build the AI snapshot from an onboarded state.

    Raises:
        ProfileRequiredError: if the user has not onboarded yet
    """
    profile = state.profile
    if profile is None:
        raise ProfileRequiredError(
            f"User {state.user_id} needs a profile before asking for advice"
        )

    return FinancialSnapshot(
        role=profile.role.value,
        income=float(profile.income),
        fixed_expenses=[
            FixedExpenseSnapshot(name=e.name, amount=float(e.amount))
            for e in profile.fixed_expenses
        ],
        goals=[
            GoalSnapshot(
                name=g.name,
                target_amount=float(g.target_amount),
                monthly_contribution=float(g.monthly_contribution),
                timeline_months=g.timeline_months,
            )
            for g in state.goals
        ],
        recent_expenses=[
            ExpenseSnapshot(
                amount=float(t.amount),
                category=t.category.value,
                date=t.date.isoformat(),
            )
            for t in state.transactions[:recent_limit]
        ],
        monthly_savings=float(profile.monthly_savings),
        daily_spending_limit=float(profile.daily_spending_limit),
        emergency_fund=float(profile.emergency_fund.current),
    )


# =============================================================================
# RESULTS
# =============================================================================

class ExpenseRecommendations(BaseModel):
    """Concrete, small expense cuts."""
    recommendations: list[str] = Field(..., min_length=1)
    used_fallback: bool = False

    @classmethod
    def fallback(cls) -> "ExpenseRecommendations":
        return cls(recommendations=[RECOMMENDATIONS_FALLBACK], used_fallback=True)


class SpendingAlerts(BaseModel):
    """One proactive alert about spending habits."""
    alerts: str = Field(..., min_length=1)
    used_fallback: bool = False

    @classmethod
    def fallback(cls) -> "SpendingAlerts":
        return cls(alerts=ALERTS_FALLBACK, used_fallback=True)


class SpendingForecast(BaseModel):
    """Forward-looking daily limit plus an alert."""
    predicted_limit: str = Field(..., min_length=1)
    alerts: str = Field(..., min_length=1)
    used_fallback: bool = False
    has_enough_data: bool = True

    @classmethod
    def fallback(cls) -> "SpendingForecast":
        return cls(
            predicted_limit=FORECAST_FALLBACK,
            alerts=ALERTS_FALLBACK,
            used_fallback=True,
        )

    @classmethod
    def not_enough_data(cls) -> "SpendingForecast":
        return cls(
            predicted_limit=NOT_ENOUGH_DATA_LIMIT,
            alerts=NOT_ENOUGH_DATA_ALERTS,
            has_enough_data=False,
        )


class AssistantReply(BaseModel):
    """Answer from the finance assistant."""
    response: str = Field(..., min_length=1)
    used_fallback: bool = False

    @classmethod
    def fallback(cls) -> "AssistantReply":
        return cls(response=ASSISTANT_FALLBACK, used_fallback=True)


# =============================================================================
# AGENT
# =============================================================================

class AdvisoryAgent:
    """
    Gemini-backed financial advisor.

    RESPONSIBILITIES:
    - Turn a FinancialSnapshot into advice, alerts and forecasts
    - Answer the user's questions about their own budget

    BOUNDARIES:
    - NEVER mutates budget state
    - NEVER raises: every failure becomes the flow's fallback payload
    - NEVER retries
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
        currency_symbol: str = "₹",
    ):
        """
        Args:
            model: Anything with an async generate_content_async(prompt).
                   If None, a Gemini GenerativeModel is configured on
                   first use, so a missing API key only turns the
                   advisory flows into their fallbacks.
            settings: Gemini settings. Defaults to the global settings.
            currency_symbol: Symbol used when rendering amounts in prompts.
        """
        self._model = model
        self._settings = settings
        self._currency = currency_symbol

    def _configure_genai(self):
        """Configure Google Generative AI."""
        settings = self._settings or get_settings().gemini
        genai.configure(api_key=settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )
        return self._model

    async def _generate_json(self, flow: str, prompt: str) -> Optional[dict]:
        """
        One model call, parsed as a JSON object.

        Returns None on any failure. The failure is logged here.
        """
        try:
            model = self._model or self._configure_genai()
            response = await model.generate_content_async(prompt)
            text = (response.text or "").strip()
            if not text:
                raise ValueError("AI model returned no output")

            start = text.find("{")
            end = text.rfind("}") + 1
            if start < 0 or end <= start:
                raise ValueError("AI model output contained no JSON object")

            data = json.loads(text[start:end])
            if not isinstance(data, dict):
                raise ValueError("AI model output was not a JSON object")
            return data
        except Exception as e:
            logger.warning(
                "advisory_call_failed",
                flow=flow,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    # -------------------------------------------------------------------------
    # Prompt helpers
    # -------------------------------------------------------------------------

    def _money(self, amount: float) -> str:
        return f"{self._currency}{amount:,.2f}"

    def _fixed_expenses_block(self, snapshot: FinancialSnapshot) -> str:
        if not snapshot.fixed_expenses:
            return "  (none)"
        return "\n".join(
            f"  - {e.name}: {self._money(e.amount)}" for e in snapshot.fixed_expenses
        )

    def _goals_block(self, snapshot: FinancialSnapshot) -> str:
        if not snapshot.goals:
            return "  (none)"
        lines = []
        for g in snapshot.goals:
            timeline = f" in {g.timeline_months} months" if g.timeline_months else ""
            lines.append(
                f"  - Save for '{g.name}' (Target: {self._money(g.target_amount)}{timeline}, "
                f"Monthly Contribution: {self._money(g.monthly_contribution)})"
            )
        return "\n".join(lines)

    def _expenses_block(self, snapshot: FinancialSnapshot) -> str:
        if not snapshot.recent_expenses:
            return "  (none)"
        return "\n".join(
            f"  - {e.date[:10]} | {e.category} | {self._money(e.amount)}"
            for e in snapshot.recent_expenses
        )

    # -------------------------------------------------------------------------
    # Flows
    # -------------------------------------------------------------------------

    async def get_expense_recommendations(
        self,
        snapshot: FinancialSnapshot,
    ) -> ExpenseRecommendations:
        """
        Suggest small, concrete expense cuts that help the user's goals.

        Never recommends earning more; only spending less.
        """
        prompt = f"""You are a personal finance advisor helping a user in India adjust their expenses to meet their financial goals.

Monthly income: {self._money(snapshot.income)}
Fixed expenses:
{self._fixed_expenses_block(snapshot)}
Financial goals:
{self._goals_block(snapshot)}
Recent expenses:
{self._expenses_block(snapshot)}
Daily discretionary spending limit: {self._money(snapshot.daily_spending_limit)}

Provide specific and actionable recommendations on how the user can adjust their expenses to better meet their goals.
- Only recommend feasible, small changes. Focus on the lowest hanging fruit.
- Do not recommend increasing income; only focus on decreasing expenses.
- Refer to the specific expenses listed above.
- Be concise and use the Indian context where possible.

Respond with ONLY a JSON object in this exact format:
{{"recommendations": ["first recommendation", "second recommendation"]}}"""

        data = await self._generate_json("expense_recommendations", prompt)
        if data is not None:
            try:
                raw = data.get("recommendations") or []
                if isinstance(raw, str):
                    raw = [raw]
                recommendations = [str(r).strip() for r in raw if str(r).strip()]
                return ExpenseRecommendations(recommendations=recommendations)
            except (ValidationError, TypeError) as e:
                logger.warning("advisory_output_invalid", flow="expense_recommendations", error=str(e))

        return ExpenseRecommendations.fallback()

    async def get_spending_alerts(
        self,
        snapshot: FinancialSnapshot,
    ) -> SpendingAlerts:
        """One friendly alert connecting a spending habit to a goal."""
        prompt = f"""You are Kwik Kash's proactive financial analyst. Analyze the user's spending habits and give one concise, actionable alert.

User's financial profile:
- Monthly income: {self._money(snapshot.income)}
- Financial goals:
{self._goals_block(snapshot)}

Recent spending history:
{self._expenses_block(snapshot)}

Your task:
1. Identify the top 1-2 categories where the user spends the most, and any unusually high spending.
2. Assess whether this spending is sustainable given the monthly contributions to their goals.
3. Write a single, friendly and encouraging alert that names a specific habit and its impact on a specific goal.

Good alert: "Your spending on 'Food & Dining' has been 20% higher than average this week. Scaling this back just a little could help you reach your 'New Laptop' goal faster!"
Bad alert: "You are spending too much money."

Respond with ONLY a JSON object in this exact format:
{{"alerts": "your alert"}}"""

        data = await self._generate_json("spending_alerts", prompt)
        if data is not None:
            try:
                return SpendingAlerts(alerts=str(data.get("alerts") or "").strip())
            except ValidationError as e:
                logger.warning("advisory_output_invalid", flow="spending_alerts", error=str(e))

        return SpendingAlerts.fallback()

    async def forecast_spending(
        self,
        snapshot: FinancialSnapshot,
        seasonal_trends: Optional[dict] = None,
    ) -> SpendingForecast:
        """
        Predict a safe daily limit for the coming week.

        Without any logged expenses there is nothing to forecast from;
        the model is not called.
        """
        if not snapshot.recent_expenses:
            return SpendingForecast.not_enough_data()

        trends = json.dumps(seasonal_trends or DEFAULT_SEASONAL_TRENDS)
        prompt = f"""You are Kwik Kash's proactive financial analyst. Analyze the user's spending, compare it against their income and goals, and give a forward-looking spending limit and an alert.

User's financial profile:
- Monthly income: {self._money(snapshot.income)}
- Current daily spending limit: {self._money(snapshot.daily_spending_limit)}
- Financial goals:
{self._goals_block(snapshot)}

Recent spending history:
{self._expenses_block(snapshot)}

Seasonal trends to consider (JSON):
{trends}

Your task:
1. Identify the top 3 spending categories and any unusually high spending days.
2. Assess whether current spending is sustainable given the goals' monthly contributions.
3. Recommend a safe daily spending limit for the upcoming week. This must be a specific amount.
4. Write one concise, actionable alert linking a spending habit to a goal.

Respond with ONLY a JSON object in this exact format:
{{"predicted_limit": "{self._currency}650 per day", "alerts": "your alert"}}"""

        data = await self._generate_json("spending_forecast", prompt)
        if data is not None:
            try:
                return SpendingForecast(
                    predicted_limit=str(
                        data.get("predicted_limit") or data.get("predictedLimit") or ""
                    ).strip(),
                    alerts=str(data.get("alerts") or "").strip(),
                )
            except ValidationError as e:
                logger.warning("advisory_output_invalid", flow="spending_forecast", error=str(e))

        return SpendingForecast.fallback()

    async def ask_assistant(
        self,
        query: str,
        snapshot: FinancialSnapshot,
    ) -> AssistantReply:
        """
        Answer a question about the user's own finances.

        Handles "what if" scenarios by working through the impact on the
        budget, and gives tips tailored to the user's role.
        """
        prompt = f"""You are a helpful AI assistant that gives financial advice, simulates spending scenarios and offers role-specific budgeting tips.

What you know about the user:
- Role: {snapshot.role}
- Monthly income: {self._money(snapshot.income)}
- Fixed expenses:
{self._fixed_expenses_block(snapshot)}
- Daily spending limit: {self._money(snapshot.daily_spending_limit)}
- Monthly savings: {self._money(snapshot.monthly_savings)}
- Emergency fund: {self._money(snapshot.emergency_fund)}

If the user asks to simulate a spending scenario, calculate its impact on their budget and savings.
If the user asks for budgeting tips, tailor them to a {snapshot.role}.
Only use the numbers above; do not invent other figures about the user.

User query: {query}

Respond with ONLY a JSON object in this exact format:
{{"response": "your answer"}}"""

        data = await self._generate_json("finance_assistant", prompt)
        if data is not None:
            try:
                return AssistantReply(response=str(data.get("response") or "").strip())
            except ValidationError as e:
                logger.warning("advisory_output_invalid", flow="finance_assistant", error=str(e))

        return AssistantReply.fallback()
