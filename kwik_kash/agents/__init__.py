"""AI Agents package."""

from kwik_kash.agents.ai_agents import (
    ALERTS_FALLBACK,
    ASSISTANT_FALLBACK,
    FORECAST_FALLBACK,
    RECOMMENDATIONS_FALLBACK,
    AdvisoryAgent,
    AssistantReply,
    ExpenseRecommendations,
    FinancialSnapshot,
    SpendingAlerts,
    SpendingForecast,
    build_snapshot,
)

__all__ = [
    "ALERTS_FALLBACK",
    "ASSISTANT_FALLBACK",
    "FORECAST_FALLBACK",
    "RECOMMENDATIONS_FALLBACK",
    "AdvisoryAgent",
    "AssistantReply",
    "ExpenseRecommendations",
    "FinancialSnapshot",
    "SpendingAlerts",
    "SpendingForecast",
    "build_snapshot",
]
