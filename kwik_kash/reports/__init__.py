"""
Reports Package

Read-only aggregates over a BudgetState.
"""

from kwik_kash.reports.dashboard import (
    CategoryTotal,
    DashboardSummary,
    DeadlineSummary,
    build_dashboard,
)

__all__ = [
    "CategoryTotal",
    "DashboardSummary",
    "DeadlineSummary",
    "build_dashboard",
]
