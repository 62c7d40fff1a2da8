"""
Kwik Kash - Source Package

A personal budgeting assistant: onboard with income and fixed expenses,
get a needs/wants/savings split and a daily spending limit, log daily
spending, save towards goals and an emergency fund, and ask an AI
advisor for tips and forecasts.

DESIGN PRINCIPLES:
1. The budget is derived, never edited
2. Validate at the boundary, before any ledger is touched
3. Write through after every mutation; a failed write never loses the session
4. AI advice degrades to a fixed fallback, never to a crash
5. Every step must be auditable
6. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Kwik Kash Team"
