"""
Validation Package

Two-stage validation of user input before it reaches the ledgers.
"""

from kwik_kash.validation.validator import InputValidator, ValidationFailedError

__all__ = [
    "InputValidator",
    "ValidationFailedError",
]
