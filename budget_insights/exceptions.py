"""Errors raised by the budget utilization engine."""

from __future__ import annotations


class InvalidBudgetInputError(ValueError):
    """Raised when an input record cannot be analysed.

    Missing dates, zero quantities and empty event lists are normal for a
    new plan and never raise. This error is reserved for values that make
    the analysis meaningless: negative quantities or prices, a reference
    time before the plan was created, or host records that cannot be
    converted.
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field
