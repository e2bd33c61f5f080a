"""Errors raised while evaluating a group selection.

Absence of a prior enrollment, a COBRA seed or a selected date is not an
error; those surface as empty fields on the result.
"""

from __future__ import annotations

from typing import Any


class GroupSelectionError(Exception):
    """Base error carrying the identifiers involved in the failed lookup."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = {k: v for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        message = super().__str__()
        if not self.context:
            return message
        details = ", ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{message} ({details})"


class NotFoundError(GroupSelectionError):
    """A referenced person, family, employer or enrollment does not exist."""


class CoveragePeriodNotFoundError(NotFoundError):
    """No benefit coverage period contains the requested date."""


class NoEligibleRoleError(GroupSelectionError):
    """The person has no active role for the requested (or any) market."""


class AmbiguousMarketError(NoEligibleRoleError):
    """The person can shop more than one market and no market was given."""


class NoMatchingAssignmentError(GroupSelectionError):
    """The benefit group has no active, renewal or eligible expired assignment."""


class EffectiveDateParseError(GroupSelectionError, ValueError):
    """A user-selected effective date is not in MM/DD/YYYY form."""
