"""Exceptions raised by the scheduling engine and its collaborators."""
from __future__ import annotations


class TimelineError(Exception):
    """Base class for errors surfaced to the user."""


class RecurrenceValidationError(TimelineError, ValueError):
    """A repeat request is incomplete; nothing was generated."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class NoOccurrencesError(TimelineError):
    """A valid repeat request produced no new dates."""


class RecordStoreError(TimelineError):
    """The record store rejected a write."""


class DragStateError(TimelineError):
    """A drag session received an event that is illegal in its current state."""


class InvalidDateError(TimelineError, ValueError):
    pass
