# src/dayline/core/errors.py

from __future__ import annotations

from dataclasses import dataclass


class DaylineError(Exception):
    """Base class for errors raised inside dayline (never escapes the service layer)."""


class NotAuthenticatedError(DaylineError):
    """No authenticated user in the current session."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class StoreError(DaylineError):
    """The backing store broke one of its own invariants."""


@dataclass(slots=True)
class ErrorSlot:
    """
    Last user-visible error message, shared by the services of one session.

    Display only: callers must not branch on it.
    """

    message: str | None = None

    def set(self, message: str) -> None:
        self.message = message

    def clear(self) -> None:
        self.message = None
