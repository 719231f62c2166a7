"""Exceptions raised by the scheduling engine."""

from __future__ import annotations


class SchedulingError(Exception):
    """Base class for engine errors."""


class InvalidExpression(SchedulingError):
    """A recurrence expression (or its timezone) could not be parsed."""

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(f"Invalid recurrence expression {expression!r}: {reason}")
        self.expression = expression
        self.reason = reason


class MissingConfiguration(SchedulingError):
    """A required setting is absent or unusable."""


class NotFound(SchedulingError):
    """A referenced expression, event, issue or venue does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier
