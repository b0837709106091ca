"""Exception hierarchy for consistent error handling.

All engine exceptions inherit from PonderError. Ordinary "no match" and
stage validation outcomes are never raised; these exceptions mark
programmer errors, misconfiguration and failing middleware.
"""

from typing import Any


class PonderError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(PonderError):
    """Raised when a configuration key is unknown or invalid."""


class ConditionError(PonderError):
    """Raised when a text condition cannot be converted to an expression."""


class NLUCriteriaError(PonderError):
    """Raised when NLU criteria cannot be evaluated against results."""


class SequenceError(PonderError):
    """Raised when starting an unknown thought sequence."""

    def __init__(self, message: str, sequence: str | None = None) -> None:
        super().__init__(message)
        self.sequence = sequence


class AdapterError(PonderError):
    """Raised when an adapter is missing or of the wrong kind."""

    def __init__(self, message: str, kind: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind


class DialogueError(PonderError):
    """Raised when a dialogue is used before being bound to a state."""

    def __init__(self, message: str, dialogue_id: str | None = None) -> None:
        super().__init__(message)
        self.dialogue_id = dialogue_id


class MiddlewareError(PonderError):
    """Raised when a middleware piece fails.

    Wraps the original exception (available as ``__cause__``) with the
    name of the stack and the state being processed.
    """

    def __init__(self, message: str, stack: str, state: Any = None) -> None:
        super().__init__(message)
        self.stack = stack
        self.state = state
