from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class HasStatesError(Exception):
    """Base exception for the state machine engine."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class StateNotFound(HasStatesError, LookupError):
    """An unknown state was specified (not part of the owner's catalog)."""


class StateNotActive(HasStatesError, LookupError):
    """An inactive state was specified."""


class StateAlreadyActive(HasStatesError, ValueError):
    """A state has already been activated for the owner type."""


class EventNotFound(HasStatesError, LookupError):
    """An unknown event was specified (not part of the owner's catalog)."""


class EventNotActive(HasStatesError, LookupError):
    """An inactive event was specified."""


class EventAlreadyActive(StateAlreadyActive):
    """An event has already been activated for the owner type."""


class NoInitialState(HasStatesError, ValueError):
    """No initial state was specified for the machine."""


class MachineNotDefined(HasStatesError, LookupError):
    """The owner type has no state machine."""


class MachineAlreadyDefined(HasStatesError, ValueError):
    """The owner type already has a state machine."""


class RegistryFrozen(HasStatesError, RuntimeError):
    """Raised when a frozen registry is asked to change."""


class UnknownHandler(HasStatesError, LookupError):
    """A named guard or action could not be resolved."""


class MachineSpecError(HasStatesError, ValueError):
    """A declarative machine definition is malformed."""


class ConcurrentTransitionConflict(HasStatesError, RuntimeError):
    """The persisted state diverged from the state observed at selection time."""

    def __init__(
        self,
        message: str = "",
        *,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        ctx.setdefault("expected", expected)
        ctx.setdefault("actual", actual)
        super().__init__(message, context=ctx)
        self.expected = expected
        self.actual = actual


__all__ = [
    "HasStatesError",
    "StateNotFound",
    "StateNotActive",
    "StateAlreadyActive",
    "EventNotFound",
    "EventNotActive",
    "EventAlreadyActive",
    "NoInitialState",
    "MachineNotDefined",
    "MachineAlreadyDefined",
    "RegistryFrozen",
    "UnknownHandler",
    "MachineSpecError",
    "ConcurrentTransitionConflict",
]
