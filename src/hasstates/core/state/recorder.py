"""State change history."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

if TYPE_CHECKING:
    from .machine import MachineDefinition
    from .store import StateStore


@dataclass(frozen=True)
class StateChange:
    """One applied transition of one record.

    ``from_state`` and ``event`` are None only for the change written when a
    record enters its initial state.
    """

    owner: type
    record_id: Any
    from_state: Optional[str]
    to_state: str
    event: Optional[str]
    occurred_at: datetime

    @property
    def is_initial(self) -> bool:
        return self.from_state is None and self.event is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner.__name__,
            "record_id": self.record_id,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "event": self.event,
            "occurred_at": self.occurred_at.isoformat(),
        }


class Recorder(Protocol):
    def append(self, record: Any, change: StateChange) -> None:
        ...


class StateChangeRecorder:
    """Appends changes through the store, inside its current atomic unit."""

    def __init__(self, store: "StateStore") -> None:
        self.store = store

    def append(self, record: Any, change: StateChange) -> None:
        self.store.append_state_change(record, change)


class NullRecorder:
    """Recorder for machines defined with ``record_changes=False``."""

    def append(self, record: Any, change: StateChange) -> None:
        return None


def recorder_for(machine: "MachineDefinition", store: "StateStore") -> Recorder:
    if machine.record_changes:
        return StateChangeRecorder(store)
    return NullRecorder()


__all__ = ["StateChange", "Recorder", "StateChangeRecorder", "NullRecorder", "recorder_for"]
