"""Record classes used as machine owners in tests."""
from __future__ import annotations

from typing import Any, Optional


class Record:
    """Minimal stateful record: an ``id`` and a ``state`` slot."""

    def __init__(self, id: Any = None, state: Optional[str] = None, **attrs: Any) -> None:
        self.id = id
        self.state = state
        for key, value in attrs.items():
            setattr(self, key, value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r} state={self.state!r}>"


class Vehicle(Record):
    seatbelt_on = True
    auto_shop_busy = False


class Car(Vehicle):
    pass


class Motorcycle(Vehicle):
    pass


class Switch(Record):
    """Record keeping its state in ``status`` instead of ``state``."""

    def __init__(self, id: Any = None, status: Optional[str] = None) -> None:
        super().__init__(id=id)
        del self.state
        self.status = status


def copy_of(record: Record) -> Record:
    """A second in-memory instance of the same persisted record."""
    clone = type(record).__new__(type(record))
    clone.__dict__.update(record.__dict__)
    return clone
