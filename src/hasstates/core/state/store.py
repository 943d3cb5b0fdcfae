"""Storage contract and an in-memory implementation.

The engine never persists anything itself. It talks to a :class:`StateStore`
that owns the record's state slot, the persisted state, the change history
and transactions. :class:`MemoryStateStore` is the reference implementation
used by tests and by hosts that keep records in memory.
"""
from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, ContextManager, Dict, Iterable, Iterator, List, Optional, Protocol, Set, Tuple, Union

from ..exceptions import ConcurrentTransitionConflict
from .recorder import StateChange

logger = logging.getLogger(__name__)

_Key = Tuple[type, Any]
_Undo = Callable[[], None]


class StateStore(Protocol):
    def read_current_state(self, record: Any) -> Optional[str]:
        ...

    def assign_state(self, record: Any, name: Optional[str]) -> None:
        ...

    def conditional_write_state(self, record: Any, expected_from: Optional[str], to: str) -> None:
        ...

    def atomic(self) -> ContextManager[Any]:
        ...

    def append_state_change(self, record: Any, change: StateChange) -> None:
        ...

    def has_state_changes(self, record: Any) -> bool:
        ...

    def is_persisted(self, record: Any) -> bool:
        ...

    def refresh_state(self, record: Any) -> None:
        ...

    def count_in_state(self, owner: type, names: Iterable[str]) -> int:
        ...


class _Unit:
    """Uncommitted writes of one thread's outermost :meth:`MemoryStateStore.atomic` block."""

    def __init__(self) -> None:
        self.rows: Dict[_Key, Optional[str]] = {}
        self.changes: List[StateChange] = []
        self.undo: List[_Undo] = []
        self.claims: Set[_Key] = set()

    def mark(self) -> Tuple[int, Dict[_Key, Optional[str]], int]:
        return len(self.undo), dict(self.rows), len(self.changes)

    def rollback_to(self, mark: Tuple[int, Dict[_Key, Optional[str]], int]) -> int:
        undo_at, rows, changes_at = mark
        steps = self.undo[undo_at:]
        del self.undo[undo_at:]
        for step in reversed(steps):
            step()
        self.rows = rows
        del self.changes[changes_at:]
        return len(steps)


class MemoryStateStore:
    """Thread-safe in-memory store.

    The persisted state of each record lives in a row keyed by
    ``(type(record), record.id)``. Writes made inside :meth:`atomic` are
    staged for the calling thread and published when the outermost block
    exits normally; until then other threads keep seeing the committed
    rows and history. Nested blocks behave like savepoints. Writes outside
    any block commit at once.

    ``conditional_write_state`` is a compare-and-swap against the row as
    the caller sees it. A row written by an open unit is claimed by it:
    other threads get :class:`ConcurrentTransitionConflict` until that unit
    commits or rolls back.

    Args:
        state_attribute: Record attribute holding the state, or a callable
            mapping the owner type to that attribute name (for example
            ``registry.state_attribute_for``).
    """

    def __init__(self, state_attribute: Union[str, Callable[[type], str]] = "state") -> None:
        self._state_attribute = state_attribute
        self._rows: Dict[_Key, Optional[str]] = {}
        self._changes: List[StateChange] = []
        self._claims: Dict[_Key, _Unit] = {}
        self._lock = threading.Lock()
        self._local = threading.local()
        self._ids = itertools.count(1)

    # ---------- helpers ----------
    def attribute_for(self, owner: type) -> str:
        if callable(self._state_attribute):
            return self._state_attribute(owner)
        return self._state_attribute

    @staticmethod
    def _key(record: Any) -> _Key:
        return (type(record), getattr(record, "id", None))

    def _unit(self) -> Optional[_Unit]:
        return getattr(self._local, "unit", None)

    @property
    def in_atomic(self) -> bool:
        return self._unit() is not None

    def _visible_rows(self) -> Dict[_Key, Optional[str]]:
        # Caller holds the lock.
        unit = self._unit()
        if unit is None or not unit.rows:
            return self._rows
        return {**self._rows, **unit.rows}

    def _visible_changes(self) -> List[StateChange]:
        # Caller holds the lock.
        unit = self._unit()
        if unit is None or not unit.changes:
            return self._changes
        return [*self._changes, *unit.changes]

    def _claim(self, key: _Key, unit: _Unit) -> Optional[_Unit]:
        """Claim ``key`` for ``unit``; returns the other unit holding it, if any."""
        holder = self._claims.get(key)
        if holder is not None and holder is not unit:
            return holder
        self._claims[key] = unit
        unit.claims.add(key)
        return None

    # ---------- transactions ----------
    @contextmanager
    def atomic(self) -> Iterator["MemoryStateStore"]:
        """Commit on success, undo this block's writes on error."""
        unit = self._unit()
        outermost = unit is None
        if unit is None:
            unit = _Unit()
            self._local.unit = unit
        mark = unit.mark()
        try:
            yield self
        except BaseException:
            undone = unit.rollback_to(mark)
            logger.debug("Rolled back %d slot write(s)", undone)
            raise
        else:
            if outermost:
                self._commit(unit)
        finally:
            if outermost:
                self._local.unit = None
                self._release(unit)

    @contextmanager
    def _writing(self) -> Iterator[_Unit]:
        with self.atomic():
            yield self._local.unit

    def _commit(self, unit: _Unit) -> None:
        with self._lock:
            self._rows.update(unit.rows)
            self._changes.extend(unit.changes)

    def _release(self, unit: _Unit) -> None:
        with self._lock:
            for key in unit.claims:
                if self._claims.get(key) is unit:
                    del self._claims[key]
        unit.claims.clear()

    # ---------- state slot ----------
    def read_current_state(self, record: Any) -> Optional[str]:
        return getattr(record, self.attribute_for(type(record)), None)

    def assign_state(self, record: Any, name: Optional[str]) -> None:
        attribute = self.attribute_for(type(record))
        previous = getattr(record, attribute, None)
        setattr(record, attribute, name)
        unit = self._unit()
        if unit is not None:
            unit.undo.append(lambda: setattr(record, attribute, previous))

    def conditional_write_state(self, record: Any, expected_from: Optional[str], to: str) -> None:
        """Move the persisted state from ``expected_from`` to ``to``.

        Records that were never inserted only have their slot updated.

        Raises:
            ConcurrentTransitionConflict: The persisted state is not
                ``expected_from``, or another unit is writing the record
        """
        key = self._key(record)
        with self._writing() as unit:
            with self._lock:
                rows = self._visible_rows()
                if key in rows:
                    actual = rows[key]
                    context = {"owner": key[0].__name__, "record_id": key[1], "to": to}
                    if actual != expected_from:
                        raise ConcurrentTransitionConflict(
                            f"{key[0].__name__} {key[1]!r} is in {actual!r}, expected {expected_from!r}",
                            expected=expected_from,
                            actual=actual,
                            context=context,
                        )
                    if self._claim(key, unit) is not None:
                        raise ConcurrentTransitionConflict(
                            f"{key[0].__name__} {key[1]!r} has an uncommitted transition",
                            expected=expected_from,
                            actual=actual,
                            context=context,
                        )
                    unit.rows[key] = to
            self.assign_state(record, to)

    def refresh_state(self, record: Any) -> None:
        """Reload the slot from the persisted state (committed, or this thread's own writes)."""
        key = self._key(record)
        with self._lock:
            rows = self._visible_rows()
            if key not in rows:
                return
            value = rows[key]
        self.assign_state(record, value)

    # ---------- persistence ----------
    def insert(self, record: Any) -> Any:
        """Persist ``record``, giving it an ``id`` when it has none."""
        if getattr(record, "id", None) is None:
            record.id = next(self._ids)
        key = self._key(record)
        with self._writing() as unit:
            with self._lock:
                if key in self._visible_rows() or self._claim(key, unit) is not None:
                    raise ValueError(f"{key[0].__name__} {key[1]!r} is already persisted")
                unit.rows[key] = self.read_current_state(record)
        return record

    def is_persisted(self, record: Any) -> bool:
        with self._lock:
            return self._key(record) in self._visible_rows()

    def persisted_state(self, record: Any) -> Optional[str]:
        with self._lock:
            return self._visible_rows().get(self._key(record))

    def count_in_state(self, owner: type, names: Iterable[str]) -> int:
        wanted = set(names)
        with self._lock:
            rows = self._visible_rows()
            return sum(1 for (kind, _), state in rows.items() if kind is owner and state in wanted)

    # ---------- history ----------
    def append_state_change(self, record: Any, change: StateChange) -> None:
        with self._writing() as unit:
            unit.changes.append(change)

    def history_of(self, record: Any) -> List[StateChange]:
        owner, record_id = self._key(record)
        with self._lock:
            return [c for c in self._visible_changes() if c.owner is owner and c.record_id == record_id]

    def has_state_changes(self, record: Any) -> bool:
        return bool(self.history_of(record))


__all__ = ["StateStore", "MemoryStateStore"]
