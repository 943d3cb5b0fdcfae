"""Firing events, initial-state bootstrap and read-only queries.

:class:`StateEngine` ties a :class:`StateMachineRegistry` to a
:class:`StateStore`:

    engine = StateEngine(registry, MemoryStateStore(registry.state_attribute_for))
    engine.create(car)                     # -> "parked"
    outcome = engine.fire(car, "ignite")   # FireOutcome(APPLIED, ...)
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, List, Optional

from ..config.domains import EngineConfig
from ..exceptions import ConcurrentTransitionConflict
from ..utils.time import utc_now
from .callbacks import StatePhase
from .executor import TransitionExecutor
from .machine import MachineDefinition
from .model import Transition
from .outcome import FireOutcome
from .recorder import StateChange, recorder_for
from .registry import StateMachineRegistry
from .store import MemoryStateStore, StateStore

logger = logging.getLogger(__name__)

# Slot values that mean "no state assigned yet"
_UNSET = (None, "", 0)


def is_unset(value: Any) -> bool:
    return value is None or (not isinstance(value, bool) and value in _UNSET)


class StateEngine:
    """Runs the machines of ``registry`` against records held by ``store``."""

    def __init__(
        self,
        registry: StateMachineRegistry,
        store: Optional[StateStore] = None,
        *,
        config: Optional[EngineConfig] = None,
        repo_root: Optional[Path] = None,
    ) -> None:
        self.registry = registry
        self.store: StateStore = store if store is not None else MemoryStateStore(registry.state_attribute_for)
        self.repo_root = repo_root
        self._config = config
        self.executor = TransitionExecutor(self.store, repo_root=repo_root)

    @property
    def config(self) -> EngineConfig:
        if self._config is None:
            self._config = EngineConfig(repo_root=self.repo_root)
        return self._config

    def machine_for(self, record: Any) -> MachineDefinition:
        return self.registry.machine_for(type(record))

    # ---------- state reads ----------
    def initial_state_name(self, record: Any) -> str:
        return self.machine_for(record).initial_state_for(record)

    def current_state_name(self, record: Any) -> Optional[str]:
        """The record's state; the initial state for a new record with none."""
        value = self.store.read_current_state(record)
        if is_unset(value) and not self.store.is_persisted(record):
            return self.initial_state_name(record)
        return value

    def is_in_state(self, record: Any, name: str) -> bool:
        """Whether ``record`` is in state ``name``.

        Raises:
            StateNotActive: ``name`` is not an active state of the record's type
        """
        self.machine_for(record).state(name)
        return self.current_state_name(record) == name

    def count_in_state(self, owner: type, *names: str) -> int:
        """Number of persisted ``owner`` records in any of ``names``."""
        machine = self.registry.machine_for(owner)
        for name in names:
            machine.state(name)
        return self.store.count_in_state(owner, names)

    # ---------- introspection ----------
    def possible_transitions(self, record: Any, event_name: str) -> List[Transition]:
        """Transitions of ``event_name`` that could fire right now, in order."""
        event = self.machine_for(record).event(event_name)
        return event.possible_transitions_from(record, self.current_state_name(record))

    def next_state_for_event(self, record: Any, event_name: str) -> Optional[str]:
        """State ``event_name`` would move the record to, or None."""
        event = self.machine_for(record).event(event_name)
        transition = event.select(record, self.current_state_name(record))
        return transition.to_state if transition else None

    def next_states_for_event(self, record: Any, event_name: str) -> List[str]:
        seen: dict[str, None] = {}
        for transition in self.possible_transitions(record, event_name):
            seen.setdefault(transition.to_state, None)
        return list(seen)

    # ---------- firing ----------
    def fire(self, record: Any, event_name: str, *args: Any, **kwargs: Any) -> FireOutcome:
        """Fire ``event_name`` on ``record``.

        Returns a ``NO_MATCH`` outcome, without side effects, when no
        transition is eligible from the current state.

        Raises:
            MachineNotDefined: The record's type has no machine
            EventNotActive: ``event_name`` is not active for the record's type
            StateNotActive: The record's current state is not active
            ConcurrentTransitionConflict: The persisted state changed meanwhile
        """
        machine = self.machine_for(record)
        event = machine.event(event_name)
        current = self.current_state_name(record)
        from_state = machine.state(current)

        transition = event.select(record, from_state.name)
        if transition is None:
            logger.debug("%s %r: no transition for %s from %s", machine.name, getattr(record, "id", None), event_name, current)
            self.executor.audit(
                "transition.no_match",
                owner=machine.name,
                record_id=getattr(record, "id", None),
                event_name=event_name,
                from_state=current,
            )
            return FireOutcome.no_match(event_name, current)

        to_state = machine.state(transition.to_state)
        return self.executor.execute(machine, record, from_state, to_state, event, args, kwargs)

    def attempt(self, record: Any, event_name: str, *args: Any, **kwargs: Any) -> FireOutcome:
        """Like :meth:`fire` but reports errors as ``REJECTED`` outcomes."""
        try:
            return self.fire(record, event_name, *args, **kwargs)
        except Exception as exc:
            logger.debug("Firing %s rejected: %s", event_name, exc)
            state = self.store.read_current_state(record)
            return FireOutcome.rejected(event_name, state, exc)

    def fire_with_retry(
        self,
        record: Any,
        event_name: str,
        *args: Any,
        attempts: Optional[int] = None,
        **kwargs: Any,
    ) -> FireOutcome:
        """Fire, re-reading the persisted state and retrying on conflicts.

        Backoff follows ``engine.conflict_retry``. Other errors are not
        retried. The last conflict propagates.

        Raises:
            ValueError: ``attempts`` is less than 1
        """
        if attempts is not None and attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {attempts}")
        policy = self.config.conflict_retry
        max_attempts = attempts if attempts is not None else policy.max_attempts
        delay = policy.initial_delay
        for attempt in range(1, max_attempts + 1):
            try:
                return self.fire(record, event_name, *args, **kwargs)
            except ConcurrentTransitionConflict as exc:
                if attempt == max_attempts:
                    logger.error("Firing %s failed after %d attempts", event_name, max_attempts)
                    raise
                logger.warning("Firing %s attempt %d/%d conflicted: %s", event_name, attempt, max_attempts, exc)
                if delay > 0:
                    time.sleep(delay)
                delay = min(delay * policy.backoff_factor, policy.max_delay)
                self.store.refresh_state(record)

        raise RuntimeError("Unreachable")  # pragma: no cover

    # ---------- bootstrap ----------
    def assign_initial_state(self, record: Any) -> str:
        """Give a record without a state its initial state.

        Raises:
            StateNotActive: The initial state is not an active state
        """
        machine = self.machine_for(record)
        current = self.store.read_current_state(record)
        if not is_unset(current):
            return current
        name = machine.state(machine.initial_state_for(record)).name
        self.store.assign_state(record, name)
        return name

    def run_initial_state_actions(self, record: Any) -> bool:
        """Enter the initial state of a newly persisted record.

        Runs the initial state's ``after_enter`` callbacks and records the
        initial state change, once: nothing happens when the record already
        has state changes. Returns whether the actions ran.

        Machines with ``record_changes=False`` leave no state change behind,
        so nothing marks a previous run: every call runs the callbacks again.
        Call it once per record, right after insertion, as :meth:`create` does.
        """
        store = self.store
        if store.has_state_changes(record):
            return False
        machine = self.machine_for(record)
        state = machine.state(machine.initial_state_for(record))
        with store.atomic():
            self.executor.run_state_callbacks(machine, record, state, StatePhase.AFTER_ENTER)
            recorder_for(machine, store).append(
                record,
                StateChange(
                    owner=machine.owner,
                    record_id=getattr(record, "id", None),
                    from_state=None,
                    to_state=state.name,
                    event=None,
                    occurred_at=utc_now(self.repo_root),
                ),
            )
        self.executor.audit(
            "state.initialized",
            owner=machine.name,
            record_id=getattr(record, "id", None),
            to_state=state.name,
        )
        return True

    def create(self, record: Any) -> Any:
        """Assign the initial state, insert the record and enter the state.

        Requires a store with an ``insert(record)`` method.
        """
        insert = getattr(self.store, "insert", None)
        if insert is None:
            raise TypeError(f"{type(self.store).__name__} cannot insert records")
        with self.store.atomic():
            self.assign_initial_state(record)
            insert(record)
            self.run_initial_state_actions(record)
        return record


__all__ = ["StateEngine", "is_unset"]
