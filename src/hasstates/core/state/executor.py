"""Applies one selected transition to one record.

Execution order (fixed):

1. ``before_exit`` callbacks of the from-state
2. ``before_enter`` callbacks of the to-state
3. ``before`` callbacks of the event
4. conditional write of the new state
5. state change record
6. ``after_exit`` (from-state), ``after_enter`` (to-state), ``after`` (event)

Everything runs inside one atomic unit of the store. When any step raises,
the unit is rolled back (the record's state slot included, to the exact
value it held before) and the exception propagates unchanged.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from ..audit import audit_event
from ..config.domains import LoggingConfig
from ..exceptions import ConcurrentTransitionConflict
from ..utils.time import utc_now
from .callbacks import EventPhase, StatePhase
from .machine import MachineDefinition
from .model import Event, State
from .outcome import FireOutcome
from .recorder import StateChange, recorder_for
from .store import StateStore

logger = logging.getLogger(__name__)


def _record_id(record: Any) -> Any:
    return getattr(record, "id", None)


class TransitionExecutor:
    def __init__(self, store: StateStore, *, repo_root: Optional[Path] = None) -> None:
        self.store = store
        self.repo_root = repo_root
        self._logging: Optional[LoggingConfig] = None

    @property
    def logging_config(self) -> LoggingConfig:
        """Audit settings, loaded on first use and kept for the executor's lifetime."""
        if self._logging is None:
            self._logging = LoggingConfig(repo_root=self.repo_root)
        return self._logging

    def audit(self, name: str, **fields: Any) -> None:
        try:
            config = self.logging_config
        except (OSError, ValueError, RuntimeError):
            return
        audit_event(name, repo_root=self.repo_root, config=config, **fields)

    # ---------- callbacks ----------
    def _run_method(self, machine: MachineDefinition, record: Any, name: str, args: Tuple[Any, ...], kwargs: Mapping[str, Any]) -> None:
        # before_enter_<state>, after_<event>, ... defined on the record type
        if not machine.method_callbacks:
            return
        method = getattr(record, name, None)
        if callable(method):
            method(*args, **kwargs)

    def run_state_callbacks(self, machine: MachineDefinition, record: Any, state: State, phase: StatePhase) -> None:
        self._run_method(machine, record, f"{phase.value}_{state.name}", (), {})
        for callback in state.callbacks_for(phase):
            callback.run(record)

    def run_event_callbacks(
        self,
        machine: MachineDefinition,
        record: Any,
        event: Event,
        phase: EventPhase,
        args: Tuple[Any, ...] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
    ) -> None:
        kwargs = kwargs or {}
        self._run_method(machine, record, f"{phase.value}_{event.name}", args, kwargs)
        for callback in event.callbacks_for(phase):
            callback.run(record, args, kwargs)

    # ---------- execution ----------
    def _restore_slot(self, record: Any, observed: Any) -> None:
        # Callbacks may write the slot directly, outside the store's journal.
        if self.store.read_current_state(record) != observed:
            self.store.assign_state(record, observed)

    def execute(
        self,
        machine: MachineDefinition,
        record: Any,
        from_state: State,
        to_state: State,
        event: Event,
        args: Tuple[Any, ...] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
    ) -> FireOutcome:
        """Run the transition ``from_state -> to_state`` for ``event``.

        Raises:
            ConcurrentTransitionConflict: The persisted state moved meanwhile
            Exception: Whatever a callback raised, after rollback
        """
        store = self.store
        recorder = recorder_for(machine, store)
        fields = {
            "owner": machine.name,
            "record_id": _record_id(record),
            "event_name": event.name,
            "from_state": from_state.name,
            "to_state": to_state.name,
        }
        observed = store.read_current_state(record)
        try:
            with store.atomic():
                self.run_state_callbacks(machine, record, from_state, StatePhase.BEFORE_EXIT)
                self.run_state_callbacks(machine, record, to_state, StatePhase.BEFORE_ENTER)
                self.run_event_callbacks(machine, record, event, EventPhase.BEFORE, args, kwargs)

                store.conditional_write_state(record, from_state.name, to_state.name)
                recorder.append(
                    record,
                    StateChange(
                        owner=machine.owner,
                        record_id=_record_id(record),
                        from_state=from_state.name,
                        to_state=to_state.name,
                        event=event.name,
                        occurred_at=utc_now(self.repo_root),
                    ),
                )

                self.run_state_callbacks(machine, record, from_state, StatePhase.AFTER_EXIT)
                self.run_state_callbacks(machine, record, to_state, StatePhase.AFTER_ENTER)
                self.run_event_callbacks(machine, record, event, EventPhase.AFTER, args, kwargs)
        except ConcurrentTransitionConflict as exc:
            self._restore_slot(record, observed)
            logger.debug("Conflict firing %s on %s: %s", event.name, machine.name, exc)
            self.audit("transition.conflict", actual=exc.actual, **fields)
            raise
        except BaseException as exc:
            self._restore_slot(record, observed)
            logger.debug("Rolled back %s on %s: %s", event.name, machine.name, exc)
            self.audit("transition.rolled_back", error=type(exc).__name__, **fields)
            raise

        logger.debug(
            "%s %r: %s -> %s (%s)",
            machine.name,
            _record_id(record),
            from_state.name,
            to_state.name,
            event.name,
        )
        self.audit("transition.applied", **fields)
        return FireOutcome.applied(event.name, from_state.name, to_state.name)


__all__ = ["TransitionExecutor"]
