"""State machine engine: definitions, registry, execution and storage contract."""
from .callbacks import (
    EVENT_PHASES,
    STATE_PHASES,
    Callback,
    CallableAction,
    EventPhase,
    NamedAction,
    StatePhase,
    as_action,
)
from .engine import StateEngine
from .executor import TransitionExecutor
from .handlers import (
    HandlerRegistry,
    action_registry,
    guard_registry,
    register_action,
    register_guard,
)
from .loader import load_machines, read_machines, validate_machines
from .machine import MachineDefinition
from .model import Catalog, Event, State, Transition
from .outcome import FireOutcome, FireStatus
from .predicates import (
    ALWAYS,
    NEVER,
    CallablePredicate,
    Constant,
    Guard,
    NamedPredicate,
    Predicate,
    as_predicate,
)
from .recorder import NullRecorder, StateChange, StateChangeRecorder, recorder_for
from .registry import EventBuilder, MachineBuilder, StateMachineRegistry
from .store import MemoryStateStore, StateStore

__all__ = [
    "EVENT_PHASES",
    "STATE_PHASES",
    "Callback",
    "CallableAction",
    "EventPhase",
    "NamedAction",
    "StatePhase",
    "as_action",
    "StateEngine",
    "TransitionExecutor",
    "HandlerRegistry",
    "action_registry",
    "guard_registry",
    "register_action",
    "register_guard",
    "load_machines",
    "read_machines",
    "validate_machines",
    "MachineDefinition",
    "Catalog",
    "Event",
    "State",
    "Transition",
    "FireOutcome",
    "FireStatus",
    "ALWAYS",
    "NEVER",
    "CallablePredicate",
    "Constant",
    "Guard",
    "NamedPredicate",
    "Predicate",
    "as_predicate",
    "NullRecorder",
    "StateChange",
    "StateChangeRecorder",
    "recorder_for",
    "EventBuilder",
    "MachineBuilder",
    "StateMachineRegistry",
    "MemoryStateStore",
    "StateStore",
]
