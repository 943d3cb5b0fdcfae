"""
hasstates - finite state machines for stateful records

Records move between named states only through events. Transitions are
guarded, wrapped in enter/exit callbacks, applied atomically through a
storage collaborator and optionally recorded as an append-only history.
"""

__version__ = "0.4.0"
__all__ = ["__version__"]
