"""Core engine: state machines, configuration, audit, schemas."""
