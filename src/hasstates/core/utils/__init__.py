"""Shared helpers for configuration, time and file I/O."""
