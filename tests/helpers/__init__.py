"""Test helper modules for the hasstates test suite.

- records: plain record classes used as machine owners
- machines: builders for the vehicle machine used across tests
- cache_utils: cache and registry reset for test isolation
- io_utils: YAML writers for config and machine files
"""
