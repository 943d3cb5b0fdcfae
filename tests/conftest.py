import os
import sys
from pathlib import Path

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'hasstates' and tests/ as 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from hasstates.core.state import MemoryStateStore, StateEngine, StateMachineRegistry
from helpers.cache_utils import reset_hasstates_caches


@pytest.fixture(autouse=True)
def _isolated_hasstates(tmp_path, monkeypatch):
    """Fresh caches and handler registries, config resolved under tmp_path.

    Developer shells may export HASSTATES_* overrides; they must never leak
    into test runs.
    """
    for key in list(os.environ):
        if key.startswith("HASSTATES_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HASSTATES_PROJECT_ROOT", str(tmp_path))
    reset_hasstates_caches()
    yield
    reset_hasstates_caches()


@pytest.fixture
def registry() -> StateMachineRegistry:
    return StateMachineRegistry()


@pytest.fixture
def store(registry) -> MemoryStateStore:
    return MemoryStateStore(registry.state_attribute_for)


@pytest.fixture
def engine(registry, store) -> StateEngine:
    return StateEngine(registry, store)


@pytest.fixture
def calls() -> list:
    """Ordered log that tracing callbacks append to."""
    return []
