# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, List

import pytest

from statekeeper.core.storage import MemoryStorage
from statekeeper.core.store import StateStore
from statekeeper.persistence.middleware import PersistenceMiddleware


def pytest_configure(config):
    """Register custom marks."""
    config.addinivalue_line("markers", "property: mark test as a property-based test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


class ErrorCollector:
    """Error handler that records every reported error."""

    def __init__(self) -> None:
        self.errors: List[BaseException] = []

    def __call__(self, error: BaseException) -> None:
        self.errors.append(error)


class Recorder:
    """Listener that records every value it receives."""

    def __init__(self) -> None:
        self.calls: List[Any] = []

    def __call__(self, value: Any) -> None:
        self.calls.append(value)

    @property
    def count(self) -> int:
        return len(self.calls)


@pytest.fixture
def errors() -> ErrorCollector:
    return ErrorCollector()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def store(errors: ErrorCollector) -> StateStore:
    """An empty store whose errors land in the errors fixture."""
    return StateStore(error_handler=errors)


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "state.json"


@pytest.fixture
def persistence(state_file) -> PersistenceMiddleware:
    return PersistenceMiddleware(state_file)
