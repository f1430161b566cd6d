"""
Core package providing the state container and its mutation pipeline.

Architecture:
- StateStore owns the single current state and the commit path
- MiddlewarePipeline intercepts candidate states before they commit
- HistoryManager keeps undo/redo snapshots
- Notifier fans committed state out to listeners and named events

Cross-cutting:
- Errors are contained and funneled through ErrorReporter
- Copy mode decides how state is cloned on reads and commits
"""

from .copying import CopyMode
from .errors import (
    CommitError,
    ErrorReporter,
    ListenerError,
    MiddlewareError,
    PersistenceError,
    SerializationError,
    StateStoreError,
    StorageError,
)
from .history import HistoryManager
from .middleware import MiddlewareHandle, MiddlewarePipeline
from .notifications import Notifier
from .storage import KeyValueStorage, MemoryStorage, NullStorage
from .store import DEFAULT_STORAGE_KEY, StateStore, StoreStatus

__all__ = [
    # Container
    "StateStore",
    "StoreStatus",
    "DEFAULT_STORAGE_KEY",
    "CopyMode",
    # Pipeline pieces
    "MiddlewarePipeline",
    "MiddlewareHandle",
    "HistoryManager",
    "Notifier",
    # Storage collaborator
    "KeyValueStorage",
    "NullStorage",
    "MemoryStorage",
    # Errors
    "ErrorReporter",
    "StateStoreError",
    "MiddlewareError",
    "ListenerError",
    "StorageError",
    "CommitError",
    "PersistenceError",
    "SerializationError",
]
