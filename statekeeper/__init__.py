"""statekeeper: observable in-process state container

This package provides a single mutable state object shared across consumers,
with middleware, undo/redo history and optional file-based persistence.

Responsibilities:
    - Committing state changes through one ordered pipeline
    - Middleware interception before each commit
    - Undo/redo snapshots
    - Debounced and batched updates
    - Listener and named-event notification
    - Saving, loading, validating and backing up state files

Interactions:
    - Client code through StateStore and PersistenceMiddleware
    - asyncio for suspension points (middleware, file I/O, debounce)
    - Host key/value storage for automatic snapshots
    - Logging system for diagnostics

Cross-cutting Concerns:
    Concurrency:
        - Single event loop; commits on one store are serialized
        - Blocking file calls run in worker threads

    Error Handling:
        - Middleware and listener failures go to one error handler
        - Persistence failures become sentinel return values
        - No exception crosses the public API

    Logging:
        - Module-level loggers under the "statekeeper" namespace
        - Handlers are left to the host application
"""

from statekeeper.core import (
    CopyMode,
    KeyValueStorage,
    MemoryStorage,
    MiddlewareHandle,
    NullStorage,
    StateStore,
    StateStoreError,
    StoreStatus,
)
from statekeeper.persistence import PersistenceMiddleware, PersistenceOptions

__version__ = "0.1.0"

__all__ = [
    "StateStore",
    "StoreStatus",
    "CopyMode",
    "MiddlewareHandle",
    "KeyValueStorage",
    "NullStorage",
    "MemoryStorage",
    "StateStoreError",
    "PersistenceMiddleware",
    "PersistenceOptions",
]
