# statekeeper/core/storage.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStorage(Protocol):
    """
    Host-provided string storage used for automatic state snapshots.

    Runtime Invariants:
    - get() returns exactly what the last set() stored under the key, or None.

    Error Handling:
    - Implementations may raise; the store contains and reports any failure.
    """

    def get(self, key: str) -> Optional[str]:
        """Return the stored text for key, or None."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store text under key, replacing any previous value."""
        ...


class NullStorage:
    """
    Storage used when the host provides none. Stores nothing, returns nothing.
    """

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, value: str) -> None:
        pass


class MemoryStorage:
    """
    Dictionary-backed storage, handy for tests and for sharing snapshots
    between stores in one process.
    """

    def __init__(self, items: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(items or {})

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
