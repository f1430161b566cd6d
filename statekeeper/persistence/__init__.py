"""
Persistence package for file-based state snapshots.

Architecture:
- PersistenceMiddleware saves, loads, validates and backs up state files
- Serializer converts state to and from its textual format
- AsyncFileSystem provides the file primitives as coroutines

Cross-cutting:
- No exception crosses the persistence boundary; failures become
  sentinel return values and are logged
"""

from .filesystem import AsyncFileSystem
from .middleware import BACKUP_SUFFIX, PersistenceMiddleware
from .options import FileInfo, PersistenceOptions
from .serializer import SerializationFormat, Serializer

__all__ = [
    "PersistenceMiddleware",
    "PersistenceOptions",
    "FileInfo",
    "Serializer",
    "SerializationFormat",
    "AsyncFileSystem",
    "BACKUP_SUFFIX",
]
