# statekeeper/persistence/middleware.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from statekeeper.core.errors import PersistenceError, SerializationError
from statekeeper.persistence.filesystem import AsyncFileSystem
from statekeeper.persistence.options import FileInfo, PersistenceOptions
from statekeeper.persistence.serializer import SerializationFormat, Serializer

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"


class PersistenceMiddleware:
    """
    Saves, loads, validates and backs up state snapshots in a single file.

    Nothing raises across this class's public methods: failures are logged,
    recorded in last_error as a PersistenceError (I/O) or SerializationError
    (format), and surfaced as False, None or 0.

    An instance is itself a middleware: apply it to a StateStore and every
    candidate state is written before it commits.

    Example:
        persistence = PersistenceMiddleware("state.json")
        store.apply_middleware(persistence)
    """

    def __init__(
        self,
        file_path: Union[str, Path] = "state.json",
        options: Optional[Union[PersistenceOptions, Dict[str, Any]]] = None,
        filesystem: Optional[AsyncFileSystem] = None,
    ) -> None:
        """
        :param file_path: Location of the primary state file.
        :param options: PersistenceOptions or a mapping of option values.
        :param filesystem: File primitives; defaults to AsyncFileSystem().
        """
        self._file_path = Path(file_path)
        if isinstance(options, PersistenceOptions):
            self._options = PersistenceOptions.from_mapping(options.to_dict())
        else:
            self._options = PersistenceOptions.from_mapping(dict(options or {}))
        self._fs = filesystem or AsyncFileSystem()
        self.last_error: Optional[PersistenceError] = None

    # ------------------------------------------------------------------
    # Middleware protocol
    # ------------------------------------------------------------------

    async def __call__(self, prev_state: Any, next_state: Any) -> bool:
        return await self.persist_state(prev_state, next_state)

    async def persist_state(self, prev_state: Any, next_state: Any) -> bool:
        """Save next_state; prev_state is ignored."""
        return await self.save_state(next_state)

    # ------------------------------------------------------------------
    # Save / load
    # ------------------------------------------------------------------

    async def save_state(self, state: Any) -> bool:
        """
        Serialize state and replace the file's content with it. The previous
        file is left untouched if either step fails.
        """
        try:
            content = self._serializer().dumps(state)
            await self._fs.write_text(self._file_path, content)
        except SerializationError as e:
            return self._fail("Error saving state", e)
        except OSError as e:
            return self._fail("Error saving state", PersistenceError(str(e), e))
        self.last_error = None
        logger.debug(f"State saved to {self._file_path}")
        return True

    async def load_state(self) -> Optional[Any]:
        """
        Read and parse the file.

        :return: The stored state, or None if the file is missing, unreadable or malformed.
        """
        try:
            content = await self._fs.read_text(self._file_path)
        except OSError as e:
            self._fail("Error loading state", PersistenceError(str(e), e))
            return None
        return self.parse_file_content(content)

    def parse_file_content(self, content: str) -> Optional[Any]:
        """Parse raw file content per the file_type option; None if malformed."""
        try:
            state = self._serializer().loads(content)
        except SerializationError as e:
            self._fail("Error parsing file content", e)
            return None
        self.last_error = None
        return state

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_state(self, state: Any) -> bool:
        """
        True iff state survives a JSON serialize/parse round trip. Rejects
        cyclic structures and values JSON cannot represent.
        """
        try:
            self._serializer().round_trip(state)
        except SerializationError as e:
            return self._fail("Invalid state object", e)
        return True

    async def save_state_with_validation(self, state: Any) -> bool:
        if not self.validate_state(state):
            return False
        return await self.save_state(state)

    async def load_state_with_validation(self) -> Optional[Any]:
        state = await self.load_state()
        if state is not None and self.validate_state(state):
            return state
        return None

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    @property
    def backup_path(self) -> Path:
        return self._file_path.with_name(self._file_path.name + BACKUP_SUFFIX)

    async def backup_state(self, state: Any) -> bool:
        """
        Save state to the primary file, then copy that file to the backup path.
        """
        if not await self.save_state(state):
            return False
        try:
            await self._fs.copy(self._file_path, self.backup_path)
        except OSError as e:
            return self._fail("Error creating backup", PersistenceError(str(e), e))
        logger.debug(f"Backup written to {self.backup_path}")
        return True

    async def restore_from_backup(self) -> Optional[Any]:
        """
        Copy the backup over the primary file and load it.

        :return: The restored state, or None if there is no backup or any step fails.
        """
        backup = self.backup_path
        try:
            if not await self._fs.exists(backup):
                return None
            await self._fs.copy(backup, self._file_path)
        except OSError as e:
            self._fail("Error restoring from backup", PersistenceError(str(e), e))
            return None
        return await self.load_state()

    # ------------------------------------------------------------------
    # File lifecycle
    # ------------------------------------------------------------------

    async def file_exists(self, file_path: Optional[Union[str, Path]] = None) -> bool:
        try:
            return await self._fs.exists(file_path if file_path is not None else self._file_path)
        except OSError:
            return False

    async def get_file_info(self) -> Optional[FileInfo]:
        try:
            stats = await self._fs.stat(self._file_path)
        except OSError as e:
            self._fail("Error getting file info", PersistenceError(str(e), e))
            return None
        created = getattr(stats, "st_birthtime", stats.st_ctime)
        return FileInfo(
            size=stats.st_size,
            created=datetime.fromtimestamp(created),
            modified=datetime.fromtimestamp(stats.st_mtime),
            path=self._file_path,
            options=self.get_options(),
        )

    async def get_file_size(self) -> int:
        """Size in bytes; 0 if the file cannot be inspected."""
        try:
            stats = await self._fs.stat(self._file_path)
        except OSError as e:
            self._fail("Error getting file size", PersistenceError(str(e), e))
            return 0
        return stats.st_size

    async def is_file_empty(self) -> bool:
        """True when the size is 0, which includes a missing file."""
        return await self.get_file_size() == 0

    async def truncate_file(self) -> bool:
        try:
            await self._fs.truncate(self._file_path, 0)
        except OSError as e:
            return self._fail("Error truncating file", PersistenceError(str(e), e))
        return True

    async def append_to_file(self, content: str) -> bool:
        try:
            await self._fs.append_text(self._file_path, content)
        except OSError as e:
            return self._fail("Error appending to file", PersistenceError(str(e), e))
        return True

    async def rename_file(self, new_file_path: Union[str, Path]) -> bool:
        """
        Move the file and, on success, point this service at the new path.
        """
        target = Path(new_file_path)
        try:
            await self._fs.rename(self._file_path, target)
        except OSError as e:
            return self._fail("Error renaming file", PersistenceError(str(e), e))
        self._file_path = target
        return True

    async def delete_file(self) -> bool:
        try:
            await self._fs.remove(self._file_path)
        except OSError as e:
            return self._fail("Error deleting file", PersistenceError(str(e), e))
        return True

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def read_file_chunk(self, start: int, end: Optional[int] = None) -> Optional[str]:
        """
        Return the characters between start and end of the file's text.
        Bounds are clamped to the text and swapped if reversed.
        """
        try:
            content = await self._fs.read_text(self._file_path)
        except OSError as e:
            self._fail("Error reading file chunk", PersistenceError(str(e), e))
            return None
        lower, upper = _substring_bounds(len(content), start, end)
        return content[lower:upper]

    async def write_file_chunk(self, content: str, position: int) -> bool:
        """
        Insert content at position, shifting the rest of the text. Rewrites the whole file.
        """
        try:
            existing = await self._fs.read_text(self._file_path)
            split, _ = _substring_bounds(len(existing), position, None)
            await self._fs.write_text(self._file_path, existing[:split] + content + existing[split:])
        except OSError as e:
            return self._fail("Error writing file chunk", PersistenceError(str(e), e))
        return True

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_options(self) -> Dict[str, Any]:
        return self._options.to_dict()

    def set_options(self, options: Optional[Dict[str, Any]] = None, **kwargs: Any) -> None:
        """Merge new option values over the current ones."""
        values = dict(options or {})
        values.update(kwargs)
        self._options.update(values)

    def set_file_type(self, file_type: str) -> None:
        self._options.file_type = file_type

    def set_json_formatting(self, spaces: int) -> None:
        self._options.spaces = spaces

    def increment_version(self) -> int:
        self._options.version += 1
        return self._options.version

    def get_version(self) -> int:
        return self._options.version

    def get_file_path(self) -> Path:
        return self._file_path

    def set_file_path(self, file_path: Union[str, Path]) -> None:
        self._file_path = Path(file_path)

    def _serializer(self) -> Serializer:
        return Serializer(SerializationFormat.from_file_type(self._options.file_type), self._options.spaces)

    def _fail(self, action: str, error: PersistenceError) -> bool:
        self.last_error = error
        logger.error(f"{action} ({self._file_path}): {error}")
        return False


def _substring_bounds(length: int, start: int, end: Optional[int]) -> Tuple[int, int]:
    lower = min(max(start, 0), length)
    upper = length if end is None else min(max(end, 0), length)
    if lower > upper:
        lower, upper = upper, lower
    return lower, upper
