# statekeeper/persistence/filesystem.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, TypeVar, Union

PathLike = Union[str, "os.PathLike[str]"]

T = TypeVar("T")


class AsyncFileSystem:
    """
    Path-addressed file primitives as coroutines. Blocking calls run in a
    worker thread so the event loop keeps serving other commits.

    Every method raises OSError on failure, including invalid paths (e.g. an
    embedded NUL byte) and undecodable content; callers decide how to
    contain it.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except ValueError as e:
            raise OSError(f"{type(e).__name__}: {e}") from e

    async def read_text(self, path: PathLike) -> str:
        return await self._run(Path(path).read_text, encoding=self.encoding)

    async def write_text(self, path: PathLike, content: str) -> None:
        """
        Replace the file's content atomically: the new text goes to a
        temporary sibling that is then renamed over the target.
        """
        await self._run(self._write_atomic, Path(path), content)

    def _write_atomic(self, path: Path, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding=self.encoding) as handle:
                handle.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    async def append_text(self, path: PathLike, content: str) -> None:
        await self._run(self._append, Path(path), content)

    def _append(self, path: Path, content: str) -> None:
        with path.open("a", encoding=self.encoding) as handle:
            handle.write(content)

    async def truncate(self, path: PathLike, size: int = 0) -> None:
        await self._run(os.truncate, Path(path), size)

    async def rename(self, source: PathLike, target: PathLike) -> None:
        await self._run(os.replace, Path(source), Path(target))

    async def remove(self, path: PathLike) -> None:
        await self._run(os.unlink, Path(path))

    async def stat(self, path: PathLike) -> os.stat_result:
        return await self._run(os.stat, Path(path))

    async def copy(self, source: PathLike, target: PathLike) -> None:
        await self._run(shutil.copyfile, Path(source), Path(target))

    async def exists(self, path: PathLike) -> bool:
        return await self._run(Path(path).exists)
