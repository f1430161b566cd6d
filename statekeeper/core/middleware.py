# statekeeper/core/middleware.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import inspect
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from statekeeper.core.errors import MiddlewareError

logger = logging.getLogger(__name__)

Middleware = Callable[[Dict[str, Any], Dict[str, Any]], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class _MiddlewareEntry:
    """Internal record of one registered middleware."""

    fn: Middleware
    enabled: bool = True
    options: Dict[str, Any] = field(default_factory=lambda: {"selective": False})


class MiddlewareHandle:
    """
    Opaque token returned by MiddlewarePipeline.add(). Stays valid when other
    middleware are removed, unlike a positional index.
    """

    def __init__(self, pipeline: "MiddlewarePipeline", token: int) -> None:
        self._pipeline = pipeline
        self._token = token

    @property
    def token(self) -> int:
        return self._token

    @property
    def enabled(self) -> bool:
        entry = self._pipeline._entries.get(self._token)
        return entry is not None and entry.enabled

    @property
    def attached(self) -> bool:
        """Whether the middleware is still registered."""
        return self._token in self._pipeline._entries

    def enable(self) -> None:
        self._pipeline.enable(self)

    def disable(self) -> None:
        self._pipeline.disable(self)

    def remove(self) -> None:
        self._pipeline.remove(self)

    def __repr__(self) -> str:
        return f"MiddlewareHandle(token={self._token}, enabled={self.enabled})"


MiddlewareRef = Union[int, MiddlewareHandle]


class MiddlewarePipeline:
    """
    Ordered collection of interceptors run with (previous, candidate) state
    before a commit. Entries run one at a time in insertion order; a failing
    entry is reported and the loop moves on, so middleware can observe a
    commit but never veto it.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, _MiddlewareEntry] = {}
        self._tokens = itertools.count()

    def add(self, fn: Middleware, options: Optional[Dict[str, Any]] = None) -> MiddlewareHandle:
        """
        Append a middleware, enabled.

        :param fn: Callable taking (previous_state, next_state). May return an awaitable.
        :param options: Free-form options stored with the entry.
        :return: A handle addressing this entry.
        :raises TypeError: If fn is not callable. This is the only failure the
            pipeline raises rather than reports.
        """
        if not callable(fn):
            raise TypeError(f"Middleware must be callable, got {type(fn).__name__}")
        token = next(self._tokens)
        entry = _MiddlewareEntry(fn=fn)
        if options is not None:
            entry.options = dict(options)
        self._entries[token] = entry
        return MiddlewareHandle(self, token)

    def _resolve(self, ref: MiddlewareRef) -> Optional[_MiddlewareEntry]:
        if isinstance(ref, MiddlewareHandle):
            if ref._pipeline is not self:
                return None
            return self._entries.get(ref.token)
        if isinstance(ref, bool) or not isinstance(ref, int):
            return None
        if 0 <= ref < len(self._entries):
            return list(self._entries.values())[ref]
        return None

    def enable(self, ref: MiddlewareRef) -> None:
        """
        Enable an entry by positional index or handle. Unknown refs are ignored.
        """
        entry = self._resolve(ref)
        if entry is not None:
            entry.enabled = True

    def disable(self, ref: MiddlewareRef) -> None:
        """
        Disable an entry by positional index or handle. Unknown refs are ignored.
        """
        entry = self._resolve(ref)
        if entry is not None:
            entry.enabled = False

    def remove(self, ref: MiddlewareRef) -> bool:
        """
        Unregister an entry.

        :return: True if an entry was removed.
        """
        entry = self._resolve(ref)
        if entry is None:
            return False
        for token, candidate in list(self._entries.items()):
            if candidate is entry:
                del self._entries[token]
                return True
        return False

    def clear(self) -> None:
        self._entries.clear()

    def options(self, ref: MiddlewareRef) -> Optional[Dict[str, Any]]:
        entry = self._resolve(ref)
        return dict(entry.options) if entry is not None else None

    def __len__(self) -> int:
        return len(self._entries)

    async def run(
        self,
        previous_state: Dict[str, Any],
        next_state: Dict[str, Any],
        on_error: Callable[[BaseException], None],
    ) -> int:
        """
        Invoke every enabled middleware in order, awaiting each one.

        :param previous_state: Baseline recorded by the last commit.
        :param next_state: Candidate about to be committed.
        :param on_error: Receives a MiddlewareError for each failing entry.
        :return: Number of middleware that failed.
        """
        failures = 0
        enabled: List[_MiddlewareEntry] = [e for e in self._entries.values() if e.enabled]
        for entry in enabled:
            try:
                result = entry.fn(previous_state, next_state)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                failures += 1
                name = getattr(entry.fn, "__name__", type(entry.fn).__name__)
                logger.debug(f"Middleware {name} failed: {e}")
                on_error(MiddlewareError(f"Middleware {name} failed: {e}", e))
        return failures
