# statekeeper/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[BaseException], None]


class StateStoreError(Exception):
    """
    Base exception class for errors within the state store library.

    :param message: Human readable description.
    :param original: The exception that caused this error, if any.
    """

    def __init__(self, message: str, original: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.original = original
        if original is not None:
            self.__cause__ = original


class MiddlewareError(StateStoreError):
    """
    Raised (and reported) when a middleware function fails during a commit.
    """


class ListenerError(StateStoreError):
    """
    Reported when a subscriber or event callback raises during fan-out.
    """


class StorageError(StateStoreError):
    """
    Reported when the key/value storage collaborator cannot read or write a snapshot.
    """


class CommitError(StateStoreError):
    """
    Reported when the commit path fails outside of middleware and listeners,
    e.g. a candidate state that cannot be cloned in deep copy mode.
    """


class PersistenceError(StateStoreError):
    """
    Recorded when a filesystem operation of the persistence service fails.
    """


class SerializationError(PersistenceError):
    """
    Recorded when a value cannot be represented in, or parsed from, the chosen format.
    """


class ErrorReporter:
    """
    Funnels every contained failure to a single optional handler. Without a
    handler, failures are logged with their traceback.
    """

    def __init__(self, handler: Optional[ErrorHandler] = None) -> None:
        self._handler = handler

    @property
    def handler(self) -> Optional[ErrorHandler]:
        return self._handler

    def set_handler(self, handler: Optional[ErrorHandler]) -> None:
        """
        Replace the current handler. Passing None restores logging.
        """
        self._handler = handler

    def report(self, error: BaseException) -> None:
        """
        Deliver an error to the handler. Never raises.

        :param error: The contained failure.
        """
        if self._handler is None:
            logger.error(f"State store error: {error}", exc_info=error)
            return

        try:
            self._handler(error)
        except Exception as handler_error:
            logger.exception(f"Error handler failed while reporting {error!r}: {handler_error}")
