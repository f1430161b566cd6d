# statekeeper/persistence/serializer.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional

from statekeeper.core.errors import SerializationError


class SerializationFormat(Enum):
    """
    Supported on-disk formats, keyed by the file_type option.
    """

    JSON = "json"  # Pretty-printed JSON, parsed back losslessly
    TEXT = "text"  # str() of the value, loaded back as the raw string

    @classmethod
    def from_file_type(cls, file_type: str) -> "SerializationFormat":
        """
        Map a file_type option to a format. Anything other than "json" is
        treated as plain text.
        """
        if str(file_type).lower() == cls.JSON.value:
            return cls.JSON
        return cls.TEXT


class Serializer:
    """
    Converts state values to and from their textual representation.
    """

    def __init__(self, fmt: SerializationFormat = SerializationFormat.JSON, spaces: Optional[int] = 2) -> None:
        """
        :param fmt: Target format.
        :param spaces: JSON indentation width. None writes compact JSON.
        """
        self.format = fmt
        self.spaces = spaces

    def dumps(self, value: Any) -> str:
        """
        Serialize a value.

        :raises SerializationError: If the value cannot be represented, e.g. it is cyclic.
        """
        if self.format is SerializationFormat.TEXT:
            return str(value)
        try:
            return json.dumps(value, indent=self.spaces)
        except (TypeError, ValueError, RecursionError) as e:
            raise SerializationError(f"Cannot serialize {type(value).__name__}: {e}", e)

    def loads(self, content: str) -> Any:
        """
        Parse serialized content.

        :raises SerializationError: If the content is malformed.
        """
        if self.format is SerializationFormat.TEXT:
            return content
        try:
            return json.loads(content)
        except (ValueError, RecursionError) as e:
            raise SerializationError(f"Malformed JSON content: {e}", e)

    def round_trip(self, value: Any) -> Any:
        """
        Serialize then parse a value, in compact JSON regardless of the
        configured format. Raises SerializationError like dumps().
        """
        try:
            return json.loads(json.dumps(value))
        except (TypeError, ValueError, RecursionError) as e:
            raise SerializationError(f"Value does not survive a JSON round trip: {e}", e)
