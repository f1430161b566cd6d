# statekeeper/core/copying.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Mapping


class CopyMode(Enum):
    """
    Strategy used to clone state on every read and every commit.

    SHALLOW copies the top-level keys only, so nested values stay shared with
    the caller. DEEP clones the full structure through a JSON round trip.
    """

    SHALLOW = "shallow"
    DEEP = "deep"

    def clone(self, state: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Return a copy of a state mapping according to this mode.

        :param state: The state to copy.
        :raises TypeError: In DEEP mode, if the state holds non-JSON values.
        :raises ValueError: In DEEP mode, if the state is self-referential.
        """
        if self is CopyMode.DEEP:
            return json.loads(json.dumps(state))
        return dict(state)

    def clone_value(self, value: Any) -> Any:
        """
        Copy a single value. Only DEEP mode copies; SHALLOW returns the value itself.
        """
        if self is CopyMode.DEEP:
            return json.loads(json.dumps(value))
        return value
