"""
Runtime package for mutation scheduling.

Architecture:
- DebounceTimer coalesces rapid set_state requests on the event loop
- BatchQueue folds bracketed partial updates into one commit
"""

from .scheduler import DEFAULT_DEBOUNCE_DELAY, BatchQueue, DebounceTimer

__all__ = ["DebounceTimer", "BatchQueue", "DEFAULT_DEBOUNCE_DELAY"]
