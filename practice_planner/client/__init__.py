"""
Client side of live practice planning.

A SetListStore holds one practice's sets; PracticeSetSync feeds it from
the API (loads, confirmed writes, pushed events) and debounces edits.
"""

from .api import PracticeApiClient, PracticeApiError, parse_sse
from .debounce import DebounceHandle, Debouncer
from .reducer import Add, Remove, ReplaceAll, SetListStore, Update, action_for_event, reduce, sort_sets
from .sync import PracticeSetSync

__all__ = [
    "Add",
    "DebounceHandle",
    "Debouncer",
    "PracticeApiClient",
    "PracticeApiError",
    "PracticeSetSync",
    "Remove",
    "ReplaceAll",
    "SetListStore",
    "Update",
    "action_for_event",
    "parse_sse",
    "reduce",
    "sort_sets",
]
