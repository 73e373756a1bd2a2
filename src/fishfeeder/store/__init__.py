"""Remote key/value store adapters.

The engine only talks to the store through :class:`FieldStore`; the
device firmware on the other side shares the same key paths.
"""

from fishfeeder.store.base import FieldChange, FieldStore, join_path, normalize_path
from fishfeeder.store.memory import MemoryFieldStore
from fishfeeder.store.realtime import RealtimeDatabaseStore

__all__ = [
    "FieldChange",
    "FieldStore",
    "MemoryFieldStore",
    "RealtimeDatabaseStore",
    "join_path",
    "normalize_path",
]
