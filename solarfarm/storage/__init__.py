"""
Storage backends for farm state.

Exports the abstract Storage contract, the in-memory and SQL backends, and
the FailoverStorage wrapper that routes between them.
"""

from solarfarm.storage.base import DuplicatePanelError, Storage, StorageError
from solarfarm.storage.database import DbStorage
from solarfarm.storage.failover import FailoverStorage, StorageMode, is_connectivity_error
from solarfarm.storage.memory import MemStorage

__all__ = [
    "DbStorage",
    "DuplicatePanelError",
    "FailoverStorage",
    "MemStorage",
    "Storage",
    "StorageError",
    "StorageMode",
    "is_connectivity_error",
]
