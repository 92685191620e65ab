"""SQLAlchemy-backed persistence storage for record types."""

from formbuilder.storage.conf import PersistenceStorageConf
from formbuilder.storage.persistence import PersistenceStorage

__all__ = [
    "PersistenceStorage",
    "PersistenceStorageConf",
]
