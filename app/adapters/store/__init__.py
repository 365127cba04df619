"""Record store adapters - durable cache of resolved names."""

from app.adapters.store.base import AbstractRecordStore
from app.adapters.store.factory import create_record_store
from app.adapters.store.sql import SqlRecordStore

__all__ = [
    "AbstractRecordStore",
    "SqlRecordStore",
    "create_record_store",
]
