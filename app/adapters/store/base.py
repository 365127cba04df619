from __future__ import annotations

from abc import ABC, abstractmethod

from app.schemas.lookup import LookupLogEntry, NameRecord


class AbstractRecordStore(ABC):
	"""Interface for the persistent mobile -> name cache.

	Implementations raise StoreError for connectivity or query failures and
	return None (not an error) for absent keys.
	"""

	@abstractmethod
	async def get(self, mobile: str) -> NameRecord | None:
		"""Return the stored record for a canonical number, or None."""
		...

	@abstractmethod
	async def upsert(self, mobile: str, name: str) -> None:
		"""Insert the record, or replace its name and refresh updated_at.

		Must be a single atomic conditional write so concurrent upserts for
		the same number never fail on the unique key or lose an update.
		"""
		...

	@abstractmethod
	async def record_lookup(self, entry: LookupLogEntry) -> None:
		"""Append an upstream call to the audit log."""
		...

	@abstractmethod
	async def list_lookups(self, mobile: str, *, limit: int = 50) -> list[LookupLogEntry]:
		"""Return audit entries for a number, newest first."""
		...

	@abstractmethod
	async def ping(self) -> None:
		"""Verify connectivity; raises StoreError when unreachable."""
		...

	async def init_schema(self) -> None:
		"""Create missing tables. No-op for stores without a schema."""

	async def close(self) -> None:
		"""Release pooled resources."""
