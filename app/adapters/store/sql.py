"""SQLAlchemy-backed record store.

Uses SQLAlchemy Core with a pooled, synchronous engine. Every blocking call is
pushed to the default executor so the event loop keeps serving other requests
while a query is in flight.

The upsert is compiled per dialect into a single conditional write:
- MySQL / MariaDB: INSERT ... ON DUPLICATE KEY UPDATE
- PostgreSQL / SQLite: INSERT ... ON CONFLICT (mobile) DO UPDATE
"""

from __future__ import annotations

import asyncio
import functools
import logging
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

import sqlalchemy as sa
from sqlalchemy import Engine
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from app.adapters.store.base import AbstractRecordStore
from app.core.errors import StoreError
from app.core.logging import mask_mobile
from app.schemas.lookup import LookupLogEntry, NameRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

TIMESTAMP = sa.DateTime(timezone=True)

METADATA = sa.MetaData()

mobile_records = sa.Table(
    "mobile_records",
    METADATA,
    sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
    sa.Column("mobile", sa.String(length=10), nullable=False),
    sa.Column("name", sa.String(length=255), nullable=False),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    sa.Column("updated_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    sa.UniqueConstraint("mobile", name="uq_mobile_records_mobile"),
)

api_response_logs = sa.Table(
    "api_response_logs",
    METADATA,
    sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
    sa.Column("client_ref_num", sa.String(length=255), nullable=False),
    sa.Column("mobile", sa.String(length=10), nullable=False),
    sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
    sa.Column("response_status", sa.String(length=50), nullable=False),
    sa.Column("response_message", sa.Text(), nullable=True),
    sa.Column("response_result", sa.Text(), nullable=True),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)
sa.Index("idx_api_response_logs_mobile", api_response_logs.c.mobile)
sa.Index("idx_api_response_logs_created_at", api_response_logs.c.created_at)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_engine(
    url: str,
    *,
    pool_size: int = 25,
    pool_recycle_seconds: int = 300,
    echo: bool = False,
) -> Engine:
    """Instantiate a pooled SQLAlchemy engine for the given URL."""

    kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            # In-memory databases must live on one shared connection
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_size"] = pool_size
        kwargs["max_overflow"] = 0
        kwargs["pool_recycle"] = pool_recycle_seconds
    return sa.create_engine(url, **kwargs)


class SqlRecordStore(AbstractRecordStore):
    """Record store persisting resolved names in a relational database."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    async def _run(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking DB call in the executor, mapping failures to StoreError."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(fn, *args))
        except SQLAlchemyError as exc:
            logger.error(
                "store.query_failed",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                },
            )
            raise StoreError(
                code="store_error",
                message="Database error occurred",
                details={"context": {"operation": operation}},
            ) from exc

    # -- schema -----------------------------------------------------------

    def _init_schema_sync(self) -> None:
        METADATA.create_all(self._engine)

    async def init_schema(self) -> None:
        await self._run("init_schema", self._init_schema_sync)

    def _ping_sync(self) -> None:
        with self._engine.connect() as conn:
            result = conn.execute(sa.text("SELECT 1")).scalar_one()
        if result != 1:
            raise StoreError(
                code="store_unexpected_ping",
                message="Database error occurred",
                details={"context": {"result": result}},
            )

    async def ping(self) -> None:
        await self._run("ping", self._ping_sync)

    async def close(self) -> None:
        self._engine.dispose()

    # -- mobile_records ---------------------------------------------------

    def _get_sync(self, mobile: str) -> NameRecord | None:
        stmt = sa.select(
            mobile_records.c.mobile,
            mobile_records.c.name,
            mobile_records.c.created_at,
            mobile_records.c.updated_at,
        ).where(mobile_records.c.mobile == mobile)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).one_or_none()
        if row is None:
            return None
        return NameRecord.model_validate(dict(row._mapping))

    async def get(self, mobile: str) -> NameRecord | None:
        record = await self._run("get", self._get_sync, mobile)
        logger.debug(
            "store.get",
            extra={"mobile": mask_mobile(mobile), "hit": record is not None},
        )
        return record

    def _build_upsert(self, mobile: str, name: str, now: datetime) -> Any:
        values = {"mobile": mobile, "name": name, "created_at": now, "updated_at": now}
        dialect = self._engine.dialect.name

        if dialect in ("mysql", "mariadb"):
            stmt = mysql.insert(mobile_records).values(**values)
            return stmt.on_duplicate_key_update(
                name=stmt.inserted.name,
                updated_at=stmt.inserted.updated_at,
            )

        if dialect in ("postgresql", "sqlite"):
            insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            stmt = insert(mobile_records).values(**values)
            return stmt.on_conflict_do_update(
                index_elements=[mobile_records.c.mobile],
                set_={"name": stmt.excluded.name, "updated_at": stmt.excluded.updated_at},
            )

        raise StoreError(
            code="store_unsupported_dialect",
            message="Database error occurred",
            details={"hint": f"Atomic upsert is not implemented for dialect '{dialect}'"},
        )

    def _upsert_sync(self, mobile: str, name: str) -> None:
        stmt = self._build_upsert(mobile, name, _utcnow())
        with self._engine.begin() as conn:
            conn.execute(stmt)

    async def upsert(self, mobile: str, name: str) -> None:
        if not name:
            raise ValueError("name must be a non-empty string")
        await self._run("upsert", self._upsert_sync, mobile, name)
        logger.debug("store.upsert", extra={"mobile": mask_mobile(mobile)})

    # -- api_response_logs ------------------------------------------------

    def _record_lookup_sync(self, entry: LookupLogEntry) -> None:
        values = entry.model_dump()
        values["created_at"] = values.get("created_at") or _utcnow()
        with self._engine.begin() as conn:
            conn.execute(sa.insert(api_response_logs).values(**values))

    async def record_lookup(self, entry: LookupLogEntry) -> None:
        await self._run("record_lookup", self._record_lookup_sync, entry)

    def _list_lookups_sync(self, mobile: str, limit: int) -> list[LookupLogEntry]:
        stmt = (
            sa.select(
                api_response_logs.c.client_ref_num,
                api_response_logs.c.mobile,
                api_response_logs.c.name,
                api_response_logs.c.response_status,
                api_response_logs.c.response_message,
                api_response_logs.c.response_result,
                api_response_logs.c.created_at,
            )
            .where(api_response_logs.c.mobile == mobile)
            .order_by(api_response_logs.c.created_at.desc(), api_response_logs.c.id.desc())
            .limit(limit)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).all()
        return [LookupLogEntry.model_validate(dict(row._mapping)) for row in rows]

    async def list_lookups(self, mobile: str, *, limit: int = 50) -> list[LookupLogEntry]:
        return await self._run("list_lookups", self._list_lookups_sync, mobile, limit)
