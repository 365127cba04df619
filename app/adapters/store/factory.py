"""Factory for the configured record store."""

from app.adapters.store.base import AbstractRecordStore
from app.adapters.store.sql import SqlRecordStore, build_engine
from app.core.config import DatabaseSettings, settings
from app.core.errors import StartupError


def create_record_store(db_settings: DatabaseSettings | None = None) -> AbstractRecordStore:
    """Build the record store from DATABASE_* settings.

    Only constructs the engine; connectivity is checked separately with
    ``ping()`` during application startup.

    Raises:
        StartupError: If the database URL cannot be parsed or its driver is
            not installed.
    """
    cfg = db_settings or settings.database

    try:
        engine = build_engine(
            cfg.url,
            pool_size=cfg.pool_size,
            pool_recycle_seconds=cfg.pool_recycle_seconds,
            echo=cfg.echo,
        )
    except Exception as exc:
        raise StartupError(
            code="store_misconfigured",
            message=f"Cannot create database engine: {type(exc).__name__}",
            details={"hint": "Check DATABASE_URL and that its driver is installed"},
        ) from exc

    return SqlRecordStore(engine)
