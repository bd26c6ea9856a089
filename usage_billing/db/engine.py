# usage_billing/db/engine.py

from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from usage_billing.config import settings

_engine: Optional[Engine] = None


def create_db_engine(url: str, **kwargs: Any) -> Engine:
    """
    Build an engine for `url`. SQLite connections get foreign keys switched on
    so usage and invoices cannot outlive their customer.
    """
    if url.startswith("sqlite"):
        connect_args = kwargs.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)

    engine = create_engine(url, future=True, **kwargs)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def get_engine() -> Engine:
    """
    Return the process-wide engine, creating it on first use.
    Tests swap `_engine` for an in-memory database.
    """
    global _engine
    if _engine is None:
        # echo=True (DB_ECHO) prints every statement
        _engine = create_db_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
    return _engine
