"""
core/db.py -- SQLAlchemy engine construction shared by UserStore and TaskStore.

Both stores live on DATABASE_URL; each creates only its own tables.

SQLite specifics:
  check_same_thread=False -- FastAPI runs sync handlers in a thread pool, so a
      pooled connection is used from threads other than the one that opened it.
  WAL journal mode -- readers do not block behind the single writer. It is a
      per-connection PRAGMA, hence the connect listener.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _enable_wal(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    is_sqlite = db_url.startswith("sqlite")
    engine = create_engine(db_url, connect_args={"check_same_thread": False} if is_sqlite else {})
    if is_sqlite:
        event.listen(engine, "connect", _enable_wal)
    return engine
