"""SQLite transaction handling for the assignment store."""
from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.engine import Engine


def register_sqlite_transactions(engine: Engine) -> None:
    """Let SQLAlchemy, not the ``sqlite3`` driver, open transactions.

    The driver defers ``BEGIN`` until the first write and knows nothing about
    ``SAVEPOINT``, so a savepoint taken before any write would silently run
    outside a transaction. With the driver's own handling switched off,
    ``Session.begin_nested`` behaves the same on SQLite as on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _connection_record) -> None:  # pragma: no cover - SQLAlchemy callback
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection) -> None:  # pragma: no cover - SQLAlchemy callback
        connection.exec_driver_sql("BEGIN")
