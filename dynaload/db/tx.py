from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Protocol

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.elements import TextClause

from .helpers import _parse_sql_operation
from .metrics import observe_db_write
from .session import DbSession, StatementRunner

logger = logging.getLogger(__name__)

_TRACKED_OPS = ("insert", "update", "delete", "truncate")


class DbTx(Protocol):
    """
    Protocol for database transactions with explicit commit/rollback.

    TransactionExecutor and BulkLoader only depend on this protocol, so
    tests can drive them with in-memory stubs.
    """

    def commit(self) -> None:
        """Commit the transaction."""
        ...

    def rollback(self) -> None:
        """Rollback the transaction."""
        ...

    def execute(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Execute a non-SELECT statement and return affected row count."""
        ...

    def execute_scalar(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """Execute a statement expected to return a single scalar value."""
        ...

    def fetch_all(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a statement returning multiple rows."""
        ...

    def call_procedure(self, name: str, args: Mapping[str, Any]) -> list[dict[str, Any]]:
        """CALL a stored procedure and return its first result set."""
        ...


class TxFactory(Protocol):
    def begin(
        self,
        *,
        track_metrics: bool = True,
        execution_options: Mapping[str, Any] | None = None,
    ) -> DbTx:
        ...


class DbTransaction(StatementRunner):
    """
    Database transaction with explicit commit/rollback methods.

    The transaction begins on construction and must be explicitly
    committed or rolled back. After commit or rollback, the connection
    is closed and the transaction cannot be used again.

    ⚠️ IMPORTANT: Do NOT perform retry loops inside a single DbTransaction.
    Each retry must use a new transaction via DbFactory.begin().

    Usage:
        factory = DbFactory(engine)
        tx = factory.begin()
        try:
            tx.execute("INSERT INTO ...", {...})
            tx.commit()
        except Exception:
            tx.rollback()
            raise
    """

    def __init__(
        self,
        engine: Engine,
        *,
        track_metrics: bool = True,
        execution_options: Mapping[str, Any] | None = None,
    ) -> None:
        self.engine = engine
        self.track_metrics = track_metrics
        self._conn: Connection | None = None
        self._tx = None
        self._closed = False
        self._operations: list[tuple[float, str, str]] = []

        self._conn = self.engine.connect()
        try:
            if execution_options:
                self._conn = self._conn.execution_options(**execution_options)
            self._tx = self._conn.begin()
        except Exception:
            self._conn.close()
            raise

    @property
    def closed(self) -> bool:
        return self._closed

    def _connection(self) -> Connection:
        if self._closed or self._conn is None:
            raise RuntimeError("Transaction is already closed")
        return self._conn

    def execute(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        start_time = time.monotonic()
        table, op_type = _parse_sql_operation(sql)
        rowcount = super().execute(sql, params)
        self._operations.append((start_time, table, op_type))
        return rowcount

    def commit(self) -> None:
        """
        Commit the transaction and close the connection.

        Raises:
            RuntimeError: If transaction is already closed
        """
        if self._closed:
            raise RuntimeError("Transaction is already closed")

        status = "success"
        try:
            if self._tx is not None:
                self._tx.commit()
        except Exception:
            status = "error"
            try:
                if self._tx is not None:
                    self._tx.rollback()
            except Exception:
                logger.debug("Rollback after failed commit also failed", exc_info=True)
            raise
        finally:
            self._close(status)

    def rollback(self) -> None:
        """
        Rollback the transaction and close the connection.

        Raises:
            RuntimeError: If transaction is already closed
        """
        if self._closed:
            raise RuntimeError("Transaction is already closed")

        try:
            if self._tx is not None:
                self._tx.rollback()
        finally:
            self._close("error")

    def _close(self, status: str) -> None:
        end_time = time.monotonic()
        self._closed = True
        try:
            if self._conn is not None:
                self._conn.close()
        finally:
            self._conn = None
            self._tx = None
            self._emit_metrics(status, end_time)

    def _emit_metrics(self, status: str, end_time: float) -> None:
        if not self.track_metrics:
            return
        # Metric errors must never mask real exceptions.
        try:
            for start_time, table, op_type in self._operations:
                if op_type not in _TRACKED_OPS:
                    continue
                observe_db_write(
                    table=table,
                    op_type=op_type,
                    status=status,
                    latency_s=end_time - start_time,
                )
        except Exception:
            logger.debug("Failed to emit write metrics", exc_info=True)


class DbFactory:
    """
    Factory for creating database transactions and sessions.

    Usage:
        factory = DbFactory(engine)
        tx = factory.begin()
        try:
            # Use tx...
            tx.commit()
        except Exception:
            tx.rollback()
            raise
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def begin(
        self,
        *,
        track_metrics: bool = True,
        execution_options: Mapping[str, Any] | None = None,
    ) -> DbTransaction:
        """
        Open a connection and begin a new transaction.

        ``execution_options`` are applied to the connection before BEGIN;
        pass ``{"compiled_cache": None}`` for one-off statements that should
        not stay in the engine-wide compiled cache.
        """
        return DbTransaction(
            self.engine,
            track_metrics=track_metrics,
            execution_options=execution_options,
        )

    def session(self) -> DbSession:
        """A context-managed session for short read/check work."""
        return DbSession(self.engine)
