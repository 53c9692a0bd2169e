from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql import TextClause


def _as_clause(sql: str | TextClause) -> TextClause:
    return text(sql) if isinstance(sql, str) else sql


class StatementRunner:
    """
    SQL execution methods shared by DbSession and DbTransaction.

    Subclasses provide `_connection()`, which must raise RuntimeError when
    no connection is active.
    """

    def _connection(self) -> Connection:
        raise NotImplementedError

    def execute(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """
        Execute a non-SELECT statement and return affected row count.

        Raises:
            RuntimeError: If no connection is active or rowcount is None
        """
        conn = self._connection()
        result = conn.execute(_as_clause(sql), dict(params or {}))
        try:
            if result.rowcount is None:
                raise RuntimeError(
                    "execute() received None rowcount for statement. "
                    "This may indicate a DDL statement or unsupported operation type."
                )
            return int(result.rowcount)
        finally:
            result.close()

    def execute_scalar(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """Execute a statement expected to return a single scalar value."""
        conn = self._connection()
        result = conn.execute(_as_clause(sql), dict(params or {}))
        try:
            return result.scalar_one_or_none()
        finally:
            result.close()

    def fetch_one(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Execute a SELECT expected to return 0 or 1 row. Raises if more than one row."""
        conn = self._connection()
        result = conn.execute(_as_clause(sql), dict(params or {}))
        try:
            row = result.mappings().one_or_none()
            return dict(row) if row is not None else None
        finally:
            result.close()

    def fetch_all(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a statement returning multiple rows (SELECT, SHOW ...)."""
        conn = self._connection()
        result = conn.execute(_as_clause(sql), dict(params or {}))
        try:
            return [dict(row) for row in result.mappings()]
        finally:
            result.close()

    def call_procedure(self, name: str, args: Mapping[str, Any]) -> list[dict[str, Any]]:
        """
        CALL a stored procedure and return the rows of its first result set.

        `name` must already be validated; it is interpolated into the SQL.
        Remaining result sets are drained when the cursor closes.
        """
        placeholders = ", ".join(f":{key}" for key in args)
        conn = self._connection()
        result = conn.execute(text(f"CALL {name}({placeholders})"), dict(args))
        try:
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings()]
        finally:
            result.close()


class DbSession(StatementRunner):
    """
    Transactional wrapper around a SQLAlchemy Engine connection.

    Commits on clean exit, rolls back on exception, always closes the
    connection.

    Use as:
        with DbSession(engine) as session:
            session.execute(...)
            row = session.fetch_one(...)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn: Connection | None = None
        self._tx = None

    def __enter__(self) -> "DbSession":
        if self._conn is not None:
            raise RuntimeError("DbSession is already active; nested sessions are not allowed")
        self._conn = self.engine.connect()
        self._tx = self._conn.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._tx is not None:
                if exc_type:
                    self._tx.rollback()
                else:
                    self._tx.commit()
        finally:
            if self._conn is not None:
                self._conn.close()

            self._conn = None
            self._tx = None

        # propagate exceptions (if any)
        return False

    def _connection(self) -> Connection:
        if self._conn is None:
            raise RuntimeError("DbSession is not active; use within a context manager")
        return self._conn
