from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence

from ..cancel import CancelToken
from ..config import BulkLoadConfig, DbConfig
from ..errors import (
    BulkLoadError,
    DbWriteError,
    OperationCancelledError,
    ProcedureDiagnosticError,
    ProcedureNotFoundError,
    TransientDatabaseError,
    ValidationError,
)
from ..result import ErrorKind, TxResult
from ..sql.identifiers import text_identifier, validate_identifier
from ..sql.models import GeneratedStatement, StatementType
from ..sql.records import field_map
from .classify import classify
from .metrics import observe_bulk_load
from .schema import procedure_exists
from .tx import DbTx, TxFactory

logger = logging.getLogger(__name__)

_UNCACHED = {"compiled_cache": None}

BOOLEAN = "TINYINT(1)"
INTEGER = "BIGINT"
NUMERIC = "DECIMAL(38,10)"
TIMESTAMP = "DATETIME(6)"
DATE = "DATE"
TEXT = "LONGTEXT"

_NUMERIC_TYPES = frozenset({INTEGER, NUMERIC})


def storage_type(value: Any) -> str:
    """
    Staging-table column type for a Python value.

    bool is checked before int and datetime before date, since each is a
    subclass of the other.
    """
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, int):
        return INTEGER
    if isinstance(value, (Decimal, float)):
        return NUMERIC
    if isinstance(value, datetime):
        return TIMESTAMP
    if isinstance(value, date):
        return DATE
    return TEXT


def _widen(current: str, seen: str) -> str:
    if current == seen:
        return current
    if current in _NUMERIC_TYPES and seen in _NUMERIC_TYPES:
        return NUMERIC
    return TEXT


@dataclass(frozen=True)
class StagingColumn:
    name: str
    sql_type: str


@dataclass(frozen=True)
class StagingSchema:
    """Shape of one session-scoped staging table."""
    table_name: str
    columns: tuple[StagingColumn, ...]

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def create_sql(self) -> str:
        body = ", ".join(f"{text_identifier(c.name)} {c.sql_type} NULL" for c in self.columns)
        return (
            f"CREATE TEMPORARY TABLE {self.table_name} ({body}) "
            "ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"
        )

    def drop_sql(self) -> str:
        return f"DROP TEMPORARY TABLE IF EXISTS {self.table_name}"

    def insert_statement(self, rows: Sequence[Mapping[str, Any]]) -> GeneratedStatement:
        """
        One multi-row INSERT covering every row.

        Parameters are named ``r{row}_c{column}``; a field a row does not
        carry binds NULL. Values in LONGTEXT columns are passed as text.
        """
        columns = ", ".join(text_identifier(c.name) for c in self.columns)
        params: dict[str, Any] = {}
        tuples: list[str] = []
        for r, row in enumerate(rows):
            names: list[str] = []
            for c, column in enumerate(self.columns):
                name = f"r{r}_c{c}"
                params[name] = _coerce(row.get(column.name), column.sql_type)
                names.append(f":{name}")
            tuples.append(f"({', '.join(names)})")
        sql = f"INSERT INTO {self.table_name} ({columns}) VALUES {', '.join(tuples)}"
        return GeneratedStatement(sql, params, table=self.table_name, statement_type=StatementType.INSERT)


def _coerce(value: Any, sql_type: str) -> Any:
    if value is None or sql_type != TEXT or isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def derive_schema(rows: Sequence[Mapping[str, Any]], prefix: str = "temp_") -> StagingSchema:
    """
    Column names are the union of field names in first-seen order. Each
    column's type comes from its first non-None value and is widened to
    DECIMAL (mixed numbers) or LONGTEXT (anything else mixed) when later
    rows disagree. Columns that are None everywhere are LONGTEXT.

    MySQL column names are case-insensitive, so field names that differ
    only by case raise ValidationError.
    """
    types: dict[str, str | None] = {}
    folded: dict[str, str] = {}
    for row in rows:
        for name, value in row.items():
            if name not in types:
                clash = folded.setdefault(name.lower(), name)
                if clash != name:
                    raise ValidationError(
                        f"Bulk load fields {clash!r} and {name!r} map to the same staging column"
                    )
                types[name] = None
            if value is None:
                continue
            seen = storage_type(value)
            current = types[name]
            types[name] = seen if current is None else _widen(current, seen)

    table_name = validate_identifier(f"{prefix}{uuid.uuid4().hex}", "staging table name")
    columns = tuple(StagingColumn(name, sql_type or TEXT) for name, sql_type in types.items())
    return StagingSchema(table_name=table_name, columns=columns)


class BulkLoader:
    """
    Stages a record set in a temporary table and hands it to a stored
    procedure.

    Flow, all on one connection and transaction:
        1. check the procedure exists in the current schema
        2. CREATE TEMPORARY TABLE with a derived schema
        3. one multi-row INSERT of every record
        4. CALL <procedure>(<staging table name>)
        5. SHOW WARNINGS; any Error-level row fails the load
        6. DROP TEMPORARY TABLE, on every path once created

    Failures are logged and reported in the returned TxResult. Bulk loads
    are not retried.

    ⚠️ The procedure name is interpolated into the CALL; it is validated
    as a plain identifier first.
    """

    def __init__(
        self,
        factory: TxFactory,
        config: BulkLoadConfig | None = None,
        db_config: DbConfig | None = None,
    ) -> None:
        self.factory = factory
        self.config = config or BulkLoadConfig()
        self.db_config = db_config or DbConfig()

    def load(
        self,
        procedure: str,
        records: Iterable[Any],
        *,
        cancel: CancelToken | None = None,
    ) -> TxResult:
        """
        Raises:
            ValidationError: unsafe procedure name, empty or oversize record
                set, records with no fields, or field names that differ only by
                case; no database work is done
        """
        validate_identifier(procedure, "procedure name")
        rows = self._rows(records)
        schema = derive_schema(rows, self.config.temp_table_prefix)
        if not schema.columns:
            raise ValidationError("Bulk load records have no fields")
        insert = schema.insert_statement(rows)

        start = time.monotonic()
        try:
            self._run(procedure, schema, insert, cancel)
        except Exception as exc:
            kind, error = self._classify(exc)
            self._log_failure(procedure, rows, schema, error)
            observe_bulk_load(procedure, kind.value, len(rows), time.monotonic() - start)
            return TxResult.failed(1, kind, error)

        observe_bulk_load(procedure, "success", len(rows), time.monotonic() - start)
        logger.info(
            "Bulk load via %s committed: %d row(s), %d column(s)",
            procedure,
            len(rows),
            len(schema.columns),
        )
        return TxResult.committed(attempts=1, affected_rows=len(rows))

    def run_bulk_load(self, procedure: str, records: Iterable[Any]) -> bool:
        return self.load(procedure, records).ok

    def _rows(self, records: Iterable[Any]) -> list[dict[str, Any]]:
        if records is None:
            raise ValidationError("Bulk load records cannot be None")
        rows: list[dict[str, Any]] = []
        for record in records:
            try:
                rows.append(field_map(record))
            except TypeError as exc:
                raise ValidationError(str(exc)) from exc
            if len(rows) > self.config.max_rows:
                raise ValidationError(
                    f"Bulk load exceeds max_rows={self.config.max_rows}; split the record set"
                )
        if not rows:
            raise ValidationError("Bulk load record set is empty")
        return rows

    def _run(
        self,
        procedure: str,
        schema: StagingSchema,
        insert: GeneratedStatement,
        cancel: CancelToken | None,
    ) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()

        # Temp-table names are unique per load; keep them out of metric labels
        # and out of the engine-wide compiled cache.
        tx = self.factory.begin(track_metrics=False, execution_options=_UNCACHED)
        created = False
        try:
            if not procedure_exists(tx, procedure):
                raise ProcedureNotFoundError(f"Stored procedure {procedure!r} not found in current schema")

            tx.execute(schema.create_sql())
            created = True
            staged = tx.execute(insert.sql, insert.parameters)
            logger.debug("Staged %d row(s) in %s", staged, schema.table_name)

            if cancel is not None:
                cancel.raise_if_cancelled()

            returned = tx.call_procedure(procedure, {"table_name": schema.table_name})
            if returned:
                logger.debug("Procedure %s returned %d row(s): %s", procedure, len(returned), returned)

            self._check_diagnostics(tx, procedure)
        except BaseException:
            if created:
                self._drop(tx, schema)
            self._rollback(tx)
            raise

        self._drop(tx, schema)
        tx.commit()

    def _check_diagnostics(self, tx: DbTx, procedure: str) -> None:
        diagnostics = tx.fetch_all("SHOW WARNINGS")
        errors = []
        for entry in diagnostics:
            level = str(entry.get("Level", "")).lower()
            if level == "error":
                errors.append(entry)
            else:
                logger.warning(
                    "Procedure %s %s [%s]: %s",
                    procedure,
                    level or "diagnostic",
                    entry.get("Code"),
                    entry.get("Message"),
                )
        if errors:
            raise ProcedureDiagnosticError(procedure, errors)

    def _drop(self, tx: DbTx, schema: StagingSchema) -> None:
        try:
            tx.execute(schema.drop_sql())
        except Exception:
            # The table still disappears when its session ends.
            logger.warning("Failed to drop staging table %s", schema.table_name, exc_info=True)

    def _rollback(self, tx: DbTx) -> None:
        try:
            tx.rollback()
        except Exception:
            logger.warning("Rollback failed", exc_info=True)

    def _classify(self, exc: Exception) -> tuple[ErrorKind, Exception]:
        if isinstance(exc, OperationCancelledError):
            return ErrorKind.CANCELLED, exc
        if isinstance(exc, ProcedureNotFoundError):
            return ErrorKind.PROCEDURE_MISSING, exc
        if isinstance(exc, ProcedureDiagnosticError):
            return ErrorKind.DIAGNOSTIC, exc
        if isinstance(exc, BulkLoadError):
            return ErrorKind.PERMANENT, exc
        error: DbWriteError = classify(exc, self.db_config.retry.transient_error_codes)
        if isinstance(error, TransientDatabaseError):
            return ErrorKind.TRANSIENT, error
        return ErrorKind.PERMANENT, error

    def _log_failure(
        self,
        procedure: str,
        rows: Sequence[Mapping[str, Any]],
        schema: StagingSchema,
        error: Exception,
    ) -> None:
        names = schema.column_names
        logger.error(
            "Bulk load via %s failed: rows=%d columns=%d first_column=%s last_column=%s: %s",
            procedure,
            len(rows),
            len(names),
            names[0] if names else None,
            names[-1] if names else None,
            error,
        )
