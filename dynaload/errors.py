from __future__ import annotations

from typing import Any, Sequence


class DynaloadError(Exception):
    """Base exception for dynaload errors."""


class ValidationError(DynaloadError):
    """Caller input rejected before any database work was attempted."""


class MissingRequiredFieldError(ValidationError):
    """A record omits a field its mapping marks as required."""

    def __init__(self, table: str, property_name: str) -> None:
        super().__init__(
            f"Record for table {table!r} is missing required field {property_name!r}"
        )
        self.table = table
        self.property_name = property_name


class NoColumnsError(DynaloadError):
    """A statement would have zero columns after filtering."""


class MappingError(DynaloadError):
    """A single table mapping definition is unreadable or malformed."""


class DbWriteError(DynaloadError):
    """Any failure during DB write."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class TransientDatabaseError(DbWriteError):
    """Failure expected to clear on retry (deadlock, lost connection, ...)."""


class PermanentDatabaseError(DbWriteError):
    """Failure that will not clear on retry (constraint, bad SQL, ...)."""


class OperationCancelledError(DynaloadError):
    """The caller's cancel token fired or its deadline passed."""


class BulkLoadError(DynaloadError):
    """Failure on the staging-table + stored-procedure path."""


class ProcedureNotFoundError(BulkLoadError):
    """The target stored procedure does not exist in the current schema."""


class ProcedureDiagnosticError(BulkLoadError):
    """The procedure returned normally but left errors in the session diagnostics."""

    def __init__(self, procedure: str, diagnostics: Sequence[dict[str, Any]]) -> None:
        first = diagnostics[0] if diagnostics else {}
        super().__init__(
            f"Procedure {procedure!r} reported {len(diagnostics)} error(s); "
            f"first: [{first.get('Code')}] {first.get('Message')}"
        )
        self.procedure = procedure
        self.diagnostics = list(diagnostics)
