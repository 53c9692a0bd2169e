from __future__ import annotations

from typing import Any, Mapping, Protocol

_TABLE_EXISTS_SQL = (
    "SELECT COUNT(*) FROM information_schema.TABLES "
    "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :name"
)

_PROCEDURE_EXISTS_SQL = (
    "SELECT COUNT(*) FROM information_schema.ROUTINES "
    "WHERE ROUTINE_SCHEMA = DATABASE() AND ROUTINE_NAME = :name "
    "AND ROUTINE_TYPE = 'PROCEDURE'"
)


class ScalarRunner(Protocol):
    def execute_scalar(self, sql: str, params: Mapping[str, Any] | None = None) -> Any:
        ...


def table_exists(runner: ScalarRunner, name: str) -> bool:
    """True if a base table or view called `name` exists in the current schema."""
    return int(runner.execute_scalar(_TABLE_EXISTS_SQL, {"name": name}) or 0) > 0


def procedure_exists(runner: ScalarRunner, name: str) -> bool:
    """True if a stored procedure called `name` exists in the current schema."""
    return int(runner.execute_scalar(_PROCEDURE_EXISTS_SQL, {"name": name}) or 0) > 0
