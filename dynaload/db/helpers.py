from __future__ import annotations

import re

from sqlalchemy.sql.elements import TextClause

_OPERATION_PATTERNS = (
    (re.compile(r"^\s*INSERT\s+(?:IGNORE\s+)?INTO\s+(`[^`]+`|[^\s(]+)", re.IGNORECASE), "insert"),
    (re.compile(r"^\s*UPDATE\s+(`[^`]+`|\S+)", re.IGNORECASE), "update"),
    (re.compile(r"^\s*DELETE\s+FROM\s+(`[^`]+`|\S+)", re.IGNORECASE), "delete"),
    (re.compile(r"^\s*TRUNCATE\s+(?:TABLE\s+)?(`[^`]+`|\S+)", re.IGNORECASE), "truncate"),
)


def _parse_sql_operation(sql: str | TextClause) -> tuple[str, str]:
    """
    Best-effort (table, op_type) extraction for metrics labels.

    Returns ("unknown", "unknown") for anything that is not a plain
    INSERT / UPDATE / DELETE / TRUNCATE.

    Example:
        >>> _parse_sql_operation("INSERT INTO `orders` (id) VALUES (:id)")
        ('orders', 'insert')
    """
    raw = sql.text if isinstance(sql, TextClause) else sql
    for pattern, op_type in _OPERATION_PATTERNS:
        match = pattern.match(raw)
        if match:
            return match.group(1).strip("`"), op_type
    return "unknown", "unknown"
