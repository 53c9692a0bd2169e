from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class StatementType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    TRUNCATE = "truncate"


@dataclass(frozen=True)
class GeneratedStatement:
    """
    One parameterized statement ready for execution.

    `sql` uses SQLAlchemy text() placeholders (``:name``); `parameters` is
    keyed by the bare placeholder names and is read-only.
    """
    sql: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    table: str | None = None
    statement_type: StatementType | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    def __iter__(self):
        # Allows `sql, params = statement`.
        yield self.sql
        yield self.parameters
