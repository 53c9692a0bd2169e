from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from ..errors import MappingError

logger = logging.getLogger(__name__)


class DataType(str, Enum):
    VARCHAR = "VARCHAR"
    TEXT = "TEXT"
    INT = "INT"
    BIGINT = "BIGINT"
    DECIMAL = "DECIMAL"
    DATETIME = "DATETIME"
    DATE = "DATE"
    BOOLEAN = "BOOLEAN"

    @classmethod
    def parse(cls, raw: Any) -> "DataType":
        """Unknown or missing type names fall back to VARCHAR."""
        if raw is None or raw == "":
            return cls.VARCHAR
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            logger.warning("Unknown dataType %r, treating as VARCHAR", raw)
            return cls.VARCHAR


@dataclass(frozen=True)
class ColumnMapping:
    """
    One record property mapped to one database column.
    """
    property_name: str
    database_column: str
    data_type: DataType = DataType.VARCHAR
    is_required: bool = False
    exclude_from_insert: bool = False
    exclude_from_update: bool = False
    is_primary_key: bool = False
    is_auto_increment: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ColumnMapping":
        if not isinstance(raw, Mapping):
            raise MappingError(f"column definition must be an object, got {type(raw).__name__}")
        prop = raw.get("propertyName")
        column = raw.get("databaseColumn")
        if not isinstance(prop, str) or not prop.strip():
            raise MappingError("column definition is missing propertyName")
        if not isinstance(column, str) or not column.strip():
            raise MappingError(f"column {prop!r} is missing databaseColumn")
        return cls(
            property_name=prop,
            database_column=column,
            data_type=DataType.parse(raw.get("dataType")),
            is_required=bool(raw.get("isRequired", False)),
            exclude_from_insert=bool(raw.get("excludeFromInsert", False)),
            exclude_from_update=bool(raw.get("excludeFromUpdate", False)),
            is_primary_key=bool(raw.get("isPrimaryKey", False)),
            is_auto_increment=bool(raw.get("isAutoIncrement", False)),
        )


@dataclass(frozen=True)
class TableMapping:
    """
    Column mapping for one table. Immutable after load.

    Invariants: property_name and database_column are each unique
    across `columns`.
    """
    table_name: str
    columns: tuple[ColumnMapping, ...]
    primary_key: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        props = [c.property_name for c in self.columns]
        cols = [c.database_column for c in self.columns]
        if len(set(props)) != len(props):
            raise MappingError(f"table {self.table_name!r} has duplicate propertyName entries")
        if len(set(cols)) != len(cols):
            raise MappingError(f"table {self.table_name!r} has duplicate databaseColumn entries")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TableMapping":
        if not isinstance(raw, Mapping):
            raise MappingError(f"table definition must be an object, got {type(raw).__name__}")
        table_name = raw.get("tableName")
        if not isinstance(table_name, str) or not table_name.strip():
            raise MappingError("table definition is missing tableName")
        raw_columns = raw.get("columns")
        if not isinstance(raw_columns, list):
            raise MappingError(f"table {table_name!r} has no columns list")

        primary_key = raw.get("primaryKey") or None
        columns = tuple(ColumnMapping.from_dict(c) for c in raw_columns)
        if primary_key is None:
            # A column flagged isPrimaryKey stands in for a missing primaryKey.
            flagged = [c.property_name for c in columns if c.is_primary_key]
            if len(flagged) == 1:
                primary_key = flagged[0]

        return cls(
            table_name=table_name,
            columns=columns,
            primary_key=primary_key,
            description=raw.get("description"),
        )

    def column_for_property(self, property_name: str) -> ColumnMapping | None:
        for column in self.columns:
            if column.property_name == property_name:
                return column
        return None
