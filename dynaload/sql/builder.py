from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping

from ..errors import MissingRequiredFieldError, NoColumnsError, ValidationError
from ..mapping.models import TableMapping
from ..mapping.resolver import MappingResolver
from .identifiers import is_safe_table_name, safe_parameter_name, text_identifier, to_snake_case
from .models import GeneratedStatement, StatementType
from .records import field_map

logger = logging.getLogger(__name__)


class RequiredPolicy(str, Enum):
    """What to do when a record omits a field its mapping marks as required."""
    OMIT = "omit"  # leave the column out of the statement, keep the row
    REJECT = "reject"  # raise MissingRequiredFieldError


class _ParamAllocator:
    """Assigns one bind-parameter name per property, suffixing collisions."""

    def __init__(self) -> None:
        self.params: dict[str, Any] = {}
        self._by_property: dict[str, str] = {}

    def bind(self, property_name: str, value: Any) -> str:
        existing = self._by_property.get(property_name)
        if existing is not None:
            return existing
        base = safe_parameter_name(property_name)
        name = base
        suffix = 2
        while name in self.params:
            name = f"{base}_{suffix}"
            suffix += 1
        self.params[name] = value
        self._by_property[property_name] = name
        return name

    def merge(self, extra: Mapping[str, Any]) -> None:
        for key, value in extra.items():
            if key in self.params:
                raise ValidationError(f"where_params key {key!r} collides with a generated parameter")
            self.params[key] = value


class StatementBuilder:
    """
    Generates parameterized INSERT / UPDATE / DELETE / TRUNCATE statements.

    Columns come from the table's mapping when one exists; otherwise the
    record's own fields are used as both property and column names
    (reflective fallback), so a new entity type works before its mapping is
    written. Builders are pure: they never touch the database.

    Usage:
        builder = StatementBuilder(MappingResolver("table_mappings.json"))
        stmt = builder.build_insert("orders", record, mapping_key="order_table")
        sql, params = stmt
    """

    def __init__(
        self,
        resolver: MappingResolver | None = None,
        *,
        required_policy: RequiredPolicy = RequiredPolicy.OMIT,
        snake_case_fallback: bool = False,
    ) -> None:
        self.resolver = resolver if resolver is not None else MappingResolver(None)
        self.required_policy = required_policy
        self.snake_case_fallback = snake_case_fallback

    def build_insert(
        self,
        table: str,
        record: Any,
        *,
        mapping_key: str | None = None,
    ) -> GeneratedStatement:
        """
        Build ``INSERT INTO <table> (<cols>) VALUES (<params>)``.

        Raises:
            ValidationError: If table is blank or record is None
            MissingRequiredFieldError: Under RequiredPolicy.REJECT
            NoColumnsError: If no column survives filtering
        """
        fields = self._fields(table, record)
        mapping = self._mapping(table, mapping_key)
        alloc = _ParamAllocator()

        columns: list[str] = []
        placeholders: list[str] = []
        for prop, column in self._columns(table, fields, mapping, for_update=False):
            columns.append(text_identifier(column))
            placeholders.append(":" + alloc.bind(prop, fields.get(prop)))

        if not columns:
            raise NoColumnsError(f"No insertable columns for table {table!r}")

        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join(placeholders)})"
        logger.debug("Built INSERT for %s: %s", table, sql)
        return GeneratedStatement(sql, alloc.params, table, StatementType.INSERT)

    def build_update(
        self,
        table: str,
        record: Any,
        where: str | None = None,
        *,
        where_params: Mapping[str, Any] | None = None,
        mapping_key: str | None = None,
        allow_full_table: bool = False,
    ) -> GeneratedStatement:
        """
        Build ``UPDATE <table> SET col = :p, ... [WHERE ...]``.

        An explicit `where` clause wins; `where_params` supplies its values.
        Without one, the mapping's primary key yields
        ``WHERE <pk column> = :<pk>`` bound to the record's key value.

        Raises:
            ValidationError: If table is blank, record is None, or no WHERE
                clause can be formed and `allow_full_table` is False
            NoColumnsError: If no column survives filtering
        """
        fields = self._fields(table, record)
        mapping = self._mapping(table, mapping_key)
        alloc = _ParamAllocator()

        assignments = [
            f"{text_identifier(column)} = :{alloc.bind(prop, fields.get(prop))}"
            for prop, column in self._columns(table, fields, mapping, for_update=True)
        ]
        if not assignments:
            raise NoColumnsError(f"No updatable columns for table {table!r}")

        sql = f"UPDATE {table} SET {', '.join(assignments)}"
        sql += self._where_sql(table, fields, mapping, alloc, where, where_params, allow_full_table)
        logger.debug("Built UPDATE for %s: %s", table, sql)
        return GeneratedStatement(sql, alloc.params, table, StatementType.UPDATE)

    def build_delete(
        self,
        table: str,
        record: Any,
        where: str | None = None,
        *,
        where_params: Mapping[str, Any] | None = None,
        mapping_key: str | None = None,
        allow_full_table: bool = False,
    ) -> GeneratedStatement:
        """
        Build ``DELETE FROM <table> [WHERE ...]`` using the UPDATE WHERE rules.
        """
        fields = self._fields(table, record)
        mapping = self._mapping(table, mapping_key)
        alloc = _ParamAllocator()

        sql = f"DELETE FROM {table}"
        sql += self._where_sql(table, fields, mapping, alloc, where, where_params, allow_full_table)
        logger.debug("Built DELETE for %s: %s", table, sql)
        return GeneratedStatement(sql, alloc.params, table, StatementType.DELETE)

    def build_truncate(self, table: str) -> GeneratedStatement:
        """
        Build ``TRUNCATE TABLE <table>``. Mapping contents are ignored.

        Raises:
            ValidationError: If the table name is blank or fails is_safe_table_name
        """
        if not isinstance(table, str) or not table.strip():
            raise ValidationError("table name cannot be blank")
        if not is_safe_table_name(table):
            raise ValidationError(f"Unsafe table name for TRUNCATE: {table!r}")
        return GeneratedStatement(f"TRUNCATE TABLE {table}", {}, table, StatementType.TRUNCATE)

    def _fields(self, table: str, record: Any) -> Mapping[str, Any]:
        if not isinstance(table, str) or not table.strip():
            raise ValidationError("table name cannot be blank")
        if record is None:
            raise ValidationError(f"record for table {table!r} cannot be None")
        try:
            return field_map(record)
        except TypeError as exc:
            raise ValidationError(str(exc)) from exc

    def _mapping(self, table: str, mapping_key: str | None) -> TableMapping | None:
        mapping = self.resolver.resolve(mapping_key or table)
        if mapping is None:
            logger.debug("No mapping for %s; using record fields", mapping_key or table)
        return mapping

    def _columns(
        self,
        table: str,
        fields: Mapping[str, Any],
        mapping: TableMapping | None,
        *,
        for_update: bool,
    ) -> list[tuple[str, str]]:
        """(property name, database column) pairs in statement order."""
        if mapping is None:
            if self.snake_case_fallback:
                return [(name, to_snake_case(name)) for name in fields]
            return [(name, name) for name in fields]

        pairs: list[tuple[str, str]] = []
        for column in mapping.columns:
            excluded = column.exclude_from_update if for_update else column.exclude_from_insert
            if excluded:
                continue
            if column.is_required and column.property_name not in fields:
                if self.required_policy is RequiredPolicy.REJECT:
                    raise MissingRequiredFieldError(table, column.property_name)
                logger.warning(
                    "Required field %s missing for %s; omitting column %s",
                    column.property_name,
                    table,
                    column.database_column,
                )
                continue
            pairs.append((column.property_name, column.database_column))
        return pairs

    def _where_sql(
        self,
        table: str,
        fields: Mapping[str, Any],
        mapping: TableMapping | None,
        alloc: _ParamAllocator,
        where: str | None,
        where_params: Mapping[str, Any] | None,
        allow_full_table: bool,
    ) -> str:
        if where is not None and where.strip():
            if where_params:
                alloc.merge(where_params)
            return f" WHERE {where}"

        pk = mapping.primary_key if mapping is not None else None
        if pk and fields.get(pk) is not None:
            pk_column = mapping.column_for_property(pk)
            column = pk_column.database_column if pk_column is not None else pk
            name = alloc.bind(pk, fields[pk])
            return f" WHERE {text_identifier(column)} = :{name}"

        if not allow_full_table:
            raise ValidationError(
                f"No WHERE clause for {table!r}: supply one, configure a primary key "
                "with a value in the record, or pass allow_full_table=True"
            )
        logger.warning("Statement on %s has no WHERE clause and affects every row", table)
        return ""
