from __future__ import annotations

import dataclasses
from typing import Any, Mapping, Protocol, runtime_checkable


@runtime_checkable
class FieldMapSource(Protocol):
    """
    Capability for entity types that are not plain mappings.

    Implement once per entity type instead of relying on attribute scraping.
    """

    def as_field_map(self) -> Mapping[str, Any]:
        ...


def field_map(record: Any) -> Mapping[str, Any]:
    """
    Return a record's fields as an ordered name -> value mapping.

    Accepts a Mapping, an object implementing `as_field_map()`, or a
    dataclass instance (fields in declaration order, not recursed).

    Raises:
        TypeError: If the record supports none of the above
    """
    if isinstance(record, Mapping):
        return record
    if isinstance(record, FieldMapSource):
        return record.as_field_map()
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}
    raise TypeError(
        f"Record of type {type(record).__name__} is not a mapping, "
        "a dataclass, or an object with as_field_map()"
    )
