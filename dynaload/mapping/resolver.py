from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from ..errors import MappingError
from .models import TableMapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Catalog:
    by_key: Mapping[str, TableMapping]
    by_table: Mapping[str, TableMapping]

    @classmethod
    def build(cls, mappings: Mapping[str, TableMapping]) -> "_Catalog":
        by_table: dict[str, TableMapping] = {}
        for mapping in mappings.values():
            by_table.setdefault(mapping.table_name, mapping)
        return cls(
            by_key=MappingProxyType(dict(mappings)),
            by_table=MappingProxyType(by_table),
        )


_EMPTY = _Catalog.build({})


class MappingResolver:
    """
    Loads per-table column mappings and resolves them by name.

    `source` is either a directory of per-table ``*.json`` definitions or a
    single catalog file of the form ``{"<mapping key>": {<definition>}, ...}``.
    A missing source yields an empty catalog so that callers fall back to
    reflective column derivation.

    The loaded catalog is an immutable snapshot. `reload()` builds a new
    snapshot and swaps the reference in one assignment, so concurrent
    `resolve()` calls never observe a half-loaded catalog.

    Usage:
        resolver = MappingResolver("config/table_mappings.json")
        mapping = resolver.resolve("order_table")
        if mapping is None:
            ...  # reflective fallback
    """

    def __init__(self, source: str | Path | None = None) -> None:
        self.source = Path(source) if source is not None else None
        self._injected: dict[str, TableMapping] | None = None
        self._catalog = _EMPTY
        self.reload()

    @classmethod
    def from_mappings(cls, mappings: Mapping[str, TableMapping]) -> "MappingResolver":
        """
        Build a resolver from already-constructed mappings (no file source).

        reload() rebuilds the catalog from these same mappings.
        """
        resolver = cls(None)
        resolver._injected = dict(mappings)
        resolver.reload()
        return resolver

    def resolve(self, name: str) -> TableMapping | None:
        """
        Look up a mapping by mapping key, then by its tableName.

        Returns None when neither matches.
        """
        catalog = self._catalog
        mapping = catalog.by_key.get(name)
        if mapping is None:
            mapping = catalog.by_table.get(name)
        return mapping

    def reload(self) -> None:
        loaded = self._load()
        self._catalog = _Catalog.build(loaded)
        logger.info("Loaded %d table mapping(s) from %s", len(loaded), self.source or "injected mappings")

    def table_names(self) -> list[str]:
        return list(self._catalog.by_key)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.resolve(name) is not None

    def __len__(self) -> int:
        return len(self._catalog.by_key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.table_names())

    def _load(self) -> dict[str, TableMapping]:
        if self._injected is not None:
            return dict(self._injected)
        if self.source is None:
            return {}
        if not self.source.exists():
            logger.warning("Mapping source %s does not exist; starting with an empty catalog", self.source)
            return {}
        if self.source.is_dir():
            return self._load_directory(self.source)
        return self._load_catalog_file(self.source)

    def _load_directory(self, directory: Path) -> dict[str, TableMapping]:
        mappings: dict[str, TableMapping] = {}
        for path in sorted(directory.glob("*.json")):
            try:
                raw = _read_json(path)
                mapping = TableMapping.from_dict(raw)
            except (OSError, ValueError, MappingError) as exc:
                logger.warning("Skipping mapping file %s: %s", path, exc)
                continue
            key = mapping.table_name or path.stem
            if key in mappings:
                logger.warning("Skipping mapping file %s: duplicate table %r", path, key)
                continue
            mappings[key] = mapping
        return mappings

    def _load_catalog_file(self, path: Path) -> dict[str, TableMapping]:
        try:
            raw = _read_json(path)
        except (OSError, ValueError) as exc:
            logger.warning("Mapping catalog %s is unreadable; starting with an empty catalog: %s", path, exc)
            return {}
        if raw is None:
            logger.warning("Mapping catalog %s is empty", path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Mapping catalog %s must contain a JSON object", path)
            return {}

        # A file holding a single definition rather than a keyed catalog.
        if "tableName" in raw:
            raw = {str(raw.get("tableName")): raw}

        mappings: dict[str, TableMapping] = {}
        for key, definition in raw.items():
            try:
                mappings[key] = TableMapping.from_dict(definition)
            except MappingError as exc:
                logger.warning("Skipping mapping %r in %s: %s", key, path, exc)
        return mappings


def _read_json(path: Path) -> Any:
    text = path.read_text(encoding="utf-8-sig")
    if not text.strip():
        return None
    return json.loads(text)
