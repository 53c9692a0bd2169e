from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy.engine import Engine

from .cancel import CancelToken
from .config import BulkLoadConfig, DbConfig
from .db.bulk import BulkLoader
from .db.executor import Statement, TransactionExecutor
from .db.schema import table_exists
from .db.tx import DbFactory
from .mapping.resolver import MappingResolver
from .result import TxResult
from .sql.builder import RequiredPolicy, StatementBuilder

logger = logging.getLogger(__name__)


class Loader:
    """
    Entry point tying mappings, statement building and execution together.

    Usage:
        engine = create_db_engine("mysql+pymysql://user:pw@host/db")
        loader = Loader(engine, MappingResolver("table_mappings.json"))

        stmt = loader.builder.build_insert("orders", record)
        ok = loader.run_transaction([stmt])

        ok = loader.run_bulk_load("sp_import_orders", records)
    """

    def __init__(
        self,
        engine_or_factory: Engine | DbFactory,
        resolver: MappingResolver | None = None,
        config: DbConfig | None = None,
        bulk_config: BulkLoadConfig | None = None,
        *,
        required_policy: RequiredPolicy = RequiredPolicy.OMIT,
    ) -> None:
        self.config = config or DbConfig()
        if isinstance(engine_or_factory, Engine):
            self.factory = DbFactory(engine_or_factory)
        else:
            self.factory = engine_or_factory
        if resolver is None:
            resolver = MappingResolver(self.config.mapping_path)
        self.resolver = resolver
        self.builder = StatementBuilder(resolver, required_policy=required_policy)
        self.executor = TransactionExecutor(self.factory, self.config)
        self.bulk_loader = BulkLoader(self.factory, bulk_config, self.config)

    def run_transaction(self, statements: Iterable[Statement]) -> bool:
        """Execute statements as one transaction, retrying transient failures."""
        return self.executor.run_transaction(statements)

    def run_bulk_load(self, procedure: str, records: Iterable[Any]) -> bool:
        """Stage records in a temporary table and CALL `procedure` on it."""
        return self.bulk_loader.run_bulk_load(procedure, records)

    def insert_records(
        self,
        table: str,
        records: Iterable[Any],
        *,
        mapping_key: str | None = None,
        cancel: CancelToken | None = None,
    ) -> TxResult:
        """
        Build one INSERT per record and run them all in a single transaction.

        Raises:
            ValidationError / NoColumnsError: a record cannot be turned into
                a statement; nothing is executed
        """
        statements = [
            self.builder.build_insert(table, record, mapping_key=mapping_key)
            for record in records
        ]
        logger.info("Inserting %d record(s) into %s", len(statements), table)
        return self.executor.execute_transaction(statements, cancel=cancel)

    def reload_mappings(self) -> None:
        self.resolver.reload()
        logger.info("Reloaded %d table mapping(s)", len(self.resolver))

    def table_exists(self, table: str) -> bool:
        with self.factory.session() as session:
            return table_exists(session, table)
