from .bulk import BulkLoader, StagingColumn, StagingSchema, derive_schema, storage_type
from .classify import classify, is_transient, mysql_error_code
from .engine import create_db_engine
from .executor import TransactionExecutor
from .schema import procedure_exists, table_exists
from .session import DbSession
from .tx import DbFactory, DbTransaction, DbTx, TxFactory

__all__ = [
    "BulkLoader",
    "DbFactory",
    "DbSession",
    "DbTransaction",
    "DbTx",
    "StagingColumn",
    "StagingSchema",
    "TransactionExecutor",
    "TxFactory",
    "classify",
    "create_db_engine",
    "derive_schema",
    "is_transient",
    "mysql_error_code",
    "procedure_exists",
    "storage_type",
    "table_exists",
]
