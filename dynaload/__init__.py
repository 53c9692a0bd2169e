from .cancel import CancelToken
from .config import BulkLoadConfig, DbConfig, RetryPolicy
from .loader import Loader
from .mapping import ColumnMapping, DataType, MappingResolver, TableMapping
from .result import ErrorKind, TxResult, TxStatus
from .sql import GeneratedStatement, RequiredPolicy, StatementBuilder

__all__ = [
    "BulkLoadConfig",
    "CancelToken",
    "ColumnMapping",
    "DataType",
    "DbConfig",
    "ErrorKind",
    "GeneratedStatement",
    "Loader",
    "MappingResolver",
    "RequiredPolicy",
    "RetryPolicy",
    "StatementBuilder",
    "TableMapping",
    "TxResult",
    "TxStatus",
]
