from .models import ColumnMapping, DataType, TableMapping
from .resolver import MappingResolver

__all__ = [
    "ColumnMapping",
    "DataType",
    "MappingResolver",
    "TableMapping",
]
