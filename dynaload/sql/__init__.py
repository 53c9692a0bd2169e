from .builder import RequiredPolicy, StatementBuilder
from .identifiers import (
    is_safe_table_name,
    quote_identifier,
    text_identifier,
    safe_parameter_name,
    to_snake_case,
    validate_identifier,
)
from .models import GeneratedStatement, StatementType
from .records import FieldMapSource, field_map

__all__ = [
    "FieldMapSource",
    "GeneratedStatement",
    "RequiredPolicy",
    "StatementBuilder",
    "StatementType",
    "field_map",
    "is_safe_table_name",
    "quote_identifier",
    "text_identifier",
    "safe_parameter_name",
    "to_snake_case",
    "validate_identifier",
]
