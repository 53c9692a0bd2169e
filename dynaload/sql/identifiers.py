from __future__ import annotations

import re

from ..errors import ValidationError

_QUOTE = "`"
_NON_WORD = re.compile(r"\W", re.UNICODE)
_UNDERSCORES = re.compile(r"_+")
_IDENTIFIER = re.compile(r"^\w+$", re.UNICODE)
_UNSAFE_TABLE_KEYWORDS = ("select", "insert", "update", "delete")

# MySQL identifier length limit.
MAX_IDENTIFIER_LENGTH = 64


def quote_identifier(name: str) -> str:
    """
    Wrap a column name in MySQL backticks.

    Embedded backticks are doubled. A name that is already correctly
    quoted (wrapped, with every inner backtick doubled) is returned
    unchanged, so quoting twice is harmless. Anything else is escaped and
    wrapped as a whole.

    ⚠️ SECURITY CONTRACT ⚠️
    No allow-list filtering happens here. Names may come straight from
    record fields (spreadsheet headers); escaping keeps any such name a
    single identifier.

    Example:
        >>> quote_identifier("수취인명")
        '`수취인명`'
        >>> quote_identifier("주문번호(쇼핑몰)")
        '`주문번호(쇼핑몰)`'
        >>> quote_identifier("`qty`")
        '`qty`'
    """
    if _is_quoted(name):
        return name
    return _QUOTE + name.replace(_QUOTE, _QUOTE * 2) + _QUOTE


def _is_quoted(name: str) -> bool:
    if len(name) < 2 or not (name.startswith(_QUOTE) and name.endswith(_QUOTE)):
        return False
    return _QUOTE not in name[1:-1].replace(_QUOTE * 2, "")


def text_identifier(name: str) -> str:
    """
    quote_identifier() for SQL passed to SQLAlchemy text().

    text() reads ``:word`` as a bind parameter, so literal colons inside
    the identifier are backslash-escaped.
    """
    return quote_identifier(name).replace(":", "\\:")


def safe_parameter_name(name: str) -> str:
    """
    Turn an arbitrary property name into a bind-parameter name.

    Every non-word character (brackets, punctuation, quotes, slashes,
    hyphens, whitespace) becomes ``_``; runs of ``_`` collapse; leading and
    trailing ``_`` are trimmed; a leading digit gets a ``p`` prefix.
    Unicode letters are kept.

    Example:
        >>> safe_parameter_name("주문번호(쇼핑몰)")
        '주문번호_쇼핑몰'
        >>> safe_parameter_name("1번컬럼")
        'p1번컬럼'
    """
    safe = _NON_WORD.sub("_", name)
    safe = _UNDERSCORES.sub("_", safe).strip("_")
    if not safe:
        return "p"
    if safe[0].isdigit():
        safe = "p" + safe
    return safe


def is_safe_table_name(name: str) -> bool:
    """
    Defense-in-depth check for operator-supplied table names.

    Rejects blank names, whitespace, ``.``, ``-`` and the case-insensitive
    substrings select/insert/update/delete. Not a substitute for
    parameterization.
    """
    if not name or not name.strip():
        return False
    if any(ch.isspace() for ch in name) or "." in name or "-" in name:
        return False
    lowered = name.lower()
    return not any(keyword in lowered for keyword in _UNSAFE_TABLE_KEYWORDS)


def validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that an identifier is safe for SQL interpolation.

    Accepts word characters only (letters, including Unicode letters,
    digits and underscore), up to MySQL's 64-character limit. Used for
    stored procedure names and generated staging-table names.

    Returns:
        The validated identifier (unchanged if valid)

    Raises:
        ValidationError: If the identifier is not a string, empty, too long
            or contains unsafe characters

    Example:
        >>> validate_identifier("sp_load", "procedure")
        'sp_load'
        >>> validate_identifier("'; DROP TABLE--", "procedure")
        ValidationError: Invalid procedure "'; DROP TABLE--": ...
    """
    if not isinstance(name, str):
        raise ValidationError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise ValidationError(f"{identifier_type} cannot be empty")

    if not _IDENTIFIER.match(name):
        raise ValidationError(
            f"Invalid {identifier_type} {name!r}: "
            "must contain only letters, digits and underscores"
        )

    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise ValidationError(f"{identifier_type} {name!r} exceeds MySQL's 64-character limit")

    return name


def to_snake_case(name: str) -> str:
    """
    camelCase / PascalCase to snake_case.

    Example:
        >>> to_snake_case("RecipientName")
        'recipient_name'
    """
    out: list[str] = []
    for i, ch in enumerate(name):
        if i > 0 and ch.isupper():
            out.append("_")
        out.append(ch.lower())
    return _UNDERSCORES.sub("_", "".join(out)).strip("_")
