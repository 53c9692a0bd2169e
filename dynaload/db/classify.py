from __future__ import annotations

from sqlalchemy.exc import DBAPIError

from ..config import DEFAULT_TRANSIENT_ERROR_CODES
from ..errors import DbWriteError, PermanentDatabaseError, TransientDatabaseError


def mysql_error_code(exc: BaseException) -> int | None:
    """
    Extract the MySQL error number from a driver or SQLAlchemy exception.

    PyMySQL puts the number in args[0]; SQLAlchemy wraps the driver
    exception in `.orig`.
    """
    orig = exc.orig if isinstance(exc, DBAPIError) else exc
    args = getattr(orig, "args", None)
    if args and isinstance(args[0], int):
        return args[0]
    return None


def is_transient(
    exc: BaseException,
    transient_codes: frozenset[int] = DEFAULT_TRANSIENT_ERROR_CODES,
) -> bool:
    if isinstance(exc, TransientDatabaseError):
        return True
    if isinstance(exc, DbWriteError):
        return False
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return mysql_error_code(exc) in transient_codes


def classify(
    exc: BaseException,
    transient_codes: frozenset[int] = DEFAULT_TRANSIENT_ERROR_CODES,
) -> DbWriteError:
    """
    Wrap any failure as TransientDatabaseError or PermanentDatabaseError.

    Already-classified errors are returned as-is. The original exception
    is chained as __cause__.
    """
    if isinstance(exc, DbWriteError):
        return exc
    code = mysql_error_code(exc)
    message = str(exc.orig) if isinstance(exc, DBAPIError) else str(exc)
    if is_transient(exc, transient_codes):
        wrapped: DbWriteError = TransientDatabaseError(message, code=code)
    else:
        wrapped = PermanentDatabaseError(message, code=code)
    wrapped.__cause__ = exc
    return wrapped
