from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TxStatus(str, Enum):
    COMMITTED = "committed"
    FAILED = "failed"


class ErrorKind(str, Enum):
    NONE = "none"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    CANCELLED = "cancelled"
    PROCEDURE_MISSING = "procedure_missing"
    DIAGNOSTIC = "diagnostic"


@dataclass(frozen=True)
class TxResult:
    """
    Outcome of a transaction or bulk load.

    Truthy on success. `error` holds the classified exception on failure;
    `raise_for_status()` re-raises it for callers that prefer exceptions.
    """
    status: TxStatus
    attempts: int
    affected_rows: int = 0
    error_kind: ErrorKind = ErrorKind.NONE
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status is TxStatus.COMMITTED

    def __bool__(self) -> bool:
        return self.ok

    def raise_for_status(self) -> None:
        if not self.ok and self.error is not None:
            raise self.error

    @classmethod
    def committed(cls, attempts: int, affected_rows: int) -> "TxResult":
        return cls(TxStatus.COMMITTED, attempts=attempts, affected_rows=affected_rows)

    @classmethod
    def failed(cls, attempts: int, kind: ErrorKind, error: BaseException) -> "TxResult":
        return cls(TxStatus.FAILED, attempts=attempts, error_kind=kind, error=error)
