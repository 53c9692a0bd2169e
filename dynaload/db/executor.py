from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Mapping, Tuple, Union

from ..cancel import CancelToken
from ..config import DbConfig
from ..errors import DbWriteError, OperationCancelledError, TransientDatabaseError
from ..result import ErrorKind, TxResult
from ..sql.models import GeneratedStatement
from .classify import classify
from .metrics import observe_retry_delay, observe_tx_attempt
from .tx import DbTx, TxFactory

logger = logging.getLogger(__name__)

Statement = Union[GeneratedStatement, Tuple[str, Mapping[str, Any]]]


class TransactionExecutor:
    """
    Runs an ordered list of statements in one transaction, retrying the
    whole transaction on transient database errors.

    Per attempt: open a connection and begin, execute every statement in
    order, commit. A transient failure (deadlock, lock wait timeout, out of
    memory, lost connection) rolls back and, while retry budget remains,
    waits `RetryPolicy.delays[attempt]` and replays the full list on a
    fresh connection. Any other failure rolls back and fails immediately.

    Retries replay statements that already ran in the rolled-back attempt;
    callers own the idempotency of the batch as a whole.

    Usage:
        executor = TransactionExecutor(DbFactory(engine), DbConfig())
        result = executor.execute_transaction([stmt1, stmt2])
        if not result:
            log.error("load failed: %s", result.error)
    """

    def __init__(
        self,
        factory: TxFactory,
        config: DbConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.factory = factory
        self.config = config or DbConfig()
        self._sleep = sleep

    def execute_transaction(
        self,
        statements: Iterable[Statement],
        *,
        cancel: CancelToken | None = None,
    ) -> TxResult:
        """
        Execute `statements` atomically with retry on transient errors.

        Returns:
            TxResult: truthy on commit; on failure carries the classified
            error (TransientDatabaseError once the budget is exhausted,
            PermanentDatabaseError, or OperationCancelledError)
        """
        batch = list(statements)
        if not batch:
            logger.debug("Empty statement batch; nothing to execute")
            return TxResult.committed(attempts=0, affected_rows=0)

        policy = self.config.retry
        total_attempts = policy.max_retries + 1
        attempt = 0
        while True:
            attempts = attempt + 1
            try:
                affected = self._run_attempt(batch, attempts, total_attempts, cancel)
            except OperationCancelledError as exc:
                observe_tx_attempt("cancelled")
                logger.warning("Transaction cancelled on attempt %d/%d: %s", attempts, total_attempts, exc)
                return TxResult.failed(attempts, ErrorKind.CANCELLED, exc)
            except DbWriteError as err:
                transient = isinstance(err, TransientDatabaseError)
                observe_tx_attempt("transient" if transient else "permanent")
                if transient and attempt < policy.max_retries:
                    delay = policy.delay_for(attempt)
                    logger.warning(
                        "Transient error on attempt %d/%d (code=%s): %s; retrying in %.1fs",
                        attempts,
                        total_attempts,
                        err.code,
                        err,
                        delay,
                    )
                    try:
                        self._wait(delay, cancel)
                    except OperationCancelledError as exc:
                        logger.warning("Transaction cancelled while waiting to retry: %s", exc)
                        return TxResult.failed(attempts, ErrorKind.CANCELLED, exc)
                    attempt += 1
                    continue

                if transient:
                    logger.error("Transaction failed after %d attempts: %s", attempts, err)
                    return TxResult.failed(attempts, ErrorKind.TRANSIENT, err)
                logger.error("Transaction failed with permanent error (code=%s): %s", err.code, err)
                return TxResult.failed(attempts, ErrorKind.PERMANENT, err)

            observe_tx_attempt("committed")
            logger.info(
                "Transaction committed: %d statement(s), %d row(s) affected, attempt %d/%d",
                len(batch),
                affected,
                attempts,
                total_attempts,
            )
            return TxResult.committed(attempts=attempts, affected_rows=affected)

    def run_transaction(self, statements: Iterable[Statement]) -> bool:
        return self.execute_transaction(statements).ok

    def _run_attempt(
        self,
        batch: list[Statement],
        attempt: int,
        total_attempts: int,
        cancel: CancelToken | None,
    ) -> int:
        codes = self.config.retry.transient_error_codes
        if cancel is not None:
            cancel.raise_if_cancelled()

        try:
            tx = self.factory.begin()
        except Exception as exc:
            raise classify(exc, codes)

        logger.debug("Transaction attempt %d/%d started", attempt, total_attempts)
        affected = 0
        try:
            for index, statement in enumerate(batch, start=1):
                if cancel is not None:
                    cancel.raise_if_cancelled()
                sql, params = statement
                rows = tx.execute(sql, params)
                affected += rows
                logger.debug("Statement %d/%d affected %d row(s)", index, len(batch), rows)
        except OperationCancelledError:
            self._rollback(tx)
            raise
        except Exception as exc:
            self._rollback(tx)
            raise classify(exc, codes)

        try:
            tx.commit()
        except Exception as exc:
            raise classify(exc, codes)
        return affected

    def _rollback(self, tx: DbTx) -> None:
        # The failure that triggered the rollback is the one reported.
        try:
            tx.rollback()
        except Exception:
            logger.warning("Rollback failed", exc_info=True)

    def _wait(self, delay: float, cancel: CancelToken | None) -> None:
        observe_retry_delay(delay)
        if cancel is not None:
            cancel.wait(delay)
        else:
            self._sleep(delay)
