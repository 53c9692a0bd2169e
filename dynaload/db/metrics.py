from __future__ import annotations

from ..metrics.registry import (
    BULK_LOAD_LATENCY_SECONDS,
    BULK_LOAD_ROWS_TOTAL,
    BULK_LOAD_TOTAL,
    DB_WRITE_LATENCY_SECONDS,
    DB_WRITE_TOTAL,
    TX_ATTEMPTS_TOTAL,
    TX_RETRY_DELAY_SECONDS,
)


def observe_db_write(table: str, op_type: str, status: str, latency_s: float) -> None:
    DB_WRITE_TOTAL.labels(table=table, op_type=op_type, status=status).inc()
    DB_WRITE_LATENCY_SECONDS.labels(table=table, op_type=op_type).observe(latency_s)


def observe_tx_attempt(outcome: str) -> None:
    """outcome is one of: committed, transient, permanent, cancelled."""
    TX_ATTEMPTS_TOTAL.labels(outcome=outcome).inc()


def observe_retry_delay(delay_s: float) -> None:
    TX_RETRY_DELAY_SECONDS.observe(delay_s)


def observe_bulk_load(procedure: str, status: str, rows: int, latency_s: float) -> None:
    BULK_LOAD_TOTAL.labels(procedure=procedure, status=status).inc()
    BULK_LOAD_LATENCY_SECONDS.labels(procedure=procedure).observe(latency_s)
    if status == "success":
        BULK_LOAD_ROWS_TOTAL.labels(procedure=procedure).inc(rows)
