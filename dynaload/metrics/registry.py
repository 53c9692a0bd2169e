from __future__ import annotations

from prometheus_client import Counter, Histogram

DB_WRITE_TOTAL = Counter(
    "dynaload_db_write_total",
    "Statements executed inside a finished transaction",
    ["table", "op_type", "status"],
)

DB_WRITE_LATENCY_SECONDS = Histogram(
    "dynaload_db_write_latency_seconds",
    "Time from statement start to transaction end",
    ["table", "op_type"],
)

TX_ATTEMPTS_TOTAL = Counter(
    "dynaload_tx_attempts_total",
    "Transaction attempts by outcome",
    ["outcome"],
)

TX_RETRY_DELAY_SECONDS = Histogram(
    "dynaload_tx_retry_delay_seconds",
    "Backoff delay waited before a transaction retry",
    buckets=(0.5, 1.0, 2.0, 4.0, 8.0, 16.0, 32.0),
)

BULK_LOAD_TOTAL = Counter(
    "dynaload_bulk_load_total",
    "Bulk loads by procedure and status",
    ["procedure", "status"],
)

BULK_LOAD_ROWS_TOTAL = Counter(
    "dynaload_bulk_load_rows_total",
    "Rows staged by successful bulk loads",
    ["procedure"],
)

BULK_LOAD_LATENCY_SECONDS = Histogram(
    "dynaload_bulk_load_latency_seconds",
    "End-to-end bulk load duration",
    ["procedure"],
)
