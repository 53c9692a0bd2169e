from __future__ import annotations

import pytest

from dynaload.db.bulk import BulkLoader
from dynaload.db.executor import TransactionExecutor
from dynaload.db.tx import DbFactory
from dynaload.metrics.registry import BULK_LOAD_TOTAL, DB_WRITE_TOTAL, TX_ATTEMPTS_TOTAL

pytestmark = pytest.mark.mysql


def _get_counter_value(table: str, op_type: str, status: str) -> float:
    """Get current counter value for DB write metric."""
    return DB_WRITE_TOTAL.labels(table=table, op_type=op_type, status=status)._value.get()


class TestTransactionMetricsIntegration:
    """Integration tests for metrics emitted by DbTransaction and TransactionExecutor."""

    def test_committed_writes_emit_success(self, engine, orders_table: str) -> None:
        """Test that each committed write is counted under its table and operation."""
        initial_insert = _get_counter_value(orders_table, "insert", "success")
        initial_update = _get_counter_value(orders_table, "update", "success")
        initial_committed = TX_ATTEMPTS_TOTAL.labels(outcome="committed")._value.get()

        result = TransactionExecutor(DbFactory(engine)).execute_transaction(
            [
                (f"INSERT INTO `{orders_table}` (order_no) VALUES (:o)", {"o": "A-1"}),
                (f"UPDATE `{orders_table}` SET qty = :q WHERE order_no = :o", {"q": 2, "o": "A-1"}),
            ]
        )

        assert result.ok
        assert _get_counter_value(orders_table, "insert", "success") == initial_insert + 1
        assert _get_counter_value(orders_table, "update", "success") == initial_update + 1
        assert TX_ATTEMPTS_TOTAL.labels(outcome="committed")._value.get() == initial_committed + 1

    def test_rolled_back_writes_emit_error(self, engine, orders_table: str) -> None:
        """Test that writes in a rolled-back transaction are counted as errors."""
        initial_error = _get_counter_value(orders_table, "insert", "error")
        insert = f"INSERT INTO `{orders_table}` (order_no) VALUES (:o)"

        result = TransactionExecutor(DbFactory(engine)).execute_transaction(
            [(insert, {"o": "A-1"}), (insert, {"o": "A-1"})]
        )

        assert not result
        assert _get_counter_value(orders_table, "insert", "error") >= initial_error + 1

    def test_bulk_load_keeps_staging_tables_out_of_labels(
        self, engine, procedure_factory
    ) -> None:
        """Test that a bulk load is counted per procedure, not per staging table."""
        proc = procedure_factory("BEGIN DO 1; END")
        initial = BULK_LOAD_TOTAL.labels(procedure=proc, status="success")._value.get()

        assert BulkLoader(DbFactory(engine)).run_bulk_load(proc, [{"a": 1}])

        assert BULK_LOAD_TOTAL.labels(procedure=proc, status="success")._value.get() == initial + 1
        for metric in DB_WRITE_TOTAL.collect():
            assert not any(s.labels.get("table", "").startswith("temp_") for s in metric.samples)
