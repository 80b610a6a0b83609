"""
Integration tests for the SQLite backend.
"""
from datetime import date
from decimal import Decimal

import pytest

from orders.backend import Backend, escape_like
from orders.errors import BackendError, ConflictError


def _order_row(number: str, supplier_id: int, **extra) -> dict:
    row = {
        "order_number": number,
        "supplier_id": supplier_id,
        "order_date": date(2025, 3, 14),
        "currency": "EUR",
        "total_amount": Decimal("0.00"),
    }
    row.update(extra)
    return row


@pytest.mark.integration
class TestBackend:
    """Integration tests for Backend data operations."""

    def test_schema_created(self, test_backend):
        """Test every table exists and starts empty."""
        counts = test_backend.table_counts()
        assert counts["amg_supplier_orders"] == 0
        assert counts["amg_sessions"] == 0
        assert len(counts) == 7

    def test_reopen_existing_database(self, test_backend, seeded):
        """Test opening the same file again keeps the data."""
        again = Backend(test_backend.db_path)
        assert again.table_counts()["amg_suppliers"] == 2

    def test_insert_returns_stored_rows(self, test_backend, seeded):
        """Test insert hands back ids and column defaults."""
        [row] = test_backend.insert("amg_supplier_orders", [_order_row("CMD2503001", seeded["paris"])])
        assert row["id"] > 0
        assert row["status"] == "draft"
        assert row["order_date"] == "2025-03-14"
        assert row["total_amount"] == "0.00"
        assert row["created_at"]

    def test_filters_and_order(self, test_backend, seeded):
        """Test filter operators and money-aware ordering."""
        test_backend.insert("amg_supplier_orders", [
            _order_row("CMD2503001", seeded["paris"], total_amount=Decimal("9.50")),
            _order_row("CMD2503002", seeded["sud"], total_amount=Decimal("100.00")),
            _order_row("CMD2503003", seeded["paris"], total_amount=Decimal("25.00")),
        ])
        rows = test_backend.select(
            "amg_supplier_orders",
            filters=[("supplier_id", "eq", seeded["paris"])],
            order=[("total_amount", False)],
        ).rows
        assert [r["order_number"] for r in rows] == ["CMD2503003", "CMD2503001"]

        # 100.00 sorts above 25.00 numerically, not lexically
        rows = test_backend.select("amg_supplier_orders", order=[("total_amount", False)], limit=1).rows
        assert rows[0]["order_number"] == "CMD2503002"

    def test_ilike_any_of_and_count(self, test_backend, seeded):
        """Test OR-groups, case-insensitive match and exact count with paging."""
        test_backend.insert("amg_supplier_orders", [
            _order_row(f"CMD2503{n:03d}", seeded["sud"]) for n in range(1, 6)
        ])
        result = test_backend.select(
            "amg_supplier_orders",
            any_of=[("order_number", "ilike", "cmd2503%"), ("supplier_id", "eq", -1)],
            order=[("order_number", True)],
            limit=2,
            offset=2,
            count=True,
        )
        assert result.count == 5
        assert [r["order_number"] for r in result.rows] == ["CMD2503003", "CMD2503004"]

    def test_in_filter_with_empty_list(self, test_backend, seeded):
        """Test IN () matches nothing instead of failing."""
        assert test_backend.select("amg_suppliers", filters=[("id", "in", [])]).rows == []

    def test_escape_like(self, test_backend, seeded):
        """Test wildcards typed by a user match literally."""
        test_backend.insert("amg_suppliers", [{"name": "100% Argent"}])
        rows = test_backend.select(
            "amg_suppliers", filters=[("name", "ilike", f"%{escape_like('100%')}%")]
        ).rows
        assert [r["name"] for r in rows] == ["100% Argent"]
        assert escape_like("a_b") == "a\\_b"

    def test_update_returns_rows(self, test_backend, seeded):
        """Test update applies the patch and returns the new values."""
        rows = test_backend.update("amg_suppliers", {"phone": "0102030405"}, [("id", "eq", seeded["sud"])])
        assert rows[0]["phone"] == "0102030405"
        assert test_backend.update("amg_suppliers", {"phone": "x"}, [("id", "eq", -1)]) == []

    def test_delete_counts_rows(self, test_backend, seeded):
        """Test delete reports how many rows went."""
        assert test_backend.delete("amg_products", [("id", "eq", seeded["boucles"])]) == 1
        assert test_backend.delete("amg_products", [("id", "eq", seeded["boucles"])]) == 0

    def test_unfiltered_writes_refused(self, test_backend):
        """Test update and delete without filters are refused."""
        with pytest.raises(BackendError):
            test_backend.delete("amg_products", [])
        with pytest.raises(BackendError):
            test_backend.update("amg_products", {"name": "x"}, [])

    def test_unknown_table_and_column(self, test_backend):
        """Test names outside the whitelist are rejected."""
        with pytest.raises(BackendError, match="Unknown table"):
            test_backend.select("sqlite_master")
        with pytest.raises(BackendError, match="Unknown column"):
            test_backend.select("amg_products", order=[("name; DROP TABLE amg_products", True)])

    def test_duplicate_order_number_is_conflict(self, test_backend, seeded):
        """Test the UNIQUE constraint on order_number."""
        test_backend.insert("amg_supplier_orders", [_order_row("CMD2503001", seeded["paris"])])
        with pytest.raises(ConflictError):
            test_backend.insert("amg_supplier_orders", [_order_row("CMD2503001", seeded["sud"])])

    def test_foreign_keys_enforced(self, test_backend, seeded):
        """Test an order for an unknown supplier is rejected."""
        with pytest.raises(ConflictError):
            test_backend.insert("amg_supplier_orders", [_order_row("CMD2503001", 9999)])

    def test_check_constraints(self, test_backend, seeded):
        """Test status values outside the lifecycle are rejected."""
        with pytest.raises(ConflictError):
            test_backend.insert(
                "amg_supplier_orders", [_order_row("CMD2503001", seeded["paris"], status="archived")]
            )


@pytest.mark.integration
class TestTransactions:
    """Integration tests for Backend.transaction."""

    def test_commit(self, test_backend, seeded):
        """Test writes inside a scope are visible after it closes."""
        with test_backend.transaction() as tx:
            [order] = tx.insert("amg_supplier_orders", [_order_row("CMD2503001", seeded["paris"])])
            tx.insert("amg_supplier_order_items", [{
                "order_id": order["id"], "product_id": seeded["bague"], "quantity": 1,
                "unit_price": "19.99", "total_price": "19.99",
            }])
        assert test_backend.table_counts()["amg_supplier_order_items"] == 1

    def test_rollback_on_error(self, test_backend, seeded):
        """Test a failure inside the scope undoes every write made in it."""
        with pytest.raises(ConflictError):
            with test_backend.transaction() as tx:
                [order] = tx.insert("amg_supplier_orders", [_order_row("CMD2503001", seeded["paris"])])
                tx.insert("amg_supplier_order_items", [{
                    "order_id": order["id"], "product_id": 9999, "quantity": 1,
                    "unit_price": "1.00", "total_price": "1.00",
                }])
        assert test_backend.table_counts()["amg_supplier_orders"] == 0

    def test_rollback_on_python_exception(self, test_backend, seeded):
        """Test a non-database exception also rolls back and propagates unchanged."""
        with pytest.raises(RuntimeError):
            with test_backend.transaction() as tx:
                tx.insert("amg_supplier_orders", [_order_row("CMD2503001", seeded["paris"])])
                raise RuntimeError("boom")
        assert test_backend.table_counts()["amg_supplier_orders"] == 0

    def test_cascade_delete(self, test_backend, seeded):
        """Test deleting an order removes its lines."""
        [order] = test_backend.insert("amg_supplier_orders", [_order_row("CMD2503001", seeded["paris"])])
        test_backend.insert("amg_supplier_order_items", [{
            "order_id": order["id"], "product_id": seeded["bague"], "quantity": 2,
            "unit_price": "19.99", "total_price": "39.98",
        }])
        test_backend.delete("amg_supplier_orders", [("id", "eq", order["id"])])
        assert test_backend.table_counts()["amg_supplier_order_items"] == 0
