"""
Unit tests for the expense record store.
Tests CRUD operations, ordering and error reporting.
"""

import pytest
import tempfile
import os
import threading
from datetime import date
from decimal import Decimal

from expense_core.database import ExpenseStore
from expense_core.errors import PersistenceError, ExpenseNotFoundError, NotFoundError
from expense_core.models import ExpenseCreate, ExpenseUpdate, ReceiptStatus


class TestExpenseStore:
    """Test cases for ExpenseStore class."""

    @pytest.fixture
    def temp_db(self):
        """Create temporary database for testing."""
        temp_file = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        temp_file.close()

        store = ExpenseStore(temp_file.name)
        store.initialize_database()

        yield store

        os.unlink(temp_file.name)

    @pytest.fixture
    def sample_expense(self):
        """Sample expense data for testing."""
        return ExpenseCreate(
            title="Client dinner",
            merchant="Dishoom",
            amount=Decimal("48.20"),
            currency="GBP",
            category="Food & Drinks",
            country="United Kingdom",
            notes="Project kickoff",
            business_trip="London Q1",
            expense_date=date(2024, 1, 15)
        )

    def test_database_initialization(self, temp_db):
        """Test database initialization creates the expenses table and indexes."""
        with temp_db.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                SELECT name FROM sqlite_master
                WHERE type='table' AND name='expenses'
            """)
            assert cursor.fetchone() is not None

            cursor.execute("""
                SELECT name FROM sqlite_master
                WHERE type='index' AND tbl_name='expenses'
            """)
            assert len(cursor.fetchall()) > 0

    def test_initialization_is_idempotent(self, temp_db):
        temp_db.initialize_database()
        assert temp_db.list_expenses() == []

    def test_insert_returns_materialized_record(self, temp_db, sample_expense):
        """Test insert assigns id and timestamp and stores no receipt."""
        expense = temp_db.insert(sample_expense)

        assert expense.id
        assert expense.created_at is not None
        assert expense.receipt_path is None
        assert expense.receipt_status == ReceiptStatus.PENDING
        assert expense.amount == Decimal("48.20")
        assert expense.business_trip == "London Q1"

    def test_insert_assigns_unique_ids(self, temp_db, sample_expense):
        first = temp_db.insert(sample_expense)
        second = temp_db.insert(sample_expense)
        assert first.id != second.id

    def test_amount_keeps_decimal_form(self, temp_db):
        """Test amounts survive a round-trip without float rounding."""
        expense = temp_db.insert(ExpenseCreate(title="Fuel", amount=Decimal("0.10"), expense_date=date.today()))
        assert str(temp_db.get(expense.id).amount) == "0.10"

    def test_get_nonexistent_expense(self, temp_db):
        assert temp_db.get("missing") is None

    def test_require_nonexistent_expense(self, temp_db):
        with pytest.raises(ExpenseNotFoundError):
            temp_db.require("missing")

    def test_list_ordered_by_expense_date_desc(self, temp_db):
        """Test listing returns newest expense date first."""
        for day in (3, 1, 2):
            temp_db.insert(ExpenseCreate(title=f"Day {day}", amount=Decimal("1"), expense_date=date(2024, 1, day)))

        expenses = temp_db.list_expenses()
        assert [e.expense_date.day for e in expenses] == [3, 2, 1]

    def test_list_by_status(self, temp_db):
        temp_db.insert(ExpenseCreate(title="A", amount=Decimal("1"), expense_date=date.today()))
        temp_db.insert(ExpenseCreate(title="B", amount=Decimal("1"), expense_date=date.today(),
                                     receipt_status=ReceiptStatus.APPROVED))

        approved = temp_db.list_expenses(status=ReceiptStatus.APPROVED)
        assert [e.title for e in approved] == ["B"]
        assert len(temp_db.list_expenses(status=ReceiptStatus.PENDING)) == 1
        assert len(temp_db.list_expenses()) == 2

    def test_update_expense(self, temp_db, sample_expense):
        """Test partial updates change only the given fields."""
        expense = temp_db.insert(sample_expense)

        updated = temp_db.update(expense.id, ExpenseUpdate(
            title="Team dinner",
            amount=Decimal("60.00"),
            receipt_status=ReceiptStatus.APPROVED
        ))

        assert updated.title == "Team dinner"
        assert updated.amount == Decimal("60.00")
        assert updated.receipt_status == ReceiptStatus.APPROVED
        assert updated.merchant == sample_expense.merchant
        assert updated.expense_date == sample_expense.expense_date

    def test_update_can_clear_optional_field(self, temp_db, sample_expense):
        expense = temp_db.insert(sample_expense)
        updated = temp_db.update(expense.id, ExpenseUpdate(merchant=""))
        assert updated.merchant is None

    def test_update_does_not_touch_receipt_path(self, temp_db, sample_expense):
        expense = temp_db.insert(sample_expense)
        temp_db.set_receipt_path(expense.id, f"{expense.id}.jpg")

        updated = temp_db.update(expense.id, ExpenseUpdate(title="Renamed"))
        assert updated.receipt_path == f"{expense.id}.jpg"

    def test_update_with_empty_changes(self, temp_db, sample_expense):
        expense = temp_db.insert(sample_expense)
        assert temp_db.update(expense.id, ExpenseUpdate()).title == sample_expense.title

    def test_update_nonexistent_expense(self, temp_db):
        """Test updating a missing expense raises a persistence error."""
        with pytest.raises(ExpenseNotFoundError) as exc_info:
            temp_db.update("missing", ExpenseUpdate(title="Nope"))

        assert isinstance(exc_info.value, PersistenceError)
        assert isinstance(exc_info.value, NotFoundError)

    def test_set_and_clear_receipt_path(self, temp_db, sample_expense):
        expense = temp_db.insert(sample_expense)

        temp_db.set_receipt_path(expense.id, f"{expense.id}.png")
        assert temp_db.get(expense.id).receipt_path == f"{expense.id}.png"

        temp_db.set_receipt_path(expense.id, None)
        assert temp_db.get(expense.id).receipt_path is None

    def test_set_receipt_path_nonexistent_expense(self, temp_db):
        with pytest.raises(ExpenseNotFoundError):
            temp_db.set_receipt_path("missing", "missing.jpg")

    def test_delete_expense(self, temp_db, sample_expense):
        expense = temp_db.insert(sample_expense)

        temp_db.delete(expense.id)

        assert temp_db.get(expense.id) is None

    def test_delete_nonexistent_expense(self, temp_db):
        with pytest.raises(ExpenseNotFoundError):
            temp_db.delete("missing")

    def test_database_constraints(self, temp_db):
        """Test constraint violations surface as PersistenceError."""
        with pytest.raises(PersistenceError):
            with temp_db.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT INTO expenses (id, title, amount, currency, category, country, expense_date)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, ("x", "Test", "-5", "GBP", "Hotel", "UK", date.today().isoformat()))
                conn.commit()

    def test_status_constraint(self, temp_db, sample_expense):
        expense = temp_db.insert(sample_expense)
        with pytest.raises(PersistenceError):
            with temp_db.get_connection() as conn:
                conn.execute("UPDATE expenses SET receipt_status = 'Paid' WHERE id = ?", (expense.id,))
                conn.commit()

    def test_unreachable_database(self, tmp_path, sample_expense):
        """Test connectivity failures surface as PersistenceError."""
        store = ExpenseStore(str(tmp_path / "missing_dir" / "expenses.db"))
        with pytest.raises(PersistenceError):
            store.insert(sample_expense)

    def test_concurrent_updates_last_write_wins(self, temp_db, sample_expense):
        """Test concurrent field updates to one expense all commit without errors."""
        expense = temp_db.insert(sample_expense)
        titles = [f"Title {i}" for i in range(5)]
        errors = []

        def rename(title):
            try:
                temp_db.update(expense.id, ExpenseUpdate(title=title))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=rename, args=(title,)) for title in titles]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert temp_db.get(expense.id).title in titles


if __name__ == "__main__":
    pytest.main([__file__])
