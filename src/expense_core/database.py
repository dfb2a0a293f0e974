"""
Record store for expenses.
Handles SQLite schema setup and CRUD operations on the ``expenses`` table.
"""

import sqlite3
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, date
from decimal import Decimal
from typing import List, Optional

from .errors import PersistenceError, ExpenseNotFoundError
from .models import Expense, ExpenseCreate, ExpenseUpdate, ReceiptStatus

logger = logging.getLogger(__name__)


class ExpenseStore:
    """Persists expense records. Knows nothing about receipt files."""

    def __init__(self, db_path: str = "expenses.db", timeout: float = 5.0):
        """Initialize the expense store.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds to wait on a locked database before failing
        """
        self.db_path = str(db_path)
        self.timeout = timeout
        self.logger = logger

    @contextmanager
    def get_connection(self):
        """Context manager for database connections with automatic cleanup.

        Any ``sqlite3.Error`` raised inside the block surfaces as ``PersistenceError``.
        """
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error(f"Database error: {str(e)}")
            raise PersistenceError(str(e)) from e
        except Exception:
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                conn.close()

    def initialize_database(self) -> None:
        """Create the expenses table and its indexes if they do not exist."""
        statuses = ", ".join(f"'{status.value}'" for status in ReceiptStatus)
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS expenses (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    merchant TEXT,
                    amount TEXT NOT NULL CHECK (CAST(amount AS REAL) >= 0),
                    currency TEXT NOT NULL DEFAULT 'GBP' CHECK (length(currency) = 3),
                    category TEXT NOT NULL,
                    country TEXT NOT NULL,
                    notes TEXT,
                    business_trip TEXT,
                    expense_date DATE NOT NULL,
                    receipt_status TEXT NOT NULL DEFAULT 'Pending' CHECK (receipt_status IN ({statuses})),
                    receipt_path TEXT,
                    created_at TIMESTAMP NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
                    updated_at TIMESTAMP
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_expense_date ON expenses(expense_date)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_receipt_status ON expenses(receipt_status)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_created_at ON expenses(created_at)")

            cursor.execute("""
                CREATE TRIGGER IF NOT EXISTS update_expenses_updated_at
                AFTER UPDATE ON expenses
                BEGIN
                    UPDATE expenses SET updated_at = strftime('%Y-%m-%d %H:%M:%f', 'now') WHERE id = NEW.id;
                END
            """)

            conn.commit()
            self.logger.info("Database initialized successfully")

    def insert(self, expense: ExpenseCreate) -> Expense:
        """Insert a new expense without a receipt.

        Returns:
            The stored record, including its id and creation timestamp

        Raises:
            PersistenceError: If the backend rejects the insert
        """
        expense_id = uuid.uuid4().hex
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO expenses (
                    id, title, merchant, amount, currency, category, country,
                    notes, business_trip, expense_date, receipt_status, receipt_path
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL)
            """, (
                expense_id,
                expense.title,
                expense.merchant,
                str(expense.amount),
                expense.currency,
                expense.category,
                expense.country,
                expense.notes,
                expense.business_trip,
                expense.expense_date.isoformat(),
                expense.receipt_status.value,
            ))
            conn.commit()

            cursor.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,))
            row = cursor.fetchone()

        self.logger.info(f"Added expense with ID: {expense_id}")
        return self._row_to_expense(row)

    def get(self, expense_id: str) -> Optional[Expense]:
        """Get an expense by ID, or None if it does not exist."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,))
            row = cursor.fetchone()

        if row:
            return self._row_to_expense(row)
        return None

    def require(self, expense_id: str) -> Expense:
        """Get an expense by ID, raising ``ExpenseNotFoundError`` if it does not exist."""
        expense = self.get(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense

    def list_expenses(self, status: Optional[ReceiptStatus] = None) -> List[Expense]:
        """List expenses, newest expense date first.

        Args:
            status: Only return expenses with this receipt status
        """
        query = "SELECT * FROM expenses"
        params = []

        if status is not None:
            query += " WHERE receipt_status = ?"
            params.append(ReceiptStatus(status).value)

        query += " ORDER BY expense_date DESC, created_at DESC"

        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()

        return [self._row_to_expense(row) for row in rows]

    def update(self, expense_id: str, updates: ExpenseUpdate) -> Expense:
        """Apply a partial update to an expense.

        Only fields explicitly set on ``updates`` are written, so the last writer wins
        per field.

        Raises:
            ExpenseNotFoundError: If no expense has this id
            PersistenceError: If the backend rejects the write
        """
        update_fields = []
        update_values = []

        for field, value in updates.model_dump(exclude_unset=True).items():
            update_fields.append(f"{field} = ?")
            update_values.append(self._to_column(value))

        if not update_fields:
            return self.require(expense_id)

        update_values.append(expense_id)
        self._execute_write(
            f"UPDATE expenses SET {', '.join(update_fields)} WHERE id = ?",
            update_values,
            expense_id,
        )
        self.logger.info(f"Updated expense {expense_id}")
        return self.require(expense_id)

    def set_receipt_path(self, expense_id: str, receipt_path: Optional[str]) -> None:
        """Point an expense at a receipt path, or clear it with None."""
        self._execute_write(
            "UPDATE expenses SET receipt_path = ? WHERE id = ?",
            (receipt_path, expense_id),
            expense_id,
        )
        self.logger.info(f"Set receipt path of expense {expense_id} to {receipt_path}")

    def delete(self, expense_id: str) -> None:
        """Delete an expense record. Its receipt file is not touched."""
        self._execute_write("DELETE FROM expenses WHERE id = ?", (expense_id,), expense_id)
        self.logger.info(f"Deleted expense {expense_id}")

    def _execute_write(self, query: str, params, expense_id: str) -> None:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows_affected = cursor.rowcount
            conn.commit()

        if rows_affected == 0:
            self.logger.warning(f"Expense {expense_id} not found")
            raise ExpenseNotFoundError(expense_id)

    @staticmethod
    def _to_column(value):
        if isinstance(value, ReceiptStatus):
            return value.value
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, Decimal):
            return str(value)
        return value

    def _row_to_expense(self, row: sqlite3.Row) -> Expense:
        """Convert database row to Expense object."""
        return Expense(
            id=row["id"],
            title=row["title"],
            merchant=row["merchant"],
            amount=Decimal(row["amount"]),
            currency=row["currency"],
            category=row["category"],
            country=row["country"],
            notes=row["notes"],
            business_trip=row["business_trip"],
            expense_date=date.fromisoformat(row["expense_date"]),
            receipt_status=ReceiptStatus(row["receipt_status"]),
            receipt_path=row["receipt_path"],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        )
