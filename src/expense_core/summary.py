"""
Aggregations over expense lists for the dashboard.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from .models import Expense, ExpenseSummary, ReceiptStatus

RECENT_LIMIT = 5


def summarize_expenses(expenses: List[Expense], today: Optional[date] = None,
                       recent_limit: int = RECENT_LIMIT) -> ExpenseSummary:
    """Calculate dashboard totals for a list of expenses.

    Amounts are summed as-is, without currency conversion.

    Args:
        expenses: Expenses ordered newest first, as returned by the store
        today: Reference date for the month-to-date total
        recent_limit: How many of the first expenses to report as recent

    Returns:
        ExpenseSummary with totals by status (every status present), month-to-date
        and all-time totals
    """
    today = today or date.today()
    month_start = today.replace(day=1)

    totals_by_status = {status: Decimal("0") for status in ReceiptStatus}
    month_total = Decimal("0")
    all_time_total = Decimal("0")

    for expense in expenses:
        totals_by_status[expense.receipt_status] += expense.amount
        all_time_total += expense.amount
        if expense.expense_date >= month_start:
            month_total += expense.amount

    return ExpenseSummary(
        count=len(expenses),
        all_time_total=all_time_total,
        month_total=month_total,
        totals_by_status=totals_by_status,
        recent=list(expenses[:recent_limit]),
    )
