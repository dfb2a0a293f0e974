"""
Core of the expense tracker: expense records, receipt files and exports.
"""

from .models import Expense, ExpenseCreate, ExpenseUpdate, ReceiptFile, ReceiptStatus, ReceiptOutcome
from .database import ExpenseStore
from .storage import BlobStore, LocalBlobStore
from .lifecycle import ReceiptLifecycleCoordinator
from .export import ExportBundler
from .summary import summarize_expenses

__all__ = [
    'Expense',
    'ExpenseCreate',
    'ExpenseUpdate',
    'ReceiptFile',
    'ReceiptStatus',
    'ReceiptOutcome',
    'ExpenseStore',
    'BlobStore',
    'LocalBlobStore',
    'ReceiptLifecycleCoordinator',
    'ExportBundler',
    'summarize_expenses'
]
