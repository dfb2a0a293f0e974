"""
Exception hierarchy for the expense tracker core.
Record store, blob store and export failures each have their own branch so callers
can tell an aborted operation from a partially completed one.
"""

from typing import Optional


class ExpenseTrackerError(Exception):
    """Base class for all errors raised by the core."""


class PersistenceError(ExpenseTrackerError):
    """The record store rejected a read or write."""


class NotFoundError(ExpenseTrackerError):
    """A record or blob was absent when an existence-dependent operation ran."""


class ExpenseNotFoundError(PersistenceError, NotFoundError):
    """No expense record exists with the given id."""

    def __init__(self, expense_id: str):
        super().__init__(f"Expense {expense_id} not found")
        self.expense_id = expense_id


class BlobStoreError(ExpenseTrackerError):
    """The blob store failed to read, write or delete an object."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ReceiptNotFoundError(BlobStoreError, NotFoundError):
    """No receipt object exists at the given path."""

    def __init__(self, path: str):
        super().__init__(f"Receipt {path} not found", path=path)


class NoReceiptAttachedError(NotFoundError):
    """The expense has no receipt to remove."""

    def __init__(self, expense_id: str):
        super().__init__(f"Expense {expense_id} has no receipt attached")
        self.expense_id = expense_id


class ReceiptUnlinkFailed(PersistenceError):
    """The receipt blob was removed but the record could not be updated.

    The record still references the removed blob until the removal is retried.
    Retrying is safe because removing a missing blob is a no-op.
    """

    def __init__(self, expense_id: str, path: str, cause: Exception):
        super().__init__(f"Receipt {path} was removed but expense {expense_id} could not be unlinked: {cause}")
        self.expense_id = expense_id
        self.path = path


class ArchiveAssemblyError(ExpenseTrackerError):
    """Building the export archive failed as a whole."""


class InvalidStatusTransition(ExpenseTrackerError, ValueError):
    """A receipt status change is not allowed from the current status."""

    def __init__(self, current, requested):
        super().__init__(f"Cannot move receipt status from {current.value} to {requested.value}")
        self.current = current
        self.requested = requested
