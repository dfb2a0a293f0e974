"""
Receipt lifecycle coordination.

Keeps an expense's ``receipt_path`` in agreement with what exists in blob storage
without a shared transaction. Every protocol uploads before it links and removes
before it unlinks, so a non-null ``receipt_path`` points at an existing object
except inside the partial states reported through ``ReceiptOutcome``.
"""

import logging
from typing import List, Optional

from .database import ExpenseStore
from .errors import (
    BlobStoreError,
    InvalidStatusTransition,
    NoReceiptAttachedError,
    PersistenceError,
    ReceiptUnlinkFailed,
)
from .models import (
    Expense,
    ExpenseCreate,
    ExpenseUpdate,
    MutationResult,
    ReceiptFile,
    ReceiptOutcome,
    ReceiptStatus,
)
from .receipts import receipt_path_for
from .storage import BlobStore

logger = logging.getLogger(__name__)


class ReceiptLifecycleCoordinator:
    """Runs expense mutations that may also add, replace or remove a receipt.

    Holds no state between calls; callers re-read the record set with ``refresh``
    after each mutation. Nothing is retried automatically.
    """

    def __init__(self, store: ExpenseStore, blobs: BlobStore,
                 enforce_status_transitions: bool = False,
                 cleanup_replaced_receipts: bool = True):
        """Initialize the coordinator.

        Args:
            store: Record store for expenses
            blobs: Blob store for receipt files
            enforce_status_transitions: Reject receipt status changes that
                ``ReceiptStatus.can_transition_to`` does not allow
            cleanup_replaced_receipts: Remove the previous receipt file when a
                replacement lands on a different path (extension change)
        """
        self.store = store
        self.blobs = blobs
        self.enforce_status_transitions = enforce_status_transitions
        self.cleanup_replaced_receipts = cleanup_replaced_receipts
        self.logger = logger

    def create(self, fields: ExpenseCreate, receipt: Optional[ReceiptFile] = None) -> MutationResult:
        """Insert an expense, then upload and link its receipt if one is given.

        Raises:
            PersistenceError: If the insert fails; no upload is attempted
        """
        expense = self.store.insert(fields)
        if receipt is None:
            return MutationResult(expense=expense)
        return self._attach_receipt(expense, receipt)

    def update(self, expense_id: str, updates: ExpenseUpdate,
               receipt: Optional[ReceiptFile] = None) -> MutationResult:
        """Apply field changes, then replace the receipt if a new file is given.

        Without a new file the existing receipt is left untouched.

        Raises:
            ExpenseNotFoundError: If the expense does not exist
            PersistenceError: If the field update fails; no upload is attempted
            InvalidStatusTransition: If transitions are enforced and the status change is illegal
        """
        if self.enforce_status_transitions and updates.receipt_status is not None:
            current = self.store.require(expense_id)
            self._check_transition(current.receipt_status, updates.receipt_status)

        expense = self.store.update(expense_id, updates)
        if receipt is None:
            return MutationResult(expense=expense, receipt_path=expense.receipt_path)
        return self._attach_receipt(expense, receipt, previous_path=expense.receipt_path)

    def remove_receipt(self, expense_id: str) -> MutationResult:
        """Delete the expense's receipt file, then clear its ``receipt_path``.

        Raises:
            ExpenseNotFoundError: If the expense does not exist
            NoReceiptAttachedError: If the expense has no receipt
            BlobStoreError: If the file could not be removed; ``receipt_path`` is unchanged
            ReceiptUnlinkFailed: If the file is gone but the record could not be updated
        """
        expense = self.store.require(expense_id)
        path = expense.receipt_path
        if not path:
            raise NoReceiptAttachedError(expense_id)

        try:
            self.blobs.remove(path)
        except BlobStoreError as e:
            self.logger.error(f"Could not remove receipt {path} of expense {expense_id}: {str(e)}")
            raise

        try:
            self.store.set_receipt_path(expense_id, None)
        except PersistenceError as e:
            self.logger.error(f"Receipt {path} removed but expense {expense_id} not unlinked: {str(e)}")
            raise ReceiptUnlinkFailed(expense_id, path, e) from e

        return MutationResult(
            expense=expense.model_copy(update={"receipt_path": None}),
            receipt_path=path,
        )

    def delete(self, expense_id: str) -> MutationResult:
        """Delete an expense, removing its receipt file first on a best-effort basis.

        A failed file removal does not block the delete; it is reported as
        ``ReceiptOutcome.RECEIPT_ORPHANED``.

        Raises:
            ExpenseNotFoundError: If the expense does not exist
            PersistenceError: If the record delete fails (a removed file is not restored)
        """
        expense = self.store.require(expense_id)
        outcome = ReceiptOutcome.OK
        warnings = []

        if expense.receipt_path:
            try:
                self.blobs.remove(expense.receipt_path)
            except BlobStoreError as e:
                self.logger.warning(f"Leaving orphaned receipt {expense.receipt_path}: {str(e)}")
                outcome = ReceiptOutcome.RECEIPT_ORPHANED
                warnings.append(str(e))

        try:
            self.store.delete(expense_id)
        except PersistenceError as e:
            self.logger.error(f"Failed to delete expense {expense_id}: {str(e)}")
            raise

        return MutationResult(
            expense=expense,
            outcome=outcome,
            receipt_path=expense.receipt_path,
            warnings=warnings,
        )

    def refresh(self, status: Optional[ReceiptStatus] = None) -> List[Expense]:
        """Current expenses, newest first, optionally only those with ``status``."""
        return self.store.list_expenses(status=status)

    def get(self, expense_id: str) -> Optional[Expense]:
        return self.store.get(expense_id)

    def receipt_url(self, expense: Expense) -> Optional[str]:
        """Public URL of the expense's receipt, or None if it has none."""
        if not expense.receipt_path:
            return None
        return self.blobs.resolve_url(expense.receipt_path)

    def _attach_receipt(self, expense: Expense, receipt: ReceiptFile,
                        previous_path: Optional[str] = None) -> MutationResult:
        """Upload ``receipt`` for a committed expense and link it."""
        path = receipt_path_for(expense.id, receipt.filename)

        try:
            self.blobs.upload(path, receipt.content, receipt.resolved_content_type, upsert=True)
        except BlobStoreError as e:
            self.logger.warning(f"Expense {expense.id} saved without receipt, upload failed: {str(e)}")
            return MutationResult(
                expense=expense,
                outcome=ReceiptOutcome.RECEIPT_UPLOAD_FAILED,
                receipt_path=path,
                warnings=[str(e)],
            )

        try:
            self.store.set_receipt_path(expense.id, path)
        except PersistenceError as e:
            self.logger.warning(f"Receipt {path} uploaded but not linked to expense {expense.id}: {str(e)}")
            return MutationResult(
                expense=expense,
                outcome=ReceiptOutcome.RECEIPT_LINK_FAILED,
                receipt_path=path,
                warnings=[str(e)],
            )

        linked = expense.model_copy(update={"receipt_path": path})

        if previous_path and previous_path != path and self.cleanup_replaced_receipts:
            try:
                self.blobs.remove(previous_path)
            except BlobStoreError as e:
                self.logger.warning(f"Replaced receipt {previous_path} left orphaned: {str(e)}")
                return MutationResult(
                    expense=linked,
                    outcome=ReceiptOutcome.PREVIOUS_RECEIPT_ORPHANED,
                    receipt_path=path,
                    warnings=[str(e)],
                )

        return MutationResult(expense=linked, receipt_path=path)

    @staticmethod
    def _check_transition(current: ReceiptStatus, requested: ReceiptStatus) -> None:
        if not current.can_transition_to(requested):
            raise InvalidStatusTransition(current, requested)
