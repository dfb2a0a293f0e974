"""
Expense Tracker - Main Entry Point
Records expenses with receipt images and exports them for accounting, using Streamlit.
"""

import streamlit as st
import sys
import logging
from pathlib import Path

from pydantic import ValidationError

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from expense_core.config import get_settings
from expense_core.database import ExpenseStore
from expense_core.errors import ExpenseTrackerError
from expense_core.export import ExportBundler
from expense_core.lifecycle import ReceiptLifecycleCoordinator
from expense_core.logging_config import configure_logging
from expense_core.models import ExpenseCreate, ExpenseUpdate, ReceiptStatus
from expense_core.storage import LocalBlobStore
from expense_ui.components import (
    setup_sidebar, remember_outcome, show_last_outcome, display_expense_form,
    expenses_dataframe, display_error_message, display_success_message,
)

logger = logging.getLogger(__name__)

FILTER_OPTIONS = ["All"] + [status.value for status in ReceiptStatus]


def initialize_app():
    """Initialize logging, storage and the lifecycle services."""
    if 'coordinator' in st.session_state:
        return

    settings = get_settings()
    configure_logging(settings)

    try:
        store = ExpenseStore(str(settings.db_path))
        store.initialize_database()

        blobs = LocalBlobStore(settings.receipts_dir, base_url=settings.receipts_base_url)

        st.session_state.coordinator = ReceiptLifecycleCoordinator(
            store,
            blobs,
            enforce_status_transitions=settings.enforce_status_transitions,
            cleanup_replaced_receipts=settings.cleanup_replaced_receipts,
        )
        st.session_state.exporter = ExportBundler(blobs, filename=settings.export_filename)

        logger.info("Application initialized successfully")

    except ExpenseTrackerError as e:
        logger.error(f"Failed to initialize application: {str(e)}")
        st.error(f"Failed to initialize application: {str(e)}")
        st.stop()


def display_export(exporter, expenses):
    """Offer the zip export of every expense and its receipts."""
    if st.button("📦 Prepare export (CSV + receipts)"):
        try:
            bundle = exporter.export_all(expenses)
        except ExpenseTrackerError as e:
            display_error_message("Export failed", str(e))
            return

        display_success_message(
            f"Export ready: {bundle.record_count} expenses, {bundle.receipt_count} receipts"
        )
        if bundle.skipped_receipts:
            st.info(f"{len(bundle.skipped_receipts)} receipt(s) could not be downloaded and were left out")
        st.download_button(
            label="📥 Download ZIP",
            data=bundle.content,
            file_name=bundle.filename,
            mime="application/zip",
        )


def display_expense_actions(coordinator, expense):
    """Edit, view receipt, remove receipt and delete for one expense."""
    label = f"{expense.expense_date} · {expense.title} · {expense.amount} {expense.currency} · {expense.receipt_status.value}"
    with st.expander(label):
        url = coordinator.receipt_url(expense)
        if url:
            st.markdown(f"[🧾 View receipt]({url})")

        submitted = display_expense_form(f"edit_{expense.id}", expense)
        if submitted:
            values, receipt = submitted
            try:
                result = coordinator.update(expense.id, ExpenseUpdate(**values), receipt)
            except ValidationError as e:
                display_error_message("Please check the expense fields", str(e))
            except ExpenseTrackerError as e:
                display_error_message(f"Update failed: {str(e)}")
            else:
                remember_outcome(result, "Expense updated + receipt replaced" if receipt else "Expense updated")

        col1, col2 = st.columns(2)
        with col1:
            if expense.receipt_path and st.button("Remove receipt", key=f"remove_{expense.id}"):
                try:
                    result = coordinator.remove_receipt(expense.id)
                except ExpenseTrackerError as e:
                    display_error_message(f"Could not remove receipt: {str(e)}")
                else:
                    remember_outcome(result, "Receipt removed")
        with col2:
            if st.button("🗑️ Delete", key=f"delete_{expense.id}"):
                try:
                    result = coordinator.delete(expense.id)
                except ExpenseTrackerError as e:
                    display_error_message(f"Delete failed: {str(e)}")
                else:
                    remember_outcome(result, "Expense deleted")


def main():
    """Main application function."""
    st.set_page_config(
        page_title="Expenses",
        page_icon="🧾",
        layout="wide",
    )

    initialize_app()
    coordinator = st.session_state.coordinator
    exporter = st.session_state.exporter

    st.title("🧾 Expenses")
    st.caption("Track spending with receipts")
    show_last_outcome()

    expenses = coordinator.refresh()
    setup_sidebar(expenses)

    with st.expander("➕ Add new expense"):
        submitted = display_expense_form("new_expense")
        if submitted:
            values, receipt = submitted
            try:
                result = coordinator.create(ExpenseCreate(**values), receipt)
            except ValidationError as e:
                display_error_message("Please check the expense fields", str(e))
            except ExpenseTrackerError as e:
                display_error_message(f"Could not save expense: {str(e)}")
            else:
                remember_outcome(result, "Expense and receipt saved" if receipt else "Expense saved")

    st.markdown("---")
    selected = st.radio("Filter", FILTER_OPTIONS, horizontal=True)
    status = None if selected == "All" else ReceiptStatus(selected)
    visible = coordinator.refresh(status=status)

    if not visible:
        st.info("No expenses for this filter.")
    else:
        st.dataframe(expenses_dataframe(visible), use_container_width=True, hide_index=True)
        for expense in visible:
            display_expense_actions(coordinator, expense)

    st.markdown("---")
    display_export(exporter, expenses)


if __name__ == "__main__":
    main()
