"""
UI components for the expense tracker.
Provides the expense form, status messages and list/dashboard widgets.
"""

import streamlit as st
import logging
from datetime import date
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple
from pathlib import Path

import pandas as pd

from expense_core.models import (
    Expense, MutationResult, ReceiptFile, ReceiptStatus,
    RECOMMENDED_CATEGORIES, DEFAULT_CURRENCY, DEFAULT_COUNTRY, DEFAULT_CATEGORY,
)
from expense_core.summary import summarize_expenses

logger = logging.getLogger(__name__)

MAX_RECEIPT_BYTES = 10 * 1024 * 1024
ALLOWED_RECEIPT_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.heic', '.webp', '.pdf'}
LAST_OUTCOME_KEY = 'last_outcome'


def setup_sidebar(expenses: List[Expense]):
    """Show quick dashboard figures in the sidebar."""
    with st.sidebar:
        st.header("🧾 Expenses")

        summary = summarize_expenses(expenses)
        st.metric("This month", format_amount(summary.month_total))
        st.metric("All time", format_amount(summary.all_time_total))
        st.metric("Expenses", summary.count)

        st.markdown("---")
        st.subheader("By receipt status")
        for status, total in summary.totals_by_status.items():
            st.text(f"{status.value}: {format_amount(total)}")


def display_outcome(result: MutationResult, success_message: str):
    """Show the result of a lifecycle operation; partial outcomes are warnings."""
    message = result.describe(success_message)
    if result.succeeded:
        display_success_message(message)
    else:
        st.warning(f"⚠️ {message}")
        if result.warnings:
            with st.expander("🔍 Details"):
                for warning in result.warnings:
                    st.code(warning, language="text")


def remember_outcome(result: MutationResult, success_message: str):
    """Keep the outcome for the next run and rerun so every view shows fresh records."""
    st.session_state[LAST_OUTCOME_KEY] = (result, success_message)
    st.rerun()


def show_last_outcome():
    """Display the outcome remembered before the last rerun, once."""
    outcome = st.session_state.pop(LAST_OUTCOME_KEY, None)
    if outcome is not None:
        display_outcome(*outcome)


def display_expense_form(key: str, expense: Optional[Expense] = None) -> Optional[Tuple[Dict[str, Any], Optional[ReceiptFile]]]:
    """Render the add/edit form.

    Args:
        key: Unique form key
        expense: Expense being edited, None for a new one

    Returns:
        Tuple of (field values, receipt file) when submitted, None otherwise
    """
    categories = list(RECOMMENDED_CATEGORIES)
    current_category = expense.category if expense else DEFAULT_CATEGORY
    if current_category not in categories:
        categories.append(current_category)
    statuses = list(ReceiptStatus)

    with st.form(key):
        uploaded = st.file_uploader(
            "Receipt image",
            type=[ext.lstrip('.') for ext in ALLOWED_RECEIPT_EXTENSIONS],
            key=f"{key}_receipt",
        )
        receipt_status = st.selectbox(
            "Receipt status",
            options=statuses,
            format_func=lambda s: s.value,
            index=statuses.index(expense.receipt_status) if expense else 0,
        )
        business_trip = st.text_input("Business trip", value=(expense.business_trip or "") if expense else "")
        title = st.text_input("Description *", value=expense.title if expense else "")
        merchant = st.text_input("Vendor / merchant", value=(expense.merchant or "") if expense else "")
        notes = st.text_area("Notes", value=(expense.notes or "") if expense else "")

        col1, col2 = st.columns(2)
        with col1:
            amount = st.number_input(
                "Amount *",
                min_value=0.0,
                value=float(expense.amount) if expense else 0.0,
                step=0.01,
                format="%.2f",
            )
            category = st.selectbox("Category", options=categories, index=categories.index(current_category))
        with col2:
            currency = st.text_input("Currency", value=expense.currency if expense else DEFAULT_CURRENCY, max_chars=3)
            country = st.text_input("Country", value=expense.country if expense else DEFAULT_COUNTRY)

        expense_date = st.date_input("Date *", value=expense.expense_date if expense else date.today())

        submitted = st.form_submit_button("💾 Save", type="primary")

    if not submitted:
        return None

    if not title.strip():
        display_error_message("Please fill in Description, Amount and Date.")
        return None

    receipt = None
    if uploaded is not None:
        is_valid, error = validate_file_upload(uploaded)
        if not is_valid:
            display_error_message(error)
            return None
        receipt = ReceiptFile(filename=uploaded.name, content=uploaded.getvalue(), content_type=uploaded.type)

    values = {
        "title": title,
        "merchant": merchant,
        "notes": notes,
        "business_trip": business_trip,
        "amount": Decimal(str(amount)).quantize(Decimal("0.01")),
        "currency": currency,
        "category": category,
        "country": country,
        "expense_date": expense_date,
        "receipt_status": receipt_status,
    }
    return values, receipt


def expenses_dataframe(expenses: List[Expense]) -> pd.DataFrame:
    """Tabular view of expenses for display."""
    return pd.DataFrame([
        {
            "Date": expense.expense_date,
            "Description": expense.title,
            "Merchant": expense.merchant or "",
            "Amount": format_amount(expense.amount, expense.currency),
            "Category": expense.category,
            "Status": expense.receipt_status.value,
            "Country": expense.country,
            "Receipt": "📎" if expense.receipt_path else "",
        }
        for expense in expenses
    ])


def display_error_message(error: str, details: Optional[str] = None):
    """Display formatted error message.

    Args:
        error: Main error message
        details: Optional detailed error information
    """
    st.error(f"❌ {error}")

    if details:
        with st.expander("🔍 Error Details"):
            st.code(details, language="text")


def display_success_message(message: str):
    st.success(f"✅ {message}")


def format_amount(amount: Decimal, currency: Optional[str] = None) -> str:
    """Amount with two decimals, followed by the currency code when given."""
    text = f"{amount:,.2f}"
    return f"{text} {currency}" if currency else text


def validate_file_upload(uploaded_file) -> Tuple[bool, str]:
    """Validate an uploaded receipt file.

    Args:
        uploaded_file: Streamlit uploaded file object

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not uploaded_file:
        return False, "No file uploaded"

    if uploaded_file.size > MAX_RECEIPT_BYTES:
        return False, f"File size ({uploaded_file.size:,} bytes) exceeds maximum allowed size (10MB)"

    file_ext = Path(uploaded_file.name).suffix.lower()
    if file_ext and file_ext not in ALLOWED_RECEIPT_EXTENSIONS:
        return False, f"File type '{file_ext}' not supported. Allowed types: {', '.join(sorted(ALLOWED_RECEIPT_EXTENSIONS))}"

    return True, ""
