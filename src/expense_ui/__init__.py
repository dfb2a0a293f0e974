"""
Streamlit components for the expense tracker.
"""

from .components import (
    setup_sidebar,
    display_outcome,
    remember_outcome,
    show_last_outcome,
    display_expense_form,
    expenses_dataframe,
    display_error_message,
    display_success_message,
    format_amount,
    validate_file_upload
)

__all__ = [
    'setup_sidebar',
    'display_outcome',
    'remember_outcome',
    'show_last_outcome',
    'display_expense_form',
    'expenses_dataframe',
    'display_error_message',
    'display_success_message',
    'format_amount',
    'validate_file_upload'
]
