"""
Unit tests for Pydantic models and receipt path helpers.
Tests data validation, normalization and result reporting.
"""

import pytest
from datetime import date
from decimal import Decimal
from pydantic import ValidationError

from expense_core.models import (
    Expense, ExpenseCreate, ExpenseUpdate, ReceiptFile, ReceiptStatus,
    ReceiptOutcome, MutationResult
)
from expense_core.receipts import normalize_extension, receipt_path_for, guess_content_type


class TestExpenseCreateModel:
    """Test cases for the ExpenseCreate model."""

    def test_valid_expense_defaults(self):
        """Test defaults for optional fields."""
        expense = ExpenseCreate(
            title="Train to Leeds",
            amount=Decimal("54.30"),
            expense_date=date(2024, 3, 1)
        )

        assert expense.currency == "GBP"
        assert expense.category == "Food & Drinks"
        assert expense.country == "United Kingdom"
        assert expense.receipt_status == ReceiptStatus.PENDING
        assert expense.merchant is None

    def test_zero_amount_allowed(self):
        """Test that amounts only need to be non-negative."""
        expense = ExpenseCreate(title="Free parking", amount=Decimal("0"), expense_date=date.today())
        assert expense.amount == Decimal("0")

    def test_negative_amount_rejected(self):
        """Test negative amounts fail validation."""
        with pytest.raises(ValidationError):
            ExpenseCreate(title="Refund", amount=Decimal("-1.00"), expense_date=date.today())

    def test_currency_normalization(self):
        """Test currency codes are upper-cased and validated."""
        expense = ExpenseCreate(title="Lunch", amount=Decimal("9.99"), currency="eur", expense_date=date.today())
        assert expense.currency == "EUR"

        with pytest.raises(ValidationError) as exc_info:
            ExpenseCreate(title="Lunch", amount=Decimal("9.99"), currency="EURO", expense_date=date.today())
        assert "Currency must be a 3-letter code" in str(exc_info.value)

    def test_category_normalization(self):
        """Test recommended categories match case-insensitively and free text is kept."""
        expense = ExpenseCreate(title="Stay", amount=Decimal("99"), category="hotel", expense_date=date.today())
        assert expense.category == "Hotel"

        expense = ExpenseCreate(title="Taxi", amount=Decimal("12"), category="  Transport ", expense_date=date.today())
        assert expense.category == "Transport"

    def test_blank_description_rejected(self):
        """Test whitespace-only descriptions are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            ExpenseCreate(title="   ", amount=Decimal("1"), expense_date=date.today())
        assert "Description cannot be empty" in str(exc_info.value)

    def test_blank_optional_text_becomes_none(self):
        """Test empty merchant, notes and trip are stored as null."""
        expense = ExpenseCreate(
            title="Coffee",
            amount=Decimal("3.10"),
            merchant="",
            notes="  ",
            business_trip="",
            expense_date=date.today()
        )
        assert expense.merchant is None
        assert expense.notes is None
        assert expense.business_trip is None

    def test_receipt_path_not_accepted(self):
        """Test the receipt path cannot be set through the create model."""
        with pytest.raises(ValidationError):
            ExpenseCreate(
                title="Coffee",
                amount=Decimal("3.10"),
                expense_date=date.today(),
                receipt_path="abc.jpg"
            )


class TestExpenseUpdateModel:
    """Test cases for the ExpenseUpdate model."""

    def test_partial_update(self):
        """Test only explicitly set fields are dumped."""
        update = ExpenseUpdate(amount=Decimal("20.00"), receipt_status=ReceiptStatus.APPROVED)

        assert update.model_dump(exclude_unset=True) == {
            "amount": Decimal("20.00"),
            "receipt_status": ReceiptStatus.APPROVED,
        }

    def test_empty_update(self):
        """Test creating empty update object."""
        assert ExpenseUpdate().model_dump(exclude_unset=True) == {}

    def test_receipt_path_not_accepted(self):
        """Test the receipt path cannot be changed through field updates."""
        with pytest.raises(ValidationError):
            ExpenseUpdate(receipt_path=None)

    def test_invalid_status_rejected(self):
        """Test statuses outside the closed set fail validation."""
        with pytest.raises(ValidationError):
            ExpenseUpdate(receipt_status="Paid")

    @pytest.mark.parametrize("field", [
        "title", "amount", "currency", "category", "country", "expense_date", "receipt_status",
    ])
    def test_required_field_cannot_be_cleared(self, field):
        """Test explicit None is rejected for fields the record always has."""
        with pytest.raises(ValidationError) as exc_info:
            ExpenseUpdate(**{field: None})
        assert f"{field} cannot be cleared" in str(exc_info.value)

    def test_optional_text_can_be_cleared(self):
        update = ExpenseUpdate(merchant=None, notes="  ", business_trip=None)

        assert update.model_dump(exclude_unset=True) == {
            "merchant": None,
            "notes": None,
            "business_trip": None,
        }


class TestExpenseModel:
    """Test cases for the persisted Expense model."""

    def test_expense_with_receipt(self):
        expense = Expense(
            id="abc",
            title="Hotel night",
            amount=Decimal("120.00"),
            category="Hotel",
            expense_date=date(2024, 3, 1),
            receipt_path="abc.jpg"
        )
        assert expense.receipt_path == "abc.jpg"
        assert expense.receipt_status == ReceiptStatus.PENDING


class TestReceiptStatus:
    """Test cases for receipt status transitions."""

    def test_same_status_always_allowed(self):
        for status in ReceiptStatus:
            assert status.can_transition_to(status)

    def test_pending_transitions(self):
        assert ReceiptStatus.PENDING.can_transition_to(ReceiptStatus.APPROVED)
        assert ReceiptStatus.PENDING.can_transition_to(ReceiptStatus.REJECTED)
        assert not ReceiptStatus.PENDING.can_transition_to(ReceiptStatus.REIMBURSED)

    def test_reimbursed_is_final(self):
        for status in ReceiptStatus:
            if status != ReceiptStatus.REIMBURSED:
                assert not ReceiptStatus.REIMBURSED.can_transition_to(status)


class TestMutationResult:
    """Test cases for lifecycle results."""

    def test_success_message(self):
        result = MutationResult()
        assert result.succeeded
        assert result.describe("Expense saved") == "Expense saved"

    def test_partial_outcomes_never_read_as_success(self):
        """Test each partial outcome renders a distinct, non-success message."""
        messages = set()
        for outcome in ReceiptOutcome:
            if outcome == ReceiptOutcome.OK:
                continue
            result = MutationResult(outcome=outcome)
            assert not result.succeeded
            message = result.describe("Expense saved")
            assert message != "Expense saved"
            messages.add(message)

        assert len(messages) == len(ReceiptOutcome) - 1


class TestReceiptPaths:
    """Test cases for receipt path derivation."""

    def test_extension_lowercased(self):
        assert receipt_path_for("abc", "Receipt.PNG") == "abc.png"

    def test_missing_extension_defaults_to_jpg(self):
        assert receipt_path_for("abc", "receipt") == "abc.jpg"
        assert receipt_path_for("abc", "") == "abc.jpg"

    def test_non_alphanumeric_characters_stripped(self):
        assert normalize_extension("scan.jp_g") == "jpg"
        assert normalize_extension("scan.%%%") == "jpg"

    def test_only_last_extension_used(self):
        assert normalize_extension("archive.tar.GZ") == "gz"

    def test_content_type_guess(self):
        assert guess_content_type("Receipt.PNG") == "image/png"
        assert guess_content_type("receipt") == "image/jpeg"

    def test_receipt_file_content_type(self):
        assert ReceiptFile(filename="a.png", content=b"x").resolved_content_type == "image/png"
        assert ReceiptFile(filename="a.png", content=b"x", content_type="image/webp").resolved_content_type == "image/webp"
