"""
Data models using Pydantic for the expense tracker.
Provides validation for expense records, receipt uploads and operation results.
"""

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, field_validator
import re

from .receipts import guess_content_type

RECOMMENDED_CATEGORIES = ["Mileage", "Hotel", "Food & Drinks"]
DEFAULT_CATEGORY = "Food & Drinks"
DEFAULT_CURRENCY = "GBP"
DEFAULT_COUNTRY = "United Kingdom"


class ReceiptStatus(str, Enum):
    """Reimbursement state of an expense's receipt."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    REIMBURSED = "Reimbursed"

    def can_transition_to(self, target: "ReceiptStatus") -> bool:
        """Whether a change from this status to ``target`` is legal.

        Staying on the same status is always allowed. Reimbursed is final.
        """
        if target == self:
            return True
        return target in _STATUS_TRANSITIONS[self]


_STATUS_TRANSITIONS = {
    ReceiptStatus.PENDING: {ReceiptStatus.APPROVED, ReceiptStatus.REJECTED},
    ReceiptStatus.APPROVED: {ReceiptStatus.REIMBURSED, ReceiptStatus.REJECTED, ReceiptStatus.PENDING},
    ReceiptStatus.REJECTED: {ReceiptStatus.PENDING, ReceiptStatus.APPROVED},
    ReceiptStatus.REIMBURSED: set(),
}


def _clean_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    code = v.strip().upper()
    if not re.match(r'^[A-Z]{3}$', code):
        raise ValueError('Currency must be a 3-letter code (e.g., GBP, EUR)')
    return code


def _clean_category(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    cleaned = v.strip()
    if not cleaned:
        raise ValueError('Category cannot be empty')
    # Match the recommended set case-insensitively, keep free text otherwise
    for category in RECOMMENDED_CATEGORIES:
        if cleaned.lower() == category.lower():
            return category
    return cleaned


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    cleaned = v.strip()
    return cleaned or None


def _clean_title(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    if not v.strip():
        raise ValueError('Description cannot be empty')
    return v.strip()


class ExpenseCreate(BaseModel):
    """Model for creating new expenses. The receipt is attached separately."""

    title: str = Field(..., min_length=1, max_length=200, description="Expense description")
    merchant: Optional[str] = Field(None, max_length=200, description="Vendor/merchant name")
    amount: Decimal = Field(..., ge=0, description="Expense amount (non-negative)")
    currency: str = Field(DEFAULT_CURRENCY, description="ISO 4217 currency code")
    category: str = Field(DEFAULT_CATEGORY, max_length=100, description="Expense category")
    country: str = Field(DEFAULT_COUNTRY, max_length=100, description="Country of the expense")
    notes: Optional[str] = Field(None, max_length=1000, description="Additional notes")
    business_trip: Optional[str] = Field(None, max_length=200, description="Business trip label")
    expense_date: date = Field(..., description="Date of the expense")
    receipt_status: ReceiptStatus = Field(ReceiptStatus.PENDING, description="Reimbursement status")

    model_config = {"extra": "forbid"}

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        """Trim the description and reject blank values."""
        return _clean_title(v)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        """Validate currency code format."""
        return _clean_currency(v)

    @field_validator('category')
    @classmethod
    def validate_category(cls, v):
        """Normalize category against the recommended set."""
        return _clean_category(v)

    @field_validator('merchant', 'notes', 'business_trip')
    @classmethod
    def validate_optional_text(cls, v):
        """Store blank optional text as null."""
        return _blank_to_none(v)


class ExpenseUpdate(BaseModel):
    """Model for partial updates of an existing expense.

    ``receipt_path`` is deliberately absent: only the receipt lifecycle writes it.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    merchant: Optional[str] = Field(None, max_length=200)
    amount: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None)
    category: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)
    business_trip: Optional[str] = Field(None, max_length=200)
    expense_date: Optional[date] = Field(None)
    receipt_status: Optional[ReceiptStatus] = Field(None)

    model_config = {"extra": "forbid"}

    @field_validator('title', 'amount', 'currency', 'category', 'country',
                     'expense_date', 'receipt_status', mode='before')
    @classmethod
    def validate_required(cls, v, info):
        """Required fields may be left out of an update but not cleared."""
        if v is None:
            raise ValueError(f'{info.field_name} cannot be cleared')
        return v

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        """Trim the description and reject blank values."""
        return _clean_title(v)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        """Validate currency code format."""
        return _clean_currency(v)

    @field_validator('category')
    @classmethod
    def validate_category(cls, v):
        """Normalize category against the recommended set."""
        return _clean_category(v)

    @field_validator('merchant', 'notes', 'business_trip')
    @classmethod
    def validate_optional_text(cls, v):
        """Store blank optional text as null."""
        return _blank_to_none(v)


class Expense(ExpenseCreate):
    """A persisted expense record."""

    id: str = Field(..., description="Store-assigned identifier")
    created_at: Optional[datetime] = Field(None, description="Record creation timestamp")
    receipt_path: Optional[str] = Field(None, description="Path of the receipt in blob storage")

    model_config = {
        "extra": "ignore",
        "json_schema_extra": {
            "example": {
                "id": "3f2b9c0d5e6a4b7c8d9e0f1a2b3c4d5e",
                "title": "Client dinner",
                "merchant": "Dishoom",
                "amount": "48.20",
                "currency": "GBP",
                "category": "Food & Drinks",
                "country": "United Kingdom",
                "expense_date": "2024-03-14",
                "receipt_status": "Pending",
                "receipt_path": "3f2b9c0d5e6a4b7c8d9e0f1a2b3c4d5e.jpg"
            }
        }
    }


class ReceiptFile(BaseModel):
    """An uploaded receipt image."""

    filename: str = Field("", description="Original filename, used for the extension")
    content: bytes = Field(..., description="Raw file bytes")
    content_type: Optional[str] = Field(None, description="MIME type reported by the uploader")

    @property
    def resolved_content_type(self) -> str:
        return self.content_type or guess_content_type(self.filename)


class ReceiptOutcome(str, Enum):
    """How far a lifecycle operation got on the receipt side."""

    OK = "ok"
    RECEIPT_UPLOAD_FAILED = "receipt_upload_failed"
    RECEIPT_LINK_FAILED = "receipt_link_failed"
    PREVIOUS_RECEIPT_ORPHANED = "previous_receipt_orphaned"
    RECEIPT_ORPHANED = "receipt_orphaned"


_OUTCOME_MESSAGES = {
    ReceiptOutcome.RECEIPT_UPLOAD_FAILED: "Expense saved, but the receipt upload failed",
    ReceiptOutcome.RECEIPT_LINK_FAILED: "Expense saved and receipt uploaded, but the receipt could not be linked",
    ReceiptOutcome.PREVIOUS_RECEIPT_ORPHANED: "Expense saved with the new receipt, but the old receipt file could not be removed",
    ReceiptOutcome.RECEIPT_ORPHANED: "Expense deleted, but its receipt file could not be removed",
}


class MutationResult(BaseModel):
    """Result of a lifecycle operation that committed its record-level change."""

    expense: Optional[Expense] = Field(None, description="Record state after the operation")
    outcome: ReceiptOutcome = Field(ReceiptOutcome.OK, description="Receipt-level outcome")
    receipt_path: Optional[str] = Field(None, description="Receipt path involved in the operation")
    warnings: List[str] = Field(default_factory=list, description="Details of partial failures")

    @property
    def succeeded(self) -> bool:
        return self.outcome == ReceiptOutcome.OK

    def describe(self, success_message: str) -> str:
        """Status line for the caller; partial outcomes never read as plain success."""
        if self.succeeded:
            return success_message
        return _OUTCOME_MESSAGES[self.outcome]


class ExportBundle(BaseModel):
    """A zip archive holding the CSV export and every downloadable receipt."""

    filename: str = Field(..., description="Suggested download filename")
    content: bytes = Field(..., description="Zip archive bytes")
    record_count: int = Field(..., ge=0, description="Number of CSV data rows")
    receipt_count: int = Field(..., ge=0, description="Number of receipts in the archive")
    skipped_receipts: List[str] = Field(default_factory=list, description="Receipt paths that could not be downloaded")


class ExpenseSummary(BaseModel):
    """Dashboard figures for a set of expenses."""

    count: int = Field(..., ge=0)
    all_time_total: Decimal = Field(..., description="Sum of all amounts")
    month_total: Decimal = Field(..., description="Sum of amounts dated in the current month")
    totals_by_status: Dict[ReceiptStatus, Decimal] = Field(default_factory=dict)
    recent: List[Expense] = Field(default_factory=list, description="Most recent expenses")
