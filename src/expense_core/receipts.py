"""
Receipt path helpers.
A receipt lives at ``{expense_id}.{ext}`` in the receipts container.
"""

import mimetypes
import re
from pathlib import Path

DEFAULT_EXTENSION = "jpg"
DEFAULT_CONTENT_TYPE = "image/jpeg"


def normalize_extension(filename: str) -> str:
    """Lowercase alphanumeric extension of ``filename``, ``jpg`` when there is none.

    >>> normalize_extension("Receipt.PNG")
    'png'
    >>> normalize_extension("scan")
    'jpg'
    """
    suffix = Path(filename or "").suffix.lower()
    ext = re.sub(r'[^a-z0-9]', '', suffix)
    return ext or DEFAULT_EXTENSION


def receipt_path_for(expense_id: str, filename: str) -> str:
    """Blob path for the receipt of ``expense_id`` uploaded as ``filename``."""
    return f"{expense_id}.{normalize_extension(filename)}"


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(f"receipt.{normalize_extension(filename)}")
    return content_type or DEFAULT_CONTENT_TYPE
