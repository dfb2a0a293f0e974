"""
Export functionality for expense data.
Builds a zip bundle with the expenses CSV and every receipt that can be downloaded.
"""

import csv
import io
import logging
import zipfile
from typing import List

from .errors import ArchiveAssemblyError, BlobStoreError
from .models import Expense, ExportBundle
from .storage import BlobStore

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "BusinessTrip",
    "Description",
    "VendorMerchant",
    "Notes",
    "Amount",
    "Currency",
    "Category",
    "ReceiptStatus",
    "Country",
    "Date",
    "ReceiptPath",
]
CSV_FILENAME = "expenses.csv"
RECEIPTS_FOLDER = "receipts/"


class ExportBundler:
    """Packages expenses and their receipts for accounting."""

    def __init__(self, blobs: BlobStore, filename: str = "expenses_export.zip"):
        """Initialize the export bundler.

        Args:
            blobs: Blob store to download receipts from
            filename: Download filename of the bundle
        """
        self.blobs = blobs
        self.filename = filename
        self.logger = logger

    def to_csv(self, expenses: List[Expense]) -> str:
        """Export expenses to CSV, one row per expense in the given order.

        Missing optional values are written as empty strings and amounts in their
        stored decimal form.
        """
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(EXPORT_COLUMNS)

        for expense in expenses:
            writer.writerow([
                expense.business_trip or "",
                expense.title,
                expense.merchant or "",
                expense.notes or "",
                str(expense.amount),
                expense.currency,
                expense.category,
                expense.receipt_status.value,
                expense.country,
                expense.expense_date.isoformat(),
                expense.receipt_path or "",
            ])

        csv_content = output.getvalue()
        output.close()
        return csv_content

    def export_all(self, expenses: List[Expense]) -> ExportBundle:
        """Build the export bundle for a snapshot of expenses.

        Receipts that cannot be downloaded (for example a stale path) are skipped and
        listed on the bundle; they never fail the export.

        Raises:
            ArchiveAssemblyError: If the CSV or the archive itself cannot be built
        """
        skipped = []
        receipt_count = 0
        buffer = io.BytesIO()

        try:
            csv_content = self.to_csv(expenses)

            with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                archive.writestr(CSV_FILENAME, csv_content.encode("utf-8"))
                archive.writestr(zipfile.ZipInfo(RECEIPTS_FOLDER), b"")

                written = set()
                for expense in expenses:
                    path = expense.receipt_path
                    if not path or path in written:
                        continue
                    written.add(path)

                    try:
                        data = self.blobs.download(path)
                    except BlobStoreError as e:
                        self.logger.warning(f"Skipping receipt {path} in export: {str(e)}")
                        skipped.append(path)
                        continue

                    archive.writestr(f"{RECEIPTS_FOLDER}{path}", data)
                    receipt_count += 1

        except (csv.Error, ValueError, RuntimeError, OSError, zipfile.BadZipFile) as e:
            self.logger.error(f"Export failed: {str(e)}")
            raise ArchiveAssemblyError(f"Could not build export archive: {e}") from e

        self.logger.info(
            f"Exported {len(expenses)} expenses with {receipt_count} receipts "
            f"({len(skipped)} skipped)"
        )
        return ExportBundle(
            filename=self.filename,
            content=buffer.getvalue(),
            record_count=len(expenses),
            receipt_count=receipt_count,
            skipped_receipts=skipped,
        )
