"""
CSV parsing for contact uploads.

The parser only maps columns to import rows; name/number/email checks run
in the import pipeline so CSV and JSON uploads fail the same way.
"""

import csv
import io
import re
from typing import Generator

from crm.contacts.schemas import ContactImportRow
from crm.shared.exceptions import ValidationError
from crm.shared.logging import get_logger

logger = get_logger(__name__)

REQUIRED_HEADERS = {"number"}
ALL_HEADERS = REQUIRED_HEADERS | {"name", "email"}

# Header aliases for flexibility
HEADER_ALIASES: dict[str, str] = {
    "nome": "name",
    "full_name": "name",
    "contact_name": "name",
    "numero": "number",
    "phone": "number",
    "phone_number": "number",
    "telefone": "number",
    "mobile": "number",
    "whatsapp": "number",
    "e_mail": "email",
    "mail": "email",
}


class CSVFormatError(ValidationError):
    """The uploaded file cannot be read as a contact CSV."""

    default_message = "Invalid CSV file"
    default_code = "ERR_INVALID_CSV"


def normalize_header(header: str) -> str:
    """Normalize a CSV header to standard field name.

    Args:
        header: Raw header string.

    Returns:
        Normalized header name.
    """
    h = header.strip().lower()
    h = h.replace(" ", "_").replace("-", "_")
    h = re.sub(r"__+", "_", h)
    return HEADER_ALIASES.get(h, h)


class CSVParser:
    """Parser for contact CSV files."""

    def __init__(
        self,
        delimiter: str = ",",
        encoding: str = "utf-8-sig",
    ) -> None:
        """Initialize CSV parser.

        Args:
            delimiter: CSV field delimiter.
            encoding: File encoding; the default drops a leading BOM.
        """
        self.delimiter = delimiter
        self.encoding = encoding

    def parse(self, content: bytes) -> Generator[ContactImportRow, None, None]:
        """Parse CSV content and yield one import row per non-empty line.

        Each row carries its 1-based data row number, counting the blank
        lines that are skipped.

        Raises:
            CSVFormatError: File cannot be decoded, has no header line, or
                has no number column. Being a generator, the parser raises
                on the first iteration, before any row is yielded.
        """
        try:
            text = content.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise CSVFormatError(f"File encoding error: {e}") from e

        reader = csv.DictReader(io.StringIO(text), delimiter=self.delimiter)

        if not reader.fieldnames:
            raise CSVFormatError("CSV file is empty or has no headers")

        # First column wins when two headers map to the same field
        columns: dict[str, str] = {}
        for original in reader.fieldnames:
            normalized = normalize_header(original or "")
            if normalized in ALL_HEADERS:
                columns.setdefault(normalized, original)

        missing = REQUIRED_HEADERS - columns.keys()
        if missing:
            raise CSVFormatError(
                f"Missing required headers: {', '.join(sorted(missing))}",
                details={"headers": list(reader.fieldnames)},
            )

        logger.debug(
            "CSV headers parsed",
            extra={"original_headers": list(reader.fieldnames), "columns": columns},
        )

        header_lines = reader.line_num
        for row in reader:
            values = {field: (row.get(original) or "").strip() for field, original in columns.items()}
            if not any(values.values()):
                continue
            yield ContactImportRow(
                name=values.get("name", ""),
                number=values["number"],
                email=values.get("email") or None,
                # Last physical line of the record
                row_number=reader.line_num - header_lines,
            )
