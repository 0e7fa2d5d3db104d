"""
File decoder service turning uploaded CSV or XLSX bytes into canonical rows.

Both formats converge on the same shape: an ordered list of dicts keyed by
every canonical field, missing source columns mapped to empty strings.
"""
import csv
import io
import logging
import re
import zipfile
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import chardet
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from bulk_upload.core.exceptions import MalformedFileError, UnsupportedFileTypeError
from bulk_upload.core.fields import TEMPLATE_HEADERS

logger = logging.getLogger(__name__)

CanonicalRow = Dict[str, str]

_WHITESPACE = re.compile(r"\s+")


class FileFormat(str, Enum):
    """Supported upload formats."""
    CSV = "csv"
    XLSX = "xlsx"

    @property
    def content_type(self) -> str:
        if self is FileFormat.XLSX:
            return "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        return "text/csv"


def resolve_extension(filename: Optional[str]) -> FileFormat:
    """
    Map a filename to a supported format.

    Raises:
        UnsupportedFileTypeError: if the extension is not .csv or .xlsx
    """
    name = (filename or "").strip().lower()
    if name.endswith(".csv"):
        return FileFormat.CSV
    if name.endswith(".xlsx"):
        return FileFormat.XLSX
    raise UnsupportedFileTypeError(filename)


def normalize_header_key(raw: str) -> str:
    """'  Start Date ' -> 'start_date', 'Job-Role' -> 'job_role'."""
    return _WHITESPACE.sub("_", raw.strip().lower()).replace("-", "_")


def build_canonical_row(header_keys: Sequence[str], values: Sequence[str]) -> CanonicalRow:
    """
    Zip a data row onto the normalized header and project onto the canonical
    field set. Short rows are padded with empty strings; unknown columns are
    dropped.
    """
    by_key: Dict[str, str] = {}
    for index, key in enumerate(header_keys):
        value = values[index] if index < len(values) else ""
        # First column wins when a header repeats
        by_key.setdefault(key, (value or "").strip())
    return {field: by_key.get(field, "") for field in TEMPLATE_HEADERS}


def _is_blank(values: Sequence[str]) -> bool:
    return all(not (v or "").strip() for v in values)


def rows_to_canonical(raw_rows: List[List[str]]) -> List[CanonicalRow]:
    """Row 0 is the header; fewer than two rows means there is no data."""
    if len(raw_rows) < 2:
        return []
    header_keys = [normalize_header_key(h) for h in raw_rows[0]]
    return [build_canonical_row(header_keys, row) for row in raw_rows[1:]]


class CSVDecoder:
    """
    Delimited text decoder.

    Handles quoted fields with embedded delimiters, quotes and newlines, both
    CRLF and LF line endings, a UTF-8 byte order mark, and blank lines.
    """

    def detect_encoding(self, file_bytes: bytes) -> str:
        """
        Detect file encoding. UTF-8 is tried first; chardet is consulted only
        when the bytes are not valid UTF-8.

        Returns:
            Encoding name usable with bytes.decode()
        """
        try:
            file_bytes.decode("utf-8")
            return "utf-8-sig"
        except UnicodeDecodeError:
            pass

        result = chardet.detect(file_bytes)
        encoding = result["encoding"] or "utf-8"

        # Normalize encoding names
        encoding_lower = encoding.lower()
        if "iso-8859" in encoding_lower or "latin" in encoding_lower:
            return "iso-8859-1"
        elif "windows" in encoding_lower or "cp125" in encoding_lower:
            return "windows-1252"

        return encoding

    def decode_text(self, file_bytes: bytes) -> str:
        encoding = self.detect_encoding(file_bytes)
        try:
            return file_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            logger.warning("Could not decode CSV as %s; replacing undecodable bytes", encoding)
            return file_bytes.decode("utf-8", errors="replace")

    def read_records(self, file_bytes: bytes) -> List[List[str]]:
        text = self.decode_text(file_bytes)
        reader = csv.reader(io.StringIO(text, newline=""))
        try:
            return [record for record in reader if record and not _is_blank(record)]
        except csv.Error as e:
            raise MalformedFileError(f"Could not read CSV file: {e}") from e

    def decode(self, file_bytes: bytes) -> List[CanonicalRow]:
        return rows_to_canonical(self.read_records(file_bytes))


def cell_to_string(value: Any, data_type: Optional[str] = None) -> str:
    """
    Coerce a spreadsheet cell value to a plain string.

    - None -> ""
    - error cells (#N/A, #REF!, ...) -> ""
    - bool -> "true" / "false"
    - numbers -> string form, integral floats without a trailing ".0"
    - dates -> ISO calendar date, time of day dropped
    - rich text -> concatenation of its text runs
    - formulas -> their cached result (the workbook is opened with data_only)
    """
    if value is None or data_type == "e":
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.isoformat()
    # openpyxl CellRichText: a list of plain strings and TextBlocks
    if isinstance(value, (list, tuple)):
        return "".join(getattr(part, "text", part) if not isinstance(part, str) else part for part in value)
    return str(value)


class XLSXDecoder:
    """
    Spreadsheet decoder. Only the first sheet is read and only non-empty rows
    are considered.
    """

    def read_records(self, file_bytes: bytes) -> List[List[str]]:
        try:
            workbook = load_workbook(io.BytesIO(file_bytes), data_only=True, rich_text=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
            raise MalformedFileError(f"Could not read spreadsheet: {e}") from e

        try:
            if not workbook.worksheets:
                return []
            sheet = workbook.worksheets[0]
            records: List[List[str]] = []
            for row in sheet.iter_rows():
                values = [cell_to_string(cell.value, cell.data_type) for cell in row]
                if not _is_blank(values):
                    records.append(values)
            return records
        finally:
            workbook.close()

    def decode(self, file_bytes: bytes) -> List[CanonicalRow]:
        return rows_to_canonical(self.read_records(file_bytes))


DECODERS = {
    FileFormat.CSV: CSVDecoder,
    FileFormat.XLSX: XLSXDecoder,
}


def decode_file(file_bytes: bytes, file_format: FileFormat) -> List[CanonicalRow]:
    """
    Decode uploaded bytes with the decoder registered for the format.

    Returns:
        Canonical rows in file order. Empty when the file has no data rows.
    """
    decoder = DECODERS[FileFormat(file_format)]()
    rows = decoder.decode(file_bytes)
    logger.debug("Decoded %d %s data rows", len(rows), FileFormat(file_format).value)
    return rows
