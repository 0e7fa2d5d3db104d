"""
Downloadable upload template with the canonical header and one example row.
"""
import csv
import io
from typing import Tuple

from openpyxl import Workbook
from openpyxl.styles import Font

from bulk_upload.core.fields import EXAMPLE_ROW, TEMPLATE_HEADERS
from bulk_upload.services.file_decoder import FileFormat

TEMPLATE_BASENAME = "employee-bulk-upload-template"


def build_csv_template() -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerow([EXAMPLE_ROW[field] for field in TEMPLATE_HEADERS])
    return buffer.getvalue().encode("utf-8")


def build_xlsx_template() -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Employees"
    sheet.append(list(TEMPLATE_HEADERS))
    sheet.append([EXAMPLE_ROW[field] for field in TEMPLATE_HEADERS])

    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for column_cells in sheet.columns:
        width = max(len(str(cell.value or "")) for cell in column_cells)
        sheet.column_dimensions[column_cells[0].column_letter].width = width + 2
    sheet.freeze_panes = "A2"

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_template(file_format: FileFormat) -> Tuple[bytes, str, str]:
    """
    Returns:
        (content, content_type, filename)
    """
    file_format = FileFormat(file_format)
    if file_format is FileFormat.XLSX:
        content = build_xlsx_template()
    else:
        content = build_csv_template()
    return content, file_format.content_type, f"{TEMPLATE_BASENAME}.{file_format.value}"
