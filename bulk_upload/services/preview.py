"""
Preview pass: decode an uploaded file and validate every row without
persisting anything.
"""
import logging
from uuid import UUID

from sqlalchemy.orm import sessionmaker

from bulk_upload.core.config import Settings
from bulk_upload.core.exceptions import NoDataRowsError, TooManyRowsError
from bulk_upload.schemas.bulk_upload import PreviewResponse, RowStatus
from bulk_upload.services.file_decoder import FileFormat, decode_file
from bulk_upload.services.reference_data import load_reference_context
from bulk_upload.services.row_validator import validate_rows

logger = logging.getLogger(__name__)


def preview_upload(
    file_bytes: bytes,
    file_format: FileFormat,
    organization_id: UUID,
    session_factory: sessionmaker,
    settings: Settings,
) -> PreviewResponse:
    """
    Decode, load reference data, validate.

    Always succeeds with per-row detail when the file itself is usable, even
    if every row is invalid.

    Raises:
        MalformedFileError, NoDataRowsError, TooManyRowsError: file problems
        ReferenceDataError: reference data could not be loaded
    """
    rows = decode_file(file_bytes, file_format)
    if not rows:
        raise NoDataRowsError()
    if len(rows) > settings.MAX_PREVIEW_ROWS:
        raise TooManyRowsError(len(rows), settings.MAX_PREVIEW_ROWS)

    context = load_reference_context(
        session_factory, organization_id, max_workers=settings.REFERENCE_LOAD_WORKERS
    )
    results = validate_rows(rows, context)

    preview_data = [row.to_preview() for row in results]
    valid_rows = sum(1 for row in preview_data if row.status == RowStatus.VALID)

    logger.info(
        "Previewed %d rows for organization %s: %d valid, %d invalid",
        len(preview_data), organization_id, valid_rows, len(preview_data) - valid_rows,
    )
    return PreviewResponse(
        total_rows=len(preview_data),
        valid_rows=valid_rows,
        invalid_rows=len(preview_data) - valid_rows,
        preview_data=preview_data,
    )
