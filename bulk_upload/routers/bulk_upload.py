"""
Employee bulk upload router: preview, confirm, job status and downloads.
"""
import json
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    Query,
    Response,
    UploadFile,
    status,
)
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session, sessionmaker

from bulk_upload.core.config import Settings, get_settings
from bulk_upload.core.deps import RequestIdentity, get_current_identity
from bulk_upload.core.exceptions import FileTooLargeError, MalformedRequestError
from bulk_upload.db.session import get_db, get_session_factory
from bulk_upload.schemas.bulk_upload import (
    ConfirmResponse,
    ErrorResponse,
    JobStatusResponse,
    PreviewResponse,
    PreviewRow,
)
from bulk_upload.services.file_decoder import FileFormat
from bulk_upload.services.file_storage import S3FileStore, get_file_store
from bulk_upload.services.job_orchestrator import (
    BulkUploadJobOrchestrator,
    check_confirm_preconditions,
    check_file_preconditions,
)
from bulk_upload.services.job_status import JobStatusService
from bulk_upload.services.preview import preview_upload
from bulk_upload.services.template import build_template
from bulk_upload.services.worker_trigger import WorkerTrigger, get_worker_trigger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees/bulk-upload", tags=["bulk-upload"])

_preview_rows_adapter = TypeAdapter(List[PreviewRow])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    415: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def read_upload(file: Optional[UploadFile], max_size: int) -> bytes:
    """
    Read an uploaded file. A declared size above max_size is rejected before
    the body is read; the length of what was read is checked again by the
    preconditions.
    """
    if file is None or not file.filename:
        raise MalformedRequestError('Missing required field: "file"')
    if file.size is not None and file.size > max_size:
        raise FileTooLargeError(file.size, max_size)
    return file.file.read()


def parse_rows_field(rows: Optional[str]) -> List[PreviewRow]:
    """Decode the JSON-encoded preview rows sent back on confirm."""
    if rows is None:
        raise MalformedRequestError('Missing required field: "rows"')
    try:
        parsed = json.loads(rows)
    except json.JSONDecodeError:
        raise MalformedRequestError('"rows" must be a valid JSON string')
    if not isinstance(parsed, list):
        raise MalformedRequestError('"rows" must be a JSON array')
    try:
        preview_rows = _preview_rows_adapter.validate_python(parsed)
    except ValidationError as e:
        raise MalformedRequestError(
            f'"rows" contains malformed entries ({e.error_count()} errors)'
        )

    seen = set()
    for row in preview_rows:
        if row.row_number in seen:
            raise MalformedRequestError(
                f'"rows" repeats row_number {row.row_number}; each row must appear once'
            )
        seen.add(row.row_number)
    return preview_rows


@router.post("/preview", response_model=PreviewResponse, responses={**ERROR_RESPONSES, 503: {"model": ErrorResponse}})
def preview_bulk_upload(
    file: Optional[UploadFile] = File(None),
    identity: RequestIdentity = Depends(get_current_identity),
    session_factory: sessionmaker = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
):
    """
    Validate an uploaded CSV or XLSX file without persisting anything.

    Every row is checked against the organization's departments, job roles,
    existing employee emails and office locations. All problems of a row are
    reported together. The response is successful even if every row is
    invalid.

    Returns:
        Totals and per-row verdicts to be sent back unchanged on confirm
    """
    content = read_upload(file, settings.MAX_FILE_SIZE_BYTES)
    file_format = check_file_preconditions(file.filename, len(content), settings.MAX_FILE_SIZE_BYTES)

    return preview_upload(
        file_bytes=content,
        file_format=file_format,
        organization_id=identity.organization_id,
        session_factory=session_factory,
        settings=settings,
    )


@router.post(
    "/confirm",
    response_model=ConfirmResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={**ERROR_RESPONSES, 500: {"model": ErrorResponse}},
)
def confirm_bulk_upload(
    background_tasks: BackgroundTasks,
    file: Optional[UploadFile] = File(None),
    rows: Optional[str] = Form(None),
    identity: RequestIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    file_store: S3FileStore = Depends(get_file_store),
    trigger: WorkerTrigger = Depends(get_worker_trigger),
    settings: Settings = Depends(get_settings),
):
    """
    Create a bulk upload job from previewed rows.

    Stores the original file and one log row per uploaded row, then hands the
    job to the worker after the response is sent. Row verdicts are taken from
    the preview call as given.

    Returns:
        202 Accepted with the job id; poll the job endpoint for progress
    """
    content = read_upload(file, settings.MAX_FILE_SIZE_BYTES)
    preview_rows = parse_rows_field(rows)
    file_format = check_confirm_preconditions(
        file.filename, len(content), settings.MAX_FILE_SIZE_BYTES, preview_rows
    )

    orchestrator = BulkUploadJobOrchestrator(db, file_store, batch_size=settings.ROW_LOG_BATCH_SIZE)
    job_id = orchestrator.create_import_job(
        organization_id=identity.organization_id,
        uploaded_by=identity.user_id,
        file_bytes=content,
        file_format=file_format,
        rows=preview_rows,
        schedule=background_tasks.add_task,
        trigger=trigger,
    )
    return ConfirmResponse(job_id=job_id)


@router.get("/jobs/{job_id}", response_model=JobStatusResponse, responses={404: {"model": ErrorResponse}})
def get_bulk_upload_job(
    job_id: UUID,
    response: Response,
    identity: RequestIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Get the progress of a bulk upload job.

    Non-terminal jobs (pending, processing) carry a Retry-After header with
    the polling interval.
    """
    job_status = JobStatusService(db).get_status(identity.organization_id, job_id)
    if not job_status.is_terminal:
        response.headers["Retry-After"] = str(settings.POLL_INTERVAL_SECONDS)
    return job_status


@router.get("/jobs/{job_id}/failed-rows", responses={404: {"model": ErrorResponse}})
def download_failed_rows(
    job_id: UUID,
    identity: RequestIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Download the failed rows of a job as CSV, ordered by row number."""
    content = JobStatusService(db).export_failed_rows(identity.organization_id, job_id)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="bulk-upload-{job_id}-errors.csv"'},
    )


@router.get("/template")
def download_template(
    format: FileFormat = Query(FileFormat.XLSX),
    identity: RequestIdentity = Depends(get_current_identity),
):
    """Download an upload template with the expected header and an example row."""
    content, content_type, filename = build_template(format)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
