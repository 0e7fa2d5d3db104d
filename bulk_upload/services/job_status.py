"""
Read side of bulk upload jobs: progress polling and failed-row export.
"""
import csv
import io
from typing import List, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bulk_upload.core.exceptions import JobNotFoundError
from bulk_upload.models.bulk_upload import BulkUploadJob, BulkUploadRowLog
from bulk_upload.schemas.bulk_upload import JobStatus, JobStatusResponse, RowLogStatus

ROW_NUMBER_COLUMN = "row_number"
ERROR_COLUMN = "error_message"


def progress_percent(total_rows: int, successful_rows: int, failed_rows: int) -> int:
    """Share of rows processed by the worker, clamped to [0, 100]."""
    if not total_rows or total_rows <= 0:
        return 0
    processed = (successful_rows or 0) + (failed_rows or 0)
    return max(0, min(100, round(100 * processed / total_rows)))


def is_terminal(status: str) -> bool:
    try:
        return JobStatus(status).is_terminal
    except ValueError:
        return False


class JobStatusService:
    """Tenant-scoped, read-only access to jobs and their row logs."""

    def __init__(self, db: Session):
        self.db = db

    def get_job(self, organization_id: UUID, job_id: UUID) -> BulkUploadJob:
        stmt = select(BulkUploadJob).where(
            BulkUploadJob.id == job_id,
            BulkUploadJob.organization_id == organization_id,
        )
        job = self.db.execute(stmt).scalar_one_or_none()
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def get_status(self, organization_id: UUID, job_id: UUID) -> JobStatusResponse:
        job = self.get_job(organization_id, job_id)
        return JobStatusResponse(
            id=job.id,
            status=JobStatus(job.status),
            total_rows=job.total_rows,
            successful_rows=job.successful_rows,
            failed_rows=job.failed_rows,
            created_at=job.created_at,
            updated_at=job.updated_at,
            progress_percent=progress_percent(job.total_rows, job.successful_rows, job.failed_rows),
            is_terminal=is_terminal(job.status),
        )

    def get_failed_rows(self, organization_id: UUID, job_id: UUID) -> List[BulkUploadRowLog]:
        # Confirms the job belongs to the tenant before reading its logs
        self.get_job(organization_id, job_id)
        stmt = (
            select(BulkUploadRowLog)
            .where(
                BulkUploadRowLog.job_id == job_id,
                BulkUploadRowLog.organization_id == organization_id,
                BulkUploadRowLog.status == RowLogStatus.FAILED.value,
            )
            .order_by(BulkUploadRowLog.row_number)
        )
        return list(self.db.execute(stmt).scalars())

    def export_failed_rows(self, organization_id: UUID, job_id: UUID) -> str:
        return render_failed_rows_csv(self.get_failed_rows(organization_id, job_id))


def render_failed_rows_csv(logs: Sequence[BulkUploadRowLog]) -> str:
    """
    Render failed row logs as CSV.

    Columns are row_number, the raw field keys of the first failed row in
    their stored order, then error_message. All rows of one job share the
    canonical field set, so the first row's keys describe every row.
    """
    field_keys = list((logs[0].raw_data or {}).keys()) if logs else []

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([ROW_NUMBER_COLUMN, *field_keys, ERROR_COLUMN])
    for log in logs:
        raw = log.raw_data or {}
        writer.writerow([
            log.row_number,
            *[raw.get(key, "") for key in field_keys],
            log.error_message or "",
        ])
    return buffer.getvalue()
