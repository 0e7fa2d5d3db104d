"""
Bulk upload job orchestration.

Turns a previewed upload into a durable job:

1. create the job record
2. store the original file
3. record the file reference on the job (best effort)
4. persist one row log per row, in batches
5. schedule the external worker to run after the response is sent

The first four steps touch three stores (job table, blob storage, row log
table). They run as a saga: each completed step registers its inverse, and a
failure applies the inverses in reverse order so no half-created job is left
behind.
"""
import logging
from typing import Callable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.orm import Session

from bulk_upload.core.exceptions import (
    BulkUploadError,
    FileStorageError,
    FileTooLargeError,
    JobCreationError,
    NoValidRowsError,
    UploadCancelledError,
)
from bulk_upload.models.bulk_upload import BulkUploadJob, BulkUploadRowLog
from bulk_upload.schemas.bulk_upload import JobStatus, PreviewRow, RowLogStatus, RowStatus
from bulk_upload.services.file_decoder import FileFormat, resolve_extension
from bulk_upload.services.file_storage import S3FileStore, build_storage_key
from bulk_upload.services.worker_trigger import WorkerTrigger, trigger_worker_safely

logger = logging.getLogger(__name__)


def chunk(items: Sequence, size: int) -> List[Sequence]:
    """Split a sequence into consecutive slices of at most size items."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [items[i:i + size] for i in range(0, len(items), size)]


def check_file_preconditions(filename: Optional[str], size: int, max_size: int) -> FileFormat:
    """
    Validate the uploaded file before anything reads its content.

    Raises:
        FileTooLargeError: size above max_size
        UnsupportedFileTypeError: extension is not .csv or .xlsx
    """
    if size > max_size:
        raise FileTooLargeError(size, max_size)
    return resolve_extension(filename)


def check_confirm_preconditions(
    filename: Optional[str],
    size: int,
    max_size: int,
    rows: Sequence[PreviewRow],
) -> FileFormat:
    """Everything confirm checks before persisting anything."""
    file_format = check_file_preconditions(filename, size, max_size)
    if not any(row.status == RowStatus.VALID for row in rows):
        raise NoValidRowsError()
    return file_format


class Saga:
    """Records inverse actions for completed steps."""

    def __init__(self, name: str):
        self.name = name
        self._compensations: List[Tuple[str, Callable[[], None]]] = []

    def on_rollback(self, step: str, action: Callable[[], None]) -> None:
        self._compensations.append((step, action))

    @property
    def completed_steps(self) -> List[str]:
        return [step for step, _ in self._compensations]

    def rollback(self) -> None:
        """
        Apply compensations newest first. A failing compensation is logged and
        the remaining ones still run.
        """
        while self._compensations:
            step, action = self._compensations.pop()
            try:
                action()
                logger.info("[%s] rolled back %s", self.name, step)
            except Exception:
                logger.error("[%s] rollback of %s failed", self.name, step, exc_info=True)


class BulkUploadJobOrchestrator:
    """
    Creates bulk upload jobs from previewed rows.

    Row validity is taken from the preview call and not re-checked: preview
    and confirm are separate interactions and the user may have pruned rows in
    between.
    """

    def __init__(self, db: Session, file_store: S3FileStore, batch_size: int = 250):
        self.db = db
        self.file_store = file_store
        self.batch_size = batch_size

    def create_job(self, organization_id: UUID, uploaded_by: UUID, total_rows: int) -> BulkUploadJob:
        job = BulkUploadJob(
            organization_id=organization_id,
            uploaded_by=uploaded_by,
            status=JobStatus.PENDING.value,
            total_rows=total_rows,
            successful_rows=0,
            failed_rows=0,
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        return job

    def delete_job(self, job_id: UUID) -> None:
        """Remove a job and its row logs."""
        self.db.rollback()
        self.db.execute(delete(BulkUploadRowLog).where(BulkUploadRowLog.job_id == job_id))
        self.db.execute(delete(BulkUploadJob).where(BulkUploadJob.id == job_id))
        self.db.commit()

    def store_file(self, key: str, file_bytes: bytes, file_format: FileFormat) -> None:
        self.file_store.ensure_bucket()
        self.file_store.upload(key, file_bytes, file_format.content_type)

    def record_file_url(self, job: BulkUploadJob, file_url: str) -> None:
        """Best effort; the stored file is a pointer, not the source of truth."""
        try:
            job.file_url = file_url
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.warning("Could not record file reference on job %s", job.id, exc_info=True)

    def build_row_logs(
        self, job_id: UUID, organization_id: UUID, rows: Sequence[PreviewRow]
    ) -> List[BulkUploadRowLog]:
        logs = []
        for row in rows:
            is_valid = row.status == RowStatus.VALID
            error_message = row.error_message
            if not is_valid and not error_message:
                error_message = "Row was marked invalid during preview"
            logs.append(BulkUploadRowLog(
                job_id=job_id,
                organization_id=organization_id,
                row_number=row.row_number,
                raw_data=dict(row.data),
                status=RowLogStatus.VALID.value if is_valid else RowLogStatus.FAILED.value,
                error_message=error_message,
            ))
        return logs

    def insert_batch(self, batch: Sequence[BulkUploadRowLog]) -> None:
        """A batch is durable once this returns."""
        self.db.add_all(batch)
        self.db.commit()

    def persist_row_logs(self, job_id: UUID, organization_id: UUID, rows: Sequence[PreviewRow]) -> int:
        logs = self.build_row_logs(job_id, organization_id, rows)
        batches = chunk(logs, self.batch_size)
        for index, batch in enumerate(batches, start=1):
            self.insert_batch(batch)
            logger.debug("Job %s: stored row log batch %d/%d", job_id, index, len(batches))
        return len(batches)

    def schedule_worker(
        self,
        schedule: Callable[..., None],
        trigger: WorkerTrigger,
        job_id: UUID,
    ) -> None:
        """Hand the trigger to the background task runner; failure is logged only."""
        try:
            schedule(trigger_worker_safely, trigger, job_id)
        except Exception:
            logger.error("Could not schedule worker trigger for job %s", job_id, exc_info=True)

    def create_import_job(
        self,
        *,
        organization_id: UUID,
        uploaded_by: UUID,
        file_bytes: bytes,
        file_format: FileFormat,
        rows: Sequence[PreviewRow],
        schedule: Optional[Callable[..., None]] = None,
        trigger: Optional[WorkerTrigger] = None,
    ) -> UUID:
        """
        Run the confirm saga.

        Args:
            schedule: Callable running a function after the response, e.g.
                BackgroundTasks.add_task
            trigger: Worker client passed to the scheduled task

        Returns:
            The new job id. Record creation itself is the worker's job.

        Raises:
            JobCreationError, FileStorageError, UploadCancelledError: after
                every completed step has been rolled back
        """
        try:
            job = self.create_job(organization_id, uploaded_by, total_rows=len(rows))
        except Exception as e:
            self.db.rollback()
            logger.error("Job creation failed for organization %s", organization_id, exc_info=True)
            raise JobCreationError() from e

        job_id = job.id
        saga = Saga(f"bulk-upload {job_id}")
        saga.on_rollback("job record", lambda: self.delete_job(job_id))
        logger.info(
            "Created bulk upload job %s for organization %s (%d rows)",
            job_id, organization_id, len(rows),
        )

        key = build_storage_key(organization_id, job_id, file_format.value)
        try:
            self.store_file(key, file_bytes, file_format)
        except Exception as e:
            logger.error("Storing file for job %s failed", job_id, exc_info=True)
            saga.rollback()
            if isinstance(e, BulkUploadError):
                raise FileStorageError(e.message) from e
            raise FileStorageError(f"File upload failed: {e}") from e
        saga.on_rollback("stored file", lambda: self.file_store.delete(key))

        self.record_file_url(job, self.file_store.file_url(key))

        try:
            batch_count = self.persist_row_logs(job_id, organization_id, rows)
        except Exception as e:
            logger.error("Row log insert failed for job %s; cancelling upload", job_id, exc_info=True)
            self.db.rollback()
            saga.rollback()
            raise UploadCancelledError() from e

        logger.info("Job %s: stored %d row logs in %d batches", job_id, len(rows), batch_count)

        if schedule is not None and trigger is not None:
            self.schedule_worker(schedule, trigger, job_id)

        return job_id
