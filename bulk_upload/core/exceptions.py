"""Bulk upload exception hierarchy.

Every error carries the HTTP status code and a short machine-readable code so
the API layer can render it without knowing the concrete class.
"""

from __future__ import annotations


class BulkUploadError(Exception):
    """Base exception for all bulk upload errors."""

    status_code = 500
    code = "bulk_upload_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# Caller-correctable input errors


class MalformedRequestError(BulkUploadError):
    """Request is missing a part or a part has the wrong encoding."""

    status_code = 400
    code = "malformed_request"


class FileTooLargeError(BulkUploadError):
    """Uploaded file exceeds the configured byte ceiling."""

    status_code = 413
    code = "file_too_large"

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"File too large. Maximum allowed size is {limit / 1024 / 1024:g} MB"
        )


class UnsupportedFileTypeError(BulkUploadError):
    """File extension is not one of the supported formats."""

    status_code = 415
    code = "unsupported_file_type"

    def __init__(self, filename: str | None) -> None:
        self.filename = filename
        super().__init__("Unsupported file type. Upload a .csv or .xlsx file")


class MalformedFileError(BulkUploadError):
    """File bytes could not be decoded in the declared format."""

    status_code = 422
    code = "malformed_file"


class NoDataRowsError(BulkUploadError):
    status_code = 422
    code = "no_data_rows"

    def __init__(self) -> None:
        super().__init__("File contains no data rows. Ensure the first row is the header.")


class TooManyRowsError(BulkUploadError):
    status_code = 422
    code = "too_many_rows"

    def __init__(self, row_count: int, limit: int) -> None:
        self.row_count = row_count
        self.limit = limit
        super().__init__(
            f"File contains {row_count} rows. Maximum allowed per upload is {limit}. "
            f"Split the file and upload in batches."
        )


class NoValidRowsError(BulkUploadError):
    status_code = 422
    code = "no_valid_rows"

    def __init__(self) -> None:
        super().__init__("No valid rows to import")


# Reference data


class ReferenceDataError(BulkUploadError):
    """A tenant reference-data read failed; validation cannot proceed."""

    status_code = 503
    code = "reference_data_unavailable"

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        super().__init__(f"Failed to load {source} for validation: {reason}")


# Orchestration (always reported after rollback)


class OrchestrationError(BulkUploadError):
    """Server-side failure while creating an import job."""

    status_code = 500
    code = "import_failed"


class JobCreationError(OrchestrationError):
    def __init__(self) -> None:
        super().__init__("Failed to create upload job")


class FileStorageError(OrchestrationError):
    """Blob storage operation failed."""

    code = "file_storage_failed"


class UploadCancelledError(OrchestrationError):
    """Row log persistence failed and the whole upload was rolled back."""

    code = "upload_cancelled"

    def __init__(self) -> None:
        super().__init__("Failed to store row logs. The upload has been cancelled.")


class WorkerTriggerError(BulkUploadError):
    """The external worker could not be triggered. Never surfaced to callers."""

    code = "worker_trigger_failed"


# Status reads


class JobNotFoundError(BulkUploadError):
    status_code = 404
    code = "job_not_found"

    def __init__(self, job_id: object) -> None:
        self.job_id = job_id
        super().__init__("Upload job not found")
