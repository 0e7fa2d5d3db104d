"""
Pydantic schemas for the employee bulk upload endpoints.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from bulk_upload.core.fields import TEMPLATE_HEADERS


class RowStatus(str, Enum):
    """Preview-time verdict of a row."""
    VALID = "valid"
    INVALID = "invalid"


class RowLogStatus(str, Enum):
    """Status of a persisted row log. INSERTED is written by the worker."""
    VALID = "valid"
    INSERTED = "inserted"
    FAILED = "failed"


class JobStatus(str, Enum):
    """Status of a bulk upload job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class PreviewRow(BaseModel):
    """
    One validated row as returned by preview and sent back on confirm.

    data always carries the full canonical field set so the schema stays
    stable across both round trips.
    """
    row_number: int = Field(ge=1)
    data: Dict[str, str]
    status: RowStatus
    error_message: Optional[str] = None

    @field_validator("data")
    @classmethod
    def canonicalize_data(cls, v: Dict[str, str]) -> Dict[str, str]:
        return {field: v.get(field) or "" for field in TEMPLATE_HEADERS}


class PreviewResponse(BaseModel):
    """Response for the preview endpoint."""
    total_rows: int
    valid_rows: int
    invalid_rows: int
    preview_data: List[PreviewRow]


class ConfirmResponse(BaseModel):
    """Returned with 202 Accepted; record creation happens asynchronously."""
    job_id: UUID


class JobStatusResponse(BaseModel):
    """Pollable progress of a bulk upload job."""
    id: UUID
    status: JobStatus
    total_rows: int
    successful_rows: int
    failed_rows: int
    created_at: datetime
    updated_at: datetime
    progress_percent: int = Field(ge=0, le=100)
    is_terminal: bool

    class Config:
        from_attributes = True


class ErrorResponse(BaseModel):
    error: str
    message: str
