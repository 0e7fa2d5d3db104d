"""
Bulk upload job and per-row audit log models.
"""
import uuid
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import relationship

from bulk_upload.db.base import Base


class BulkUploadJob(Base):
    """
    Durable record of one bulk import attempt.

    Created by the confirm step and afterwards mutated only by the external
    worker (status and counts), or deleted wholesale by the confirm step's own
    rollback.
    """
    __tablename__ = "bulk_upload_jobs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    uploaded_by = Column(Uuid, nullable=False)
    file_url = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    total_rows = Column(Integer, nullable=False, default=0)
    successful_rows = Column(Integer, nullable=False, default=0)
    failed_rows = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    row_logs = relationship(
        "BulkUploadRowLog",
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BulkUploadRowLog.row_number",
    )


class BulkUploadRowLog(Base):
    """
    Append-only outcome of a single uploaded row.

    raw_data holds the canonical field snapshot exactly as it was previewed.
    Rows that were invalid at preview time are stored as 'failed' with their
    preview error message so the worker skips them.
    """
    __tablename__ = "bulk_upload_row_logs"
    __table_args__ = (
        Index("idx_bulk_upload_row_logs_job_id_row_number", "job_id", "row_number", unique=True),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id = Column(Uuid, ForeignKey("bulk_upload_jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    row_number = Column(Integer, nullable=False)
    raw_data = Column(JSON)
    status = Column(String(20), nullable=False, default="valid", index=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    job = relationship("BulkUploadJob", back_populates="row_logs")
