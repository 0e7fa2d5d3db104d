"""
SQLAlchemy models for the bulk upload API.
"""
# Tenant reference data
from bulk_upload.models.organization import (
    Organization,
    Department,
    JobRole,
    Employee,
    OfficeLocation,
)

# Bulk upload
from bulk_upload.models.bulk_upload import BulkUploadJob, BulkUploadRowLog


__all__ = [
    # Reference data
    "Organization",
    "Department",
    "JobRole",
    "Employee",
    "OfficeLocation",
    # Bulk upload
    "BulkUploadJob",
    "BulkUploadRowLog",
]
