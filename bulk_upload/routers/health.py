"""
Health check router with database and blob storage verification.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from bulk_upload.core.exceptions import FileStorageError
from bulk_upload.db.session import get_db
from bulk_upload.services.file_storage import S3FileStore, get_file_store

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic health check - always returns OK."""
    return {"status": "ok"}


@router.get("/api/health")
def api_health_check(
    db: Session = Depends(get_db),
    file_store: S3FileStore = Depends(get_file_store),
):
    """
    Comprehensive health check verifying:
    - Database connectivity
    - Blob storage bucket (may not exist before the first confirmed upload)

    Returns 200 if all critical services are healthy.
    Returns 503 if any critical service is down.
    """
    health_status = {
        "status": "ok",
        "services": {}
    }
    is_healthy = True

    # Check database
    try:
        db.execute(text("SELECT 1"))
        health_status["services"]["database"] = {"status": "ok"}
    except Exception as e:
        health_status["services"]["database"] = {"status": "error", "message": str(e)}
        is_healthy = False

    # Check storage (the bucket is created lazily, so don't fail the check)
    try:
        file_store.check_bucket()
        health_status["services"]["storage"] = {"status": "ok"}
    except FileStorageError as e:
        health_status["services"]["storage"] = {"status": "unavailable", "message": e.message}

    if not is_healthy:
        health_status["status"] = "unhealthy"
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=health_status
        )

    return health_status
