from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from bulk_upload import __version__
from bulk_upload.core.config import get_settings
from bulk_upload.core.exceptions import BulkUploadError
from bulk_upload.routers.bulk_upload import router as bulk_upload_router
from bulk_upload.routers.health import router as health_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Employee bulk upload API - Validate CSV/XLSX employee files against organization data and hand confirmed uploads to the import worker.",
    version=__version__,
)


@app.exception_handler(BulkUploadError)
async def bulk_upload_exception_handler(request: Request, exc: BulkUploadError):
    """Render domain errors with their own status code and message."""
    if exc.status_code >= 500:
        logger.error(f"Bulk upload failed: {exc.message}")
    else:
        logger.info(f"Rejected bulk upload request: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "message": exc.message},
    )


# Global exception handler for unhandled errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected server errors with structured response."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later.",
            "request_id": request.headers.get("X-Request-ID"),
        }
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for now
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(bulk_upload_router, prefix="/api")


@app.get("/")
def read_root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "docs": "/docs",
        "health": "/health"
    }
