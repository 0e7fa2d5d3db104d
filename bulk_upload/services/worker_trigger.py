"""
Trigger for the external worker that creates employee records from a job.

The trigger runs after the HTTP response has been sent (FastAPI background
task). It only ever sends the job id: the worker re-derives the tenant from
the durable job record, so the tenant can never be spoofed through this call.
"""
import logging
from functools import lru_cache
from typing import Optional
from uuid import UUID

import requests

from bulk_upload.core.config import get_settings
from bulk_upload.core.exceptions import WorkerTriggerError

logger = logging.getLogger(__name__)


class WorkerTrigger:
    """HTTP client for the bulk upload worker."""

    def __init__(
        self,
        url: Optional[str],
        auth_token: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.auth_token = auth_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def build_payload(self, job_id: UUID) -> dict:
        return {"job_id": str(job_id)}

    def trigger(self, job_id: UUID) -> None:
        """
        Invoke the worker for a job.

        Raises:
            WorkerTriggerError: on transport errors or a non-2xx response
        """
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        try:
            response = self.session.post(
                self.url,
                json=self.build_payload(job_id),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise WorkerTriggerError(f"Worker request failed: {e}") from e

        if not response.ok:
            raise WorkerTriggerError(
                f"Worker responded with {response.status_code}: {response.text[:200]}"
            )


def trigger_worker_safely(trigger: WorkerTrigger, job_id: UUID) -> bool:
    """
    Background-task entry point. Failures are logged and never retried here;
    a job left pending is picked up by operational tooling.

    Returns:
        True if the worker accepted the job
    """
    if not trigger.url:
        logger.warning("WORKER_URL is not configured; job %s was not handed off", job_id)
        return False

    try:
        trigger.trigger(job_id)
    except WorkerTriggerError:
        logger.error("Worker trigger failed for job %s", job_id, exc_info=True)
        return False

    logger.info("Worker triggered for job %s", job_id)
    return True


@lru_cache
def get_worker_trigger() -> WorkerTrigger:
    """Dependency that provides the configured worker trigger."""
    settings = get_settings()
    return WorkerTrigger(
        url=settings.WORKER_URL,
        auth_token=settings.WORKER_AUTH_TOKEN,
        timeout=settings.WORKER_TIMEOUT_SECONDS,
    )
