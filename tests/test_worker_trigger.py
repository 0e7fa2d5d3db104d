"""
Tests for the worker trigger client.
"""
import logging
import uuid
from unittest.mock import MagicMock

import pytest
import requests

from bulk_upload.core.exceptions import WorkerTriggerError
from bulk_upload.services.worker_trigger import WorkerTrigger, trigger_worker_safely

WORKER_URL = "http://worker.test/process-bulk-upload"


def make_trigger(status_code=200, exc=None, auth_token=None):
    session = MagicMock(spec=requests.Session)
    if exc is not None:
        session.post.side_effect = exc
    else:
        response = MagicMock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 300
        response.text = "worker says no"
        session.post.return_value = response
    return WorkerTrigger(url=WORKER_URL, auth_token=auth_token, timeout=3.0, session=session), session


class TestWorkerTrigger:

    def test_sends_only_the_job_id(self):
        trigger, session = make_trigger()
        job_id = uuid.uuid4()

        trigger.trigger(job_id)

        args, kwargs = session.post.call_args
        assert args == (WORKER_URL,)
        assert kwargs["json"] == {"job_id": str(job_id)}
        assert kwargs["timeout"] == 3.0
        assert "Authorization" not in kwargs["headers"]

    def test_bearer_token(self):
        trigger, session = make_trigger(auth_token="s3cret")
        trigger.trigger(uuid.uuid4())

        assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer s3cret"

    def test_non_2xx_raises(self):
        trigger, _ = make_trigger(status_code=500)

        with pytest.raises(WorkerTriggerError) as exc_info:
            trigger.trigger(uuid.uuid4())

        assert "500" in exc_info.value.message

    def test_transport_error_raises(self):
        trigger, _ = make_trigger(exc=requests.ConnectionError("refused"))

        with pytest.raises(WorkerTriggerError):
            trigger.trigger(uuid.uuid4())


class TestTriggerWorkerSafely:

    def test_success(self, caplog):
        trigger, _ = make_trigger()
        with caplog.at_level(logging.INFO, logger="bulk_upload.services.worker_trigger"):
            assert trigger_worker_safely(trigger, uuid.uuid4()) is True

        assert "Worker triggered" in caplog.text

    def test_failure_is_logged_not_raised(self, caplog):
        trigger, _ = make_trigger(status_code=503)
        job_id = uuid.uuid4()

        assert trigger_worker_safely(trigger, job_id) is False
        assert str(job_id) in caplog.text

    def test_unconfigured_url(self):
        session = MagicMock(spec=requests.Session)
        trigger = WorkerTrigger(url=None, session=session)

        assert trigger_worker_safely(trigger, uuid.uuid4()) is False
        session.post.assert_not_called()
