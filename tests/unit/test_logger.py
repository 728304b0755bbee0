import logging

import pytest

from adworker.logging.logger import Log, _FieldsFormatter


def _make_record(**fields: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="adworker",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Job claimed",
        args=(),
        exc_info=None,
    )
    record.__dict__.update(fields)
    return record


class TestFieldsFormatter:
    def test_plain_message_without_fields(self) -> None:
        formatter = _FieldsFormatter("%(message)s")

        assert formatter.format(_make_record()) == "Job claimed"

    def test_fields_are_appended_sorted(self) -> None:
        formatter = _FieldsFormatter("%(message)s")

        line = formatter.format(_make_record(stage="api_call", job_id="7101"))

        assert line == "Job claimed | job_id=7101 stage=api_call"


class TestLog:
    def test_fields_reach_the_record(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="adworker"):
            Log.info("Job claimed", job_id="7101")

        assert caplog.records[-1].job_id == "7101"

    def test_configure_quiets_http_client_logs(self) -> None:
        Log.configure("debug")

        assert logging.getLogger("adworker").level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
