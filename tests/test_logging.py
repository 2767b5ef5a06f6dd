"""
test_logging.py — Phone masking, log formatters and request middleware.
"""

from __future__ import annotations

import json
import logging
import sys

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from backend.app.core.logging_config import (
    JSONFormatter,
    PrettyFormatter,
    get_request_context,
    mask_phone,
    set_request_context,
)
from backend.app.core.middleware import RequestLoggingMiddleware


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("alerts", logging.INFO, __file__, 10, msg, (), None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestMaskPhone:

    def test_keeps_last_four(self):
        assert mask_phone("+15551234567") == "********4567"

    def test_short_number(self):
        assert mask_phone("911") == "911"

    def test_missing(self):
        assert mask_phone(None) == "<none>"
        assert mask_phone("") == "<none>"


class TestJSONFormatter:

    def test_extra_fields_included(self):
        entry = json.loads(JSONFormatter().format(
            _record(lat=37.7749, lon=-122.4194, trigger_source="manual"),
        ))
        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["lat"] == 37.7749
        assert entry["trigger_source"] == "manual"
        assert "phone" not in entry

    def test_request_context_attached(self):
        set_request_context(request_id="req-1", endpoint="/send-alert")
        try:
            entry = json.loads(JSONFormatter().format(_record()))
            assert entry["context"] == {"request_id": "req-1", "endpoint": "/send-alert"}
        finally:
            set_request_context()
        assert get_request_context() == {}

    def test_phone_field_is_masked(self):
        entry = json.loads(JSONFormatter().format(_record(phone="+15551234567", channel="text")))
        assert entry["phone"] == "********4567"
        assert entry["channel"] == "text"

    def test_exception_summary(self):
        try:
            raise ValueError("bad fix")
        except ValueError:
            record = logging.LogRecord(
                "alerts", logging.ERROR, __file__, 10, "failed", (), sys.exc_info(),
            )
        entry = json.loads(JSONFormatter().format(record))
        assert entry["exception"] == {"type": "ValueError", "message": "bad fix"}


class TestPrettyFormatter:

    def test_alert_tag(self):
        line = PrettyFormatter().format(_record(trigger_source="voice", outcome="sent"))
        assert "{voice→sent}" in line
        assert line.endswith("alerts: hello")

    def test_single_field_tag(self):
        assert "{manual}" in PrettyFormatter().format(_record(trigger_source="manual"))

    def test_plain_record_has_no_tag(self):
        assert "{" not in PrettyFormatter().format(_record())

    def test_request_id_prefix(self):
        set_request_context(request_id="0123456789abcdef")
        try:
            assert "[01234567]" in PrettyFormatter().format(_record())
        finally:
            set_request_context()


def _middleware_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/echo")
    async def echo(request: Request):
        return {"state": request.state.request_id, "context": get_request_context()}

    return app


class TestRequestLoggingMiddleware:

    def test_request_id_on_state_and_context(self):
        client = TestClient(_middleware_app())
        resp = client.get("/echo", headers={"X-Request-ID": "req-42"})
        body = resp.json()
        assert body["state"] == "req-42"
        assert body["context"] == {"request_id": "req-42", "method": "GET", "endpoint": "/echo"}
        assert resp.headers["X-Request-ID"] == "req-42"
        assert get_request_context() == {}

    def test_generated_id(self):
        resp = TestClient(_middleware_app()).get("/echo")
        assert len(resp.headers["X-Request-ID"]) == 16
        assert resp.json()["state"] == resp.headers["X-Request-ID"]

    def test_one_line_per_request(self, caplog):
        with caplog.at_level(logging.INFO, logger="backend.app.core.middleware"):
            TestClient(_middleware_app()).get("/missing")
        records = [r for r in caplog.records if r.name == "backend.app.core.middleware"]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert records[0].status_code == 404
        assert records[0].endpoint == "/missing"
