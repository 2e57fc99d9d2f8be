"""
Request body size limit tests
"""
import json

import pytest

from office_pdf.utils.upload_limit import UploadSizeLimitMiddleware

pytestmark = pytest.mark.anyio

LIMIT = 25


def _scope(method="POST", headers=()):
    return {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.4"},
        "http_version": "1.1",
        "method": method,
        "path": "/api/office-to-pdf",
        "headers": [(name.encode("latin-1"), value.encode("latin-1")) for name, value in headers],
    }


def _chunks(*parts):
    messages = [{"type": "http.request", "body": part, "more_body": True} for part in parts]
    messages[-1]["more_body"] = False
    pending = iter(messages)

    async def receive():
        return next(pending, {"type": "http.disconnect"})

    return receive


class EchoApp:
    """Reads the whole body and sends it back."""

    def __init__(self):
        self.calls = 0
        self.received = b""

    async def __call__(self, scope, receive, send):
        self.calls += 1
        while True:
            message = await receive()
            self.received += message.get("body", b"")
            if not message.get("more_body", False):
                break
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": self.received})


async def _call(app, scope, receive):
    sent = []

    async def send(message):
        sent.append(message)

    await UploadSizeLimitMiddleware(app, max_body_bytes=LIMIT)(scope, receive, send)
    return sent


def _status_and_body(sent):
    start = next(m for m in sent if m["type"] == "http.response.start")
    body = b"".join(m.get("body", b"") for m in sent if m["type"] == "http.response.body")
    return start["status"], body


class TestUploadSizeLimit:
    """Oversized bodies never reach the application"""

    async def test_declared_length_over_limit_is_rejected_up_front(self):
        app = EchoApp()

        sent = await _call(app, _scope(headers=[("content-length", "4096")]), _chunks(b"x" * 10))

        status, body = _status_and_body(sent)
        assert status == 400
        assert json.loads(body) == {"error": "File too large"}
        assert app.calls == 0

    async def test_chunked_body_is_cut_off_once_over_limit(self):
        app = EchoApp()

        sent = await _call(app, _scope(), _chunks(*[b"x" * 10] * 5))

        status, body = _status_and_body(sent)
        assert status == 400
        assert json.loads(body) == {"error": "File too large"}
        assert app.calls == 1
        assert len(app.received) < 50
        assert len([m for m in sent if m["type"] == "http.response.start"]) == 1

    async def test_body_within_limit_passes_through(self):
        app = EchoApp()

        sent = await _call(app, _scope(headers=[("content-length", "20")]), _chunks(b"x" * 10, b"y" * 10))

        assert _status_and_body(sent) == (200, b"x" * 10 + b"y" * 10)

    async def test_get_requests_are_not_counted(self):
        app = EchoApp()

        sent = await _call(app, _scope(method="GET"), _chunks(b"x" * 100))

        assert _status_and_body(sent) == (200, b"x" * 100)
