from __future__ import annotations

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from office_pdf.core.errors import UploadValidationError
from office_pdf.core.logging import configure_logging

# هامش لترويسات multipart والحقول المرافقة للملف
MULTIPART_OVERHEAD = 64 * 1024

logger = configure_logging()


class UploadSizeLimitMiddleware:
    """رفض الطلبات التي يتجاوز جسمها الحد قبل أن يُحلَّل أو يُكتب على القرص.

    يُفحص ``Content-Length`` أولًا، ثم تُعدّ البايتات أثناء القراءة للطلبات
    المجزأة (chunked) ويُقطع التحليل فور تجاوز الحد.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in ("POST", "PUT", "PATCH"):
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length", "")
        if content_length.isdigit() and int(content_length) > self.max_body_bytes:
            logger.warning("رفض طلب بحجم %s بايت (الحد %s).", content_length, self.max_body_bytes)
            await self._reject(scope, receive, send)
            return

        received = 0
        exceeded = False
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    exceeded = True
                    raise UploadValidationError("File too large")
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            if exceeded:
                # الاستجابة البديلة تُرسل بعد عودة التطبيق
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except UploadValidationError:
            if not exceeded:
                raise

        if exceeded and not response_started:
            logger.warning("انقطع استقبال الطلب بعد تجاوز %s بايت.", self.max_body_bytes)
            await self._reject(scope, receive, send)

    @staticmethod
    async def _reject(scope: Scope, receive: Receive, send: Send) -> None:
        response = JSONResponse(status_code=400, content={"error": "File too large"})
        await response(scope, receive, send)
