from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote

import anyio
from anyio import CancelScope
from starlette.responses import FileResponse
from starlette.types import Message, Receive, Scope, Send

from office_pdf.core.errors import StreamError
from office_pdf.core.logging import configure_logging

logger = configure_logging()

_NON_ASCII_RE = re.compile(r"[^\x20-\x7e]")


def attachment_disposition(filename: str) -> str:
    """ترويسة Content-Disposition بصيغة ``attachment; filename="..."`` دائمًا.

    الأسماء غير اللاتينية تُضاف لها صيغة ``filename*`` (RFC 5987) بجانب بديل ASCII.
    """
    fallback = _NON_ASCII_RE.sub("_", filename).replace("\\", "_").replace('"', "_")
    disposition = f'attachment; filename="{fallback}"'
    if fallback != filename:
        disposition += f"; filename*=utf-8''{quote(filename, safe='')}"
    return disposition


class CleanupFileResponse(FileResponse):
    """استجابة ملف تُبث على دفعات ثم تستدعي ``on_close`` مرة واحدة بعد انتهاء البث.

    يُستدعى ``on_close`` سواء اكتمل البث أو فشل أو أُلغي أو انقطع العميل قبل
    إرسال آخر دفعة، ويُمرَّر له الخطأ إن وُجد (``StreamError`` عند الانقطاع).
    """

    def __init__(
        self,
        path: str | Path,
        *,
        on_close: Callable[[Optional[BaseException]], None],
        **kwargs,
    ) -> None:
        super().__init__(path, **kwargs)
        self.on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        # pathsend يترك قراءة الملف للخادم بعد عودة الاستدعاء، أي بعد الحذف
        extensions = {
            key: value
            for key, value in (scope.get("extensions") or {}).items()
            if key != "http.response.pathsend"
        }
        scope = {**scope, "extensions": extensions}

        completed = False

        async def tracked_send(message: Message) -> None:
            nonlocal completed
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                completed = True

        error: Optional[BaseException] = None
        try:
            async with anyio.create_task_group() as task_group:
                task_group.start_soon(self._watch_disconnect, receive, task_group.cancel_scope)
                try:
                    await super().__call__(scope, receive, tracked_send)
                except Exception as exc:
                    error = exc
                finally:
                    task_group.cancel_scope.cancel()
            if error is None and not completed:
                error = StreamError("client disconnected")
        except BaseException as exc:
            error = error or exc
            raise
        finally:
            if error is not None:
                logger.error("فشل بث ملف PDF %s: %r", self.path, error)
            self.on_close(error)

        if error is not None and not isinstance(error, StreamError):
            raise error

    @staticmethod
    async def _watch_disconnect(receive: Receive, cancel_scope: CancelScope) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                cancel_scope.cancel()
                return
