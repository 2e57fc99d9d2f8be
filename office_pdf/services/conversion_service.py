from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import UploadFile

from office_pdf.core.config import Settings, get_settings
from office_pdf.core.errors import (
    ConversionError,
    OfficePdfError,
    OutputMissingError,
    ProcessError,
    StreamError,
    UploadValidationError,
)
from office_pdf.core.logging import configure_logging
from office_pdf.models import ConversionJob, ConversionState
from office_pdf.services.converter import OfficeConverter
from office_pdf.storage.local import TempStorage
from office_pdf.utils.responses import CleanupFileResponse, attachment_disposition

logger = configure_logging()


class ConversionService:
    """تنسيق دورة حياة طلب التحويل: التحقق، التشغيل، البث ثم التنظيف.

    كل طلب يملك ``ConversionJob`` خاصًا به، والعزل بين الطلبات المتزامنة
    قائم على تفرّد مسارات الملفات المؤقتة فقط.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[TempStorage] = None,
        converter: Optional[OfficeConverter] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.storage = storage or TempStorage(self.settings)
        self.converter = converter or OfficeConverter(self.settings)

    def start(self) -> None:
        self.storage.ensure_directories()

    # ------------------------------------------------------------------
    async def convert_upload(self, upload: Optional[UploadFile]) -> ConversionJob:
        """حفظ الملف المرفوع وتحويله. يعيد مهمة في الحالة ``converted``.

        عند أي فشل تُحذف الملفات المؤقتة قبل رفع الخطأ.
        """
        job = ConversionJob()
        self._check_upload(job, upload)

        try:
            job.upload = await asyncio.to_thread(self.storage.save_upload, upload)
        except OfficePdfError as exc:
            job.fail(exc)
            raise

        job.input_path = job.upload.path
        succeeded = False
        try:
            job.output_path = self.storage.derive_output_path(job.input_path)
            self._transition(job, ConversionState.validated)

            self._transition(job, ConversionState.converting)
            await self.converter.convert(job.input_path, self.storage.output_dir)
            job.return_code = 0

            # تحقق مستقل من وجود الناتج
            job.output_exists = job.output_path.is_file()
            if not job.output_exists:
                raise OutputMissingError(job.output_path)

            self._transition(job, ConversionState.converted)
            succeeded = True
        except ConversionError as exc:
            if isinstance(exc, ProcessError):
                job.return_code = exc.return_code
            job.fail(exc)
            logger.error("خطأ في تحويل الملف %s: %s", job.upload.original_name, exc, exc_info=exc)
            raise
        except UploadValidationError as exc:
            job.fail(exc)
            raise
        finally:
            if not succeeded:
                self.release(job)

        return job

    def stream(self, job: ConversionJob) -> CleanupFileResponse:
        """بناء استجابة PDF تُبث من القرص وتحذف الملفات بعد انتهاء البث."""
        self._transition(job, ConversionState.streaming)
        return CleanupFileResponse(
            job.output_path,
            media_type="application/pdf",
            headers={"Content-Disposition": attachment_disposition(job.pdf_name)},
            on_close=lambda error: self.finish(job, error),
        )

    def finish(self, job: ConversionJob, error: Optional[BaseException] = None) -> None:
        if error is not None:
            job.fail(error if isinstance(error, StreamError) else StreamError(str(error)))
        elif job.state is ConversionState.streaming:
            self._transition(job, ConversionState.done)
        self.release(job)

    def release(self, job: ConversionJob) -> None:
        """حذف ملفات المهمة مرة واحدة فقط مهما تعددت مسارات الاستدعاء."""
        if job.cleaned_up:
            return
        job.cleaned_up = True
        self.storage.cleanup(*job.temp_paths)

    # ------------------------------------------------------------------
    def _check_upload(self, job: ConversionJob, upload: Optional[UploadFile]) -> None:
        if upload is None or not upload.filename:
            error = UploadValidationError("No file uploaded")
            job.fail(error)
            raise error

        size = getattr(upload, "size", None)
        if size is not None and size > self.settings.max_upload_bytes:
            error = UploadValidationError("File too large")
            job.fail(error)
            raise error

    @staticmethod
    def _transition(job: ConversionJob, state: ConversionState) -> None:
        logger.debug("مهمة التحويل: %s -> %s", job.state.value, state.value)
        job.state = state
