from __future__ import annotations

from typing import Optional


class OfficePdfError(Exception):
    """الصنف الأساسي لأخطاء خدمة التحويل."""


class UploadValidationError(OfficePdfError):
    """خطأ من جهة العميل في الملف المرفوع (يُعاد كما هو مع 400)."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UploadStorageError(OfficePdfError):
    """تعذر حفظ الملف المرفوع في مجلد الرفع."""


class ConversionError(OfficePdfError):
    """فشل في مرحلة التحويل. التفاصيل للسجل فقط."""


class SpawnError(ConversionError):
    """تعذر تشغيل برنامج التحويل (غير موجود أو بلا صلاحيات)."""


class ProcessError(ConversionError):
    def __init__(self, return_code: int, stderr: str = "") -> None:
        super().__init__(f"converter exited with status {return_code}")
        self.return_code = return_code
        self.stderr = stderr


class OutputMissingError(ConversionError):
    def __init__(self, expected_path) -> None:
        super().__init__(f"PDF not generated: {expected_path}")
        self.expected_path = expected_path


class ConversionTimeoutError(ConversionError, TimeoutError):
    def __init__(self, timeout: Optional[float]) -> None:
        super().__init__(f"converter did not finish within {timeout} seconds")
        self.timeout = timeout


class StreamError(OfficePdfError):
    """فشل أثناء إرسال جسم الاستجابة؛ لا يمكن تغيير الحالة المرسلة، يُسجّل فقط."""
