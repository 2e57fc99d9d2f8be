from __future__ import annotations

import re
import time
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from office_pdf.core.config import Settings, get_settings
from office_pdf.core.errors import UploadStorageError, UploadValidationError
from office_pdf.core.logging import configure_logging
from office_pdf.models import UploadedFile

CHUNK_SIZE = 1024 * 1024

_WHITESPACE_RE = re.compile(r"\s+")
_SEPARATOR_RE = re.compile(r"[\\/]")
_UNSAFE_CHARS_RE = re.compile(r'[\x00-\x1f<>:"|?*]')

logger = configure_logging()


def sanitize_filename(name: str | None) -> str:
    """تحويل اسم الملف القادم من العميل إلى اسم أساسي آمن.

    يُستبدل كل تتابع مسافات بشرطة سفلية، ويُحتفظ بآخر جزء فقط بعد أي فاصل
    مسارات (/ أو \\)، وتُحذف البايتات الصفرية والنقاط البادئة حتى لا يخرج
    المسار عن مجلد الرفع.
    """
    cleaned = (name or "").replace("\x00", "")
    cleaned = _SEPARATOR_RE.split(cleaned)[-1].strip()
    cleaned = _WHITESPACE_RE.sub("_", cleaned)
    cleaned = _UNSAFE_CHARS_RE.sub("_", cleaned)
    cleaned = cleaned.lstrip(".")
    return cleaned or "upload"


class TempStorage:
    """إدارة الملفات المؤقتة لكل طلب: مسارات فريدة للرفع والإخراج وحذفها بعد الانتهاء."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        self.upload_dir = Path(settings.upload_dir).resolve()
        self.output_dir = Path(settings.output_dir).resolve()
        self.max_upload_bytes = settings.max_upload_bytes

    def ensure_directories(self) -> None:
        for directory in (self.upload_dir, self.output_dir):
            directory.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    def allocate_input_path(self, original_name: str | None) -> Path:
        # لا توجد إعادة محاولة عند التصادم: الطابع الزمني بالمللي ثانية مع الاسم يكفيان.
        stamp = int(time.time() * 1000)
        candidate = self.upload_dir / f"{stamp}_{sanitize_filename(original_name)}"
        return self._inside(self.upload_dir, candidate)

    def derive_output_path(self, input_path: Path) -> Path:
        candidate = self.output_dir / f"{Path(input_path).stem}.pdf"
        return self._inside(self.output_dir, candidate)

    @staticmethod
    def _inside(directory: Path, candidate: Path) -> Path:
        resolved = candidate.resolve()
        if resolved.parent != directory:
            raise UploadValidationError("Invalid file name")
        return resolved

    # ------------------------------------------------------------------
    def save_upload(self, upload: UploadFile) -> UploadedFile:
        """نسخ محتوى الملف المرفوع إلى مجلد الرفع على دفعات مع فرض الحد الأقصى للحجم."""
        original_name = upload.filename or "upload"
        target_path = self.allocate_input_path(original_name)
        size_bytes = 0

        try:
            upload.file.seek(0)
            with target_path.open("wb") as buffer:
                while True:
                    chunk = upload.file.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size_bytes += len(chunk)
                    if size_bytes > self.max_upload_bytes:
                        raise UploadValidationError("File too large")
                    buffer.write(chunk)
        except UploadValidationError:
            self.cleanup(target_path)
            raise
        except OSError as exc:
            self.cleanup(target_path)
            raise UploadStorageError(f"could not store upload {original_name!r}") from exc

        return UploadedFile(
            original_name=original_name,
            path=target_path,
            size_bytes=size_bytes,
            content_type=upload.content_type or "application/octet-stream",
        )

    def cleanup(self, *paths: Path | None) -> None:
        """حذف الملفات بأفضل جهد: أي فشل يُسجَّل ولا يُرفع للمستدعي."""
        for path in paths:
            if not path:
                continue
            try:
                Path(path).unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("تعذر حذف الملف المؤقت %s: %s", path, exc)
