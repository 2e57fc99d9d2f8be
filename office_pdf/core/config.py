import os
import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_soffice_path() -> str:
    """مسار LibreOffice الافتراضي بحسب نظام التشغيل."""
    if sys.platform.startswith("win"):
        return r"C:\Program Files\LibreOffice\program\soffice.exe"
    if sys.platform == "darwin":
        return "/Applications/LibreOffice.app/Contents/MacOS/soffice"
    return "soffice"


class Settings(BaseSettings):
    """إعدادات خدمة التحويل مع تحميل القيم من متغيرات البيئة أو ملف .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_parse_none_str="none",
    )

    app_name: str = "Office to PDF API"
    app_version: str = "0.1.0"

    host: str = "0.0.0.0"
    port: int = 5000

    base_dir: Path = Field(default_factory=Path.cwd)
    upload_dir: Optional[Path] = None
    output_dir: Optional[Path] = None

    soffice_path: str = Field(default_factory=_default_soffice_path)
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    conversion_timeout: Optional[float] = Field(default=300.0, gt=0)
    max_concurrent_conversions: int = Field(default_factory=lambda: os.cpu_count() or 1, ge=1)
    isolated_profiles: bool = False

    log_level: str = "INFO"
    allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    def configure_paths(self) -> None:
        """تهيئة مسارات مجلدي الرفع والإخراج (دون إنشائها)."""
        self.base_dir = self.base_dir.resolve()
        self.upload_dir = (self.upload_dir or (self.base_dir / "uploads")).resolve()
        self.output_dir = (self.output_dir or (self.base_dir / "output")).resolve()


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    settings.configure_paths()
    return settings
