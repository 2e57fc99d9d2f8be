from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional


class ConversionState(str, Enum):
    received = "received"
    validated = "validated"
    converting = "converting"
    converted = "converted"
    streaming = "streaming"
    done = "done"
    failed = "failed"


@dataclass
class UploadedFile:
    original_name: str
    path: Path
    size_bytes: int
    content_type: str = "application/octet-stream"


@dataclass
class ConversionJob:
    """حالة طلب تحويل واحد. لا تُحفظ ولا تُشارك بين الطلبات."""

    upload: Optional[UploadedFile] = None
    input_path: Optional[Path] = None
    output_path: Optional[Path] = None
    state: ConversionState = ConversionState.received
    return_code: Optional[int] = None
    output_exists: bool = False
    error: Optional[BaseException] = None
    cleaned_up: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def pdf_name(self) -> str:
        return self.output_path.name if self.output_path else "document.pdf"

    @property
    def temp_paths(self) -> list[Path]:
        return [p for p in (self.input_path, self.output_path) if p is not None]

    def fail(self, error: BaseException) -> None:
        self.state = ConversionState.failed
        self.error = error
