from __future__ import annotations

import asyncio
import os
import signal
import sys
import tempfile
from asyncio.subprocess import Process
from pathlib import Path
from typing import Optional

from office_pdf.core.config import Settings, get_settings
from office_pdf.core.errors import (
    ConversionTimeoutError,
    OutputMissingError,
    ProcessError,
    SpawnError,
)
from office_pdf.core.logging import configure_logging

logger = configure_logging()

STDERR_TAIL_CHARS = 2000


class OfficeConverter:
    """تشغيل LibreOffice (soffice) بوضع headless لتحويل ملف مكتبي إلى PDF.

    كل استدعاء يشغّل عملية مستقلة، وينتظر انتهاءها أو يقتلها عند تجاوز المهلة
    أو إلغاء المستدعي، فلا تبقى عمليات يتيمة. عدد العمليات المتزامنة محدود
    بـ ``max_concurrent_conversions``.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        self.soffice_path = settings.soffice_path
        self.timeout = settings.conversion_timeout
        self.isolated_profiles = settings.isolated_profiles
        self._slots = asyncio.Semaphore(settings.max_concurrent_conversions)

    # ------------------------------------------------------------------
    def build_command(self, input_path: Path, output_dir: Path, profile_dir: Optional[Path] = None) -> list[str]:
        command = [self.soffice_path, "--headless", "--nologo", "--nofirststartwizard"]
        if profile_dir is not None:
            command.append(f"-env:UserInstallation={profile_dir.resolve().as_uri()}")
        command += ["--convert-to", "pdf", "--outdir", str(output_dir), str(input_path)]
        return command

    async def convert(self, input_path: Path, output_dir: Path) -> Path:
        """تحويل ``input_path`` إلى PDF داخل ``output_dir`` وإرجاع مسار الناتج.

        النجاح يتطلب رمز خروج 0 ووجود ملف الناتج معًا؛ غير ذلك يرفع أحد
        أصناف ``ConversionError``.
        """
        input_path = Path(input_path)
        output_dir = Path(output_dir)
        expected_path = output_dir / f"{input_path.stem}.pdf"

        async with self._slots:
            if self.isolated_profiles:
                with tempfile.TemporaryDirectory(prefix="soffice-profile-") as profile_dir:
                    await self._run(self.build_command(input_path, output_dir, Path(profile_dir)))
            else:
                await self._run(self.build_command(input_path, output_dir))

        if not expected_path.exists():
            raise OutputMissingError(expected_path)

        logger.debug("اكتمل التحويل: %s -> %s", input_path.name, expected_path.name)
        return expected_path

    # ------------------------------------------------------------------
    async def _run(self, command: list[str]) -> int:
        logger.debug("تشغيل أمر التحويل: %s", command)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=sys.platform != "win32",
            )
        except OSError as exc:
            raise SpawnError(f"could not start converter {command[0]!r}: {exc}") from exc

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("تجاوزت عملية التحويل المهلة (%s ثانية)، سيتم إنهاؤها.", self.timeout)
            raise ConversionTimeoutError(self.timeout) from None
        finally:
            await self._reap(process)

        if process.returncode != 0:
            tail = (stderr or b"").decode("utf-8", errors="replace")[-STDERR_TAIL_CHARS:]
            logger.warning("انتهت عملية التحويل بالرمز %s: %s", process.returncode, tail.strip())
            raise ProcessError(process.returncode, tail)

        return process.returncode

    @staticmethod
    async def _reap(process: Process) -> None:
        """قتل العملية إن كانت ما تزال تعمل ثم انتظارها في كل الأحوال."""
        if process.returncode is None:
            try:
                if sys.platform == "win32":
                    process.kill()
                else:
                    os.killpg(process.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                # انتهت العملية بين الفحص والإشارة
                pass
        await process.wait()
