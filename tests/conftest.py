"""
Test configuration and fixtures.

A small Python script wrapped in a shell launcher stands in for soffice. It
understands the same ``--outdir <dir> <input>`` tail as LibreOffice and writes
``<stem>.pdf`` containing a PDF header followed by the input bytes, so every
response can be traced back to the upload that produced it.
"""
import stat
import sys
from contextlib import ExitStack
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from office_pdf.core.config import Settings
from office_pdf.core.logging import configure_logging
from office_pdf.main import create_app

STUB_TEMPLATE = '''
import os
import sys
import time

HERE = os.path.dirname(os.path.abspath(__file__))
MODE = {mode!r}

args = sys.argv[1:]
outdir = args[args.index("--outdir") + 1]
source = args[-1]

with open(os.path.join(HERE, "pid"), "w") as fh:
    fh.write(str(os.getpid()))

started = time.time()
if MODE == "fail":
    sys.stderr.write("Error: source file could not be loaded\\n")
    sys.exit(3)
if MODE == "hang":
    time.sleep(60)
if MODE == "slow":
    time.sleep(0.3)

if MODE != "silent":
    stem = os.path.splitext(os.path.basename(source))[0]
    with open(source, "rb") as fh:
        payload = fh.read()
    with open(os.path.join(outdir, stem + ".pdf"), "wb") as fh:
        fh.write(b"%PDF-1.4\\n" + payload + b"\\n%%EOF\\n")

with open(os.path.join(HERE, "events"), "a") as fh:
    fh.write("%f %f\\n" % (started, time.time()))
'''

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="stub converter is a POSIX shell launcher")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def make_converter(tmp_path):
    """Build a stub converter executable for the requested behaviour."""

    def _make(mode: str = "ok") -> Path:
        stub_dir = tmp_path / f"stub-{mode}"
        stub_dir.mkdir(exist_ok=True)
        script = stub_dir / "convert.py"
        script.write_text(STUB_TEMPLATE.format(mode=mode), encoding="utf-8")

        launcher = stub_dir / "soffice"
        launcher.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n', encoding="utf-8")
        launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return launcher

    return _make


@pytest.fixture
def make_settings(tmp_path, make_converter):
    """Settings pointing at temporary directories and a stub converter."""

    def _make(mode: str = "ok", **overrides) -> Settings:
        values = {
            "base_dir": tmp_path / "service",
            "soffice_path": str(make_converter(mode)),
            "conversion_timeout": 10.0,
            "max_concurrent_conversions": 4,
        }
        values.update(overrides)
        settings = Settings(_env_file=None, **values)
        settings.configure_paths()
        return settings

    return _make


@pytest.fixture
def make_client(make_settings):
    """Create a started TestClient; returns ``(client, settings)``."""
    with ExitStack() as stack:

        def _make(mode: str = "ok", **overrides):
            settings = make_settings(mode, **overrides)
            client = stack.enter_context(TestClient(create_app(settings)))
            return client, settings

        yield _make


@pytest.fixture
def service_logs(caplog):
    """Attach caplog to the service logger (it does not propagate to root)."""
    logger = configure_logging()
    logger.addHandler(caplog.handler)
    try:
        yield caplog
    finally:
        logger.removeHandler(caplog.handler)


def leftover_files(settings: Settings) -> list[Path]:
    return sorted(p for d in (settings.upload_dir, settings.output_dir) if d.exists() for p in d.iterdir())
