"""
Concurrent request isolation tests
"""
import asyncio

import httpx
import pytest

from conftest import leftover_files, posix_only
from office_pdf.main import create_app

pytestmark = [pytest.mark.anyio, posix_only]


async def test_simultaneous_uploads_do_not_cross_contaminate(make_settings):
    settings = make_settings(max_concurrent_conversions=3)
    app = create_app(settings)
    names = [f"document-{index}.docx" for index in range(6)]

    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            responses = await asyncio.gather(
                *(
                    client.post(
                        "/api/office-to-pdf",
                        files={"file": (name, f"content of {name}".encode(), "application/msword")},
                    )
                    for name in names
                )
            )

    for name, response in zip(names, responses):
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF-")
        assert f"content of {name}".encode() in response.content
        stem = name.rsplit(".", 1)[0]
        assert response.headers["content-disposition"].endswith(f'_{stem}.pdf"')
        for other in names:
            if other != name:
                assert f"content of {other}".encode() not in response.content

    assert leftover_files(settings) == []
