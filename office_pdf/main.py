# office_pdf/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from office_pdf.api import routers
from office_pdf.core.config import Settings, get_settings
from office_pdf.core.errors import ConversionError, UploadStorageError, UploadValidationError
from office_pdf.core.logging import configure_logging
from office_pdf.models import HealthResponse
from office_pdf.services.conversion_service import ConversionService
from office_pdf.utils.upload_limit import MULTIPART_OVERHEAD, UploadSizeLimitMiddleware


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    logger = configure_logging()

    @app.exception_handler(UploadValidationError)
    async def upload_validation_handler(request: Request, exc: UploadValidationError) -> JSONResponse:
        logger.warning("رفض الملف المرفوع: %s", exc.message)
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        logger.warning("طلب غير صالح: %s", errors)
        if any(tuple(error.get("loc", ())) == ("body", "file") for error in errors):
            # حقل نصي باسم file ليس ملفًا مرفوعًا
            return _error(status.HTTP_400_BAD_REQUEST, "No file uploaded")
        message = str(errors[0].get("msg", "Invalid request")) if errors else "Invalid request"
        return _error(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(ConversionError)
    async def conversion_error_handler(request: Request, exc: ConversionError) -> JSONResponse:
        # التفاصيل سُجلت في خدمة التحويل؛ العميل يتلقى رسالة عامة فقط
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Conversion failed")

    @app.exception_handler(UploadStorageError)
    async def upload_storage_handler(request: Request, exc: UploadStorageError) -> JSONResponse:
        logger.error("تعذر حفظ الملف المرفوع: %s", exc, exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Upload failed")

    @app.exception_handler(Exception)
    async def unknown_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("خطأ غير متوقع: %s", exc, exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Upload failed")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    # === إعدادات وتسجيل ===
    settings = settings or get_settings()
    if settings.upload_dir is None or settings.output_dir is None:
        settings.configure_paths()
    logger = configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service = ConversionService(settings)
        service.start()  # إنشاء مجلدي uploads و output إن لم يكونا موجودين
        app.state.conversion_service = service
        logger.info("الخدمة جاهزة على المنفذ %s (soffice: %s)", settings.port, settings.soffice_path)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # === حد حجم الرفع (قبل تحليل multipart) ===
    app.add_middleware(
        UploadSizeLimitMiddleware,
        max_body_bytes=settings.max_upload_bytes + MULTIPART_OVERHEAD,
    )

    # === CORS ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],  # لقراءة اسم الملف من الهيدر
    )

    register_exception_handlers(app)

    # === Routers ===
    for router in routers:
        app.include_router(router)

    # === Basic endpoints ===
    @app.get("/")
    async def root() -> dict:
        logger.debug("Root endpoint accessed")
        return {"message": "Office to PDF API"}

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        logger.debug("Health check invoked")
        return HealthResponse(status="ok", message="Office to PDF API is running")

    return app


app = create_app()


def run() -> None:
    """تشغيل الخادم عبر uvicorn على المضيف والمنفذ المحددين في الإعدادات."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("office_pdf.main:app", host=settings.host, port=settings.port)
