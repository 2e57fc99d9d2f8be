from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile

from office_pdf.core.logging import configure_logging
from office_pdf.models import ErrorResponse
from office_pdf.services.conversion_service import ConversionService
from office_pdf.utils.responses import CleanupFileResponse

router = APIRouter(prefix="/api", tags=["Conversion"])

logger = configure_logging()


def get_conversion_service(request: Request) -> ConversionService:
    return request.app.state.conversion_service


@router.post(
    "/office-to-pdf",
    summary="تحويل مستند Word/PowerPoint إلى PDF وإرجاعه كملف للتنزيل",
    response_class=CleanupFileResponse,
    responses={
        200: {"content": {"application/pdf": {}}, "description": "ملف PDF الناتج."},
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def office_to_pdf(
    file: Optional[UploadFile] = File(default=None),
    service: ConversionService = Depends(get_conversion_service),
) -> CleanupFileResponse:
    job = await service.convert_upload(file)
    logger.info("تم تحويل الملف %s إلى PDF (%s بايت).", job.upload.original_name, job.upload.size_bytes)
    return service.stream(job)
