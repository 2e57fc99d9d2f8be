from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str = Field(..., description="رسالة الخطأ الموجهة للعميل.")


class HealthResponse(BaseModel):
    status: str
    message: str
