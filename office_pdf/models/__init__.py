
from .common import ErrorResponse, HealthResponse
from .conversion import ConversionJob, ConversionState, UploadedFile

__all__ = [
    "ConversionJob",
    "ConversionState",
    "ErrorResponse",
    "HealthResponse",
    "UploadedFile",
]
