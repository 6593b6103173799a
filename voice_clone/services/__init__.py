"""Services for conversion, model registry and upload intake."""

from voice_clone.services.conversion import ConversionService, ConvertOptions, ConversionResult
from voice_clone.services.intake import UploadIntake, DatasetUpload
from voice_clone.services.model_registry import ModelRegistry

__all__ = [
    "ConversionService",
    "ConvertOptions",
    "ConversionResult",
    "UploadIntake",
    "DatasetUpload",
    "ModelRegistry",
]
