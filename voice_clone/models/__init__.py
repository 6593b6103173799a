"""Pydantic models for API requests and responses."""

from voice_clone.models.common import (
    HealthResponse,
    ErrorResponse,
    MessageResponse,
)
from voice_clone.models.training import (
    TrainingSubmitResponse,
    JobStatusResponse,
    JobSummary,
    JobListResponse,
)
from voice_clone.models.conversion import ConvertResponse
from voice_clone.models.registry import ModelInfo, ModelListResponse

__all__ = [
    # Common
    "HealthResponse",
    "ErrorResponse",
    "MessageResponse",
    # Training
    "TrainingSubmitResponse",
    "JobStatusResponse",
    "JobSummary",
    "JobListResponse",
    # Conversion
    "ConvertResponse",
    # Registry
    "ModelInfo",
    "ModelListResponse",
]
