"""Model registry response models."""

from typing import List, Optional
from pydantic import BaseModel, Field


class ModelInfo(BaseModel):
    """Voice model information."""
    name: str = Field(..., description="Model name")
    file: str = Field(..., description="Weight file name")
    size_mb: int = Field(..., description="Weight file size in MB")
    has_index: bool = Field(..., description="Whether an index file exists")
    created_at: str
    modified_at: Optional[str] = None


class ModelListResponse(BaseModel):
    """Model list response."""
    models: List[ModelInfo] = Field(..., description="Available models")
    total: int = Field(..., description="Total number of models")
    models_dir: str
