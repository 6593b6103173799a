"""Common request/response models."""

from typing import Dict, Optional
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    version: str = Field(default="1.0.0", description="API version")
    endpoints: Dict[str, str] = Field(default_factory=dict, description="Route summary keyed by area")


class ErrorResponse(BaseModel):
    """Body of every error response."""
    error: str = Field(..., description="Error category, e.g. \"Validation error\"")
    details: Optional[str] = Field(default=None, description="Human-readable cause")


class MessageResponse(BaseModel):
    """Plain acknowledgement."""
    message: str
