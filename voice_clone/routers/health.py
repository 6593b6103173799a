"""
Health Check Router

Provides service health and status endpoints.
"""

import logging
from fastapi import APIRouter

from voice_clone.core.config import settings
from voice_clone.models.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Service status, version and endpoint summary."""
    return HealthResponse(
        status="healthy",
        version=settings.version,
        endpoints={
            "convert": "POST /convert - Convert voice using trained model",
            "train": "POST /train - Train new voice model",
            "models": "GET /models - List available models",
        },
    )
