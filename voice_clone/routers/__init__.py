"""
API Routers

FastAPI routers organized by domain.
"""

from voice_clone.routers.health import router as health_router
from voice_clone.routers.training import router as training_router
from voice_clone.routers.conversion import router as conversion_router
from voice_clone.routers.models import router as models_router

__all__ = [
    "health_router",
    "training_router",
    "conversion_router",
    "models_router",
]
