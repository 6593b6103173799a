"""
Models Router

Lists, describes and deletes published voice models.
"""

import logging

from fastapi import APIRouter, Depends

from voice_clone.dependencies import get_model_registry
from voice_clone.models.common import MessageResponse
from voice_clone.models.registry import ModelInfo, ModelListResponse
from voice_clone.services import ModelRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/models", tags=["models"])


@router.get("", response_model=ModelListResponse)
async def list_models(registry: ModelRegistry = Depends(get_model_registry)):
    """List all available voice models."""
    models = registry.list_models()
    return ModelListResponse(
        models=[ModelInfo(**m) for m in models],
        total=len(models),
        models_dir=str(registry.models_dir),
    )


@router.get("/{name}", response_model=ModelInfo)
async def get_model(name: str, registry: ModelRegistry = Depends(get_model_registry)):
    """Get model details."""
    return ModelInfo(**registry.get_model(name))


@router.delete("/{name}", response_model=MessageResponse)
async def delete_model(name: str, registry: ModelRegistry = Depends(get_model_registry)):
    """Delete a model and its index."""
    registry.delete_model(name)
    return MessageResponse(message=f"Model {name} deleted")
