"""FastAPI dependencies resolving the services attached to the application."""

from fastapi import Request

from voice_clone.services import ConversionService, ModelRegistry, UploadIntake
from voice_clone.trainer import TrainingPipeline


def get_pipeline(request: Request) -> TrainingPipeline:
    return request.app.state.pipeline


def get_conversion_service(request: Request) -> ConversionService:
    return request.app.state.conversion


def get_model_registry(request: Request) -> ModelRegistry:
    return request.app.state.registry


def get_intake(request: Request) -> UploadIntake:
    return request.app.state.intake
