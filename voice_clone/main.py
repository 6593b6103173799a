"""
Voice Clone API - FastAPI application

Voice model training and voice conversion over HTTP, backed by the RVC
toolkit running as subprocesses.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from voice_clone.core.config import Settings, settings as default_settings
from voice_clone.core.exceptions import (
    NotFoundError,
    ProcessError,
    ValidationError,
    VoiceCloneError,
)
from voice_clone.models.common import ErrorResponse
from voice_clone.routers import conversion_router, health_router, models_router, training_router
from voice_clone.services import ConversionService, ModelRegistry, UploadIntake
from voice_clone.trainer import JobStore, ProcessRunner, RVCToolkit, TrainingPipeline

logger = logging.getLogger(__name__)


def _error_label(exc: VoiceCloneError) -> str:
    if isinstance(exc, ValidationError):
        return "Validation error"
    if isinstance(exc, NotFoundError):
        return "Not found"
    if isinstance(exc, ProcessError):
        return "Processing failed"
    return "Request failed"


def _describe_request_errors(exc: RequestValidationError) -> str:
    """Flatten FastAPI's field errors into one details string."""
    parts = []
    for error in exc.errors():
        # loc starts with where the field came from: body, query, path
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        parts.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "; ".join(parts)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application and the services it serves."""
    settings = settings or default_settings

    toolkit = RVCToolkit(settings.toolkit, ProcessRunner(settings.toolkit))
    pipeline = TrainingPipeline(
        store=JobStore(),
        toolkit=toolkit,
        paths=settings.paths,
        defaults=settings.training,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info("Voice Clone API starting up...")
        settings.paths.ensure_dirs()
        logger.info(f"RVC toolkit: {settings.toolkit.rvc_dir}")
        logger.info(f"Models dir: {settings.paths.models_dir}")

        yield

        logger.info("Voice Clone API shutting down...")
        await pipeline.shutdown()

    app = FastAPI(
        title="Voice Clone API",
        description="RVC voice model training and voice conversion",
        version=settings.version,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.conversion = ConversionService(toolkit=toolkit, paths=settings.paths)
    app.state.registry = ModelRegistry(paths=settings.paths)
    app.state.intake = UploadIntake(paths=settings.paths, defaults=settings.training)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(VoiceCloneError)
    async def voice_clone_error_handler(request: Request, exc: VoiceCloneError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=_error_label(exc), details=str(exc)).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error="Validation error",
                details=_describe_request_errors(exc),
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"{request.method} {request.url.path} raised: {exc}")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal server error",
                details=str(exc) if settings.debug else None,
            ).model_dump(),
        )

    app.include_router(health_router)
    app.include_router(training_router)
    app.include_router(conversion_router)
    app.include_router(models_router)

    return app


app = create_app()
