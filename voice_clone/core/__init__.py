"""Core module - Configuration, logging, and shared infrastructure."""

from voice_clone.core.config import (
    ToolkitConfig,
    PathConfig,
    TrainingDefaults,
    Settings,
    settings,
)
from voice_clone.core.logging import setup_logging, silence_noisy_loggers
from voice_clone.core.exceptions import (
    VoiceCloneError,
    ValidationError,
    NotFoundError,
    JobNotFoundError,
    ModelNotFoundError,
    ArtifactNotFoundError,
    ConflictError,
    InvalidStateError,
    ProcessError,
    LaunchFailedError,
    StageFailedError,
    ConversionError,
    TerminatedError,
)

__all__ = [
    # Config
    "ToolkitConfig",
    "PathConfig",
    "TrainingDefaults",
    "Settings",
    "settings",
    # Logging
    "setup_logging",
    "silence_noisy_loggers",
    # Exceptions
    "VoiceCloneError",
    "ValidationError",
    "NotFoundError",
    "JobNotFoundError",
    "ModelNotFoundError",
    "ArtifactNotFoundError",
    "ConflictError",
    "InvalidStateError",
    "ProcessError",
    "LaunchFailedError",
    "StageFailedError",
    "ConversionError",
    "TerminatedError",
]
