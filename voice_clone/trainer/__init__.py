"""
Trainer Module

Subprocess execution, toolkit stage adapters, job store and the training
pipeline driver.
"""

from voice_clone.trainer.process import (
    ProcessHandle,
    ProcessResult,
    ProcessRunner,
    StageInvocation,
)
from voice_clone.trainer.stages import (
    F0Method,
    RVCToolkit,
    TrainingOutputParser,
)
from voice_clone.trainer.jobs import (
    JobStore,
    TrainingJob,
    TrainingStatus,
    training_progress,
)
from voice_clone.trainer.pipeline import (
    SubmissionResult,
    TrainingPipeline,
    TrainingRequest,
    validate_training_params,
)

__all__ = [
    "ProcessHandle",
    "ProcessResult",
    "ProcessRunner",
    "StageInvocation",
    "F0Method",
    "RVCToolkit",
    "TrainingOutputParser",
    "JobStore",
    "TrainingJob",
    "TrainingStatus",
    "training_progress",
    "SubmissionResult",
    "TrainingPipeline",
    "TrainingRequest",
    "validate_training_params",
]
