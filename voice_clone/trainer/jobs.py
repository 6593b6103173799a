"""
Training Job Store

In-memory registry of training jobs. The pipeline driver is the only writer;
every read returns a copy so callers never race the driver on a live record.
"""

import asyncio
import dataclasses
import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from voice_clone.core.exceptions import (
    ConflictError,
    InvalidStateError,
    JobNotFoundError,
)
from voice_clone.trainer.process import ProcessHandle

logger = logging.getLogger(__name__)


class TrainingStatus(str, Enum):
    """Training job status"""
    QUEUED = "queued"
    PREPROCESSING = "preprocessing"
    EXTRACTING_FEATURES = "extracting_features"
    TRAINING = "training"
    INDEXING = "indexing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({
    TrainingStatus.COMPLETED,
    TrainingStatus.FAILED,
    TrainingStatus.CANCELLED,
})

# Approximate share of total work done when each state is entered.
# Reflects typical relative stage cost, not a measured guarantee.
STAGE_PROGRESS = {
    TrainingStatus.QUEUED: 0,
    TrainingStatus.PREPROCESSING: 5,
    TrainingStatus.EXTRACTING_FEATURES: 20,
    TrainingStatus.TRAINING: 30,
    TrainingStatus.INDEXING: 95,
    TrainingStatus.COMPLETED: 100,
}

TRAINING_PROGRESS_SPAN = STAGE_PROGRESS[TrainingStatus.INDEXING] - STAGE_PROGRESS[TrainingStatus.TRAINING]


def training_progress(epoch: int, epochs: int) -> int:
    """Progress while training: 30 at epoch 0, 95 at the last epoch."""
    start = STAGE_PROGRESS[TrainingStatus.TRAINING]
    if epochs <= 0:
        return start
    fraction = min(max(epoch / epochs, 0.0), 1.0)
    return start + math.floor(fraction * TRAINING_PROGRESS_SPAN)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class TrainingJob:
    """Training job state"""
    id: str
    model_name: str
    epochs_total: int
    sample_rate: int
    f0_method: str
    experiment_name: str
    dataset_dir: str
    status: TrainingStatus = TrainingStatus.QUEUED
    progress: int = 0
    epoch_current: int = 0
    last_loss: Optional[float] = None
    created_at: str = field(default_factory=utc_now)
    completed_at: Optional[str] = None
    error: Optional[str] = None
    estimated_duration: Optional[str] = None
    audio_files: int = 0
    total_audio_minutes: int = 0
    model_path: Optional[str] = None
    index_path: Optional[str] = None
    history: List[Dict[str, Any]] = field(default_factory=list)

    # Runtime attachments, owned by the store for the pipeline's lifetime
    handle: ProcessHandle = field(default_factory=ProcessHandle, repr=False, compare=False)
    task: Optional[asyncio.Task] = field(default=None, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def snapshot(self) -> "TrainingJob":
        """Point-in-time copy, safe to hand to readers."""
        return dataclasses.replace(self, history=[dict(h) for h in self.history])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.id,
            "model_name": self.model_name,
            "status": self.status.value,
            "progress": self.progress,
            "current_epoch": self.epoch_current,
            "total_epochs": self.epochs_total,
            "last_loss": self.last_loss,
            "sample_rate": self.sample_rate,
            "f0_method": self.f0_method,
            "audio_files": self.audio_files,
            "total_audio_minutes": self.total_audio_minutes,
            "estimated_duration": self.estimated_duration,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "error": self.error,
        }


class JobStateMachine:
    """Validates and applies job state transitions with audit history."""

    VALID_TRANSITIONS = {
        TrainingStatus.QUEUED: {TrainingStatus.PREPROCESSING},
        TrainingStatus.PREPROCESSING: {TrainingStatus.EXTRACTING_FEATURES},
        TrainingStatus.EXTRACTING_FEATURES: {TrainingStatus.TRAINING},
        TrainingStatus.TRAINING: {TrainingStatus.INDEXING},
        TrainingStatus.INDEXING: {TrainingStatus.COMPLETED},
        TrainingStatus.COMPLETED: set(),
        TrainingStatus.FAILED: set(),
        TrainingStatus.CANCELLED: set(),
    }

    @classmethod
    def allowed(cls, current: TrainingStatus, new: TrainingStatus) -> bool:
        if current in TERMINAL_STATUSES:
            return False
        if new in (TrainingStatus.FAILED, TrainingStatus.CANCELLED):
            return True
        return new in cls.VALID_TRANSITIONS[current]

    @classmethod
    def transition(cls, job: TrainingJob, new_status: TrainingStatus, reason: Optional[str] = None):
        if not cls.allowed(job.status, new_status):
            raise InvalidStateError(
                job.id, job.status.value, f"cannot move to {new_status.value}"
            )

        now = utc_now()
        job.history.append({
            "from": job.status.value,
            "to": new_status.value,
            "timestamp": now,
            "reason": reason or "",
        })

        job.status = new_status
        if new_status in STAGE_PROGRESS:
            job.progress = max(job.progress, STAGE_PROGRESS[new_status])
        if new_status in TERMINAL_STATUSES:
            job.completed_at = now


class JobStore:
    """Thread-safe mapping of job id to TrainingJob."""

    def __init__(self):
        self._jobs: Dict[str, TrainingJob] = {}
        self._lock = threading.Lock()

    def _get_locked(self, job_id: str) -> TrainingJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def create(self, job: TrainingJob) -> TrainingJob:
        with self._lock:
            if job.id in self._jobs:
                raise ConflictError("Training job", job.id)
            self._jobs[job.id] = job
        logger.info(f"Created job {job.id} for model '{job.model_name}'")
        return job.snapshot()

    def get(self, job_id: str) -> TrainingJob:
        with self._lock:
            return self._get_locked(job_id).snapshot()

    def list(self) -> List[TrainingJob]:
        with self._lock:
            jobs = [job.snapshot() for job in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.created_at)

    def update(self, job_id: str, status: Optional[TrainingStatus] = None,
               reason: Optional[str] = None, **changes) -> TrainingJob:
        """
        Apply a status transition and/or field changes atomically.

        progress and epoch_current never move backwards; epoch_current is
        only accepted while the job is training.
        """
        with self._lock:
            job = self._get_locked(job_id)

            if status is not None and status != job.status:
                JobStateMachine.transition(job, status, reason=reason)

            if "epoch_current" in changes:
                if job.status != TrainingStatus.TRAINING:
                    raise InvalidStateError(job_id, job.status.value, "epoch updates require training")
                changes["epoch_current"] = max(job.epoch_current, int(changes["epoch_current"]))

            if "progress" in changes:
                changes["progress"] = max(job.progress, int(changes["progress"]))

            for key, value in changes.items():
                if key in ("id", "handle", "task", "history") or not hasattr(job, key):
                    raise AttributeError(f"TrainingJob field cannot be updated: {key}")
                setattr(job, key, value)

            return job.snapshot()

    def attach_task(self, job_id: str, task: asyncio.Task):
        with self._lock:
            self._get_locked(job_id).task = task

    def handle(self, job_id: str) -> ProcessHandle:
        with self._lock:
            return self._get_locked(job_id).handle

    def task(self, job_id: str) -> Optional[asyncio.Task]:
        with self._lock:
            return self._get_locked(job_id).task

    def delete(self, job_id: str) -> TrainingJob:
        """Remove the record. Raises JobNotFoundError if already gone."""
        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is None:
            raise JobNotFoundError(job_id)
        logger.info(f"Removed job {job_id}")
        return job

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs
