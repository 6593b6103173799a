"""
RVC Training Pipeline

Drives one training job through the toolkit stages:
1. Preprocess audio (slice, resample)
2. Extract F0 and HuBERT features
3. Train RVC model
4. Build FAISS index

Each job runs on its own asyncio task. Submission returns as soon as the job
is recorded as queued; stage failures are recorded on the job and never
raised to the submitter.
"""

import asyncio
import logging
import math
import re
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from voice_clone.core.config import PathConfig, TrainingDefaults, settings
from voice_clone.core.exceptions import (
    ArtifactNotFoundError,
    JobNotFoundError,
    LaunchFailedError,
    StageFailedError,
    TerminatedError,
    ValidationError,
)
from voice_clone.trainer.jobs import JobStore, TrainingJob, TrainingStatus, training_progress
from voice_clone.trainer.process import ProcessHandle
from voice_clone.trainer.stages import (
    ExtractFeaturesOptions,
    F0Method,
    IndexOptions,
    PreprocessOptions,
    RVCToolkit,
    TrainOptions,
)

logger = logging.getLogger(__name__)

MODEL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


# ============================================================================
# Validation
# ============================================================================

def validate_model_name(model_name: Optional[str]) -> str:
    if not model_name:
        raise ValidationError("model_name", "model_name is required")
    if not MODEL_NAME_PATTERN.match(model_name):
        raise ValidationError(
            "model_name",
            "Invalid model_name. Use only letters, numbers, underscores, hyphens",
        )
    return model_name


def validate_training_params(model_name: Optional[str], epochs: int, sample_rate: int, f0_method: str):
    """Reject bad parameters before any job record or process exists."""
    validate_model_name(model_name)
    if not isinstance(epochs, int) or isinstance(epochs, bool) or epochs <= 0:
        raise ValidationError("epochs", "must be a positive integer")
    if not isinstance(sample_rate, int) or isinstance(sample_rate, bool) or sample_rate <= 0:
        raise ValidationError("sample_rate", "must be a positive integer")
    validate_f0_method(f0_method)


def validate_f0_method(f0_method: str) -> str:
    allowed = [m.value for m in F0Method]
    if f0_method not in allowed:
        raise ValidationError("f0_method", f"must be one of: {', '.join(allowed)}")
    return f0_method


def estimate_duration(epochs: int, minutes_per_epoch: float) -> str:
    return f"{math.ceil(epochs * minutes_per_epoch)} minutes"


# ============================================================================
# Requests and results
# ============================================================================

@dataclass
class TrainingRequest:
    """Validated submission parameters handed over by the intake layer."""
    model_name: str
    dataset_dir: str
    epochs: int = 100
    sample_rate: int = 40000
    f0_method: str = "rmvpe"
    audio_files: int = 0
    total_audio_minutes: int = 0


@dataclass
class SubmissionResult:
    job_id: str
    status: TrainingStatus
    estimated_duration: str


@dataclass
class Experiment:
    """
    Toolkit view of a job's working tree.

    The training script resolves `-e <name>` against `<rvc_root>/logs`, so the
    job-scoped experiment directory is exposed there through a symlink.
    """
    name: str
    work_dir: Path
    link_path: Path

    def prepare(self):
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self.link_path.parent.mkdir(parents=True, exist_ok=True)
        if self.link_path.is_symlink():
            self.link_path.unlink()
        if not self.link_path.exists():
            self.link_path.symlink_to(self.work_dir.resolve())

    def remove_link(self):
        if self.link_path.is_symlink():
            self.link_path.unlink()


# ============================================================================
# Pipeline driver
# ============================================================================

class TrainingPipeline:
    """Orchestrates training jobs and owns their lifecycle."""

    def __init__(
        self,
        store: Optional[JobStore] = None,
        toolkit: Optional[RVCToolkit] = None,
        paths: Optional[PathConfig] = None,
        defaults: Optional[TrainingDefaults] = None,
    ):
        self.store = store or JobStore()
        self.toolkit = toolkit or RVCToolkit()
        self.paths = paths or settings.paths
        self.defaults = defaults or settings.training

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, job_id: str) -> TrainingJob:
        return self.store.get(job_id)

    def list(self) -> List[TrainingJob]:
        return self.store.list()

    def new_job_id(self) -> str:
        return uuid.uuid4().hex

    def experiment_for(self, job: TrainingJob) -> Experiment:
        return Experiment(
            name=job.experiment_name,
            work_dir=self.paths.get_experiment_dir(job.id),
            link_path=self.toolkit.config.logs_dir / job.experiment_name,
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, request: TrainingRequest, job_id: Optional[str] = None) -> SubmissionResult:
        """
        Record a queued job and schedule its pipeline.

        Returns without waiting for any stage to run.
        """
        validate_training_params(
            request.model_name, request.epochs, request.sample_rate, request.f0_method
        )
        if not Path(request.dataset_dir).is_dir():
            raise ValidationError("dataset_dir", f"not a directory: {request.dataset_dir}")

        job_id = job_id or self.new_job_id()
        job = TrainingJob(
            id=job_id,
            model_name=request.model_name,
            epochs_total=request.epochs,
            sample_rate=request.sample_rate,
            f0_method=request.f0_method,
            experiment_name=f"{request.model_name}_{job_id[:8]}",
            dataset_dir=str(request.dataset_dir),
            estimated_duration=estimate_duration(request.epochs, self.defaults.minutes_per_epoch),
            audio_files=request.audio_files,
            total_audio_minutes=request.total_audio_minutes,
            handle=ProcessHandle(self.toolkit.config.kill_grace_seconds),
        )
        self.store.create(job)

        task = asyncio.create_task(self._run(job_id))
        self.store.attach_task(job_id, task)

        return SubmissionResult(
            job_id=job_id,
            status=TrainingStatus.QUEUED,
            estimated_duration=job.estimated_duration,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _advance(self, job_id: str, status: TrainingStatus, **changes) -> TrainingJob:
        job = self.store.update(job_id, status=status, **changes)
        logger.info(f"Job {job_id}: {status.value} ({job.progress}%)")
        return job

    def _on_epoch(self, job_id: str, epochs: int, epoch: int, loss: float):
        self.store.update(
            job_id,
            epoch_current=epoch,
            progress=training_progress(epoch, epochs),
            last_loss=loss,
        )
        logger.info(f"Job {job_id}: epoch {epoch}/{epochs} (loss {loss})")

    async def _run(self, job_id: str):
        """Background task running the full training pipeline."""
        try:
            job = self.store.get(job_id)
            handle = job.handle
            experiment = self.experiment_for(job)

            handle.raise_if_cancelled("preprocess")
            experiment.prepare()
            self._advance(job_id, TrainingStatus.PREPROCESSING)
            await self.toolkit.preprocess(
                PreprocessOptions(
                    dataset_dir=Path(job.dataset_dir),
                    exp_dir=experiment.link_path,
                    sample_rate=job.sample_rate,
                ),
                handle=handle,
            )

            handle.raise_if_cancelled("extract_features")
            self._advance(job_id, TrainingStatus.EXTRACTING_FEATURES)
            await self.toolkit.extract_features(
                ExtractFeaturesOptions(exp_dir=experiment.link_path, f0_method=job.f0_method),
                handle=handle,
            )

            handle.raise_if_cancelled("train")
            self._advance(job_id, TrainingStatus.TRAINING)
            epochs = job.epochs_total
            await self.toolkit.train(
                TrainOptions(
                    exp_name=experiment.name,
                    epochs=epochs,
                    on_progress=lambda epoch, loss: self._on_epoch(job_id, epochs, epoch, loss),
                ),
                handle=handle,
            )
            weights = self._trained_weights(experiment)

            handle.raise_if_cancelled("build_index")
            self._advance(job_id, TrainingStatus.INDEXING)
            await self.toolkit.build_index(
                IndexOptions(exp_dir=experiment.link_path),
                handle=handle,
            )

            # No await between publishing and completing: jobs sharing a
            # model name replace its weights and index as one unit
            model_path, index_path = self._publish(experiment, weights, job.model_name)
            self._advance(
                job_id,
                TrainingStatus.COMPLETED,
                model_path=str(model_path),
                index_path=str(index_path) if index_path else None,
            )

        except JobNotFoundError:
            logger.info(f"Job {job_id} was deleted while running; pipeline stopped")
        except TerminatedError as e:
            self._finish(job_id, TrainingStatus.CANCELLED, reason=str(e))
        except (StageFailedError, LaunchFailedError, ArtifactNotFoundError) as e:
            logger.error(f"Job {job_id} failed: {e}")
            self._finish(job_id, TrainingStatus.FAILED, reason="stage_failed", error=str(e))
        except asyncio.CancelledError:
            self._finish(job_id, TrainingStatus.CANCELLED, reason="shutdown")
            raise
        except Exception as e:
            logger.exception(f"Job {job_id} failed unexpectedly: {e}")
            self._finish(job_id, TrainingStatus.FAILED, reason="internal_error", error=str(e))

    def _finish(self, job_id: str, status: TrainingStatus, reason: str, error: Optional[str] = None):
        changes = {"error": error} if error is not None else {}
        try:
            job = self.store.update(job_id, status=status, reason=reason, **changes)
        except JobNotFoundError:
            logger.info(f"Job {job_id} no longer exists, not recording {status.value}")
            return
        logger.info(f"Job {job_id}: {job.status.value}")

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def _trained_weights(self, experiment: Experiment) -> Path:
        """The weight file the toolkit wrote for this experiment."""
        source = self.toolkit.config.weights_dir / f"{experiment.name}.pth"
        if not source.is_file():
            raise ArtifactNotFoundError(
                str(source), f"Training finished but produced no weight file: {source}"
            )
        return source

    def _publish(
        self, experiment: Experiment, weights: Path, model_name: str
    ) -> Tuple[Path, Optional[Path]]:
        """
        Move the trained weights into the model registry directory and copy
        the built index next to them, if the toolkit produced one.

        An index left over from an earlier model with this name is removed
        when this run built none.
        """
        if not weights.is_file():
            raise ArtifactNotFoundError(str(weights), f"Weight file disappeared before publishing: {weights}")

        destination = self.paths.get_model_path(model_name)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(weights), str(destination))
        logger.info(f"Published model weights: {destination}")

        index_destination = self.paths.get_index_path(model_name)
        candidates = sorted(experiment.work_dir.glob("added_*.index")) or sorted(
            experiment.work_dir.glob("*.index")
        )
        if not candidates:
            if index_destination.exists():
                index_destination.unlink()
            logger.warning(f"No index file produced for {model_name}; model has no index")
            return destination, None

        shutil.copy2(str(candidates[0]), str(index_destination))
        logger.info(f"Published index: {index_destination}")
        return destination, index_destination

    # ------------------------------------------------------------------
    # Cancellation and deletion
    # ------------------------------------------------------------------

    async def cancel(self, job_id: str) -> TrainingJob:
        """
        Stop a job's in-flight process and wait for the pipeline to record it.

        Terminal jobs are returned unchanged.
        """
        job = self.store.get(job_id)
        if job.is_terminal:
            return job

        logger.info(f"Cancelling job {job_id} ({job.status.value})")
        await job.handle.cancel()

        task = job.task
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(
                    asyncio.shield(task), timeout=self.defaults.cancel_wait_seconds
                )
            except asyncio.TimeoutError:
                logger.warning(f"Job {job_id} did not stop within {self.defaults.cancel_wait_seconds}s")

        return self.store.get(job_id)

    async def delete(self, job_id: str):
        """Cancel if running, drop the record and remove the job's files."""
        job = self.store.get(job_id)
        if not job.is_terminal:
            await self.cancel(job_id)

        removed = self.store.delete(job_id)
        self._cleanup(removed)

    def _cleanup(self, job: TrainingJob):
        experiment = self.experiment_for(job)
        experiment.remove_link()

        leftover_weights = self.toolkit.config.weights_dir / f"{experiment.name}.pth"
        if leftover_weights.exists():
            leftover_weights.unlink()

        job_dir = self.paths.get_job_dir(job.id)
        if job_dir.exists():
            shutil.rmtree(job_dir)
        logger.info(f"Cleaned up working directory for job {job.id}")

    async def shutdown(self):
        """Cancel every running job, e.g. on service shutdown."""
        running = [job for job in self.store.list() if not job.is_terminal]
        if not running:
            return
        logger.info(f"Cancelling {len(running)} running training job(s)")
        await asyncio.gather(
            *(self.cancel(job.id) for job in running),
            return_exceptions=True,
        )
