"""
Training Router

Submit, inspect, download, cancel and delete training jobs.
"""

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from voice_clone.core.config import settings
from voice_clone.core.exceptions import ArtifactNotFoundError, InvalidStateError, VoiceCloneError
from voice_clone.dependencies import get_intake, get_pipeline
from voice_clone.models.common import MessageResponse
from voice_clone.models.training import (
    JobListResponse,
    JobStatusResponse,
    JobSummary,
    TrainingSubmitResponse,
)
from voice_clone.services import UploadIntake
from voice_clone.trainer import TrainingPipeline, TrainingRequest, TrainingStatus, validate_training_params

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/train", tags=["training"])


@router.post("", response_model=TrainingSubmitResponse, status_code=202)
async def start_training(
    audio_files: Optional[List[UploadFile]] = File(None),
    model_name: Optional[str] = Form(None),
    epochs: int = Form(settings.training.epochs),
    sample_rate: int = Form(settings.training.sample_rate),
    f0_method: str = Form(settings.training.f0_method),
    pipeline: TrainingPipeline = Depends(get_pipeline),
    intake: UploadIntake = Depends(get_intake),
):
    """
    Start training a new voice model.

    Upload 10-30 minutes of clean voice audio. The job runs in the background;
    poll status_url for progress.
    """
    # Reject bad parameters before anything is written to disk
    validate_training_params(model_name, epochs, sample_rate, f0_method)

    job_id = pipeline.new_job_id()
    upload = await intake.save_training_files(job_id, audio_files or [])

    try:
        result = await pipeline.submit(
            TrainingRequest(
                model_name=model_name,
                dataset_dir=str(upload.dataset_dir),
                epochs=epochs,
                sample_rate=sample_rate,
                f0_method=f0_method,
                audio_files=upload.audio_files,
                total_audio_minutes=upload.total_audio_minutes,
            ),
            job_id=job_id,
        )
    except VoiceCloneError:
        intake.discard_job_files(job_id)
        raise

    return TrainingSubmitResponse(
        job_id=result.job_id,
        status=result.status.value,
        message="Training job started",
        status_url=f"/train/status/{result.job_id}",
        audio_files=upload.audio_files,
        total_audio_minutes=upload.total_audio_minutes,
        epochs=epochs,
        estimated_duration=result.estimated_duration,
    )


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_training_status(job_id: str, pipeline: TrainingPipeline = Depends(get_pipeline)):
    """Get training job status."""
    return JobStatusResponse.from_job(pipeline.get(job_id))


@router.get("/download/{job_id}")
async def download_model(job_id: str, pipeline: TrainingPipeline = Depends(get_pipeline)):
    """Download the trained weight file."""
    job = pipeline.get(job_id)
    if job.status != TrainingStatus.COMPLETED:
        raise InvalidStateError(job_id, job.status.value, "Training not completed")

    model_path = Path(job.model_path) if job.model_path else None
    if model_path is None or not model_path.is_file():
        raise ArtifactNotFoundError(str(model_path), "Model file not found")

    return FileResponse(
        str(model_path),
        media_type="application/octet-stream",
        filename=f"{job.model_name}.pth",
    )


@router.get("/jobs", response_model=JobListResponse)
async def list_training_jobs(pipeline: TrainingPipeline = Depends(get_pipeline)):
    """List all training jobs."""
    return JobListResponse(
        jobs=[
            JobSummary(
                job_id=job.id,
                model_name=job.model_name,
                status=job.status.value,
                progress=job.progress,
                created_at=job.created_at,
            )
            for job in pipeline.list()
        ]
    )


@router.post("/{job_id}/cancel", response_model=JobStatusResponse)
async def cancel_training(job_id: str, pipeline: TrainingPipeline = Depends(get_pipeline)):
    """Stop a running job, keeping its record and files."""
    job = await pipeline.cancel(job_id)
    return JobStatusResponse.from_job(job)


@router.delete("/{job_id}", response_model=MessageResponse)
async def delete_training_job(job_id: str, pipeline: TrainingPipeline = Depends(get_pipeline)):
    """Cancel a job if running, then delete it and its working files."""
    await pipeline.delete(job_id)
    return MessageResponse(message="Training job deleted")
