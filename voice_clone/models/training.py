"""Training job request/response models."""

from typing import List, Optional
from pydantic import BaseModel, Field

from voice_clone.trainer.jobs import TrainingJob


class TrainingSubmitResponse(BaseModel):
    """Accepted training submission."""
    job_id: str
    status: str
    message: str
    status_url: str
    audio_files: int
    total_audio_minutes: int
    epochs: int
    estimated_duration: str


class JobStatusResponse(BaseModel):
    """Full job snapshot."""
    job_id: str
    model_name: str
    status: str
    progress: int = Field(..., ge=0, le=100, description="Approximate progress percentage")
    current_epoch: int
    total_epochs: int
    last_loss: Optional[float] = None
    sample_rate: int
    f0_method: str
    audio_files: int = 0
    total_audio_minutes: int = 0
    estimated_duration: Optional[str] = None
    created_at: str
    completed_at: Optional[str] = None
    error: Optional[str] = None
    download_url: Optional[str] = None

    @classmethod
    def from_job(cls, job: TrainingJob) -> "JobStatusResponse":
        download_url = f"/train/download/{job.id}" if job.status.value == "completed" else None
        return cls(**job.to_dict(), download_url=download_url)


class JobSummary(BaseModel):
    job_id: str
    model_name: str
    status: str
    progress: int
    created_at: str


class JobListResponse(BaseModel):
    jobs: List[JobSummary]
