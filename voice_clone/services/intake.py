"""
Upload Intake

Validates uploaded audio and stores it where the pipeline expects it:

- training uploads go to <work_root>/training/<job_id>/dataset/
- conversion inputs go to <work_root>/input/

Files are renamed to uuid-based names so user filenames never reach the
filesystem.
"""

import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile

from voice_clone.core.config import PathConfig, TrainingDefaults, settings
from voice_clone.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass
class DatasetUpload:
    job_id: str
    dataset_dir: Path
    audio_files: int
    total_bytes: int

    @property
    def total_audio_minutes(self) -> int:
        # Rough estimate: 1MB ~ 1 minute for compressed audio
        return round(self.total_bytes / (1024 * 1024))


class UploadIntake:
    """Stores validated uploads for training and conversion."""

    def __init__(self, paths: Optional[PathConfig] = None, defaults: Optional[TrainingDefaults] = None):
        self.paths = paths or settings.paths
        self.defaults = defaults or settings.training

    def check_extension(self, filename: Optional[str]) -> str:
        ext = Path(filename or "").suffix.lower()
        if ext not in self.defaults.allowed_extensions:
            raise ValidationError(
                "file",
                f"Invalid file type '{ext or filename}'. "
                f"Allowed: {', '.join(self.defaults.allowed_extensions)}",
            )
        return ext

    async def _save(self, upload: UploadFile, destination: Path, max_bytes: int) -> int:
        written = 0
        try:
            with open(destination, "wb") as f:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_bytes:
                        raise ValidationError(
                            "file",
                            f"{upload.filename} exceeds the {max_bytes // (1024 * 1024)}MB limit",
                        )
                    f.write(chunk)
        except ValidationError:
            destination.unlink(missing_ok=True)
            raise
        finally:
            await upload.close()
        return written

    async def save_training_files(self, job_id: str, files: List[UploadFile]) -> DatasetUpload:
        """Validate and store a training dataset. Nothing is kept on rejection."""
        if not files:
            raise ValidationError(
                "audio_files",
                "No audio files provided. Upload 10-30 minutes of clean voice audio for best results",
            )
        if len(files) > self.defaults.max_training_files:
            raise ValidationError(
                "audio_files", f"At most {self.defaults.max_training_files} files are accepted"
            )

        extensions = [self.check_extension(f.filename) for f in files]

        dataset_dir = self.paths.get_dataset_dir(job_id)
        dataset_dir.mkdir(parents=True, exist_ok=True)

        total_bytes = 0
        try:
            for upload, ext in zip(files, extensions):
                destination = dataset_dir / f"{uuid.uuid4().hex}{ext}"
                total_bytes += await self._save(
                    upload, destination, self.defaults.max_training_file_bytes
                )
                logger.debug(f"Uploaded: {upload.filename} -> {destination}")
        except ValidationError:
            shutil.rmtree(self.paths.get_job_dir(job_id), ignore_errors=True)
            raise

        logger.info(f"Stored {len(files)} training file(s) for job {job_id}")
        return DatasetUpload(
            job_id=job_id,
            dataset_dir=dataset_dir,
            audio_files=len(files),
            total_bytes=total_bytes,
        )

    async def save_conversion_input(self, upload: UploadFile) -> Path:
        ext = self.check_extension(upload.filename)
        input_dir = self.paths.convert_input_dir
        input_dir.mkdir(parents=True, exist_ok=True)
        destination = input_dir / f"{uuid.uuid4().hex}{ext}"
        await self._save(upload, destination, self.defaults.max_convert_file_bytes)
        return destination

    def discard_job_files(self, job_id: str):
        """Remove a job tree created by save_training_files that never became a job."""
        shutil.rmtree(self.paths.get_job_dir(job_id), ignore_errors=True)

    def conversion_output_path(self, conversion_id: str) -> Path:
        return self.paths.convert_output_dir / f"{conversion_id}.wav"
