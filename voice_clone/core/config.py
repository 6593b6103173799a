"""Configuration Module - Paths, toolkit settings and server options.

The RVC toolkit (Retrieval-based-Voice-Conversion-WebUI) is driven as a set of
subprocesses. Its location and the interpreter used to run it are configurable:

- RVC_DIR: toolkit checkout, used as the working directory of every call
- RVC_PYTHON: interpreter that runs the toolkit scripts
- MODELS_DIR: directory scanned by the model registry (<name>.pth / <name>.index)
- WORK_ROOT: scratch area for uploads, per-job training trees and conversions
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ToolkitConfig:
    """External RVC toolkit settings."""

    rvc_dir: str = field(default_factory=lambda: os.getenv("RVC_DIR", "/app/rvc"))
    python: str = field(default_factory=lambda: os.getenv("RVC_PYTHON", "python3"))
    cuda_visible_devices: str = field(
        default_factory=lambda: os.getenv("CUDA_VISIBLE_DEVICES", "0")
    )

    # Subprocess output handling
    stderr_tail_chars: int = field(
        default_factory=lambda: int(os.getenv("RVC_STDERR_TAIL_CHARS", "4000"))
    )
    stdout_max_lines: int = field(
        default_factory=lambda: int(os.getenv("RVC_STDOUT_MAX_LINES", "1000"))
    )
    kill_grace_seconds: float = field(
        default_factory=lambda: float(os.getenv("RVC_KILL_GRACE_SECONDS", "10"))
    )

    @property
    def root(self) -> Path:
        return Path(self.rvc_dir)

    @property
    def logs_dir(self) -> Path:
        """Directory the training script resolves experiment names against."""
        return self.root / "logs"

    @property
    def weights_dir(self) -> Path:
        """Directory the training script writes final inference weights to."""
        return self.root / "assets" / "weights"


@dataclass
class PathConfig:
    """Storage layout for models and job scratch space."""

    models_dir: str = field(default_factory=lambda: os.getenv("MODELS_DIR", "/data/models"))
    work_root: str = field(default_factory=lambda: os.getenv("WORK_ROOT", "/tmp/voice-clone"))

    @property
    def training_root(self) -> Path:
        return Path(self.work_root) / "training"

    @property
    def convert_input_dir(self) -> Path:
        return Path(self.work_root) / "input"

    @property
    def convert_output_dir(self) -> Path:
        return Path(self.work_root) / "output"

    def get_job_dir(self, job_id: str) -> Path:
        """Job-scoped tree, deleted wholesale when the job is deleted."""
        return self.training_root / job_id

    def get_dataset_dir(self, job_id: str) -> Path:
        return self.get_job_dir(job_id) / "dataset"

    def get_experiment_dir(self, job_id: str) -> Path:
        return self.get_job_dir(job_id) / "experiment"

    def get_model_path(self, model_name: str) -> Path:
        return Path(self.models_dir) / f"{model_name}.pth"

    def get_index_path(self, model_name: str) -> Path:
        return Path(self.models_dir) / f"{model_name}.index"

    def ensure_dirs(self):
        """Create writable directories if they don't exist."""
        for d in (
            Path(self.models_dir),
            self.training_root,
            self.convert_input_dir,
            self.convert_output_dir,
        ):
            d.mkdir(parents=True, exist_ok=True)


@dataclass
class TrainingDefaults:
    """Request defaults and intake limits, matching the public API."""

    epochs: int = 100
    sample_rate: int = 40000
    f0_method: str = "rmvpe"

    pitch_shift: int = 0
    index_rate: float = 0.75

    allowed_extensions: tuple = (".wav", ".mp3", ".flac", ".ogg", ".m4a")
    max_training_files: int = 50
    max_training_file_bytes: int = 500 * 1024 * 1024
    max_convert_file_bytes: int = 50 * 1024 * 1024

    # Rough wall-clock estimate used for the submission response
    minutes_per_epoch: float = 0.5

    cancel_wait_seconds: float = field(
        default_factory=lambda: float(os.getenv("CANCEL_WAIT_SECONDS", "30"))
    )


@dataclass
class Settings:
    """Combined settings for the voice clone service."""

    toolkit: ToolkitConfig = field(default_factory=ToolkitConfig)
    paths: PathConfig = field(default_factory=PathConfig)
    training: TrainingDefaults = field(default_factory=TrainingDefaults)

    # Service settings
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3000")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    debug: bool = field(
        default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true"
    )
    version: str = "1.0.0"


# Global settings instance
settings = Settings()
