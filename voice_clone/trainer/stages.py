"""
RVC Toolkit Stage Adapters

Each adapter builds the fixed command line of one toolkit script and runs it
through the ProcessRunner:

1. preprocess        - slice and resample the dataset
2. extract_features  - F0 extraction, then HuBERT feature extraction
3. train             - model training, reports epoch progress
4. build_index       - FAISS index over the extracted features

The argument layouts follow the toolkit's command-line interface exactly and
must not be reordered.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Tuple

from voice_clone.core.config import ToolkitConfig, settings
from voice_clone.trainer.process import (
    ProcessHandle,
    ProcessResult,
    ProcessRunner,
    StageInvocation,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Toolkit constants
# ============================================================================

PREPROCESS_SCRIPT = "infer/modules/train/preprocess.py"
EXTRACT_F0_SCRIPT = "infer/modules/train/extract/extract_f0_print.py"
EXTRACT_FEATURE_SCRIPT = "infer/modules/train/extract_feature_print.py"
TRAIN_SCRIPT = "infer/modules/train/train.py"
INDEX_SCRIPT = "tools/infer/train-index.py"
INFER_SCRIPT = "tools/infer_cli.py"

PRETRAINED_G = "assets/pretrained_v2/f0G40k.pth"
PRETRAINED_D = "assets/pretrained_v2/f0D40k.pth"

CPU_THREADS = "2"
RVC_VERSION = "v2"
FEATURE_DEVICE = "cuda:0"

TRAIN_SAMPLE_RATE = "40k"
TRAIN_BATCH_SIZE = "8"
TRAIN_SAVE_EVERY = "25"


class F0Method(str, Enum):
    """F0 extraction methods"""
    RMVPE = "rmvpe"
    PM = "pm"          # Parselmouth
    HARVEST = "harvest"
    CREPE = "crepe"
    DIO = "dio"


ProgressCallback = Callable[[int, float], None]


# ============================================================================
# Stage options
# ============================================================================

@dataclass
class PreprocessOptions:
    dataset_dir: Path
    exp_dir: Path
    sample_rate: int


@dataclass
class ExtractFeaturesOptions:
    exp_dir: Path
    f0_method: str


@dataclass
class TrainOptions:
    exp_name: str
    epochs: int
    on_progress: Optional[ProgressCallback] = None


@dataclass
class IndexOptions:
    exp_dir: Path


# ============================================================================
# Training output parser
# ============================================================================

class TrainingOutputParser:
    """
    Recognises epoch and loss markers in training output.

    A line without an epoch marker carries no progress signal; it is never
    an error.
    """

    EPOCH_PATTERN = re.compile(r"Epoch: (\d+)")
    LOSS_PATTERN = re.compile(r"loss: ([\d.]+)")

    def parse(self, line: str) -> Optional[Tuple[int, float]]:
        epoch_match = self.EPOCH_PATTERN.search(line)
        if not epoch_match:
            return None

        loss = 0.0
        loss_match = self.LOSS_PATTERN.search(line)
        if loss_match:
            try:
                loss = float(loss_match.group(1))
            except ValueError:
                loss = 0.0

        return int(epoch_match.group(1)), loss


# ============================================================================
# Toolkit adapter
# ============================================================================

class RVCToolkit:
    """Stage adapters for the external RVC toolkit."""

    def __init__(
        self,
        config: Optional[ToolkitConfig] = None,
        runner: Optional[ProcessRunner] = None,
    ):
        self.config = config or settings.toolkit
        self.runner = runner or ProcessRunner(self.config)

    @property
    def root(self) -> Path:
        return self.config.root

    def _script(self, relative: str) -> str:
        return str(self.root / relative)

    def _gpu_env(self) -> dict:
        return {
            "PYTHONUNBUFFERED": "1",
            "CUDA_VISIBLE_DEVICES": self.config.cuda_visible_devices,
        }

    def _invocation(self, label: str, script: str, args: list, gpu: bool = False) -> StageInvocation:
        env = self._gpu_env() if gpu else {"PYTHONUNBUFFERED": "1"}
        return StageInvocation(
            executable=self.config.python,
            args=[self._script(script), *args],
            cwd=str(self.root),
            env=env,
            label=label,
        )

    async def preprocess(
        self, options: PreprocessOptions, handle: Optional[ProcessHandle] = None
    ) -> ProcessResult:
        """Slice and resample the dataset into the experiment directory."""
        invocation = self._invocation(
            "preprocess",
            PREPROCESS_SCRIPT,
            [
                str(options.dataset_dir),
                str(options.sample_rate),
                CPU_THREADS,
                str(options.exp_dir),
                "False",  # No normalization
            ],
        )
        return await self.runner.run(invocation, handle=handle)

    async def extract_features(
        self, options: ExtractFeaturesOptions, handle: Optional[ProcessHandle] = None
    ) -> ProcessResult:
        """
        Two-phase extraction: pitch (F0) first, then HuBERT features.

        A pitch failure raises before the feature phase is started.
        """
        f0_invocation = self._invocation(
            "extract_f0",
            EXTRACT_F0_SCRIPT,
            [str(options.exp_dir), CPU_THREADS, options.f0_method],
        )
        await self.runner.run(f0_invocation, handle=handle)

        feature_invocation = self._invocation(
            "extract_features",
            EXTRACT_FEATURE_SCRIPT,
            [
                FEATURE_DEVICE,
                "1",  # GPU count
                "0",  # Part
                "1",  # Total parts
                str(options.exp_dir),
                RVC_VERSION,
            ],
            gpu=True,
        )
        return await self.runner.run(feature_invocation, handle=handle)

    async def train(
        self, options: TrainOptions, handle: Optional[ProcessHandle] = None
    ) -> ProcessResult:
        """Train the model; epoch markers are forwarded to options.on_progress."""
        parser = TrainingOutputParser()

        def on_line(line: str):
            parsed = parser.parse(line)
            if parsed and options.on_progress:
                epoch, loss = parsed
                options.on_progress(epoch, loss)

        invocation = self._invocation(
            "train",
            TRAIN_SCRIPT,
            [
                "-e", options.exp_name,
                "-sr", TRAIN_SAMPLE_RATE,
                "-f0", "1",
                "-bs", TRAIN_BATCH_SIZE,
                "-te", str(options.epochs),
                "-se", TRAIN_SAVE_EVERY,
                "-pg", self._script(PRETRAINED_G),
                "-pd", self._script(PRETRAINED_D),
                "-l", "0",
                "-c", "0",
                "-sw", "0",
                "-v", RVC_VERSION,
            ],
            gpu=True,
        )
        return await self.runner.run(invocation, on_line=on_line, handle=handle)

    async def build_index(
        self, options: IndexOptions, handle: Optional[ProcessHandle] = None
    ) -> ProcessResult:
        """Build the retrieval index inside the experiment directory."""
        invocation = self._invocation(
            "build_index",
            INDEX_SCRIPT,
            [str(options.exp_dir), RVC_VERSION],
        )
        return await self.runner.run(invocation, handle=handle)

    def convert_invocation(
        self,
        input_path: Path,
        output_path: Path,
        model_path: Path,
        pitch_shift: int,
        index_rate: float,
        f0_method: str,
        index_path: Optional[Path] = None,
    ) -> StageInvocation:
        """Command line for a single inference run."""
        args = [
            "--input_path", str(input_path),
            "--output_path", str(output_path),
            "--model_path", str(model_path),
            "--pitch_shift", str(pitch_shift),
            "--index_rate", str(index_rate),
            "--f0_method", f0_method,
        ]
        if index_path is not None:
            args.extend(["--index_path", str(index_path)])
        return self._invocation("convert", INFER_SCRIPT, args, gpu=True)
