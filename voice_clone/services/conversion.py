"""
Voice Conversion Service

Runs one toolkit inference per request. There is no job wrapper: the caller
waits for the process and receives either the output path or the failure.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from voice_clone.core.config import PathConfig, settings
from voice_clone.core.exceptions import ConversionError, ModelNotFoundError, StageFailedError
from voice_clone.trainer.stages import RVCToolkit

logger = logging.getLogger(__name__)


@dataclass
class ConvertOptions:
    input_path: Path
    output_path: Path
    model_name: str
    pitch_shift: int = 0
    index_rate: float = 0.75
    f0_method: str = "rmvpe"


@dataclass
class ConversionResult:
    output_path: Path
    processing_time_ms: int
    used_index: bool


class ConversionService:
    """Converts audio with a trained model from the registry directory."""

    def __init__(self, toolkit: Optional[RVCToolkit] = None, paths: Optional[PathConfig] = None):
        self.toolkit = toolkit or RVCToolkit()
        self.paths = paths or settings.paths

    async def convert(self, options: ConvertOptions) -> ConversionResult:
        """
        Convert options.input_path into options.output_path.

        Raises:
            ModelNotFoundError: no weight file for the model (no process is started)
            LaunchFailedError: the toolkit could not be started
            ConversionError: the toolkit exited non-zero
        """
        started = time.monotonic()

        model_path = self.paths.get_model_path(options.model_name)
        if not model_path.is_file():
            raise ModelNotFoundError(options.model_name)

        # The index improves timbre retrieval but is optional
        index_path: Optional[Path] = self.paths.get_index_path(options.model_name)
        if not index_path.is_file():
            logger.info(f"No index for model '{options.model_name}', converting without it")
            index_path = None

        Path(options.output_path).parent.mkdir(parents=True, exist_ok=True)

        invocation = self.toolkit.convert_invocation(
            input_path=options.input_path,
            output_path=options.output_path,
            model_path=model_path,
            pitch_shift=options.pitch_shift,
            index_rate=options.index_rate,
            f0_method=options.f0_method,
            index_path=index_path,
        )

        try:
            await self.toolkit.runner.run(invocation)
        except StageFailedError as e:
            raise ConversionError(e.returncode, e.stderr_tail) from e

        processing_time_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Converted {options.input_path} with '{options.model_name}' "
            f"in {processing_time_ms}ms"
        )
        return ConversionResult(
            output_path=Path(options.output_path),
            processing_time_ms=processing_time_ms,
            used_index=index_path is not None,
        )
