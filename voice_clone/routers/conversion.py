"""
Voice Conversion Router

Converts uploaded audio with a trained model. The request stays open for the
duration of the conversion.
"""

import logging
import re
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from voice_clone.core.config import settings
from voice_clone.core.exceptions import ArtifactNotFoundError, ValidationError
from voice_clone.dependencies import get_conversion_service, get_intake
from voice_clone.models.conversion import ConvertResponse
from voice_clone.services import ConversionService, ConvertOptions, UploadIntake
from voice_clone.trainer.pipeline import validate_f0_method, validate_model_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/convert", tags=["conversion"])

CONVERSION_ID_PATTERN = re.compile(r"^[a-f0-9]{32}$")


@router.post("", response_model=ConvertResponse)
async def convert_voice(
    audio: Optional[UploadFile] = File(None),
    model_name: Optional[str] = Form(None),
    pitch_shift: int = Form(settings.training.pitch_shift),
    index_rate: float = Form(settings.training.index_rate),
    f0_method: str = Form(settings.training.f0_method),
    service: ConversionService = Depends(get_conversion_service),
    intake: UploadIntake = Depends(get_intake),
):
    """
    Convert audio to the target voice.

    pitch_shift is in semitones; index_rate blends in the retrieval index
    (0.0-1.0) when the model has one.
    """
    if audio is None:
        raise ValidationError("audio", "No audio file provided")
    validate_model_name(model_name)
    validate_f0_method(f0_method)

    input_path = await intake.save_conversion_input(audio)
    conversion_id = uuid.uuid4().hex
    output_path = intake.conversion_output_path(conversion_id)

    try:
        result = await service.convert(
            ConvertOptions(
                input_path=input_path,
                output_path=output_path,
                model_name=model_name,
                pitch_shift=pitch_shift,
                index_rate=index_rate,
                f0_method=f0_method,
            )
        )
    finally:
        input_path.unlink(missing_ok=True)

    return ConvertResponse(
        job_id=conversion_id,
        status="completed",
        output_url=f"/convert/download/{conversion_id}",
        processing_time=result.processing_time_ms,
    )


@router.get("/download/{job_id}")
async def download_converted(job_id: str, intake: UploadIntake = Depends(get_intake)):
    """Download converted audio."""
    if not CONVERSION_ID_PATTERN.match(job_id):
        raise ArtifactNotFoundError(job_id, "File not found")

    output_path = intake.conversion_output_path(job_id)
    if not output_path.is_file():
        raise ArtifactNotFoundError(str(output_path), "File not found")

    return FileResponse(
        str(output_path),
        media_type="audio/wav",
        filename=f"converted_{job_id}.wav",
    )
