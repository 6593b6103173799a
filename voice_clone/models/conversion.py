"""Voice conversion response models."""

from pydantic import BaseModel, Field


class ConvertResponse(BaseModel):
    """Completed conversion."""
    job_id: str = Field(..., description="Conversion identifier")
    status: str = Field(default="completed")
    output_url: str = Field(..., description="Download URL for the converted audio")
    processing_time: int = Field(..., description="Processing time in milliseconds")
