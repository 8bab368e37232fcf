"""Pydantic schemas for the chunked upload endpoints."""

from typing import List, Optional
from urllib.parse import unquote

from pydantic import BaseModel, Field, field_validator, model_validator


class FileHeaders(BaseModel):
    """File-identifying headers shared by chunk writes and finalize."""
    upload_id: str = Field(min_length=1)
    file_name: str = Field(min_length=1)
    file_size: int = Field(gt=0)
    total_chunks: int = Field(gt=0)

    @field_validator("upload_id", "file_name", mode="before")
    @classmethod
    def decode_uri_component(cls, value):
        if isinstance(value, str):
            return unquote(value).strip()
        return value


class ChunkHeaders(FileHeaders):
    """Headers of one chunk write."""
    chunk_index: int = Field(ge=0)

    @model_validator(mode="after")
    def check_index_in_range(self):
        if self.chunk_index >= self.total_chunks:
            raise ValueError(f"chunk index {self.chunk_index} out of range for {self.total_chunks} chunks")
        return self


class FinalizeHeaders(FileHeaders):
    """Headers of the finalize signal."""
    mime: Optional[str] = None


class ChunkAckResponse(BaseModel):
    """Response model for a stored chunk."""
    message: str


class UploadResultResponse(BaseModel):
    """Response model for a completed upload."""
    urls: List[str]


class ClearDataResponse(BaseModel):
    """Response model for the bulk clear."""
    message: str
