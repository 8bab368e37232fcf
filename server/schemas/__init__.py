"""Pydantic schemas for API requests and responses."""

from server.schemas.upload import (
    FileHeaders,
    ChunkHeaders,
    FinalizeHeaders,
    ChunkAckResponse,
    UploadResultResponse,
    ClearDataResponse
)
from server.schemas.common import ErrorResponse

__all__ = [
    "FileHeaders",
    "ChunkHeaders",
    "FinalizeHeaders",
    "ChunkAckResponse",
    "UploadResultResponse",
    "ClearDataResponse",
    "ErrorResponse"
]
