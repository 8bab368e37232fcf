"""Shared data type definitions (UploadedFile, RemoteObjectRef, FileRecord, etc.)."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MediaKind(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    DOCUMENT = "document"


@dataclass(frozen=True)
class UploadedFile:
    """
    A complete file held in memory, either assembled from chunks or
    received whole through the multipart form.
    """
    name: str
    content: bytes
    mime: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ClassifiedFile:
    """
    An uploaded file tagged with the upstream endpoint family it goes to.
    """
    file: UploadedFile
    kind: MediaKind
    ext: str

    @property
    def is_media(self) -> bool:
        return self.kind in (MediaKind.PHOTO, MediaKind.VIDEO)


@dataclass(frozen=True)
class RemoteObjectRef:
    """
    Identifiers of a stored blob on the upstream platform.
    """
    file_id: str
    thumbnail_id: Optional[str] = None


@dataclass(frozen=True)
class FileRecord:
    """
    Metadata persisted for a public file key.
    """
    key: str
    mime: str
    thumbnail_id: Optional[str]
    timestamp: Optional[int] = None
