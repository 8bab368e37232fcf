"""Utility helper functions for the relay server."""

import time
from typing import Iterator, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

_EXTENSION_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "webm": "video/webm",
    "pdf": "application/pdf",
    "zip": "application/zip",
    "txt": "text/plain",
}


def current_timestamp_ms() -> int:
    """
    Get current time as milliseconds since the epoch.
    """
    return int(time.time() * 1000)


def file_extension(file_name: str) -> str:
    """
    Lowercase final dot-segment of a file name, or '' if it has none.
    """
    if "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[1].lower()


def split_file_key(file_key: str) -> Tuple[str, str]:
    """
    Split a public file key into (file_id, ext) on the last dot.

    Args:
        file_key: Key such as "AgACAgQAAx0.jpg"

    Returns:
        Tuple of file id and extension ('' when the key has no dot)
    """
    if "." not in file_key:
        return file_key, ""
    file_id, ext = file_key.rsplit(".", 1)
    return file_id, ext


def mime_from_extension(ext: str) -> Optional[str]:
    return _EXTENSION_MIME_TYPES.get(ext.lower())


def extension_from_mime(mime: Optional[str]) -> str:
    """
    Best-effort extension for a MIME type, '' when unknown.
    """
    if not mime:
        return ""
    major, _, minor = mime.partition("/")
    if major == "image":
        return minor or "jpg"
    if major == "video":
        return minor or "mp4"
    if major == "audio":
        return minor or "mp3"
    if mime.startswith("application/pdf"):
        return "pdf"
    return ""


def batched(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """
    Yield consecutive slices of at most `size` items.
    """
    for start in range(0, len(items), size):
        yield list(items[start:start + size])
