"""Decides which upstream endpoint family a file is sent through."""

from common.constants import HARD_IMAGE_EXTENSIONS, MAX_PHOTO_SIZE_BYTES, MAX_UPLOAD_SIZE_BYTES
from common.types import ClassifiedFile, MediaKind, UploadedFile
from server.exceptions import PayloadTooLargeError
from server.utils import file_extension

DEFAULT_EXTENSIONS = {
    MediaKind.PHOTO: "jpg",
    MediaKind.VIDEO: "mp4",
    MediaKind.DOCUMENT: "bin",
}


def ensure_uploadable_size(size: int) -> None:
    """
    Raises:
        PayloadTooLargeError: If size exceeds the upstream direct-upload ceiling
    """
    if size > MAX_UPLOAD_SIZE_BYTES:
        raise PayloadTooLargeError(
            f"File size {size} exceeds upstream direct upload limit "
            f"({MAX_UPLOAD_SIZE_BYTES // (1024 * 1024)}MB)"
        )


def classify_kind(ext: str, mime: str, size: int) -> MediaKind:
    """
    Pure decision table over (ext, mime, size).

    Images with an extension the upstream fails to process, or above the
    photo size limit, go out as documents.
    """
    if mime.startswith("image/"):
        if ext in HARD_IMAGE_EXTENSIONS or size > MAX_PHOTO_SIZE_BYTES:
            return MediaKind.DOCUMENT
        return MediaKind.PHOTO
    if mime.startswith("video/"):
        return MediaKind.VIDEO
    return MediaKind.DOCUMENT


def classify(file: UploadedFile) -> ClassifiedFile:
    ensure_uploadable_size(file.size)

    ext = file_extension(file.name)
    kind = classify_kind(ext, file.mime, file.size)

    if not ext:
        ext = "jpg" if file.mime.startswith("image/") else DEFAULT_EXTENSIONS[kind]

    return ClassifiedFile(file=file, kind=kind, ext=ext)
