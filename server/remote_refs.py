"""Extraction of remote object references from upstream message payloads."""

from typing import Any, Dict, List, Optional

from common.logging_config import get_logger
from common.types import RemoteObjectRef

logger = get_logger(__name__)

# Message fields that carry a single file object, in lookup order
SINGLE_FILE_FIELDS = ("video", "document", "animation", "audio", "voice", "sticker")


def _thumbnail_id(file_object: Dict[str, Any]) -> Optional[str]:
    thumbnail = file_object.get("thumbnail") or file_object.get("thumb")
    if isinstance(thumbnail, dict):
        return thumbnail.get("file_id")
    return None


def _photo_ref(sizes: List[Dict[str, Any]]) -> Optional[RemoteObjectRef]:
    def weight(size: Dict[str, Any]):
        return (size.get("file_size") or 0, (size.get("width") or 0) * (size.get("height") or 0))

    sizes = [size for size in sizes if size.get("file_id")]
    if not sizes:
        return None

    largest = max(sizes, key=weight)
    smallest = min(sizes, key=weight)
    return RemoteObjectRef(file_id=largest["file_id"], thumbnail_id=smallest["file_id"])


def extract_remote_ref(message: Dict[str, Any]) -> Optional[RemoteObjectRef]:
    """
    Resolve the stored blob of one sent message.

    Photos arrive as a list of size variants: the largest is the primary
    object and the smallest stands in as its thumbnail. Every other kind
    carries one file object with an optional nested thumbnail.

    Returns:
        RemoteObjectRef, or None when the message holds no file
    """
    if not isinstance(message, dict):
        return None

    photo = message.get("photo")
    if isinstance(photo, list) and photo:
        return _photo_ref(photo)

    for field_name in SINGLE_FILE_FIELDS:
        file_object = message.get(field_name)
        if isinstance(file_object, dict) and file_object.get("file_id"):
            return RemoteObjectRef(
                file_id=file_object["file_id"],
                thumbnail_id=_thumbnail_id(file_object),
            )

    logger.error(f"No file_id found in message. Available keys: {sorted(message.keys())}")
    return None


def extract_remote_refs(messages: List[Dict[str, Any]]) -> List[Optional[RemoteObjectRef]]:
    """
    Resolve a media group result. Positions match the input messages, so a
    message without a file yields None in its slot.
    """
    return [extract_remote_ref(message) for message in messages or []]
