"""Metadata repository: public file key -> {mime, thumbnailId}."""

import json
from typing import Optional

from common.logging_config import get_logger
from common.types import FileRecord
from server.repositories.kv_namespace import KVNamespace
from server.utils import current_timestamp_ms

logger = get_logger(__name__)

METADATA_NAMESPACE = "metadata"


def file_key(file_id: str, ext: str) -> str:
    return f"{file_id}.{ext}" if ext else file_id


class MetadataRepository:
    def __init__(self, namespace: Optional[KVNamespace] = None):
        self.namespace = namespace or KVNamespace(METADATA_NAMESPACE)

    def put_record(self, file_id: str, ext: str, mime: str, thumbnail_id: Optional[str] = None) -> FileRecord:
        key = file_key(file_id, ext)
        timestamp = current_timestamp_ms()
        self.namespace.put(
            key,
            json.dumps({"mime": mime, "thumbnailId": thumbnail_id}),
            metadata={"TimeStamp": timestamp},
        )
        logger.info(f"Stored metadata [key={key}] [thumbnail_id={thumbnail_id}]")
        return FileRecord(key=key, mime=mime, thumbnail_id=thumbnail_id, timestamp=timestamp)

    def get_record(self, key: str) -> Optional[FileRecord]:
        value, metadata = self.namespace.get_with_metadata(key)
        if value is None:
            return None

        try:
            data = json.loads(value)
        except ValueError:
            logger.warning(f"Unreadable metadata record [key={key}]")
            return None

        return FileRecord(
            key=key,
            mime=data.get("mime") or "",
            thumbnail_id=data.get("thumbnailId"),
            timestamp=(metadata or {}).get("TimeStamp"),
        )
