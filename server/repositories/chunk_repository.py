"""Chunk repository: transient chunk bytes keyed by upload id and index."""

from typing import List, Optional

from common.constants import FINALIZE_CLAIM_TTL_SECONDS
from common.logging_config import get_logger
from server.config import CHUNK_TTL_SECONDS
from server.repositories.kv_namespace import KVNamespace

logger = get_logger(__name__)

CHUNKS_NAMESPACE = "chunks"


def chunk_key(upload_id: str, chunk_index: int) -> str:
    return f"{upload_id}_chunk_{chunk_index}"


def finalize_claim_key(upload_id: str) -> str:
    return f"{upload_id}_finalizing"


class ChunkRepository:
    def __init__(self, namespace: Optional[KVNamespace] = None, chunk_ttl_seconds: int = CHUNK_TTL_SECONDS):
        self.namespace = namespace or KVNamespace(CHUNKS_NAMESPACE)
        self.chunk_ttl_seconds = chunk_ttl_seconds

    def put_chunk(self, upload_id: str, chunk_index: int, data: bytes) -> None:
        self.namespace.put(
            chunk_key(upload_id, chunk_index),
            data,
            expiration_ttl=self.chunk_ttl_seconds,
        )

    def get_chunk(self, upload_id: str, chunk_index: int) -> Optional[bytes]:
        return self.namespace.get(chunk_key(upload_id, chunk_index))

    def delete_chunks(self, upload_id: str, total_chunks: int) -> List[int]:
        """
        Delete chunks 0..total_chunks-1 of an upload.

        Returns:
            Indices whose deletion raised; these are left to expire
        """
        failed = []
        for chunk_index in range(total_chunks):
            try:
                self.namespace.delete(chunk_key(upload_id, chunk_index))
            except Exception as e:
                logger.error(f"Failed to delete chunk {chunk_index} for file {upload_id}: {e}")
                failed.append(chunk_index)

        if not failed:
            logger.info(f"Deleted {total_chunks} chunks for file {upload_id}")
        return failed

    def claim_finalize(self, upload_id: str, ttl_seconds: int = FINALIZE_CLAIM_TTL_SECONDS) -> bool:
        return self.namespace.put_if_absent(finalize_claim_key(upload_id), b"1", expiration_ttl=ttl_seconds)

    def release_finalize(self, upload_id: str) -> None:
        self.namespace.delete(finalize_claim_key(upload_id))

    def purge_expired(self) -> int:
        return self.namespace.purge_expired()
