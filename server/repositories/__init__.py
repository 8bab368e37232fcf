"""Repository layer for data access."""

from server.repositories.kv_namespace import KVNamespace, KVKey, KVListResult
from server.repositories.chunk_repository import ChunkRepository
from server.repositories.metadata_repository import MetadataRepository

__all__ = [
    "KVNamespace",
    "KVKey",
    "KVListResult",
    "ChunkRepository",
    "MetadataRepository",
]
