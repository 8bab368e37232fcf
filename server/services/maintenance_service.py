"""Maintenance service: draining the key-value namespaces."""

from typing import List, Optional

from common.constants import KV_LIST_DEFAULT_LIMIT
from common.logging_config import get_logger
from server.repositories.chunk_repository import CHUNKS_NAMESPACE
from server.repositories.kv_namespace import KVNamespace
from server.repositories.metadata_repository import METADATA_NAMESPACE

logger = get_logger(__name__)


class MaintenanceService:
    def __init__(self, namespaces: Optional[List[KVNamespace]] = None):
        self.namespaces = namespaces or [KVNamespace(METADATA_NAMESPACE), KVNamespace(CHUNKS_NAMESPACE)]

    @staticmethod
    def drain(namespace: KVNamespace, page_size: int = KV_LIST_DEFAULT_LIMIT) -> int:
        """
        Delete every key of a namespace, walking the list cursor page by page.

        Returns:
            Number of keys deleted
        """
        deleted = 0
        cursor = None
        while True:
            page = namespace.list(cursor=cursor, limit=page_size)
            for key in page.keys:
                namespace.delete(key.name)
                deleted += 1
            if page.list_complete:
                break
            cursor = page.cursor
        return deleted

    def clear_all(self) -> dict:
        counts = {}
        for namespace in self.namespaces:
            # Expired rows are invisible to list(), so drain alone leaves them behind
            namespace.purge_expired()
            counts[namespace.name] = self.drain(namespace)
            logger.info(f"Cleared {counts[namespace.name]} keys from {namespace.name} namespace")
        return counts
