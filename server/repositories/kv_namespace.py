"""SQLite-backed key-value namespace with metadata, expiry and cursor listing."""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from common.constants import KV_LIST_DEFAULT_LIMIT
from common.logging_config import get_logger
from server.database import get_db_connection

logger = get_logger(__name__)

KVValue = Union[bytes, str]


@dataclass
class KVKey:
    name: str
    metadata: Optional[Dict[str, Any]] = None
    expiration: Optional[float] = None


@dataclass
class KVListResult:
    keys: List[KVKey] = field(default_factory=list)
    cursor: Optional[str] = None
    list_complete: bool = True


class KVNamespace:
    """
    One logical namespace of the key-value store.

    Values are opaque bytes; strings are stored UTF-8 encoded. Entries past
    their expiry are invisible to reads and removed by purge_expired().
    """

    def __init__(self, name: str):
        self.name = name

    @staticmethod
    def _encode(value: KVValue) -> bytes:
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    @staticmethod
    def _expires_at(expiration_ttl: Optional[int]) -> Optional[float]:
        if expiration_ttl is None:
            return None
        return time.time() + expiration_ttl

    def get(self, key: str) -> Optional[bytes]:
        value, _ = self.get_with_metadata(key)
        return value

    def get_with_metadata(self, key: str) -> Tuple[Optional[bytes], Optional[Dict[str, Any]]]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT value, metadata FROM kv_entries
                WHERE namespace = ? AND key = ? AND (expires_at IS NULL OR expires_at > ?)
                """,
                (self.name, key, time.time())
            )
            row = cursor.fetchone()

        if row is None:
            return None, None

        metadata = json.loads(row["metadata"]) if row["metadata"] else None
        return bytes(row["value"]), metadata

    def put(
        self,
        key: str,
        value: KVValue,
        metadata: Optional[Dict[str, Any]] = None,
        expiration_ttl: Optional[int] = None,
    ) -> None:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO kv_entries (namespace, key, value, metadata, expires_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(namespace, key) DO UPDATE SET
                    value = excluded.value,
                    metadata = excluded.metadata,
                    expires_at = excluded.expires_at
                """,
                (
                    self.name,
                    key,
                    self._encode(value),
                    json.dumps(metadata) if metadata is not None else None,
                    self._expires_at(expiration_ttl),
                )
            )
            conn.commit()
        logger.debug(f"KV put [namespace={self.name}] [key={key}]")

    def put_if_absent(self, key: str, value: KVValue, expiration_ttl: Optional[int] = None) -> bool:
        """
        Atomically write key only if no live entry exists.

        Returns:
            True if this call created the entry, False if it was already held
        """
        now = time.time()
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            cursor.execute(
                "DELETE FROM kv_entries WHERE namespace = ? AND key = ? AND expires_at IS NOT NULL AND expires_at <= ?",
                (self.name, key, now)
            )
            cursor.execute(
                """
                INSERT OR IGNORE INTO kv_entries (namespace, key, value, metadata, expires_at)
                VALUES (?, ?, ?, NULL, ?)
                """,
                (self.name, key, self._encode(value), self._expires_at(expiration_ttl))
            )
            created = cursor.rowcount == 1
            conn.commit()
        return created

    def delete(self, key: str) -> bool:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM kv_entries WHERE namespace = ? AND key = ?",
                (self.name, key)
            )
            deleted = cursor.rowcount > 0
            conn.commit()
        return deleted

    def list(
        self,
        prefix: Optional[str] = None,
        cursor: Optional[str] = None,
        limit: int = KV_LIST_DEFAULT_LIMIT,
    ) -> KVListResult:
        """
        List live keys in key order, one page at a time.

        Args:
            prefix: Only return keys starting with this string
            cursor: Cursor returned by the previous page, None for the first page
            limit: Maximum number of keys in this page

        Returns:
            KVListResult whose cursor feeds the next call while list_complete is False
        """
        query = """
            SELECT key, metadata, expires_at FROM kv_entries
            WHERE namespace = ? AND (expires_at IS NULL OR expires_at > ?)
        """
        params: list = [self.name, time.time()]

        if prefix:
            query += " AND substr(key, 1, ?) = ?"
            params.extend([len(prefix), prefix])
        if cursor:
            query += " AND key > ?"
            params.append(cursor)

        query += " ORDER BY key LIMIT ?"
        params.append(limit + 1)

        with get_db_connection() as conn:
            db_cursor = conn.cursor()
            db_cursor.execute(query, params)
            rows = db_cursor.fetchall()

        has_more = len(rows) > limit
        rows = rows[:limit]

        keys = [
            KVKey(
                name=row["key"],
                metadata=json.loads(row["metadata"]) if row["metadata"] else None,
                expiration=row["expires_at"],
            )
            for row in rows
        ]

        return KVListResult(
            keys=keys,
            cursor=keys[-1].name if has_more and keys else None,
            list_complete=not has_more,
        )

    def purge_expired(self) -> int:
        """
        Remove entries whose expiry has passed.

        Returns:
            Number of entries removed
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM kv_entries WHERE namespace = ? AND expires_at IS NOT NULL AND expires_at <= ?",
                (self.name, time.time())
            )
            removed = cursor.rowcount
            conn.commit()

        if removed:
            logger.info(f"Purged {removed} expired entries [namespace={self.name}]")
        return removed
