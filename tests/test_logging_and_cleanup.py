"""Tests for log masking, credential hashing and the chunk sweeper."""

import logging
import time
from types import SimpleNamespace

import pytest

from common.logging_config import SensitiveDataFilter, setup_logging
from server.auth import hash_password, verify_password
from server.cleanup_task import OrphanedChunkCleaner
from server.database import get_db_connection
from server.repositories import kv_namespace
from server.repositories.chunk_repository import ChunkRepository
from server.repositories.kv_namespace import KVNamespace
from server.services.maintenance_service import MaintenanceService


def make_record(msg, args=None):
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


class TestSensitiveDataFilter:
    def test_masks_bot_token_in_urls(self):
        record = make_record("POST https://api.telegram.org/bot123456:AAbb-cc_DD/sendPhoto failed")
        SensitiveDataFilter().filter(record)
        assert "123456:AAbb-cc_DD" not in record.msg
        assert "/bot***MASKED***/sendPhoto" in record.msg

    def test_masks_bearer_and_password(self):
        record = make_record("headers Authorization: Bearer hunter2 password=hunter2")
        SensitiveDataFilter().filter(record)
        assert "hunter2" not in record.msg

    def test_masks_tuple_args(self):
        record = make_record("url %s", ("https://api.telegram.org/file/bot1:xyz/photos/a.jpg",))
        SensitiveDataFilter().filter(record)
        assert "1:xyz" not in record.args[0]


def test_setup_logging_quiets_http_client_loggers():
    logger = setup_logging("server-test", log_level="DEBUG")

    assert logger.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    assert any(isinstance(f, SensitiveDataFilter) for f in logger.handlers[0].filters)


def test_password_hashing():
    password_hash = hash_password("s3cret")
    assert verify_password("s3cret", password_hash)
    assert not verify_password("wrong", password_hash)
    assert not verify_password("s3cret", "not-a-bcrypt-hash")


class TestOrphanedChunkCleaner:
    def test_sweep_removes_only_expired_chunks(self, test_db, monkeypatch):
        repo = ChunkRepository(chunk_ttl_seconds=60)
        repo.put_chunk("abandoned", 0, b"a")
        repo.put_chunk("abandoned", 1, b"b")

        later = time.time() + 61
        monkeypatch.setattr(kv_namespace, "time", SimpleNamespace(time=lambda: later))
        repo.put_chunk("fresh", 0, b"c")

        cleaner = OrphanedChunkCleaner(interval_seconds=3600, chunk_repo=repo)

        assert cleaner.sweep() == 2
        assert repo.get_chunk("fresh", 0) == b"c"

    @pytest.mark.asyncio
    async def test_start_and_stop(self, test_db):
        cleaner = OrphanedChunkCleaner(interval_seconds=3600)

        await cleaner.start()
        assert cleaner._running
        await cleaner.stop()
        assert not cleaner._running


class TestMaintenanceService:
    def test_drain_walks_all_pages(self, test_db):
        ns = KVNamespace("metadata")
        for i in range(5):
            ns.put(f"file{i}.jpg", b"{}")

        assert MaintenanceService.drain(ns, page_size=2) == 5
        assert ns.list().keys == []

    def test_clear_all_reports_counts(self, test_db):
        KVNamespace("metadata").put("a.jpg", b"{}")
        ChunkRepository().put_chunk("up", 0, b"x")

        counts = MaintenanceService().clear_all()

        assert counts == {"metadata": 1, "chunks": 1}

    def test_clear_all_removes_expired_rows(self, test_db, monkeypatch):
        repo = ChunkRepository(chunk_ttl_seconds=60)
        repo.put_chunk("stale", 0, b"x")

        later = time.time() + 61
        monkeypatch.setattr(kv_namespace, "time", SimpleNamespace(time=lambda: later))

        counts = MaintenanceService().clear_all()

        assert counts == {"metadata": 0, "chunks": 0}
        with get_db_connection() as conn:
            remaining = conn.execute("SELECT COUNT(*) FROM kv_entries").fetchone()[0]
        assert remaining == 0
