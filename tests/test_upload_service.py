"""Tests for chunk storage and finalize-time assembly."""

import pytest

from server.exceptions import (
    InvalidRequestError,
    MissingChunkError,
    PayloadTooLargeError,
    SizeMismatchError,
    UploadInProgressError,
    UpstreamRejectedError,
)
from server.repositories.chunk_repository import ChunkRepository
from server.schemas.upload import ChunkHeaders, FinalizeHeaders
from server.services.dispatch_service import DispatchService
from server.services.upload_service import UploadService, parse_chunk_headers, parse_finalize_headers
from common.types import UploadedFile


@pytest.fixture
def upload_service(test_db, telegram_client):
    return UploadService(DispatchService(telegram_client))


def chunk_headers(upload_id: str, index: int, total: int, size: int, name: str = "report.pdf") -> ChunkHeaders:
    return ChunkHeaders(upload_id=upload_id, file_name=name, file_size=size, chunk_index=index, total_chunks=total)


def finalize_headers(upload_id: str, total: int, size: int, name: str = "report.pdf", mime=None) -> FinalizeHeaders:
    return FinalizeHeaders(upload_id=upload_id, file_name=name, file_size=size, total_chunks=total, mime=mime)


def store_all(service: UploadService, upload_id: str, parts, name: str = "report.pdf") -> None:
    size = sum(len(part) for part in parts)
    for index, part in enumerate(parts):
        service.store_chunk(chunk_headers(upload_id, index, len(parts), size, name), part)


class TestHeaderParsing:
    def test_parses_and_decodes_headers(self):
        headers = parse_chunk_headers({
            "X-File-ID": "my%20file.pdf-10-1",
            "X-File-Name": "my%20file.pdf",
            "X-File-Size": "10",
            "X-Chunk-Index": "0",
            "X-Total-Chunks": "2",
        })
        assert headers.upload_id == "my file.pdf-10-1"
        assert headers.file_name == "my file.pdf"
        assert headers.chunk_index == 0

    def test_missing_header_is_invalid_request(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            parse_chunk_headers({"X-File-ID": "a", "X-File-Name": "a", "X-File-Size": "1", "X-Total-Chunks": "1"})
        assert "chunk_index" in str(exc_info.value)

    def test_non_numeric_size_is_invalid_request(self):
        with pytest.raises(InvalidRequestError):
            parse_finalize_headers({"X-File-ID": "a", "X-File-Name": "a", "X-File-Size": "ten", "X-Total-Chunks": "1"})

    def test_chunk_index_out_of_range_is_invalid_request(self):
        with pytest.raises(InvalidRequestError):
            parse_chunk_headers({
                "X-File-ID": "a", "X-File-Name": "a", "X-File-Size": "1",
                "X-Chunk-Index": "2", "X-Total-Chunks": "2",
            })

    def test_finalize_mime_is_optional(self):
        headers = parse_finalize_headers({"X-File-ID": "a", "X-File-Name": "a", "X-File-Size": "1", "X-Total-Chunks": "1"})
        assert headers.mime is None


class TestStoreChunk:
    def test_acknowledges_chunk(self, upload_service):
        message = upload_service.store_chunk(chunk_headers("up", 1, 3, 9), b"abc")
        assert message == "Chunk 1/3 uploaded"

    def test_empty_body_is_rejected(self, upload_service):
        with pytest.raises(InvalidRequestError):
            upload_service.store_chunk(chunk_headers("up", 0, 1, 3), b"")

    def test_rewriting_an_index_replaces_it(self, upload_service):
        upload_service.store_chunk(chunk_headers("up", 0, 1, 3), b"old")
        upload_service.store_chunk(chunk_headers("up", 0, 1, 3), b"new")
        assert ChunkRepository().get_chunk("up", 0) == b"new"


class TestFinalize:
    @pytest.mark.asyncio
    async def test_assembles_in_index_order_and_cleans_up(self, upload_service, fake_telegram):
        parts = [b"first-", b"second-", b"third"]
        # Stored out of order
        size = sum(len(part) for part in parts)
        for index in (2, 0, 1):
            upload_service.store_chunk(chunk_headers("up", index, 3, size), parts[index])

        urls = await upload_service.finalize(finalize_headers("up", 3, size, mime="application/pdf"))

        assert urls == ["/file/DOC1.pdf"]
        assert b"first-second-third" in fake_telegram.calls[0]["body"].encode("latin-1")
        repo = ChunkRepository()
        assert all(repo.get_chunk("up", index) is None for index in range(3))
        assert repo.claim_finalize("up") is True

    @pytest.mark.asyncio
    async def test_missing_chunk_aborts_without_sending(self, upload_service, fake_telegram):
        upload_service.store_chunk(chunk_headers("up", 0, 3, 9), b"aaa")
        upload_service.store_chunk(chunk_headers("up", 2, 3, 9), b"ccc")

        with pytest.raises(MissingChunkError) as exc_info:
            await upload_service.finalize(finalize_headers("up", 3, 9))

        assert str(exc_info.value) == "Missing chunk 1 for file up"
        assert fake_telegram.calls == []
        assert ChunkRepository().get_chunk("up", 0) == b"aaa"

    @pytest.mark.asyncio
    async def test_size_mismatch(self, upload_service, fake_telegram):
        store_all(upload_service, "up", [b"abc"])

        with pytest.raises(SizeMismatchError):
            await upload_service.finalize(finalize_headers("up", 1, 4))
        assert fake_telegram.calls == []

    @pytest.mark.asyncio
    async def test_declared_size_over_limit(self, upload_service):
        with pytest.raises(PayloadTooLargeError):
            await upload_service.finalize(finalize_headers("up", 11, 51 * 1024 * 1024))

    @pytest.mark.asyncio
    async def test_concurrent_finalize_is_refused(self, upload_service):
        store_all(upload_service, "up", [b"abc"])
        ChunkRepository().claim_finalize("up")

        with pytest.raises(UploadInProgressError):
            await upload_service.finalize(finalize_headers("up", 1, 3))

    @pytest.mark.asyncio
    async def test_failed_dispatch_keeps_chunks_and_releases_claim(self, upload_service, fake_telegram):
        store_all(upload_service, "up", [b"abc"])
        fake_telegram.queue_error("sendDocument", "Bad Request: chat not found")

        with pytest.raises(UpstreamRejectedError):
            await upload_service.finalize(finalize_headers("up", 1, 3))

        repo = ChunkRepository()
        assert repo.get_chunk("up", 0) == b"abc"
        assert repo.claim_finalize("up") is True

    @pytest.mark.asyncio
    async def test_missing_mime_defaults_to_octet_stream(self, upload_service, fake_telegram):
        store_all(upload_service, "up", [b"abc"], name="notes")

        urls = await upload_service.finalize(finalize_headers("up", 1, 3, name="notes"))

        assert fake_telegram.methods() == ["sendDocument"]
        assert urls == ["/file/DOC1.bin"]

    @pytest.mark.asyncio
    async def test_small_image_goes_out_as_photo(self, upload_service, fake_telegram):
        store_all(upload_service, "pic", [b"\xff\xd8", b"\xff\xd9"], name="cat.jpg")

        urls = await upload_service.finalize(finalize_headers("pic", 2, 4, name="cat.jpg", mime="image/jpeg"))

        assert fake_telegram.methods() == ["sendPhoto"]
        assert urls == ["/file/PHO1.jpg"]


class TestUploadFiles:
    @pytest.mark.asyncio
    async def test_no_files_is_invalid(self, upload_service):
        with pytest.raises(InvalidRequestError) as exc_info:
            await upload_service.upload_files([])
        assert str(exc_info.value) == "No file uploaded"

    @pytest.mark.asyncio
    async def test_whole_files_are_dispatched(self, upload_service, fake_telegram):
        urls = await upload_service.upload_files([
            UploadedFile(name="a.jpg", content=b"a", mime="image/jpeg"),
            UploadedFile(name="b.jpg", content=b"b", mime="image/jpeg"),
            UploadedFile(name="c.txt", content=b"c", mime="text/plain"),
        ])

        assert fake_telegram.methods() == ["sendMediaGroup", "sendDocument"]
        assert len(urls) == 3
        assert urls[2].endswith(".txt")
