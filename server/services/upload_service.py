"""Upload service: chunk receipt, finalize-time assembly and legacy uploads."""

from typing import List, Mapping, Optional

from pydantic import ValidationError

from common.constants import (
    HEADER_CHUNK_INDEX,
    HEADER_FILE_ID,
    HEADER_FILE_MIME,
    HEADER_FILE_NAME,
    HEADER_FILE_SIZE,
    HEADER_TOTAL_CHUNKS,
)
from common.logging_config import get_logger
from common.types import UploadedFile
from server.classifier import classify, ensure_uploadable_size
from server.exceptions import (
    InvalidRequestError,
    MissingChunkError,
    SizeMismatchError,
    UploadInProgressError,
)
from server.repositories.chunk_repository import ChunkRepository
from server.schemas.upload import ChunkHeaders, FinalizeHeaders
from server.services.dispatch_service import DispatchService

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


def _describe_validation_error(error: ValidationError) -> str:
    fields = sorted({str(item["loc"][0]) for item in error.errors() if item.get("loc")})
    if fields:
        return f"Missing or invalid headers: {', '.join(fields)}"
    return "Missing or invalid headers"


def parse_chunk_headers(headers: Mapping[str, str]) -> ChunkHeaders:
    """
    Raises:
        InvalidRequestError: If a required header is missing or non-numeric
    """
    try:
        return ChunkHeaders(
            upload_id=headers.get(HEADER_FILE_ID),
            file_name=headers.get(HEADER_FILE_NAME),
            file_size=headers.get(HEADER_FILE_SIZE),
            chunk_index=headers.get(HEADER_CHUNK_INDEX),
            total_chunks=headers.get(HEADER_TOTAL_CHUNKS),
        )
    except ValidationError as e:
        raise InvalidRequestError(_describe_validation_error(e)) from e


def parse_finalize_headers(headers: Mapping[str, str]) -> FinalizeHeaders:
    """
    Raises:
        InvalidRequestError: If a required header is missing or non-numeric
    """
    try:
        return FinalizeHeaders(
            upload_id=headers.get(HEADER_FILE_ID),
            file_name=headers.get(HEADER_FILE_NAME),
            file_size=headers.get(HEADER_FILE_SIZE),
            total_chunks=headers.get(HEADER_TOTAL_CHUNKS),
            mime=headers.get(HEADER_FILE_MIME) or None,
        )
    except ValidationError as e:
        raise InvalidRequestError(_describe_validation_error(e)) from e


class UploadService:
    def __init__(self, dispatch_service: DispatchService, chunk_repo: Optional[ChunkRepository] = None):
        self.dispatch_service = dispatch_service
        self.chunk_repo = chunk_repo or ChunkRepository()

    def store_chunk(self, headers: ChunkHeaders, body: bytes) -> str:
        """
        Persist one chunk. Writing the same index again replaces it.

        Returns:
            Acknowledgement naming the stored chunk and the total
        """
        if not body:
            raise InvalidRequestError(f"Chunk {headers.chunk_index} has an empty body")

        self.chunk_repo.put_chunk(headers.upload_id, headers.chunk_index, body)
        logger.debug(
            f"Stored chunk {headers.chunk_index}/{headers.total_chunks} "
            f"({len(body)} bytes) for file {headers.upload_id}"
        )
        return f"Chunk {headers.chunk_index}/{headers.total_chunks} uploaded"

    def assemble(self, upload_id: str, total_chunks: int) -> bytes:
        """
        Concatenate chunks 0..total_chunks-1 in index order.

        Raises:
            MissingChunkError: On the first absent index
        """
        parts = []
        for chunk_index in range(total_chunks):
            chunk = self.chunk_repo.get_chunk(upload_id, chunk_index)
            if chunk is None:
                logger.error(f"Missing chunk {chunk_index} for file {upload_id}")
                raise MissingChunkError(upload_id, chunk_index)
            parts.append(chunk)
        return b"".join(parts)

    async def finalize(self, headers: FinalizeHeaders) -> List[str]:
        """
        Assemble an upload, send it upstream and drop its chunks.

        Chunks are only deleted after a successful dispatch; on failure they
        stay (bounded by their TTL) so finalize can be repeated.

        Raises:
            PayloadTooLargeError: If declared or assembled size is over the limit
            UploadInProgressError: If another finalize for this upload id is running
            MissingChunkError: If any chunk is absent
            SizeMismatchError: If assembled length differs from the declared size
        """
        upload_id = headers.upload_id
        ensure_uploadable_size(headers.file_size)

        if not self.chunk_repo.claim_finalize(upload_id):
            raise UploadInProgressError(f"Upload {upload_id} is already being finalized")

        try:
            logger.info(f"Finalizing {headers.file_name} ({headers.total_chunks} chunks) for file {upload_id}")
            content = self.assemble(upload_id, headers.total_chunks)
            logger.info(f"Merged {headers.total_chunks} chunks for file {upload_id}: {len(content)} bytes")

            if len(content) != headers.file_size:
                raise SizeMismatchError(declared=headers.file_size, actual=len(content))

            uploaded = UploadedFile(
                name=headers.file_name,
                content=content,
                mime=headers.mime or DEFAULT_MIME_TYPE,
            )
            urls = await self.dispatch_service.dispatch([classify(uploaded)])
        finally:
            self.chunk_repo.release_finalize(upload_id)

        failed = self.chunk_repo.delete_chunks(upload_id, headers.total_chunks)
        if failed:
            logger.warning(f"{len(failed)} chunks of file {upload_id} left for expiry sweep")

        return urls

    async def upload_files(self, files: List[UploadedFile]) -> List[str]:
        """
        Legacy non-chunked path: classify and dispatch whole files.
        """
        if not files:
            raise InvalidRequestError("No file uploaded")

        logger.info(f"Received {len(files)} files through the multipart form")
        return await self.dispatch_service.dispatch([classify(file) for file in files])
