"""Retrieval service: hotlink protection, key resolution and upstream streaming."""

from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlsplit

import httpx

from common.logging_config import get_logger
from server.config import ALLOWED_ORIGINS, EXPECT_REFERER
from server.exceptions import BlobNotFoundError, HotlinkForbiddenError
from server.repositories.metadata_repository import MetadataRepository
from server.telegram_client import TelegramClient
from server.utils import extension_from_mime, mime_from_extension, split_file_key

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
THUMBNAIL_CONTENT_TYPE = "image/jpeg"
LOCAL_HOSTNAMES = frozenset({"localhost", "127.0.0.1"})


@dataclass(frozen=True)
class ResolvedBlob:
    """
    What a public file key points at on the upstream side.
    """
    object_id: str
    content_type: str
    filename: str


def _origin_of(url: str) -> Optional[str]:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}".lower()


class RetrievalService:
    def __init__(
        self,
        telegram_client: TelegramClient,
        metadata_repo: Optional[MetadataRepository] = None,
        allowed_origins: Optional[Iterable[str]] = None,
        expect_referer: Optional[bool] = None,
    ):
        self.telegram_client = telegram_client
        self.metadata_repo = metadata_repo or MetadataRepository()
        self.allowed_origins = {
            origin.rstrip("/").lower()
            for origin in (ALLOWED_ORIGINS if allowed_origins is None else allowed_origins)
        }
        self.expect_referer = EXPECT_REFERER if expect_referer is None else expect_referer

    def check_referer(self, referer: Optional[str], request_origin: str) -> None:
        """
        Enforce hotlink protection.

        Without a referer and without a configured expectation the check is
        skipped. Otherwise the referer must come from this site, an
        allow-listed origin, or a localhost development host.

        Raises:
            HotlinkForbiddenError: If the referer is missing or not allowed
        """
        if not referer and not self.expect_referer:
            return

        if referer:
            try:
                hostname = urlsplit(referer).hostname
                origin = _origin_of(referer)
            except ValueError:
                hostname = origin = None

            if hostname in LOCAL_HOSTNAMES:
                return
            if origin and (origin == request_origin.rstrip("/").lower() or origin in self.allowed_origins):
                return

        logger.warning(f"Hotlink blocked [referer={referer or 'none'}]")
        raise HotlinkForbiddenError("Hotlink forbidden")

    def resolve(self, file_key: str, thumbnail: bool = False) -> ResolvedBlob:
        """
        Work out which upstream object to fetch and how to label it.
        """
        file_id, requested_ext = split_file_key(file_key)
        if not file_id:
            raise BlobNotFoundError("File not found")

        record = self.metadata_repo.get_record(file_key)

        if record is None:
            content_type = mime_from_extension(requested_ext) or DEFAULT_CONTENT_TYPE
            return ResolvedBlob(object_id=file_id, content_type=content_type, filename=file_key)

        if thumbnail and record.thumbnail_id:
            return ResolvedBlob(
                object_id=record.thumbnail_id,
                content_type=THUMBNAIL_CONTENT_TYPE,
                filename=f"{record.thumbnail_id}.jpeg",
            )

        mime_ext = extension_from_mime(record.mime)
        return ResolvedBlob(
            object_id=file_id,
            content_type=record.mime or mime_from_extension(requested_ext) or DEFAULT_CONTENT_TYPE,
            filename=f"{file_id}.{requested_ext or mime_ext}".rstrip("."),
        )

    async def open(self, resolved: ResolvedBlob, range_header: Optional[str] = None) -> httpx.Response:
        """
        Resolve the upstream location and start streaming it.

        Raises:
            BlobNotFoundError: If the upstream reports no path for the object
        """
        file_path = await self.telegram_client.get_file_path(resolved.object_id)
        if not file_path:
            logger.warning(f"No upstream path for object {resolved.object_id}")
            raise BlobNotFoundError("File not found")

        headers = {"Range": range_header} if range_header else None
        return await self.telegram_client.open_file_stream(file_path, headers=headers)
