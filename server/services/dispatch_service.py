"""Dispatch service: sends classified files upstream and records their metadata."""

from typing import List, Optional

from common.constants import IMAGE_PROCESS_FAILED_SIGNAL, MEDIA_GROUP_LIMIT
from common.logging_config import get_logger
from common.types import ClassifiedFile, MediaKind, RemoteObjectRef
from server.exceptions import NoResultsProducedError, UpstreamRejectedError
from server.remote_refs import extract_remote_ref, extract_remote_refs
from server.repositories.metadata_repository import MetadataRepository
from server.telegram_client import TelegramClient
from server.utils import batched

logger = get_logger(__name__)


def is_image_process_failure(exc: Exception) -> bool:
    return isinstance(exc, UpstreamRejectedError) and IMAGE_PROCESS_FAILED_SIGNAL in str(exc)


class DispatchService:
    def __init__(self, telegram_client: TelegramClient, metadata_repo: Optional[MetadataRepository] = None):
        self.telegram_client = telegram_client
        self.metadata_repo = metadata_repo or MetadataRepository()

    async def dispatch(self, items: List[ClassifiedFile]) -> List[str]:
        """
        Send every item upstream and return their public retrieval paths.

        A single media candidate goes through its own endpoint, several are
        grouped into albums of at most ten, and each document is sent on
        its own.

        Raises:
            UpstreamTransientError: When a send still fails after retries
            UpstreamRejectedError: When the upstream refuses a send
            NoResultsProducedError: When nothing ended up stored
        """
        media = [item for item in items if item.is_media]
        documents = [item for item in items if not item.is_media]
        logger.info(f"Dispatching {len(media)} media candidates and {len(documents)} documents")

        urls: List[str] = []

        if len(media) == 1:
            urls.extend(await self._send_single_media(media[0]))
        elif len(media) >= 2:
            for batch in batched(media, MEDIA_GROUP_LIMIT):
                urls.extend(await self._send_media_group(batch))

        for document in documents:
            urls.extend(await self._send_document(document))

        if not urls:
            raise NoResultsProducedError("Upload produced no stored files")

        return urls

    async def _send_single_media(self, item: ClassifiedFile) -> List[str]:
        try:
            message = await self.telegram_client.send_media(
                item.kind.value, item.file.name, item.file.content, item.file.mime
            )
        except UpstreamRejectedError as e:
            if item.kind == MediaKind.PHOTO and is_image_process_failure(e):
                logger.warning(f"sendPhoto failed for {item.file.name}, falling back to sendDocument: {e}")
                return await self._send_document(item)
            raise

        return self._record_results([item], [extract_remote_ref(message)])

    async def _send_media_group(self, batch: List[ClassifiedFile]) -> List[str]:
        try:
            messages = await self.telegram_client.send_media_group(
                [(item.kind.value, item.file.name, item.file.content, item.file.mime) for item in batch]
            )
        except UpstreamRejectedError as e:
            if is_image_process_failure(e):
                logger.warning(f"sendMediaGroup failed, sending {len(batch)} items as documents: {e}")
                urls = []
                for item in batch:
                    urls.extend(await self._send_document(item))
                return urls
            raise

        refs = extract_remote_refs(messages)
        if not any(refs):
            raise UpstreamRejectedError("Failed to get file IDs from media group")
        if len(refs) != len(batch):
            logger.warning(f"Media group returned {len(refs)} messages for {len(batch)} items")

        return self._record_results(batch, refs)

    async def _send_document(self, item: ClassifiedFile) -> List[str]:
        message = await self.telegram_client.send_media(
            MediaKind.DOCUMENT.value, item.file.name, item.file.content, item.file.mime
        )
        return self._record_results([item], [extract_remote_ref(message)])

    def _record_results(self, items: List[ClassifiedFile], refs: List[Optional[RemoteObjectRef]]) -> List[str]:
        urls = []
        for item, ref in zip(items, refs):
            if ref is None:
                logger.error(f"No file id in upstream response for {item.file.name}")
                continue

            try:
                self.metadata_repo.put_record(ref.file_id, item.ext, item.file.mime, ref.thumbnail_id)
            except Exception as e:
                logger.error(f"Failed to store metadata for {ref.file_id}.{item.ext}: {e}", exc_info=True)

            urls.append(f"/file/{ref.file_id}.{item.ext}")
            logger.info(f"Stored {item.file.name} as {ref.file_id} [thumbnail_id={ref.thumbnail_id}]")

        return urls
