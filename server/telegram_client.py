"""HTTP client for the Telegram Bot API used as the blob store."""

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import httpx

from common.logging_config import get_logger
from server.config import TELEGRAM_API_BASE, TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID
from server.exceptions import UpstreamRejectedError, UpstreamTransientError
from server.retry import RetryPolicy, send_with_retry

logger = get_logger(__name__)

# (field name, (filename, content, mime))
UploadPart = Tuple[str, Tuple[str, bytes, str]]

MEDIA_ENDPOINTS = {
    "photo": "sendPhoto",
    "video": "sendVideo",
    "document": "sendDocument",
}


class TelegramClient:
    """
    Async Bot API client.

    Every call goes through the retry policy. The bot token only ever
    appears in request URLs, never in raised error messages.
    """

    def __init__(
        self,
        bot_token: str = TELEGRAM_BOT_TOKEN,
        chat_id: str = TELEGRAM_CHAT_ID,
        api_base: str = TELEGRAM_API_BASE,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_base = api_base.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(self.retry_policy.timeout_seconds),
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    def _method_url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.bot_token}/{method}"

    def _file_url(self, file_path: str) -> str:
        return f"{self.api_base}/file/bot{self.bot_token}/{file_path}"

    @staticmethod
    def _parse_response(method: str, response: httpx.Response) -> Any:
        """
        Map an upstream response to its result or to the error taxonomy.

        Raises:
            UpstreamTransientError: On 5xx and 429
            UpstreamRejectedError: On any other not-ok payload
        """
        if response.status_code >= 500 or response.status_code == 429:
            raise UpstreamTransientError(
                f"{method} responded {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise UpstreamRejectedError(f"{method} returned a non-JSON response (status {response.status_code})")

        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            error_code = data.get("error_code") if isinstance(data, dict) else None
            logger.error(f"Telegram API response ok is false for {method}: {data}")
            raise UpstreamRejectedError(
                description or f"Telegram API error in {method}",
                error_code=error_code,
            )

        return data.get("result")

    async def _call(
        self,
        method: str,
        data: Optional[Dict[str, str]] = None,
        files: Optional[List[UploadPart]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = self._method_url(method)
        timeout = self.retry_policy.timeout_seconds

        async def request():
            if data is None and files is None:
                return await self._http.get(url, params=params)
            return await self._http.post(url, data=data, files=files)

        async def attempt():
            # Deadline covers the whole exchange, body included
            try:
                response = await asyncio.wait_for(request(), timeout)
            except (asyncio.TimeoutError, httpx.TimeoutException) as e:
                raise UpstreamTransientError(f"{method} timed out after {timeout:g}s") from e
            except httpx.TransportError as e:
                raise UpstreamTransientError(f"{method} network error: {type(e).__name__}") from e
            return self._parse_response(method, response)

        return await send_with_retry(attempt, self.retry_policy, method)

    async def send_media(self, kind: str, file_name: str, content: bytes, mime: str) -> Dict[str, Any]:
        """
        Send one file through sendPhoto, sendVideo or sendDocument.

        Args:
            kind: 'photo', 'video' or 'document'

        Returns:
            The sent message object
        """
        method = MEDIA_ENDPOINTS[kind]
        logger.info(f"Sending {kind} {file_name} ({len(content)} bytes) via {method}")
        return await self._call(
            method,
            data={"chat_id": self.chat_id},
            files=[(kind, (file_name, content, mime or "application/octet-stream"))],
        )

    async def send_media_group(self, items: List[Tuple[str, str, bytes, str]]) -> List[Dict[str, Any]]:
        """
        Send 2-10 photos/videos as one album.

        Args:
            items: (kind, file_name, content, mime) per album entry

        Returns:
            Sent message objects, in album order
        """
        media = []
        files: List[UploadPart] = []
        for index, (kind, file_name, content, mime) in enumerate(items):
            attach_name = f"file{index}"
            media.append({"type": kind, "media": f"attach://{attach_name}"})
            files.append((attach_name, (file_name, content, mime or "application/octet-stream")))

        logger.info(f"Sending media group of {len(items)} items")
        result = await self._call(
            "sendMediaGroup",
            data={"chat_id": self.chat_id, "media": json.dumps(media)},
            files=files,
        )
        return result if isinstance(result, list) else []

    async def get_file_path(self, file_id: str) -> Optional[str]:
        """
        Resolve a file id to its short-lived download path.

        Returns:
            The file_path, or None when the upstream has no location for it
        """
        try:
            result = await self._call("getFile", params={"file_id": file_id})
        except UpstreamRejectedError as e:
            logger.warning(f"getFile rejected for {file_id}: {e}")
            return None

        if not isinstance(result, dict):
            return None
        return result.get("file_path")

    async def open_file_stream(self, file_path: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        """
        Start downloading a file. The caller must close the returned response.
        """
        request = self._http.build_request("GET", self._file_url(file_path), headers=headers)
        try:
            return await self._http.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise UpstreamTransientError(f"file download timed out after {self.retry_policy.timeout_seconds:.0f}s") from e
        except httpx.TransportError as e:
            raise UpstreamTransientError(f"file download network error: {type(e).__name__}") from e
