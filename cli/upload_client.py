"""HTTP client for the relaybox upload protocol."""

import mimetypes
import time
import uuid
from pathlib import Path
from typing import Callable, List, Optional
from urllib.parse import quote

import httpx

from common.constants import (
    HEADER_CHUNK_INDEX,
    HEADER_FILE_ID,
    HEADER_FILE_MIME,
    HEADER_FILE_NAME,
    HEADER_FILE_SIZE,
    HEADER_FINAL_UPLOAD,
    HEADER_TOTAL_CHUNKS,
)
from common.logging_config import get_logger
from cli.config import Config
from cli.utils import chunk_count, make_upload_id

logger = get_logger(__name__)


class UploadError(Exception):
    """Raised when the server refuses or fails an upload step."""
    pass


class UploadClient:
    """Splits files into chunks, sends them and finalizes the upload."""

    def __init__(self, config: Config):
        """
        Initialize upload client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.request_id = None
        logger.info(f"Initialized UploadClient [base_url={config.get_base_url()}]")

    def close(self) -> None:
        self.session.close()

    def _auth_headers(self) -> dict:
        password = self.config.get_password()
        return {"Authorization": f"Bearer {password}"} if password else {}

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET, POST, PUT, etc.)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        self.request_id = str(uuid.uuid4())
        headers = dict(kwargs.pop('headers', None) or {})
        headers.update(self._auth_headers())
        headers['X-Request-ID'] = self.request_id

        last_exception = None

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, headers=headers, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.")
        raise ConnectionError("Cannot connect to relaybox server. Is it running?")

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get('error') or f"HTTP {response.status_code}"
        except ValueError:
            return response.text or f"HTTP {response.status_code}"

    def upload_file(
        self,
        file_path: str,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> List[str]:
        """
        Upload one file through the chunked protocol.

        Chunks are sent sequentially; a failed chunk is retried on its own
        before the whole upload is abandoned.

        Args:
            file_path: Local file to upload
            on_progress: Called with the number of bytes sent so far

        Returns:
            Public retrieval paths returned by the server

        Raises:
            UploadError: If the server rejects a chunk or the finalize
        """
        path = Path(file_path)
        file_size = path.stat().st_size
        chunk_size = self.config.get_chunk_size()
        total_chunks = chunk_count(file_size, chunk_size)
        upload_id = make_upload_id(path.name, file_size)
        mime = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

        file_headers = {
            HEADER_FILE_ID: quote(upload_id, safe=""),
            HEADER_FILE_NAME: quote(path.name, safe=""),
            HEADER_FILE_SIZE: str(file_size),
            HEADER_TOTAL_CHUNKS: str(total_chunks),
        }

        logger.info(f"Uploading {path.name} ({file_size} bytes) in {total_chunks} chunks [upload_id={upload_id}]")

        sent = 0
        with open(path, 'rb') as f:
            for chunk_index in range(total_chunks):
                data = f.read(chunk_size)
                response = self._request_with_retry(
                    'PUT',
                    '/api/upload',
                    headers={
                        **file_headers,
                        HEADER_CHUNK_INDEX: str(chunk_index),
                        'Content-Type': mime,
                    },
                    content=data,
                )
                if response.status_code != 200:
                    raise UploadError(f"Chunk {chunk_index} upload failed: {self._error_message(response)}")

                sent += len(data)
                if on_progress:
                    on_progress(sent)

        response = self._request_with_retry(
            'POST',
            '/api/upload',
            max_retries=0,
            headers={
                **file_headers,
                HEADER_FINAL_UPLOAD: 'true',
                HEADER_FILE_MIME: mime,
            },
        )
        if response.status_code != 200:
            raise UploadError(f"Finalize failed: {self._error_message(response)}")

        return response.json().get('urls', [])

    def upload_files_whole(self, file_paths: List[str]) -> List[str]:
        """
        Upload small files in one multipart request, without chunking.
        """
        handles = []
        try:
            files = []
            for file_path in file_paths:
                path = Path(file_path)
                handle = open(path, 'rb')
                handles.append(handle)
                mime = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
                files.append(('file', (path.name, handle, mime)))

            response = self._request_with_retry('POST', '/api/upload', max_retries=0, files=files)
        finally:
            for handle in handles:
                handle.close()

        if response.status_code != 200:
            raise UploadError(f"Upload failed: {self._error_message(response)}")
        return response.json().get('urls', [])

    def clear_data(self) -> str:
        response = self._request_with_retry('POST', '/api/clear-data', max_retries=0)
        if response.status_code != 200:
            raise UploadError(f"Clear failed: {self._error_message(response)}")
        return response.json().get('message', '')

    def public_url(self, path: str) -> str:
        return f"{self.config.get_base_url()}{path}"
