"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import List, Optional

from common.constants import MAX_UPLOAD_SIZE_BYTES
from common.logging_config import get_logger
from cli.config import Config
from cli.upload_client import UploadClient, UploadError
from cli.utils import ProgressPrinter, format_file_size

logger = get_logger(__name__)


_client: Optional[UploadClient] = None


def get_client() -> UploadClient:
    """
    Get or create global UploadClient instance.

    Returns:
        UploadClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new UploadClient instance")
        config = Config(Path.home() / '.relaybox' / 'config.json')
        _client = UploadClient(config)
    return _client


def _check_local_file(file_path: str) -> Optional[str]:
    path = Path(file_path)
    if not path.is_file():
        return f"Error: {file_path} is not a file"

    size = path.stat().st_size
    if size == 0:
        return f"Error: {file_path} is empty"
    if size > MAX_UPLOAD_SIZE_BYTES:
        return (
            f"Error: {file_path} is {format_file_size(size)}, "
            f"the limit is {format_file_size(MAX_UPLOAD_SIZE_BYTES)}"
        )
    return None


def handle_upload(
    file_paths: List[str],
    chunked: bool = True,
    show_progress: bool = True,
    client: Optional[UploadClient] = None
) -> str:
    """
    Handle 'upload' command.

    Args:
        file_paths: Local files to upload
        chunked: Use the chunked protocol (one file at a time)
        show_progress: Print a progress line while chunks are sent
        client: Optional UploadClient for dependency injection (testing)

    Returns:
        One line per file with its public URL, or an error
    """
    logger.info(f"Executing upload command: {len(file_paths)} files, chunked={chunked}")
    if client is None:
        client = get_client()

    lines = []
    accepted = []
    for file_path in file_paths:
        problem = _check_local_file(file_path)
        if problem:
            lines.append(problem)
        else:
            accepted.append(file_path)

    if not accepted:
        return "\n".join(lines) or "Error: no files given"

    if not chunked:
        try:
            paths = client.upload_files_whole(accepted)
        except (UploadError, ConnectionError) as e:
            lines.append(f"Error: {e}")
            return "\n".join(lines)
        lines.extend(client.public_url(path) for path in paths)
        return "\n".join(lines)

    for file_path in accepted:
        name = Path(file_path).name
        progress = ProgressPrinter(name, Path(file_path).stat().st_size) if show_progress else None
        try:
            paths = client.upload_file(file_path, on_progress=progress)
        except (UploadError, ConnectionError) as e:
            logger.warning(f"Upload of {file_path} failed: {e}")
            lines.append(f"Error: {name}: {e}")
            continue
        lines.extend(f"{name}: {client.public_url(path)}" for path in paths)

    return "\n".join(lines)


def handle_clear(client: Optional[UploadClient] = None) -> str:
    """
    Handle 'clear' command.
    """
    if client is None:
        client = get_client()
    try:
        return client.clear_data()
    except (UploadError, ConnectionError) as e:
        return f"Error: {e}"


def handle_configure(
    server_url: Optional[str] = None,
    password: Optional[str] = None,
    client: Optional[UploadClient] = None
) -> str:
    """
    Handle 'configure' command: persist server URL and/or password.
    """
    if client is None:
        client = get_client()

    changed = []
    if server_url:
        client.config.set_base_url(server_url)
        changed.append(f"server_url={client.config.get_base_url()}")
    if password:
        client.config.set_password(password)
        changed.append("password=****")

    if not changed:
        return f"server_url={client.config.get_base_url()}"
    return "Saved " + ", ".join(changed)
