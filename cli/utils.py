"""Utility functions for the uploader."""

import sys
import time

GREEN = "\033[32m"
RESET = "\033[0m"


def format_file_size(size_bytes: int) -> str:
    """
    Format byte count as human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "230 KB")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"


def make_upload_id(file_name: str, file_size: int) -> str:
    """
    Upload id in the "{filename}-{size}-{timestamp}" form the server keys chunks by.
    """
    return f"{file_name}-{file_size}-{int(time.time() * 1000)}"


def chunk_count(file_size: int, chunk_size: int) -> int:
    return max(1, -(-file_size // chunk_size))


class ProgressPrinter:
    """Writes a single updating progress line to stdout."""

    def __init__(self, filename: str, total: int):
        self.filename = filename
        self.total = total
        self._finished = False

    def __call__(self, uploaded: int) -> None:
        progress = (uploaded / self.total) * 100 if self.total else 100.0
        sys.stdout.write(
            f"\rUploading {self.filename}: {format_file_size(uploaded)} / "
            f"{format_file_size(self.total)} ({GREEN}{progress:.1f}%{RESET})"
        )
        sys.stdout.flush()
        if uploaded >= self.total and not self._finished:
            self._finished = True
            sys.stdout.write("\n")
            sys.stdout.flush()
