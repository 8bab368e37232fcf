"""CLI entry point."""

import argparse
import getpass
import os
import sys
from typing import List, Optional

from common.logging_config import setup_logging
from cli.commands import handle_clear, handle_configure, handle_upload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="relaybox", description="Upload files to a relaybox server")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="upload one or more files")
    upload.add_argument("files", nargs="+")
    upload.add_argument("--no-chunks", action="store_true", help="send files in a single multipart request")
    upload.add_argument("--quiet", action="store_true", help="do not print upload progress")

    subparsers.add_parser("clear", help="delete all stored metadata and pending chunks")

    configure = subparsers.add_parser("configure", help="store server URL and password")
    configure.add_argument("--server", dest="server_url")
    configure.add_argument("--password", action="store_true", help="prompt for the upload password")

    subparsers.add_parser("hash-password", help="print a bcrypt hash for AUTH_PASSWORD_HASH")

    return parser


def run(argv: Optional[List[str]] = None) -> str:
    args = build_parser().parse_args(argv)

    if args.command == "upload":
        return handle_upload(args.files, chunked=not args.no_chunks, show_progress=not args.quiet)
    if args.command == "clear":
        return handle_clear()
    if args.command == "configure":
        password = getpass.getpass("Password: ") if args.password else None
        return handle_configure(server_url=args.server_url, password=password)

    from server.auth import hash_password
    return hash_password(getpass.getpass("Password: "))


def main() -> None:
    """Entry point for CLI."""
    log_level = 'DEBUG' if '--debug' in sys.argv else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)

    if '--debug' in sys.argv:
        logger.info("Debug logging enabled")

    logger.info("CLI starting...")
    try:
        output = run(sys.argv[1:])
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("CLI exiting")

    print(output)
    if output.startswith("Error") or "\nError" in output:
        sys.exit(1)


if __name__ == "__main__":
    main()
