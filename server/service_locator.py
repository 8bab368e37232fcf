"""Service locator for the shared upstream client and request-scoped services."""

from typing import Optional

from server.services.dispatch_service import DispatchService
from server.services.maintenance_service import MaintenanceService
from server.services.retrieval_service import RetrievalService
from server.services.upload_service import UploadService
from server.telegram_client import TelegramClient

_telegram_client: Optional[TelegramClient] = None


def set_telegram_client(client: Optional[TelegramClient]):
    """Set global upstream client instance"""
    global _telegram_client
    _telegram_client = client


def get_telegram_client() -> TelegramClient:
    """Get global upstream client instance, creating it on first use"""
    global _telegram_client
    if _telegram_client is None:
        _telegram_client = TelegramClient()
    return _telegram_client


async def close_telegram_client() -> None:
    global _telegram_client
    if _telegram_client is not None:
        await _telegram_client.close()
        _telegram_client = None


def get_upload_service() -> UploadService:
    return UploadService(DispatchService(get_telegram_client()))


def get_retrieval_service() -> RetrievalService:
    return RetrievalService(get_telegram_client())


def get_maintenance_service() -> MaintenanceService:
    return MaintenanceService()
