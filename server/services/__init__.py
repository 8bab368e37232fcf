"""Service layer for business logic."""

from server.services.dispatch_service import DispatchService
from server.services.upload_service import UploadService
from server.services.retrieval_service import RetrievalService
from server.services.maintenance_service import MaintenanceService

__all__ = [
    "DispatchService",
    "UploadService",
    "RetrievalService",
    "MaintenanceService",
]
