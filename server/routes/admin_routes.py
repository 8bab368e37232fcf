"""Administrative routes."""

from fastapi import APIRouter, Depends

from server.auth import require_credential
from server.schemas.common import ErrorResponse
from server.schemas.upload import ClearDataResponse
from server.service_locator import get_maintenance_service
from server.services.maintenance_service import MaintenanceService

router = APIRouter(
    prefix="/api",
    tags=["Admin"],
    dependencies=[Depends(require_credential)],
    responses={401: {"model": ErrorResponse}},
)


@router.post("/clear-data", response_model=ClearDataResponse)
async def clear_data(maintenance_service: MaintenanceService = Depends(get_maintenance_service)):
    """
    Drain both the metadata and the chunk namespaces.
    """
    maintenance_service.clear_all()
    return ClearDataResponse(message="All data cleared successfully.")
