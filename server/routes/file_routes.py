"""Public file retrieval route."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from server.service_locator import get_retrieval_service
from server.services.retrieval_service import RetrievalService

router = APIRouter(tags=["Files"])

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "transfer-encoding",
    "te",
    "trailer",
    "upgrade",
    "proxy-authenticate",
    "proxy-authorization",
})


@router.get("/file/{file_key}")
async def get_file(
    file_key: str,
    request: Request,
    thumbnail: Optional[str] = Query(None),
    retrieval_service: RetrievalService = Depends(get_retrieval_service),
):
    """
    Stream a stored file back from the upstream platform.

    Parameters:
        - file_key: "{fileId}.{ext}" as returned by the upload endpoints
        - thumbnail: "true" serves the stored thumbnail; any other value the original

    Raises:
        - 403: Referer not allowed (not cacheable)
        - 404: Upstream has no location for the object
    """
    request_origin = f"{request.url.scheme}://{request.url.netloc}"
    retrieval_service.check_referer(request.headers.get("referer"), request_origin)

    resolved = retrieval_service.resolve(file_key, thumbnail=thumbnail == "true")
    upstream = await retrieval_service.open(resolved, range_header=request.headers.get("range"))

    headers = {
        name.lower(): value
        for name, value in upstream.headers.items()
        if name.lower() not in HOP_BY_HOP_HEADERS
    }

    if upstream.is_success:
        headers["content-type"] = resolved.content_type
        headers["content-disposition"] = f'inline; filename="{resolved.filename}"'

    return StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        headers=headers,
        background=BackgroundTask(upstream.aclose),
    )
