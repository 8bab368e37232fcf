"""Chunked and legacy upload API routes."""

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from common.constants import HEADER_FINAL_UPLOAD
from common.types import UploadedFile
from server.auth import require_credential
from server.schemas.common import ErrorResponse
from server.schemas.upload import ChunkAckResponse, UploadResultResponse
from server.service_locator import get_upload_service
from server.services.upload_service import (
    UploadService,
    parse_chunk_headers,
    parse_finalize_headers,
)

router = APIRouter(
    prefix="/api/upload",
    tags=["Upload"],
    dependencies=[Depends(require_credential)],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


@router.put("", response_model=ChunkAckResponse)
async def upload_chunk(request: Request, upload_service: UploadService = Depends(get_upload_service)):
    """
    Store one chunk of a chunked upload.

    Headers:
        - X-File-ID, X-File-Name, X-File-Size, X-Chunk-Index, X-Total-Chunks
        - Body: raw chunk bytes

    Raises:
        - 400: Missing or invalid chunk headers, or empty body
    """
    headers = parse_chunk_headers(request.headers)
    body = await request.body()
    message = upload_service.store_chunk(headers, body)
    return ChunkAckResponse(message=message)


@router.post("", response_model=UploadResultResponse)
async def upload(request: Request, upload_service: UploadService = Depends(get_upload_service)):
    """
    Finalize a chunked upload, or accept whole files as a multipart form.

    With X-Final-Upload: true the chunks named by the file headers are
    assembled and sent upstream. Otherwise every `file` form field is sent.

    Returns:
        - urls: public retrieval paths, one per stored file

    Raises:
        - 400: Invalid headers, missing chunk or size mismatch
        - 409: Upload already being finalized
        - 413: File too large
        - 500: Upstream failure
    """
    if request.headers.get(HEADER_FINAL_UPLOAD, "").lower() == "true":
        headers = parse_finalize_headers(request.headers)
        urls = await upload_service.finalize(headers)
        return UploadResultResponse(urls=urls)

    form = await request.form()
    files = []
    for field in form.getlist("file"):
        if not isinstance(field, UploadFile):
            continue
        content = await field.read()
        files.append(UploadedFile(
            name=field.filename or "file",
            content=content,
            mime=field.content_type or "",
        ))

    urls = await upload_service.upload_files(files)
    return UploadResultResponse(urls=urls)
