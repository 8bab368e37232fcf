"""Entry point for the relay server."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from common.logging_config import setup_logging
from server.cleanup_task import OrphanedChunkCleaner
from server.config import SERVER_HOST, SERVER_PORT
from server.database import init_database
from server.exceptions import (
    RelayException,
    InvalidRequestError,
    MissingChunkError,
    PayloadTooLargeError,
    UploadInProgressError,
    UpstreamError,
    NoResultsProducedError,
    BlobNotFoundError,
    HotlinkForbiddenError,
    InvalidCredentialsError
)
from server.routes.admin_routes import router as admin_router
from server.routes.file_routes import router as file_router
from server.routes.upload_routes import router as upload_router
from server.service_locator import close_telegram_client, get_telegram_client

logger = setup_logging('server')

app = FastAPI(
    title="Relaybox",
    description="Chunked file uploads relayed to the Telegram Bot API, served back by stable URL",
    version="1.0.0"
)

cleanup_task = OrphanedChunkCleaner()


def _error_response(request: Request, exc: Exception, status_code: int, code: str, log_traceback: bool = False):
    request_id = getattr(request.state, 'request_id', 'unknown')
    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=log_traceback
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": str(exc), "code": code}
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize the database and start the chunk sweeper.
    """
    logger.info("Relay server starting up...")

    init_database()
    logger.info("Database initialized")

    await cleanup_task.start()
    logger.info("Background cleanup task started")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Relay server shutting down...")

    await cleanup_task.stop()
    await close_telegram_client()
    logger.info("Cleanup task stopped")


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST")


@app.exception_handler(MissingChunkError)
async def missing_chunk_handler(request: Request, exc: MissingChunkError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "MISSING_CHUNK")


@app.exception_handler(PayloadTooLargeError)
async def payload_too_large_handler(request: Request, exc: PayloadTooLargeError):
    return _error_response(request, exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "PAYLOAD_TOO_LARGE")


@app.exception_handler(UploadInProgressError)
async def upload_in_progress_handler(request: Request, exc: UploadInProgressError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "UPLOAD_IN_PROGRESS")


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError):
    return _error_response(request, exc, status.HTTP_401_UNAUTHORIZED, "INVALID_CREDENTIALS")


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "UPSTREAM_ERROR")


@app.exception_handler(NoResultsProducedError)
async def no_results_handler(request: Request, exc: NoResultsProducedError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "NO_RESULTS")


@app.exception_handler(BlobNotFoundError)
async def blob_not_found_handler(request: Request, exc: BlobNotFoundError):
    logger.warning(f"File not found: {request.url.path}")
    return PlainTextResponse(str(exc), status_code=status.HTTP_404_NOT_FOUND)


@app.exception_handler(HotlinkForbiddenError)
async def hotlink_forbidden_handler(request: Request, exc: HotlinkForbiddenError):
    return PlainTextResponse(
        str(exc),
        status_code=status.HTTP_403_FORBIDDEN,
        headers={"Cache-Control": "no-store"}
    )


@app.exception_handler(RelayException)
async def relay_exception_handler(request: Request, exc: RelayException):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", log_traceback=True)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Unhandled error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR"}
    )


app.include_router(upload_router)
app.include_router(file_router)
app.include_router(admin_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Relaybox API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    """
    return {"status": "healthy", "service": "relaybox"}


@app.get("/ready")
async def ready_check():
    """
    Readiness check endpoint.
    Verifies database access and that upstream credentials are configured.
    """
    from server.database import get_db_connection

    try:
        with get_db_connection() as conn:
            conn.execute("SELECT 1 FROM kv_entries LIMIT 1")
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    client = get_telegram_client()
    upstream_status = "ok" if client.bot_token and client.chat_id else "error: upstream credentials not configured"

    ready = db_status == "ok" and upstream_status == "ok"
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "database": db_status,
            "upstream": upstream_status
        }
    )


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "server.main:app",
        host=SERVER_HOST,
        port=SERVER_PORT
    )


if __name__ == "__main__":
    main()
