"""Custom exception classes for the relay server."""

from typing import Optional


class RelayException(Exception):
    """
    Base exception class for all upload and retrieval errors.
    """
    pass


class InvalidRequestError(RelayException):
    """
    Raised when required upload fields are missing or malformed.
    """
    pass


class SizeMismatchError(InvalidRequestError):
    """
    Raised when the assembled buffer length differs from the declared file size.
    """

    def __init__(self, declared: int, actual: int):
        super().__init__(f"Assembled size {actual} does not match declared size {declared}")
        self.declared = declared
        self.actual = actual


class MissingChunkError(RelayException):
    """
    Raised when a chunk index is absent at finalize time.
    """

    def __init__(self, upload_id: str, chunk_index: int):
        super().__init__(f"Missing chunk {chunk_index} for file {upload_id}")
        self.upload_id = upload_id
        self.chunk_index = chunk_index


class PayloadTooLargeError(RelayException):
    """
    Raised when a file exceeds the upstream direct-upload ceiling.
    """
    pass


class UploadInProgressError(RelayException):
    """
    Raised when another finalize for the same upload id holds the claim.
    """
    pass


class UpstreamError(RelayException):
    """
    Base class for failures talking to the upstream blob API.
    """
    pass


class UpstreamTransientError(UpstreamError):
    """
    Raised on 5xx/429 responses, timeouts and network failures. Retryable.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamRejectedError(UpstreamError):
    """
    Raised when the upstream answers with an application-level not-ok payload.
    """

    def __init__(self, description: str, error_code: Optional[int] = None):
        super().__init__(description)
        self.description = description
        self.error_code = error_code


class NoResultsProducedError(RelayException):
    """
    Raised when a dispatch finishes without a single stored file.
    """
    pass


class BlobNotFoundError(RelayException):
    """
    Raised when the upstream has no location for the requested object.
    """
    pass


class HotlinkForbiddenError(RelayException):
    """
    Raised when a retrieval request comes from a referer that is not allowed.
    """
    pass


class InvalidCredentialsError(RelayException):
    """
    Raised when the shared upload credential is missing or wrong.
    """
    pass
