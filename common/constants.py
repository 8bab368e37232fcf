"""Project-wide constants shared by the server and the upload CLI."""

CHUNK_SIZE_BYTES: int = 5 * 1024 * 1024  # 5 MiB client-side chunk size

MAX_UPLOAD_SIZE_BYTES: int = 50 * 1024 * 1024  # upstream direct-upload ceiling
MAX_PHOTO_SIZE_BYTES: int = 5 * 1024 * 1024
HARD_IMAGE_EXTENSIONS = frozenset({"heic", "heif", "webp", "ico"})
IMAGE_PROCESS_FAILED_SIGNAL = "IMAGE_PROCESS_FAILED"

MEDIA_GROUP_LIMIT: int = 10

UPSTREAM_TIMEOUT_SECONDS: float = 60.0
UPSTREAM_MAX_ATTEMPTS: int = 3
UPSTREAM_BASE_DELAY_SECONDS: float = 0.6
UPSTREAM_BACKOFF_MULTIPLIER: float = 2.0

FINALIZE_CLAIM_TTL_SECONDS: int = 10 * 60
KV_LIST_DEFAULT_LIMIT: int = 1000

HEADER_FILE_ID = "X-File-ID"
HEADER_FILE_NAME = "X-File-Name"
HEADER_FILE_SIZE = "X-File-Size"
HEADER_CHUNK_INDEX = "X-Chunk-Index"
HEADER_TOTAL_CHUNKS = "X-Total-Chunks"
HEADER_FINAL_UPLOAD = "X-Final-Upload"
HEADER_FILE_MIME = "X-File-Mime-Type"
