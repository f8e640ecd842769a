
# Upload limits
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB
MAX_TEXT_LENGTH = 1_000_000

SUPPORTED_FILE_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".html": "text/html",
    ".htm": "text/html",
    ".md": "text/markdown",
    ".txt": "text/plain",
}
# Browsers and curl often send this for anything they do not recognise
GENERIC_MEDIA_TYPE = "application/octet-stream"

# Chunking
DEFAULT_CHUNK_SIZE = 1024
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_MAX_CHUNKS = 2000
DEFAULT_CHUNK_SEPARATORS = ["\n\n", "\n", " ", ""]

# Embedding
EMBEDDING_BATCH_SIZE = 32

# Retrieval
DEFAULT_K = 5
MAX_K = 50
DEFAULT_SCORE_THRESHOLD = 0.4

# Vector store
COLLECTION_PREFIX = "course-materials-"
CHUNK_STATUS_PENDING = "pending"
CHUNK_STATUS_COMMITTED = "committed"
SCROLL_PAGE_SIZE = 256

# Metadata store
DEFAULT_COURSES_COLLECTION = "active-course-list"
DEFAULT_UPLOADED_BY = "system"

SOURCE_TYPE_FILE = "file"
SOURCE_TYPE_TEXT = "text"
