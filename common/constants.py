"""Project-wide constants (chunk sizes, remote endpoints, property keys)."""

DEFAULT_SHEET_SIZE_BYTES: int = 10_000_000  # 10 MB per sheet before encoding
DEFAULT_CONTAINER_NAME: str = "sheetstore"
DEFAULT_BASE_PATH: str = "/"
DEFAULT_MAX_WORKERS: int = 4
DEFAULT_PAGE_SIZE: int = 50

# Google Sheets keeps at most 50k characters per cell
SHEET_CELL_WIDTH: int = 40_000

DRIVE_API_BASE_URL: str = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_BASE_URL: str = "https://www.googleapis.com/upload/drive/v3"
DRIVE_LIST_FIELDS: str = (
    "nextPageToken, files(id, name, mimeType, parents, properties, owners(displayName), modifiedTime, size)"
)
DRIVE_FILE_FIELDS: str = "id, name, mimeType, parents, properties, owners(displayName), modifiedTime, size"

# Resumable uploads must send pieces in multiples of 256 KiB
RESUMABLE_PIECE_SIZE_BYTES: int = 4 * 256 * 1024

TSV_CONTENT_TYPE: str = "text/tab-separated-values"
DOCX_CONTENT_TYPE: str = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

PROP_INDEX: str = "index"
PROP_SHEETS: str = "sheets"
PROP_SIZE: str = "size"
PROP_CHUNK_SIZE: str = "chunk_size"
PROP_COMPRESSION: str = "compression"
PROP_PATH: str = "path"
PROP_STARRED: str = "starred"
PROP_PRIMARY: str = "primary"
