"""
Local filesystem storage for assignment documents.

Files land under UPLOAD_DIR/<folder>/ and are referenced by the URL path
``/uploads/<folder>/<filename>``. Object storage (S3) can replace this
class without changing callers.
"""

import logging
import os
from datetime import datetime
from typing import List, Optional

from app.config import settings
from app.core.exceptions import ValidationError
from app.utils.validators import validate_file_extension, validate_pdf_content

logger = logging.getLogger(__name__)


class DocumentStorage:
    """Validates and stores uploaded PDF documents."""

    def __init__(self, base_dir: Optional[str] = None, max_size: Optional[int] = None,
                 allowed_extensions: Optional[List[str]] = None):
        self.base_dir = base_dir or settings.UPLOAD_DIR
        self.max_size = max_size or settings.MAX_UPLOAD_SIZE
        self.allowed_extensions = allowed_extensions or settings.ALLOWED_DOCUMENT_EXTENSIONS

    def _validate(self, filename: str, content_type: Optional[str], data: bytes, label: str) -> None:
        if not data:
            raise ValidationError(f"{label} file is empty")
        if len(data) > self.max_size:
            raise ValidationError(f"{label} exceeds the maximum size of {self.max_size // (1024 * 1024)}MB")
        if not validate_file_extension(filename, self.allowed_extensions):
            raise ValidationError(f"{label} must be a PDF file")
        if content_type and content_type not in ("application/pdf", "application/octet-stream"):
            raise ValidationError(f"{label} must be a PDF file")
        if not validate_pdf_content(data):
            raise ValidationError(f"{label} is not a valid PDF document")

    async def read(self, upload, label: str = "Document") -> bytes:
        """Read and validate an upload without storing it.

        ``upload`` is anything with ``filename``, ``content_type`` and an
        async ``read()`` (FastAPI's UploadFile).
        """
        data = await upload.read()
        self._validate(upload.filename or "", getattr(upload, "content_type", None), data, label)
        return data

    def write(self, data: bytes, folder: str, prefix: str, label: str = "Document") -> str:
        """Store validated bytes and return their URL path."""
        directory = os.path.join(self.base_dir, folder)
        os.makedirs(directory, exist_ok=True)

        timestamp = datetime.utcnow().strftime("%Y%m%d%H%M%S%f")
        filename = f"{prefix}-{timestamp}.pdf"
        path = os.path.join(directory, filename)
        with open(path, "wb") as f:
            f.write(data)

        logger.info(f"Stored {label.lower()} at {path} ({len(data)} bytes)")
        return f"/uploads/{folder}/{filename}"

    def delete(self, url: Optional[str]) -> bool:
        """Remove a stored file by URL; missing files are ignored."""
        if not url or not url.startswith("/uploads/"):
            return False
        path = os.path.join(self.base_dir, url[len("/uploads/"):])
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to delete {path}: {e}")
            return False


_storage: Optional[DocumentStorage] = None


def get_document_storage() -> DocumentStorage:
    global _storage
    if _storage is None:
        _storage = DocumentStorage()
    return _storage
