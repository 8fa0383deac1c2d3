"""Validators."""

from typing import List

PDF_MAGIC = b"%PDF-"


def validate_file_extension(filename: str, allowed_extensions: List[str]) -> bool:
    """Validate file extension."""
    if not filename or '.' not in filename:
        return False

    extension = filename.rsplit('.', 1)[-1].lower()
    return extension in [ext.lower() for ext in allowed_extensions]


def validate_pdf_content(data: bytes) -> bool:
    """PDF files start with the %PDF- signature."""
    return data[:1024].lstrip().startswith(PDF_MAGIC)
