import asyncio
import os

import pytest

from app.core.exceptions import ValidationError
from app.services.document_storage import DocumentStorage

PDF_BYTES = b"%PDF-1.4\n%%EOF\n"


class FakeUpload:
    def __init__(self, filename, data, content_type="application/pdf"):
        self.filename = filename
        self.content_type = content_type
        self._data = data

    async def read(self):
        return self._data


@pytest.fixture
def storage(tmp_path):
    return DocumentStorage(base_dir=str(tmp_path), max_size=1024, allowed_extensions=["pdf"])


def test_read_then_write_stores_the_file_and_returns_its_url(storage, tmp_path):
    data = asyncio.run(storage.read(FakeUpload("visa.pdf", PDF_BYTES), label="Visa"))
    url = storage.write(data, "visas", "visa-123", label="Visa")

    assert url.startswith("/uploads/visas/visa-123-")
    assert url.endswith(".pdf")
    stored = tmp_path / url[len("/uploads/"):]
    assert stored.read_bytes() == PDF_BYTES

    assert storage.delete(url) is True
    assert not stored.exists()
    assert storage.delete(url) is False


@pytest.mark.parametrize("upload,message", [
    (FakeUpload("visa.pdf", b""), "Visa file is empty"),
    (FakeUpload("visa.pdf", b"%PDF-" + b"0" * 2048), "Visa exceeds the maximum size"),
    (FakeUpload("visa.docx", PDF_BYTES), "Visa must be a PDF file"),
    (FakeUpload("visa.pdf", PDF_BYTES, content_type="image/png"), "Visa must be a PDF file"),
    (FakeUpload("visa.pdf", b"not really a pdf"), "Visa is not a valid PDF document"),
])
def test_invalid_uploads_are_refused(storage, tmp_path, upload, message):
    with pytest.raises(ValidationError, match=message):
        asyncio.run(storage.read(upload, label="Visa"))
    assert not os.path.exists(tmp_path / "visas") or not os.listdir(tmp_path / "visas")


def test_delete_ignores_foreign_urls(storage):
    assert storage.delete(None) is False
    assert storage.delete("https://cdn.example.com/visa.pdf") is False
