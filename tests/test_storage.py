"""Tests for the storage service (local disk + Supabase backend)."""

import io
from unittest.mock import MagicMock, patch

import pytest
import requests
from werkzeug.datastructures import FileStorage

from app.services import storage_service
from app.services.storage_service import ProductFileMissing


@pytest.fixture
def supabase(app):
    """Enable the Supabase backend for one test."""
    app.config.update(
        SUPABASE_URL="https://xyz.supabase.co/",
        SUPABASE_SERVICE_KEY="service-key",
        SUPABASE_STORAGE_BUCKET="product-files",
    )
    yield
    app.config.update(SUPABASE_URL=None, SUPABASE_SERVICE_KEY=None)


class TestLocalStorage:

    def test_read(self, app, product_files):
        (product_files / "file_a.pdf").write_bytes(b"abc")
        assert storage_service.read_product_file("file_a.pdf") == (3, b"abc")

    def test_read_absolute_path(self, app, tmp_path):
        target = tmp_path / "elsewhere.txt"
        target.write_bytes(b"hello")
        assert storage_service.read_product_file(str(target)) == (5, b"hello")

    def test_missing_file_raises(self, app, product_files):
        with pytest.raises(ProductFileMissing):
            storage_service.read_product_file("file_gone.pdf")

    def test_save_and_delete(self, app, product_files):
        upload = FileStorage(stream=io.BytesIO(b"data"), filename="Guia Prático.pdf")

        file_path = storage_service.save_product_file(upload)
        assert file_path.endswith("-guia_pratico.pdf")
        assert (product_files / file_path).read_bytes() == b"data"

        storage_service.delete_product_file(file_path)
        assert not (product_files / file_path).exists()
        storage_service.delete_product_file(file_path)  # already gone, no error

    def test_validate_rejects_empty_file(self, app):
        upload = FileStorage(stream=io.BytesIO(b""), filename="empty.pdf")
        assert storage_service.validate_product_file(upload) == (False, "File is empty.")

    def test_validate_rejects_large_file(self, app):
        app.config["MAX_PRODUCT_FILE_SIZE"] = 4
        try:
            upload = FileStorage(stream=io.BytesIO(b"12345"), filename="big.pdf")
            ok, error = storage_service.validate_product_file(upload)
        finally:
            app.config["MAX_PRODUCT_FILE_SIZE"] = 5 * 1024 * 1024
        assert ok is False


class TestSupabaseStorage:

    @patch("app.services.storage_service.requests.get")
    def test_read(self, mock_get, app, supabase):
        mock_get.return_value = MagicMock(content=b"%PDF remote")

        assert storage_service.read_product_file("file_x.pdf") == (11, b"%PDF remote")
        url = mock_get.call_args.args[0]
        assert url == "https://xyz.supabase.co/storage/v1/object/product-files/file_x.pdf"
        assert mock_get.call_args.kwargs["headers"]["Authorization"] == "Bearer service-key"

    @patch("app.services.storage_service.requests.get")
    def test_read_not_found_raises(self, mock_get, app, supabase):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("404")
        mock_get.return_value = response

        with pytest.raises(ProductFileMissing):
            storage_service.read_product_file("file_x.pdf")

    @patch("app.services.storage_service.requests.post")
    def test_save_uploads(self, mock_post, app, supabase):
        upload = FileStorage(
            stream=io.BytesIO(b"data"), filename="book.pdf", content_type="application/pdf"
        )
        file_path = storage_service.save_product_file(upload)

        assert mock_post.call_args.args[0].endswith(f"/product-files/{file_path}")
        assert mock_post.call_args.kwargs["data"] == b"data"
