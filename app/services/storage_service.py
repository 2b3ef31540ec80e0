"""Storage service — product files in Supabase Storage (prod) or local disk (dev).

Products store a path string (file_path) used as the key in either backend.
Supabase bucket: SUPABASE_STORAGE_BUCKET (private; read with the service key).
Local fallback: PRODUCT_FILES_DIR, relative paths resolved against the
project root, absolute paths used as-is.

Provides:
- read_product_file: size + bytes for a download response
- validate_product_file / save_product_file: admin uploads
- delete_product_file: best-effort cleanup when a product goes away
"""

import logging
import os
import re
import unicodedata
import uuid

import requests
from flask import current_app

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx", ".txt"}


class ProductFileMissing(IOError):
    """A product's file is not readable although the product exists."""


def _get_supabase_config():
    """Return Supabase storage config if available, else None."""
    url = current_app.config.get("SUPABASE_URL")
    key = current_app.config.get("SUPABASE_SERVICE_KEY")
    bucket = current_app.config.get("SUPABASE_STORAGE_BUCKET", "product-files")

    if url and key:
        return {"url": url.rstrip("/"), "key": key, "bucket": bucket}
    return None


def _object_url(config, path):
    return f"{config['url']}/storage/v1/object/{config['bucket']}/{path}"


def _files_dir():
    files_dir = current_app.config.get("PRODUCT_FILES_DIR", "products")
    if not os.path.isabs(files_dir):
        files_dir = os.path.join(current_app.root_path, os.pardir, files_dir)
    return os.path.normpath(files_dir)


def resolve_path(file_path):
    """Absolute filesystem path for a stored file_path."""
    if os.path.isabs(file_path):
        return file_path
    return os.path.join(_files_dir(), file_path)


# ──────────────────────────────────────────────
# Read
# ──────────────────────────────────────────────

def read_product_file(file_path):
    """Read a product file.

    Returns:
        tuple: (size_in_bytes, data)

    Raises:
        ProductFileMissing: the file does not exist or cannot be read.
    """
    supabase = _get_supabase_config()
    if supabase:
        return _read_supabase(supabase, file_path)
    return _read_local(file_path)


def _read_supabase(config, path):
    headers = {"Authorization": f"Bearer {config['key']}"}
    try:
        resp = requests.get(_object_url(config, path), headers=headers, timeout=30)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise ProductFileMissing(f"Cannot read product file {path!r}: {e}") from e
    return len(resp.content), resp.content


def _read_local(file_path):
    full_path = resolve_path(file_path)
    try:
        size = os.stat(full_path).st_size
        with open(full_path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ProductFileMissing(f"Cannot read product file {file_path!r}: {e}") from e
    return size, data


# ──────────────────────────────────────────────
# Upload
# ──────────────────────────────────────────────

def sanitize_filename(filename):
    """Strip accents and replace anything but [A-Za-z0-9.-] with "_"."""
    normalized = unicodedata.normalize("NFD", filename)
    ascii_only = "".join(c for c in normalized if not unicodedata.combining(c))
    return re.sub(r"[^a-zA-Z0-9.-]", "_", ascii_only).lower()


def validate_product_file(file):
    """Validate an uploaded product file (from request.files).

    Returns (ok: bool, error: str|None).
    """
    if not file or not file.filename:
        return False, "Select a file."

    ext = os.path.splitext(file.filename)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        return False, "Invalid file type. Use PDF, DOC, DOCX or TXT."

    # Check file size (read + seek back)
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)

    if size == 0:
        return False, "File is empty."

    max_size = current_app.config.get("MAX_PRODUCT_FILE_SIZE", 5 * 1024 * 1024)
    if size > max_size:
        return False, f"File must be at most {max_size // (1024 * 1024)} MB."

    return True, None


def save_product_file(file):
    """Store an uploaded file and return its file_path key."""
    file_path = f"file_{uuid.uuid4()}-{sanitize_filename(file.filename)}"
    data = file.read()
    content_type = file.content_type or "application/octet-stream"

    supabase = _get_supabase_config()
    if supabase:
        _upload_supabase(supabase, file_path, data, content_type)
    else:
        _upload_local(file_path, data)
    return file_path


def _upload_supabase(config, path, data, content_type):
    headers = {
        "Authorization": f"Bearer {config['key']}",
        "Content-Type": content_type,
        "x-upsert": "true",
    }
    resp = requests.post(_object_url(config, path), headers=headers, data=data, timeout=30)
    resp.raise_for_status()
    logger.info(f"Uploaded to Supabase: {path}")


def _upload_local(path, data):
    files_dir = _files_dir()
    os.makedirs(files_dir, exist_ok=True)

    full_path = os.path.join(files_dir, path)
    with open(full_path, "wb") as f:
        f.write(data)
    logger.info(f"Saved product file locally: {full_path}")


# ──────────────────────────────────────────────
# Delete
# ──────────────────────────────────────────────

def delete_product_file(file_path):
    """Delete a product file. Best-effort, does not raise."""
    supabase = _get_supabase_config()
    if supabase:
        try:
            headers = {"Authorization": f"Bearer {supabase['key']}"}
            requests.delete(_object_url(supabase, file_path), headers=headers, timeout=10)
        except requests.RequestException as e:
            logger.warning(f"Failed to delete from Supabase: {e}")
        return

    try:
        os.remove(resolve_path(file_path))
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to delete product file {file_path}: {e}")
