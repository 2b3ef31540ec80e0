"""Downloads blueprint — /products/download/*

Redeems emailed download links.

Route Map:
  GET /products/download/expired          — Link expired page
  GET /products/download/<credential_id>  — Stream the product file
"""

import logging
import os
import unicodedata
from urllib.parse import quote

from flask import Blueprint, Response, abort, redirect, render_template, url_for

from app.services.credential_service import redeem_credential
from app.services.storage_service import ProductFileMissing, read_product_file

logger = logging.getLogger(__name__)

downloads_bp = Blueprint("downloads", __name__, url_prefix="/products/download")


def _filename_options(filename):
    """Content-Disposition filename params, with an RFC 5987 form for non-ASCII."""
    try:
        filename.encode("ascii")
    except UnicodeEncodeError:
        simple = unicodedata.normalize("NFKD", filename)
        simple = simple.encode("ascii", "ignore").decode("ascii")
        quoted = quote(filename, safe="!#$&+^`|~")
        return {"filename": simple, "filename*": f"UTF-8''{quoted}"}
    return {"filename": filename}


def attachment_response(file_path, display_name):
    """Build a download response named after the product.

    Filename is "<display name>.<extension of the stored file>".
    Raises ProductFileMissing if the file cannot be read.
    """
    size, data = read_product_file(file_path)
    extension = os.path.splitext(file_path)[1].lstrip(".")
    filename = f"{display_name}.{extension}" if extension else display_name

    response = Response(data, mimetype="application/octet-stream")
    response.headers.set("Content-Disposition", "attachment", **_filename_options(filename))
    response.headers["Content-Length"] = str(size)
    return response


@downloads_bp.route("/expired")
def expired():
    """Shown for unknown and expired links alike; offers a fresh link."""
    return render_template("downloads/expired.html")


@downloads_bp.route("/<credential_id>")
def download(credential_id):
    """Serve the file behind a valid credential, else redirect to /expired.

    The credential is not consumed; it works until it expires.
    """
    found = redeem_credential(credential_id)
    if found is None:
        return redirect(url_for("downloads.expired"))

    file_path, product_name = found
    try:
        return attachment_response(file_path, product_name)
    except ProductFileMissing:
        logger.error(
            f"Valid download link {credential_id[:8]}... but file is unreadable: "
            f"{file_path}",
            exc_info=True,
        )
        abort(500)
