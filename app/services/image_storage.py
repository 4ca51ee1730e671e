"""
Image storage for issue photos.

Uploads to the Firebase Storage bucket and returns a public URL. When the
bucket is missing or the upload fails, the photo is stored inline as a
base64 data URI so submission never blocks on storage.
"""

from app.config.firebase import get_storage_bucket
from app.core.exceptions import InvalidInputError, StorageFailure
from app.core.settings import settings
from typing import Optional, Tuple
import base64
import binascii
import ipaddress
import logging
import re
import socket
import uuid
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

_FETCH_CHUNK_BYTES = 64 * 1024


def check_image(image_bytes: bytes, mime_type: Optional[str]) -> str:
    """Return the normalized MIME type or raise InvalidInputError."""
    mime_type = (mime_type or "").split(";")[0].strip().lower()
    if mime_type not in settings.ALLOWED_IMAGE_TYPES:
        raise InvalidInputError(
            f"Unsupported image type '{mime_type or 'unknown'}'. Allowed: {', '.join(settings.ALLOWED_IMAGE_TYPES)}",
            ["image"]
        )
    if not image_bytes:
        raise InvalidInputError("Image is empty", ["image"])
    if len(image_bytes) > settings.MAX_IMAGE_BYTES:
        raise InvalidInputError(f"Image exceeds {settings.MAX_IMAGE_BYTES // (1024 * 1024)} MB limit", ["image"])
    return mime_type


def encode_data_uri(image_bytes: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"


def decode_data_uri(data_uri: str) -> Tuple[bytes, str]:
    """
    Split a base64 data URI into (bytes, mime type).

    Raises:
        InvalidInputError: not a base64 data URI
    """
    match = _DATA_URI.match(data_uri.strip())
    if not match:
        raise InvalidInputError("imageUrl must be a base64 data URI or an http(s) URL", ["imageUrl"])
    try:
        image_bytes = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidInputError("imageUrl contains invalid base64 data", ["imageUrl"])
    return image_bytes, match.group("mime").lower()


def upload_to_bucket(image_bytes: bytes, mime_type: str) -> str:
    """
    Upload to the configured bucket and return the public URL.

    Raises:
        StorageFailure: no bucket configured or the upload failed
    """
    bucket = get_storage_bucket()
    if bucket is None:
        raise StorageFailure("No storage bucket configured")

    blob_name = f"issues/{uuid.uuid4().hex}.{_EXTENSIONS.get(mime_type, 'jpg')}"
    try:
        blob = bucket.blob(blob_name)
        blob.upload_from_string(image_bytes, content_type=mime_type)
        blob.make_public()
    except Exception as e:
        raise StorageFailure(f"Upload of {blob_name} failed: {e}") from e
    return blob.public_url


def store_image(image_bytes: bytes, mime_type: str) -> str:
    """Public URL if the upload works, otherwise a data URI."""
    try:
        url = upload_to_bucket(image_bytes, mime_type)
        logger.info(f"Image uploaded to storage: {url}")
        return url
    except StorageFailure as e:
        logger.warning(f"⚠️ Image storage unavailable, storing inline data URI: {e.message}")
        return encode_data_uri(image_bytes, mime_type)


def check_public_host(url: str) -> str:
    """
    Resolve the URL's host and refuse private, loopback and link-local targets.

    Raises:
        InvalidInputError: not http(s), unresolvable, or not a public address
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidInputError("imageUrl must be a base64 data URI or an http(s) URL", ["imageUrl"])

    try:
        infos = socket.getaddrinfo(parsed.hostname, parsed.port or 443, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError):
        raise InvalidInputError(f"imageUrl host '{parsed.hostname}' cannot be resolved", ["imageUrl"])

    for info in infos:
        address = ipaddress.ip_address(info[4][0].split("%")[0])
        if not address.is_global:
            raise InvalidInputError(f"imageUrl host '{parsed.hostname}' is not a public address", ["imageUrl"])
    return parsed.hostname


def fetch_remote_image(url: str) -> Tuple[bytes, str]:
    """
    Download a hosted photo, capped at MAX_IMAGE_BYTES.

    Redirects are not followed, so only the checked host is ever contacted.

    Raises:
        InvalidInputError: bad host, non-200 reply, non-image content type,
            empty or oversized body
        requests.RequestException: transport error
    """
    check_public_host(url)

    response = requests.get(url, timeout=settings.AI_TIMEOUT_SECONDS, stream=True, allow_redirects=False)
    try:
        if response.status_code != 200:
            raise InvalidInputError(f"imageUrl fetch returned status {response.status_code}", ["imageUrl"])

        mime_type = (response.headers.get("Content-Type") or "").split(";")[0].strip().lower()
        if mime_type not in settings.ALLOWED_IMAGE_TYPES:
            raise InvalidInputError(f"imageUrl is not an image (Content-Type '{mime_type or 'unknown'}')", ["imageUrl"])

        chunks = []
        received = 0
        for chunk in response.iter_content(chunk_size=_FETCH_CHUNK_BYTES):
            received += len(chunk)
            if received > settings.MAX_IMAGE_BYTES:
                raise InvalidInputError(
                    f"Image exceeds {settings.MAX_IMAGE_BYTES // (1024 * 1024)} MB limit", ["imageUrl"]
                )
            chunks.append(chunk)
    finally:
        response.close()

    image_bytes = b"".join(chunks)
    return image_bytes, check_image(image_bytes, mime_type)


def load_image_bytes(image_ref: str) -> Tuple[bytes, str]:
    """
    Fetch the bytes behind a stored image reference (data URI or http URL).

    Used when validation re-runs after the original upload bytes are gone.
    Remote photos get the same type and size checks as uploads.
    """
    if image_ref.startswith("data:"):
        return decode_data_uri(image_ref)
    return fetch_remote_image(image_ref)
