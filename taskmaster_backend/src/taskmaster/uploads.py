"""
Image attachment storage.

Images are stored as-is under the upload directory; no resizing or
re-encoding takes place. Stored files are served by the static mount at
``/uploads``.
"""
from __future__ import annotations

import logging
import os
import random
import re
import time
from typing import Any, Dict, Optional

from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Stored extension comes from the accepted MIME type, never the client filename
EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}
ALLOWED_TYPES = frozenset(EXTENSIONS)

URL_PREFIX = "/uploads"

_STORED_NAME = re.compile(r"^task-image-\d+-\d+\.(jpg|png|gif|webp)$")


def _unique_name(content_type: str) -> str:
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"task-image-{suffix}{EXTENSIONS[content_type]}"


# PUBLIC_INTERFACE
def save_image(
    upload_dir: str,
    data: bytes,
    content_type: Optional[str],
    original_name: Optional[str],
    max_bytes: int,
) -> Dict[str, Any]:
    """
    Validate and store one uploaded image.

    Args:
        upload_dir: Destination directory, created on demand.
        data: Raw file content.
        content_type: MIME type reported by the client.
        original_name: Client-side filename, echoed back but never used on disk.
        max_bytes: Largest accepted size.

    Returns:
        ``{filename, original_name, size, mimetype, url}``

    Raises:
        ValidationError: empty file, disallowed type, or over the size limit.
    """
    if not data:
        raise ValidationError("No image file provided")
    if content_type not in ALLOWED_TYPES:
        raise ValidationError(
            "Only image files (JPEG, PNG, GIF, WebP) are allowed",
            detail={"mimetype": content_type},
        )
    if len(data) > max_bytes:
        raise ValidationError(
            "Image exceeds the maximum upload size",
            detail={"size": len(data), "max_bytes": max_bytes},
        )

    os.makedirs(upload_dir, exist_ok=True)
    filename = _unique_name(content_type)
    path = os.path.join(upload_dir, filename)
    with open(path, "wb") as f:
        f.write(data)
    logger.info("Stored image %s (%d bytes)", filename, len(data))

    return {
        "filename": filename,
        "original_name": original_name,
        "size": len(data),
        "mimetype": content_type,
        "url": f"{URL_PREFIX}/{filename}",
    }


# PUBLIC_INTERFACE
def delete_image(upload_dir: str, filename: str) -> None:
    """Remove a previously stored image. Only generated names are accepted."""
    if not _STORED_NAME.match(filename):
        raise ValidationError("Invalid image filename", detail={"filename": filename})
    path = os.path.join(upload_dir, filename)
    if not os.path.isfile(path):
        raise NotFoundError("Image not found", detail={"filename": filename})
    os.remove(path)
    logger.info("Deleted image %s", filename)
