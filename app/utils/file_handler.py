"""
File Handler Utility
Prescription Scanner

Image payload decoding, upload staging and the archive confinement check.
"""

import base64
import binascii
import logging
import uuid
from pathlib import Path
from typing import Union

from app.core.exceptions import AccessDeniedError, ValidationFailed

logger = logging.getLogger(__name__)


def decode_image_payload(image: Union[bytes, str]) -> bytes:
    """
    Normalize an image payload to raw bytes.

    Accepts raw bytes, a data URL (``data:image/png;base64,....``) or a bare
    base64 string. The data-URL metadata prefix is dropped before decoding.
    """
    if isinstance(image, (bytes, bytearray)):
        return bytes(image)

    encoded = image.split(",", 1)[1] if "," in image else image
    try:
        return base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationFailed(f"Image payload is not valid base64: {e}")


def confine(root: Union[str, Path], requested_name: str) -> Path:
    """
    Resolve ``requested_name`` inside ``root``.

    Only a bare file name is accepted: a name carrying directory segments is
    treated as a traversal attempt. The resolved path must also stay under
    the resolved root (symlinks included). Raises AccessDeniedError otherwise.
    """
    root_path = Path(root).resolve()
    normalized = requested_name.replace("\\", "/")
    base_name = Path(normalized).name
    if base_name in ("", ".", "..") or base_name != normalized:
        logger.warning("Rejected archive name with directory segments: %r", requested_name)
        raise AccessDeniedError()

    candidate = (root_path / base_name).resolve()
    if root_path not in candidate.parents:
        logger.warning("Rejected archive path outside root: %r", requested_name)
        raise AccessDeniedError()
    return candidate


def save_upload(content: bytes, upload_dir: Union[str, Path]) -> Path:
    """Write an uploaded file under a random name and return its path."""
    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / uuid.uuid4().hex
    path.write_bytes(content)
    logger.info("Staged upload %s (%d bytes)", path, len(content))
    return path
