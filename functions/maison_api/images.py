"""
Upload normalisation: photos are downscaled and re-encoded to JPEG, PDFs are
checked before they reach storage.
"""

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)

MAX_DIMENSION = 2200
MAX_BYTES = 2_500_000
INITIAL_QUALITY = 0.82
QUALITY_STEP = 0.12
MIN_QUALITY = 0.55
MAX_REENCODES = 4

JPEG_TYPES = ("image/jpeg", "image/jpg")
PDF_TYPE = "application/pdf"


class InvalidUploadError(Exception):
    """Raised when an uploaded file cannot be read as what it claims to be."""


@dataclass
class PreparedUpload:
    file_name: str
    data: bytes
    content_type: str


def target_size(width: int, height: int, max_dimension: int = MAX_DIMENSION) -> tuple[int, int]:
    if width <= max_dimension and height <= max_dimension:
        return width, height
    scale = min(max_dimension / width, max_dimension / height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def _encode_jpeg(image: Image.Image, quality: float) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=int(round(quality * 100)))
    return buffer.getvalue()


def compress_image(
    file_name: str,
    data: bytes,
    content_type: str,
    max_bytes: int = MAX_BYTES,
    max_dimension: int = MAX_DIMENSION,
) -> PreparedUpload:
    """
    Downscale to `max_dimension` and re-encode as JPEG, lowering the quality
    until the result fits in `max_bytes` (best effort). A JPEG that is
    already small enough is returned untouched.
    """
    if len(data) <= max_bytes and content_type in JPEG_TYPES:
        return PreparedUpload(file_name, data, "image/jpeg")

    try:
        image = Image.open(io.BytesIO(data))
        image = ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidUploadError(f"{file_name} n'est pas une image valide") from e

    if image.mode != "RGB":
        image = image.convert("RGB")
    size = target_size(image.width, image.height, max_dimension)
    if size != image.size:
        image = image.resize(size, Image.LANCZOS)

    quality = INITIAL_QUALITY
    encoded = _encode_jpeg(image, quality)
    for _ in range(MAX_REENCODES):
        if len(encoded) <= max_bytes:
            break
        quality = max(MIN_QUALITY, quality - QUALITY_STEP)
        encoded = _encode_jpeg(image, quality)

    logger.info(
        "Compressed %s from %d to %d bytes (quality %.2f)",
        file_name,
        len(data),
        len(encoded),
        quality,
    )
    base_name, _ = os.path.splitext(file_name)
    return PreparedUpload(f"{base_name}.jpg", encoded, "image/jpeg")


def validate_pdf(file_name: str, data: bytes) -> int:
    """Return the page count of a readable PDF."""
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = len(reader.pages)
    except (PdfReadError, ValueError) as e:
        raise InvalidUploadError(f"{file_name} n'est pas un PDF valide") from e
    if pages == 0:
        raise InvalidUploadError(f"{file_name} ne contient aucune page")
    return pages


def prepare_upload(
    file_name: str, data: bytes, content_type: str, max_bytes: int = MAX_BYTES
) -> PreparedUpload:
    if not data:
        raise InvalidUploadError(f"{file_name} est vide")
    if content_type.startswith("image/"):
        return compress_image(file_name, data, content_type, max_bytes=max_bytes)
    if content_type == PDF_TYPE:
        validate_pdf(file_name, data)
    return PreparedUpload(file_name, data, content_type or "application/octet-stream")
