"""
File utility functions for image uploads.
"""
import io
import os
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from kneecare.core.exceptions import ValidationError

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tif", ".tiff", ".webp"}


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format."""
    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} TB"


def validate_image_upload(content: bytes, filename: str, content_type: str, max_size: int) -> Tuple[int, int]:
    """Check an uploaded image and return its (width, height)."""
    if not content:
        raise ValidationError("No file uploaded")
    if len(content) > max_size:
        raise ValidationError(f"File too large. Maximum size is {format_file_size(max_size)}")
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed")
    ext = os.path.splitext(filename or "")[1].lower()
    if ext and ext not in IMAGE_EXTENSIONS:
        raise ValidationError(f"File extension {ext} not allowed")

    try:
        with Image.open(io.BytesIO(content)) as image:
            image.verify()
        with Image.open(io.BytesIO(content)) as image:
            return image.size
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValidationError(f"Uploaded file is not a valid image: {e}")


UPLOAD_CHUNK_SIZE = 64 * 1024


async def read_upload(upload, max_size: int, chunk_size: int = UPLOAD_CHUNK_SIZE) -> bytes:
    """Read an ``UploadFile`` in chunks, stopping once it exceeds ``max_size``."""
    chunks = []
    received = 0
    while True:
        chunk = await upload.read(min(chunk_size, max_size + 1 - received))
        if not chunk:
            break
        chunks.append(chunk)
        received += len(chunk)
        if received > max_size:
            raise ValidationError(f"File too large. Maximum size is {format_file_size(max_size)}")
    return b"".join(chunks)
