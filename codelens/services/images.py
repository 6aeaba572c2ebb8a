"""
Image preparation for analysis requests.

Validates captured image files and encodes them as inline base64 content.
Never mutates or deletes the source file.
"""
import asyncio
import base64
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..config import MAX_IMAGE_BYTES
from ..core.thread_pool import run_in_thread

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageContent:
    """One inline-encoded image ready for a provider request."""

    mime_type: str
    data: str  # base64, no data-URL prefix
    path: str = ""

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    def to_bytes(self) -> bytes:
        return base64.standard_b64decode(self.data)

    def to_openai_part(self) -> dict:
        """Chat-completions ``image_url`` content part."""
        return {"type": "image_url", "image_url": {"url": self.data_url}}


def get_mime_type(path: str) -> str:
    """Guess the MIME type from a file extension. Defaults to PNG."""
    ext = os.path.splitext(path)[1].lower()
    return {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".gif": "image/gif",
        ".webp": "image/webp",
    }.get(ext, "image/png")


def validate_image_size(size: int) -> Tuple[bool, Optional[str]]:
    """
    Check an image file size against the upload limits.

    Returns:
        (is_valid, error_message)
    """
    if size == 0:
        return False, "Image file is empty"
    if size > MAX_IMAGE_BYTES:
        return False, "Image file too large (max 20MB)"
    return True, None


def _read_image(path: str) -> Optional[ImageContent]:
    """Blocking part of prepare_image: stat, validate, read, encode."""
    size = os.stat(path).st_size
    is_valid, error = validate_image_size(size)
    if not is_valid:
        logger.error("%s: %s", error, path)
        return None

    with open(path, "rb") as f:
        encoded = base64.standard_b64encode(f.read()).decode("utf-8")

    logger.debug("Image converted to base64: %s (%d chars)", path, len(encoded))
    return ImageContent(mime_type=get_mime_type(path), data=encoded, path=path)


async def prepare_image(path: str) -> Optional[ImageContent]:
    """
    Validate and encode one image file.

    Returns None when the file is empty, larger than 20 MiB, or cannot be
    read. Failures are logged, never raised.
    """
    try:
        return await run_in_thread(_read_image, path)
    except OSError as e:
        logger.error("Failed to process image %s: %s", path, e)
        return None


async def prepare_images(paths: List[str]) -> List[ImageContent]:
    """Prepare a batch of images, dropping the ones that fail."""
    results = await asyncio.gather(*(prepare_image(p) for p in paths))
    valid = [img for img in results if img is not None]
    logger.info("Image processing summary: %d/%d valid", len(valid), len(paths))
    return valid
