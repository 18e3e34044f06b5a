"""Image processing service."""

import base64
import binascii
import io
import logging
import re
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from recipe_bridge.utils.exceptions import ImageProcessingError

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024  # 10MB
SUPPORTED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp")

# Resize/compress before sending to Gemini; recipe photos stay legible at this size.
VISION_MAX_DIM = 1400
JPEG_QUALITY = 78
RESIZE_MIN_BYTES = 350_000

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^,;]+)*?);base64,(?P<data>.*)$", re.DOTALL)


class ImageService:
    """Service for processing uploaded images."""

    @staticmethod
    def validate_image(file_content: bytes, filename: str) -> Tuple[bytes, str]:
        """
        Validate an uploaded image.

        Args:
            file_content: Image file bytes
            filename: Original filename

        Returns:
            Tuple of (image_bytes, mime_type)

        Raises:
            ImageProcessingError: If image is invalid
        """
        if not file_content:
            raise ImageProcessingError("Image file is empty")

        if len(file_content) > MAX_IMAGE_BYTES:
            raise ImageProcessingError(f"Image file too large (max {MAX_IMAGE_BYTES / 1024 / 1024}MB)")

        mime_type = ImageService._detect_mime_type(file_content)

        if mime_type not in SUPPORTED_MIME_TYPES:
            logger.info(f"Rejected image {filename!r} with detected type {mime_type}")
            raise ImageProcessingError(
                f"Unsupported image format: {mime_type}. Supported: JPEG, PNG, WebP"
            )

        return file_content, mime_type

    @staticmethod
    def decode_data_uri(data_uri: str) -> Tuple[bytes, str]:
        """
        Decode a `data:<mime>;base64,<data>` URI and validate the image in it.

        Returns:
            Tuple of (image_bytes, mime_type)
        """
        match = _DATA_URI_RE.match((data_uri or "").strip())
        if not match:
            raise ImageProcessingError("Image must be a base64 data URI (data:<mime>;base64,<data>)")

        try:
            content = base64.b64decode(match.group("data"), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageProcessingError(f"Invalid base64 image data: {e}") from e

        return ImageService.validate_image(content, "data-uri")

    @staticmethod
    def optimize_for_vision(image_bytes: bytes, mime_type: Optional[str]) -> Tuple[bytes, str]:
        """
        Downscale + compress large images to reduce Gemini latency.

        Returns the original bytes when the image is already small or
        cannot be re-encoded.
        """
        mime_type = mime_type or "image/jpeg"
        if len(image_bytes) < RESIZE_MIN_BYTES:
            return image_bytes, mime_type

        try:
            with Image.open(io.BytesIO(image_bytes)) as im:
                # Normalize to RGB; if alpha exists, composite onto white
                if im.mode in ("RGBA", "LA") or (im.mode == "P" and "transparency" in im.info):
                    bg = Image.new("RGBA", im.size, (255, 255, 255, 255))
                    im = Image.alpha_composite(bg, im.convert("RGBA")).convert("RGB")
                else:
                    im = im.convert("RGB")

                w, h = im.size
                max_side = max(w, h)
                if max_side > VISION_MAX_DIM:
                    scale = VISION_MAX_DIM / float(max_side)
                    im = im.resize((max(1, int(w * scale)), max(1, int(h * scale))), Image.LANCZOS)

                out = io.BytesIO()
                im.save(out, format="JPEG", quality=JPEG_QUALITY, optimize=True)
                return out.getvalue(), "image/jpeg"

        except (OSError, UnidentifiedImageError, ValueError) as e:
            logger.warning(f"Image resize/compress skipped: {e}")
            return image_bytes, mime_type

    @staticmethod
    def _detect_mime_type(file_content: bytes) -> str:
        """Detect MIME type from magic bytes, falling back to Pillow."""
        if file_content.startswith(b"\xff\xd8\xff"):
            return "image/jpeg"
        elif file_content.startswith(b"\x89PNG\r\n\x1a\n"):
            return "image/png"
        elif file_content.startswith(b"RIFF") and b"WEBP" in file_content[:12]:
            return "image/webp"

        try:
            with Image.open(io.BytesIO(file_content)) as image:
                return Image.MIME.get(image.format or "", "application/octet-stream")
        except (OSError, UnidentifiedImageError):
            return "application/octet-stream"
