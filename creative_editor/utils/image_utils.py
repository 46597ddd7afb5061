"""
Image helpers: format detection, conversion and data URLs.
"""

import base64
import io
import logging
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from creative_editor.errors import InvalidImage

logger = logging.getLogger(__name__)

# AVIF/HEIF support
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
except ImportError:
    logger.warning("pillow-heif is not installed, AVIF/HEIF uploads are unavailable")

EXIF_ORIENTATION = 0x0112

# Formats the Gemini image models accept as inline data
MODEL_MIME_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic", "image/heif"}

_PIL_FORMAT_TO_MIME = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
    "HEIF": "image/heif",
    "AVIF": "image/avif",
}


def sniff_mime_type(image_bytes: bytes) -> str:
    """Detect the MIME type from magic bytes, defaulting to JPEG."""
    if image_bytes[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:2] == b"BM":
        return "image/bmp"
    return "image/jpeg"


def open_image(image_bytes: bytes) -> Image.Image:
    """Open image bytes with Pillow, raising InvalidImage on failure."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImage(f"Unsupported or corrupt image: {e}") from e
    return img


def convert_to_jpeg(img: Image.Image) -> bytes:
    """
    Re-encode an image as JPEG, flattening transparency onto white.

    Args:
        img: Opened Pillow image

    Returns:
        JPEG bytes
    """
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")

    output = io.BytesIO()
    img.save(output, format="JPEG", quality=95)
    return output.getvalue()


def normalize_upload(image_bytes: bytes) -> Tuple[bytes, str, Tuple[int, int]]:
    """
    Prepare uploaded bytes for the model.

    Formats the model cannot read are converted to JPEG. Images carrying an
    EXIF orientation are rotated upright and re-encoded, so the stored pixels
    match what a viewer shows.

    Returns:
        (bytes, mime_type, (width, height))
    """
    img = open_image(image_bytes)
    mime_type = _PIL_FORMAT_TO_MIME.get((img.format or "").upper()) or sniff_mime_type(image_bytes)

    orientation = img.getexif().get(EXIF_ORIENTATION, 1)
    if orientation != 1:
        img = ImageOps.exif_transpose(img)
        if mime_type == "image/png":
            output = io.BytesIO()
            img.save(output, format="PNG")
            upright = output.getvalue()
        else:
            upright, mime_type = convert_to_jpeg(img), "image/jpeg"
        logger.info(f"Applied EXIF orientation {orientation}: {img.size[0]}x{img.size[1]} {mime_type}")
        return upright, mime_type, img.size

    if mime_type in MODEL_MIME_TYPES:
        return image_bytes, mime_type, img.size

    jpeg_bytes = convert_to_jpeg(img)
    logger.info(f"Converted {mime_type} to JPEG: {len(image_bytes)} -> {len(jpeg_bytes)} bytes")
    return jpeg_bytes, "image/jpeg", img.size


def to_data_url(image_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"
