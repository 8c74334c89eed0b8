import base64
import binascii
import io
import logging
import re
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

_DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?,", re.IGNORECASE)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def strip_data_url_prefix(value: str) -> str:
    """
    Return the bare base64 payload of ``value``.

    Anything up to the first comma is treated as a data-URL header, so both
    ``data:image/png;base64,AAAA`` and ``AAAA`` yield ``AAAA``.
    """
    head, sep, tail = value.partition(",")
    return tail if sep and tail else value


def mime_from_data_url(value: str) -> Optional[str]:
    match = _DATA_URL_PATTERN.match(value)
    if match and match.group("mime"):
        return match.group("mime").lower()
    return None


def to_data_url(data: bytes | str, mime_type: Optional[str]) -> str:
    if isinstance(data, bytes):
        data = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or 'image/png'};base64,{data}"


def decode_data_url(value: str) -> Tuple[bytes, Optional[str]]:
    """Decode a data URL (or bare base64) into raw bytes and its mime type."""
    return base64.b64decode(strip_data_url_prefix(value)), mime_from_data_url(value)


def extension_for_mime(mime_type: Optional[str]) -> str:
    return _EXTENSIONS.get((mime_type or "").lower(), "png")


def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    """Convert to RGB, compositing any transparency onto white."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def downscale_image(
    image: str,
    mime_type: str,
    max_dimension: int,
    quality: int,
) -> Tuple[str, str]:
    """
    Shrink a base64 image so its longest edge is at most ``max_dimension``.

    The EXIF orientation is applied before measuring, since the re-encoded
    JPEG carries no EXIF data.

    Args:
        image: Base64 payload, optionally data-URL prefixed.
        mime_type: Mime type reported for ``image``.
        max_dimension: Longest permitted edge in pixels.
        quality: JPEG quality used when re-encoding.

    Returns:
        A ``(base64, mime_type)`` tuple. Images that already fit, or that
        Pillow cannot decode, come back unchanged.
    """
    try:
        raw = base64.b64decode(strip_data_url_prefix(image))
        with Image.open(io.BytesIO(raw)) as source:
            oriented = ImageOps.exif_transpose(source)
            if max(oriented.size) <= max_dimension:
                return image, mime_type
            resized = _flatten_to_rgb(oriented)
            resized.thumbnail((max_dimension, max_dimension))
    except (binascii.Error, ValueError, UnidentifiedImageError, OSError) as exc:
        logger.warning("Sending source image without resizing: %s", exc)
        return image, mime_type

    buffer = io.BytesIO()
    resized.save(buffer, format="JPEG", quality=quality)
    encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
    logger.debug("Downscaled source image to %sx%s", *resized.size)
    return encoded, "image/jpeg"
