"""
Image codec adapter.

Converts between encoded image bytes (PNG, JPEG, WebP) and in-memory RGBA
rasters. A raster is a Pillow image in "RGBA" mode, so its pixel buffer is
always width * height * 4 bytes.

Nothing here touches the filesystem or the network.
"""

import base64
import binascii
import io
import logging
from dataclasses import dataclass

from PIL import Image

from generation_errors import DecodeError, EncodeError, InvalidImageData

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "png"

# Output format token -> Pillow format name
FORMAT_ALIASES = {
    "png": "png",
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "webp": "webp",
}

PILLOW_FORMATS = {"png": "PNG", "jpeg": "JPEG", "webp": "WEBP"}

MIME_TYPES = {"png": "image/png", "jpeg": "image/jpeg", "webp": "image/webp"}

# Quality used for the lossy formats
LOSSY_QUALITY = 95


@dataclass(frozen=True)
class EncodedImage:
    """Encoded image bytes plus the format they are stored in."""

    data: bytes
    format: str = DEFAULT_FORMAT

    @property
    def mime_type(self):
        return MIME_TYPES.get(self.format, f"image/{self.format}")

    def to_base64(self):
        return base64.b64encode(self.data).decode("ascii")


def normalize_format(token):
    """
    Map a user supplied format token to a supported output format.

    Unknown tokens fall back to PNG instead of failing.

    Args:
        token: Format name such as "png", "JPG" or "webp" (may be None)

    Returns:
        str: One of "png", "jpeg", "webp"
    """
    key = (token or "").strip().lower()
    fmt = FORMAT_ALIASES.get(key)
    if fmt is None:
        logger.debug(f"Unknown output format {token!r}, falling back to {DEFAULT_FORMAT}")
        return DEFAULT_FORMAT
    return fmt


def mime_type_for(fmt):
    return MIME_TYPES[normalize_format(fmt)]


def format_from_mime_type(mime_type):
    """
    Format tag for an "image/..." mime type.

    Supported formats are normalised ("image/jpg" -> "jpeg"); any other
    subtype is kept as-is so the tag still describes the bytes. An empty
    mime type is tagged PNG.
    """
    subtype = (mime_type or "").split("/", 1)[-1].split(";", 1)[0].strip().lower()
    if not subtype:
        return DEFAULT_FORMAT
    return FORMAT_ALIASES.get(subtype, subtype)


def decode_base64(data):
    """
    Strictly decode a base64 string into bytes.

    Accepts surrounding whitespace and an optional data URL prefix
    ("data:image/png;base64,...").

    Raises:
        InvalidImageData: If the payload is empty or not valid base64
    """
    if isinstance(data, bytes):
        data = data.decode("ascii", errors="replace")
    payload = (data or "").strip()
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    if not payload:
        raise InvalidImageData("base64 payload", "empty data")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageData("base64 payload", f"Failed to decode base64: {e}") from e


def decode(data):
    """
    Decode encoded image bytes into an RGBA raster.

    The container format is detected from the byte stream itself.

    Args:
        data: Encoded image bytes (PNG, JPEG, WebP, or anything Pillow reads)

    Returns:
        PIL.Image.Image: Raster in "RGBA" mode

    Raises:
        DecodeError: If the bytes are not a readable image
    """
    if not data:
        raise DecodeError("Failed to load image: empty image data")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            raster = img.convert("RGBA")
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Failed to load image: {e}") from e

    logger.debug(f"Decoded {len(data)} bytes into {raster.width}x{raster.height} raster")
    return raster


def encode(raster, fmt=DEFAULT_FORMAT):
    """
    Encode a raster into bytes of the requested format.

    Args:
        raster: Pillow image (any mode)
        fmt: Output format token; unknown tokens produce PNG

    Returns:
        bytes: Encoded image

    Raises:
        EncodeError: If Pillow cannot write the image
    """
    fmt = normalize_format(fmt)
    image = raster
    save_kwargs = {}

    if fmt == "jpeg":
        # JPEG has no alpha channel
        if image.mode != "RGB":
            image = image.convert("RGB")
        save_kwargs["quality"] = LOSSY_QUALITY
    elif fmt == "webp":
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA")
        save_kwargs["quality"] = LOSSY_QUALITY

    buffer = io.BytesIO()
    try:
        image.save(buffer, format=PILLOW_FORMATS[fmt], **save_kwargs)
    except (OSError, ValueError) as e:
        raise EncodeError(f"Failed to encode image: {e}") from e

    return buffer.getvalue()


def encode_image(raster, fmt=DEFAULT_FORMAT):
    """Encode a raster and wrap the bytes with their format tag."""
    fmt = normalize_format(fmt)
    return EncodedImage(data=encode(raster, fmt), format=fmt)
