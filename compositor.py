"""
Compositing of generated patches back onto the original image.

The patch is resized to the selection bounds, alpha-blended onto the base at
the selection offset, and the base is re-encoded. Blended pixels always come
out fully opaque: the patch's alpha decides how much of it shows, never the
transparency of the result. Patch pixels that land outside the base are
dropped.
"""

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image

import image_codec
from generation_errors import CompositeError, DecodeError, EncodeError

logger = logging.getLogger(__name__)

RESAMPLE_FILTER = Image.LANCZOS


@dataclass(frozen=True)
class CompositeSpec:
    """Everything needed to place one patch onto one base image."""

    base_image: bytes
    patch_image: bytes
    x: int = 0
    y: int = 0
    target_width: int = 0
    target_height: int = 0
    output_format: str = image_codec.DEFAULT_FORMAT

    def __post_init__(self):
        for name in ("x", "y", "target_width", "target_height"):
            value = getattr(self, name)
            if value < 0:
                raise CompositeError(f"{name} must be non-negative, got {value}")


def resize_patch(patch, target_width, target_height):
    """
    Resize a patch to the target box with Lanczos resampling.

    A zero target dimension means "keep the patch as generated".
    """
    if target_width <= 0 or target_height <= 0:
        return patch
    if patch.size == (target_width, target_height):
        return patch

    logger.info(
        f"Resizing patch from {patch.width}x{patch.height} to {target_width}x{target_height}"
    )
    return patch.resize((target_width, target_height), RESAMPLE_FILTER)


def alpha_blend(base, overlay):
    """
    Blend RGBA overlay pixels over RGBA base pixels.

    Both arrays are uint8 with shape (h, w, 4). RGB is
    overlay * alpha + base * (1 - alpha), truncated to uint8; alpha is 255.
    """
    alpha = overlay[..., 3:4].astype(np.float32) / 255.0
    blended = overlay[..., :3].astype(np.float32) * alpha + base[..., :3].astype(
        np.float32
    ) * (1.0 - alpha)

    out = np.empty_like(base)
    out[..., :3] = np.clip(blended, 0, 255).astype(np.uint8)
    out[..., 3] = 255
    return out


def paste_patch(base, patch, x, y):
    """
    Alpha-blend a patch onto a base raster in place.

    Args:
        base: RGBA raster that receives the patch
        patch: RGBA raster, already at its final size
        x, y: Top-left position of the patch on the base

    Returns:
        tuple: (x1, y1, x2, y2) region of the base that was touched, or None
        when the patch lies entirely outside the base
    """
    x2 = min(base.width, x + patch.width)
    y2 = min(base.height, y + patch.height)
    if x >= x2 or y >= y2:
        logger.warning(f"Patch at ({x},{y}) lies outside the {base.width}x{base.height} base")
        return None

    base_pixels = np.array(base, dtype=np.uint8)
    patch_pixels = np.array(patch, dtype=np.uint8)

    region = base_pixels[y:y2, x:x2]
    overlay = patch_pixels[: y2 - y, : x2 - x]
    base_pixels[y:y2, x:x2] = alpha_blend(region, overlay)

    base.paste(Image.fromarray(base_pixels))
    return (x, y, x2, y2)


def composite(spec):
    """
    Composite a generated patch onto the base image.

    Args:
        spec: CompositeSpec with encoded base/patch bytes and placement

    Returns:
        EncodedImage: The composited base in the requested output format

    Raises:
        CompositeError: If decoding, resizing or encoding fails
    """
    try:
        base = image_codec.decode(spec.base_image)
    except DecodeError as e:
        raise CompositeError(f"Base image: {e}") from e
    try:
        patch = image_codec.decode(spec.patch_image)
    except DecodeError as e:
        raise CompositeError(f"Patch image: {e}") from e

    try:
        patch = resize_patch(patch, spec.target_width, spec.target_height)
    except (OSError, ValueError) as e:
        raise CompositeError(f"Failed to resize patch: {e}") from e

    result = base.convert("RGBA")
    region = paste_patch(result, patch.convert("RGBA"), spec.x, spec.y)
    logger.debug(f"Composited patch region: {region}")

    try:
        return image_codec.encode_image(result, spec.output_format)
    except EncodeError as e:
        raise CompositeError(str(e)) from e
