"""
Generative fill - select, describe, generate, composite.

Entry points called by the UI layer. Each takes a plain request dict (the
shape the canvas sends) and returns {"success", "image_base64", "error"};
errors come back as human-readable strings and are never raised to the UI.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import compositor
import fill_config
import image_codec
from gemini_client import GeminiClient
from generation_errors import ApiKeyMissing, GenerationError

logger = logging.getLogger(__name__)

APP_NAME = "slicefill"
VERSION = "0.4.0"


@dataclass
class GenerateRequest:
    model: str
    prompt: str
    image_base64: str
    mask_base64: str
    reference_images: List[str] = field(default_factory=list)
    image_size: Optional[str] = None

    @classmethod
    def from_dict(cls, data, config=None):
        settings_model = ((config or {}).get("gemini") or {}).get("model")
        return cls(
            model=data.get("model") or settings_model or "",
            prompt=data.get("prompt") or "",
            image_base64=data.get("image_base64") or "",
            mask_base64=data.get("mask_base64") or "",
            reference_images=list(data.get("reference_images") or []),
            image_size=data.get("image_size") or fill_config.get_setting(config, "image_size"),
        )


@dataclass
class CompositeRequest:
    base_image_base64: str
    patch_image_base64: str
    x: int
    y: int
    target_width: int
    target_height: int
    format: str = "png"

    @classmethod
    def from_dict(cls, data, config=None):
        return cls(
            base_image_base64=data.get("base_image_base64") or "",
            patch_image_base64=data.get("patch_image_base64") or "",
            x=int(data.get("x", 0)),
            y=int(data.get("y", 0)),
            target_width=int(data.get("target_width", 0)),
            target_height=int(data.get("target_height", 0)),
            format=data.get("format") or fill_config.get_setting(config, "output_format"),
        )


def _response(image_base64=None, error=None):
    return {
        "success": error is None,
        "image_base64": image_base64 if error is None else None,
        "error": error,
    }


def get_app_info():
    return {"name": APP_NAME, "version": VERSION}


def generate_fill(request, config=None, client=None):
    """
    Generate fill for a selected region.

    Args:
        request: Dict with model, prompt, image_base64, mask_base64 and
            optional reference_images / image_size
        config: Loaded config; read from disk when omitted
        client: GeminiClient to use; built from the configured API key
            when omitted

    Returns:
        dict: {"success": bool, "image_base64": str or None, "error": str or None}
    """
    if config is None:
        config = fill_config.load_config()
    req = GenerateRequest.from_dict(request, config)

    if client is None:
        api_key = fill_config.get_api_key(config)
        if not api_key:
            return _response(error=str(ApiKeyMissing()))
        with GeminiClient(api_key, timeout=fill_config.get_setting(config, "timeout")) as client:
            return _generate(req, config, client)

    return _generate(req, config, client)


def _generate(req, config, client):
    if fill_config.is_debug_mode(config):
        logger.debug("Saving input images")
        for name, data in (("input_cropped.png", req.image_base64), ("input_mask.png", req.mask_base64)):
            try:
                fill_config.save_debug_image(config, image_codec.decode_base64(data), name)
            except GenerationError as e:
                logger.debug(f"Skipping debug copy of {name}: {e}")

    result = client.generate_fill(
        req.model,
        req.prompt,
        req.image_base64,
        req.mask_base64,
        req.reference_images,
        req.image_size,
    )

    if not result.success:
        logger.error(f"Generation failed: {result.message}")
        return _response(error=result.message)

    fill_config.save_debug_image(config, result.image.data, f"output_generated.{result.image.format}")
    return _response(image_base64=result.image.to_base64())


def composite_patch(request, config=None):
    """
    Composite a generated patch onto the original image.

    Args:
        request: Dict with base_image_base64, patch_image_base64, x, y,
            target_width, target_height and format ("png", "jpg", "webp")
        config: Loaded config, only used for the default output format

    Returns:
        dict: {"success": bool, "image_base64": str or None, "error": str or None}
    """
    try:
        req = CompositeRequest.from_dict(request, config)
        spec = compositor.CompositeSpec(
            base_image=image_codec.decode_base64(req.base_image_base64),
            patch_image=image_codec.decode_base64(req.patch_image_base64),
            x=req.x,
            y=req.y,
            target_width=req.target_width,
            target_height=req.target_height,
            output_format=req.format,
        )
        result = compositor.composite(spec)
    except (GenerationError, TypeError, ValueError) as e:
        logger.error(f"Compositing failed: {e}")
        return _response(error=str(e))

    return _response(image_base64=result.to_base64())
