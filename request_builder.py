"""
Request builder for masked image generation.

Assembles the ordered list of payload segments (source image, mask, optional
reference images, instruction text) and the generation options into a single
request, ready to be serialised as the backend's JSON body.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import aspect_ratio
import image_codec
from generation_errors import DecodeError, EncodeError, InvalidImageData

logger = logging.getLogger(__name__)


class Model(Enum):
    NANO_BANANA = "nano-banana"
    NANO_BANANA_PRO = "nano-banana-pro"


# Static model table; never mutated at runtime
BACKEND_MODEL_NAMES = {
    Model.NANO_BANANA: "gemini-2.5-flash-image",
    Model.NANO_BANANA_PRO: "gemini-3-pro-image-preview",
}

DEFAULT_MODEL = Model.NANO_BANANA

IMAGE_SIZES = ("1K", "2K", "4K")

RESPONSE_MODALITY_IMAGE = "IMAGE"
RESPONSE_MODALITY_TEXT = "TEXT"

PNG_MIME_TYPE = "image/png"

EDIT_PROMPT_TEMPLATE = (
    "Edit this image. The second image is a mask where white areas should be replaced. "
    "In the white masked areas, generate: {prompt}. "
    "Keep the black areas unchanged. Match the style and lighting of the original image."
)

REFERENCE_EDIT_PROMPT_TEMPLATE = (
    "Edit the first image. The second image is a mask where white areas should be replaced. "
    "The additional images are references to help guide the generation. "
    "In the white masked areas, generate: {prompt}. "
    "Use the reference images as context for the generation. "
    "Keep the black areas unchanged."
)


def parse_model(selector):
    """Map an inbound model selector string to a Model, defaulting to the fast model."""
    if isinstance(selector, Model):
        return selector
    try:
        return Model((selector or "").strip().lower())
    except ValueError:
        logger.debug(f"Unknown model selector {selector!r}, using {DEFAULT_MODEL.value}")
        return DEFAULT_MODEL


def backend_model_name(model):
    return BACKEND_MODEL_NAMES[parse_model(model)]


@dataclass(frozen=True)
class ImageSegment:
    data: str
    mime_type: str = PNG_MIME_TYPE

    def to_json(self):
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}


@dataclass(frozen=True)
class TextSegment:
    text: str

    def to_json(self):
        return {"text": self.text}


Segment = Union[ImageSegment, TextSegment]


@dataclass(frozen=True)
class GenerationOptions:
    response_modalities: Tuple[str, ...] = (RESPONSE_MODALITY_IMAGE,)
    aspect_ratio: Optional[str] = None
    image_size: Optional[str] = None

    def to_json(self):
        config = {"responseModalities": list(self.response_modalities)}
        image_config = {}
        if self.aspect_ratio:
            image_config["aspectRatio"] = self.aspect_ratio
        if self.image_size:
            image_config["imageSize"] = self.image_size
        if image_config:
            config["imageConfig"] = image_config
        return config


@dataclass(frozen=True)
class GenerationRequest:
    model: Model
    segments: Tuple[Segment, ...]
    options: GenerationOptions = field(default_factory=GenerationOptions)

    def __post_init__(self):
        texts = [s for s in self.segments if isinstance(s, TextSegment)]
        images = [s for s in self.segments if isinstance(s, ImageSegment)]
        if not images:
            raise ValueError("A generation request needs at least one image segment")
        if len(texts) != 1 or self.segments[-1] is not texts[0]:
            raise ValueError("A generation request needs exactly one text segment, placed last")

    @property
    def backend_model(self):
        return BACKEND_MODEL_NAMES[self.model]

    @property
    def image_segments(self):
        return [s for s in self.segments if isinstance(s, ImageSegment)]

    @property
    def prompt_text(self):
        return self.segments[-1].text

    def to_json(self):
        """Serialise to the generateContent JSON body."""
        return {
            "contents": [{"parts": [segment.to_json() for segment in self.segments]}],
            "generationConfig": self.options.to_json(),
        }


def normalize_image_size(image_size):
    """Return "1K"/"2K"/"4K" for a recognised resolution hint, otherwise None."""
    if not image_size:
        return None
    size = str(image_size).strip().upper()
    if size not in IMAGE_SIZES:
        logger.warning(f"Ignoring unsupported output resolution {image_size!r}")
        return None
    return size


def build_prompt(prompt, has_references):
    template = REFERENCE_EDIT_PROMPT_TEMPLATE if has_references else EDIT_PROMPT_TEMPLATE
    return template.format(prompt=prompt)


def _load_segment_image(image_data, segment_name):
    """Decode a base64 string or raw encoded bytes into a raster."""
    try:
        if isinstance(image_data, str):
            image_bytes = image_codec.decode_base64(image_data)
        else:
            image_bytes = image_data
        return image_codec.decode(image_bytes)
    except InvalidImageData as e:
        raise InvalidImageData(segment_name, e.cause) from e
    except DecodeError as e:
        raise InvalidImageData(segment_name, e) from e


def _png_segment(raster, segment_name):
    try:
        png = image_codec.encode_image(raster, "png")
    except EncodeError as e:
        raise InvalidImageData(segment_name, e) from e
    logger.debug(f"{segment_name}: {raster.width}x{raster.height}, {len(png.data)} bytes as PNG")
    return ImageSegment(data=png.to_base64(), mime_type=PNG_MIME_TYPE)


def build_request(
    model,
    prompt: str,
    source_image,
    mask_image,
    reference_images: Sequence = (),
    image_size: Optional[str] = None,
) -> GenerationRequest:
    """
    Build a masked edit request.

    Segment order is fixed: source image, mask image, each reference image in
    input order, then the instruction text. Every image is re-encoded as PNG.

    Args:
        model: Model or selector string ("nano-banana", "nano-banana-pro")
        prompt: Description of what to generate in the masked area
        source_image: Cropped source image, base64 string or encoded bytes
        mask_image: Mask (white = generate, black = keep), base64 or bytes
        reference_images: Optional guide images; empty entries are skipped
        image_size: Optional output resolution hint ("1K", "2K", "4K")

    Returns:
        GenerationRequest

    Raises:
        InvalidImageData: If any image is not valid base64 or not a decodable image
    """
    model = parse_model(model)
    references = [ref for ref in (reference_images or ()) if ref]

    source_raster = _load_segment_image(source_image, "source image")
    mask_raster = _load_segment_image(mask_image, "mask image")

    segments = [
        _png_segment(source_raster, "source image"),
        _png_segment(mask_raster, "mask image"),
    ]
    for i, reference in enumerate(references, start=1):
        name = f"reference image {i}"
        segments.append(_png_segment(_load_segment_image(reference, name), name))

    segments.append(TextSegment(text=build_prompt(prompt, bool(references))))

    # The backend infers the ratio itself for a single image
    ratio = None
    if references:
        ratio = aspect_ratio.resolve(source_raster.width, source_raster.height)
        logger.info(f"Using aspect ratio {ratio} for {len(references)} reference image(s)")

    options = GenerationOptions(
        response_modalities=(RESPONSE_MODALITY_IMAGE,),
        aspect_ratio=ratio,
        image_size=normalize_image_size(image_size),
    )

    return GenerationRequest(model=model, segments=tuple(segments), options=options)
