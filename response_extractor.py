"""
Response extraction for generateContent replies.

A reply may carry an error object, a list of candidates, or neither. Each
candidate holds content parts that are either text or inline data. Parts are
parsed into a small tagged union and scanned for the first image.

Policy: the first part whose mime type starts with "image/" wins, in candidate
order then part order. Later images are ignored even if they are larger.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from generation_errors import ApiError, GenerationError, NoImageGenerated, ParseError
from image_codec import EncodedImage, format_from_mime_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class InlineDataPart:
    mime_type: str
    data: str

    @property
    def is_image(self):
        return self.mime_type.startswith("image/")


@dataclass(frozen=True)
class OtherPart:
    """A part kind this module does not use (function calls, etc.)."""

    keys: tuple


Part = Union[TextPart, InlineDataPart, OtherPart]


@dataclass(frozen=True)
class Candidate:
    parts: List[Part]
    finish_reason: Optional[str] = None


@dataclass(frozen=True)
class GenerationResponse:
    candidates: Optional[List[Candidate]]
    error_message: Optional[str] = None


@dataclass(frozen=True)
class GenerationResult:
    """Either a generated image or the error explaining why there is none."""

    image: Optional[EncodedImage] = None
    error: Optional[GenerationError] = None

    def __post_init__(self):
        if (self.image is None) == (self.error is None):
            raise ValueError("GenerationResult holds exactly one of image or error")

    @property
    def success(self):
        return self.image is not None

    @property
    def message(self):
        return str(self.error) if self.error else ""


class _ShapeError(Exception):
    pass


def _expect(value, kind, what):
    if not isinstance(value, kind):
        raise _ShapeError(f"{what} should be {kind.__name__}, got {type(value).__name__}")
    return value


def _parse_part(raw):
    _expect(raw, dict, "part")
    inline = raw.get("inlineData", raw.get("inline_data"))
    if inline is not None:
        _expect(inline, dict, "inlineData")
        mime_type = inline.get("mimeType", inline.get("mime_type"))
        data = inline.get("data")
        if not isinstance(mime_type, str) or not isinstance(data, str):
            raise _ShapeError("inlineData needs string mimeType and data")
        return InlineDataPart(mime_type=mime_type, data=data)
    if "text" in raw:
        return TextPart(text=_expect(raw["text"], str, "text"))
    return OtherPart(keys=tuple(sorted(raw)))


def _parse_candidate(raw):
    _expect(raw, dict, "candidate")
    content = raw.get("content") or {}
    _expect(content, dict, "content")
    parts = content.get("parts") or []
    _expect(parts, list, "parts")
    finish_reason = raw.get("finishReason")
    return Candidate(parts=[_parse_part(p) for p in parts], finish_reason=finish_reason)


def parse_response(body):
    """
    Parse a response body into a GenerationResponse.

    Args:
        body: Raw JSON text/bytes, or an already decoded dict

    Raises:
        ParseError: If the body is not JSON or has the wrong shape
    """
    try:
        data = json.loads(body) if isinstance(body, (str, bytes)) else body
        _expect(data, dict, "response")

        error_message = None
        error = data.get("error")
        if error is not None:
            if isinstance(error, dict):
                detail = error.get("message") or error.get("status") or error.get("code")
                error_message = str(detail) if detail is not None else ""
            else:
                error_message = str(error)

        candidates = None
        raw_candidates = data.get("candidates")
        if raw_candidates is not None:
            _expect(raw_candidates, list, "candidates")
            candidates = [_parse_candidate(c) for c in raw_candidates]
    except (ValueError, _ShapeError) as e:
        raise ParseError(str(e), _raw_text(body)) from e

    return GenerationResponse(candidates=candidates, error_message=error_message)


def find_image(response, raw_body=""):
    """
    Return the first image part of a parsed response as an EncodedImage.

    Raises:
        ApiError: If the response carries an error object
        NoImageGenerated: If no part holds image data
        ParseError: If the image payload is not valid base64
    """
    if response.error_message is not None:
        logger.error(f"Backend returned error: {response.error_message}")
        raise ApiError(response.error_message)

    if not response.candidates:
        logger.error("No candidates in response")
        raise NoImageGenerated()

    logger.info(f"Got {len(response.candidates)} candidates")
    texts = []
    for candidate in response.candidates:
        logger.debug(f"Candidate has {len(candidate.parts)} parts")
        for part in candidate.parts:
            if isinstance(part, TextPart):
                logger.debug(f"Found text part: {part.text[:200]}")
                texts.append(part.text)
            elif isinstance(part, InlineDataPart):
                logger.debug(f"Found inline data with mime type {part.mime_type}")
                if part.is_image:
                    try:
                        image_bytes = base64.b64decode(part.data, validate=True)
                    except (binascii.Error, ValueError) as e:
                        raise ParseError(f"invalid image data: {e}", raw_body) from e
                    logger.info(f"Returning image data ({len(image_bytes)} bytes)")
                    return EncodedImage(
                        data=image_bytes, format=format_from_mime_type(part.mime_type)
                    )

    finish_reason = next(
        (c.finish_reason for c in response.candidates if c.finish_reason), None
    )
    logger.error("No image found in response parts")
    raise NoImageGenerated(
        model_text="\n".join(texts) or None, finish_reason=finish_reason
    )


def extract(response_body):
    """
    Extract the generated image from a response body.

    Args:
        response_body: Raw JSON text/bytes, or an already decoded dict

    Returns:
        GenerationResult: The image, or ApiError / ParseError / NoImageGenerated
    """
    try:
        response = parse_response(response_body)
        return GenerationResult(image=find_image(response, _raw_text(response_body)))
    except (ApiError, NoImageGenerated, ParseError) as e:
        return GenerationResult(error=e)


def _raw_text(body):
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        return body
    return json.dumps(body, default=str)
