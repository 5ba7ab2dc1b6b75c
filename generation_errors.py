"""
Error taxonomy for the generative fill pipeline.

Every failure the core can report is a GenerationError subclass. Core modules
raise these; the client and command layers turn them into result values whose
message is shown to the user as-is.
"""


class GenerationError(Exception):
    """Base class for all generative fill failures."""


class RequestFailed(GenerationError):
    """Transport-level failure reaching the backend."""

    def __init__(self, reason):
        self.reason = reason
        super().__init__(f"HTTP request failed: {reason}")


class ApiKeyMissing(GenerationError):
    """No API key was configured."""

    def __init__(self):
        super().__init__(
            "API key not configured. Please set your Gemini API key in Settings."
        )


class ApiError(GenerationError):
    """Backend explicitly rejected the request."""

    def __init__(self, message):
        self.api_message = message
        super().__init__(f"API returned error: {message}")


class ParseError(GenerationError):
    """Response body did not match the expected shape."""

    EXCERPT_LIMIT = 200

    def __init__(self, reason, body=""):
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        self.reason = reason
        self.excerpt = body[: self.EXCERPT_LIMIT]
        super().__init__(f"Failed to parse response: {reason}: {self.excerpt}")


class NoImageGenerated(GenerationError):
    """A well-formed response contained no usable image segment."""

    def __init__(self, model_text=None, finish_reason=None):
        self.model_text = model_text
        self.finish_reason = finish_reason
        super().__init__("No image generated")


class InvalidImageData(GenerationError):
    """Caller supplied malformed base64 or image bytes."""

    def __init__(self, segment, cause):
        self.segment = segment
        self.cause = cause
        super().__init__(f"Invalid image data in {segment}: {cause}")


class CompositeError(GenerationError):
    """Decode, resize or encode failure while compositing."""


class DecodeError(GenerationError):
    """Byte stream could not be decoded into a raster."""


class EncodeError(GenerationError):
    """Raster could not be encoded into the requested format."""
