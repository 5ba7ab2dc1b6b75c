"""
HTTP client for the Gemini image generation backend.

Sends a built GenerationRequest to the generateContent endpoint and hands the
raw body to the response extractor. No retries: a failed call is reported to
the caller immediately.
"""

import logging
import time

import requests

import request_builder
import response_extractor
from generation_errors import ApiKeyMissing, GenerationError, RequestFailed

logger = logging.getLogger(__name__)

API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_TIMEOUT = 120


class GeminiClient:
    """Masked image generation against the Gemini API."""

    def __init__(self, api_key, timeout=DEFAULT_TIMEOUT, session=None):
        self.api_key = api_key
        self.timeout = timeout
        # Only a session created here is closed by close()
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()

    def close(self):
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def endpoint(self, model):
        return f"{API_BASE_URL}/{request_builder.backend_model_name(model)}:generateContent"

    def _redact(self, text):
        if self.api_key:
            return text.replace(self.api_key, "***")
        return text

    def send(self, request):
        """
        POST a request and return the raw response body.

        Args:
            request: GenerationRequest from request_builder.build_request

        Returns:
            str: Response body text, whatever the HTTP status

        Raises:
            ApiKeyMissing: If no API key is set
            RequestFailed: If the backend could not be reached
        """
        if not self.api_key:
            raise ApiKeyMissing()

        url = self.endpoint(request.model)
        logger.info(f"Sending request to Gemini API: {request.backend_model}")

        start_time = time.time()
        try:
            response = self.session.post(
                url,
                params={"key": self.api_key},
                json=request.to_json(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            reason = self._redact(str(e))
            logger.error(f"Request to {request.backend_model} failed: {reason}")
            raise RequestFailed(reason) from e

        latency = time.time() - start_time
        logger.info(f"API response status: {response.status_code} ({latency:.2f}s)")
        return response.text

    def generate_fill(
        self,
        model,
        prompt,
        image_base64,
        mask_base64,
        reference_images=(),
        image_size=None,
    ):
        """
        Generate fill for a masked region.

        Args:
            model: Model or selector string
            prompt: Text description of what to generate
            image_base64: The cropped source image as base64
            mask_base64: The mask image as base64 (white = generate, black = keep)
            reference_images: Optional reference images as base64
            image_size: Optional output resolution ("1K", "2K", "4K")

        Returns:
            GenerationResult: The generated image or the typed failure
        """
        try:
            request = request_builder.build_request(
                model, prompt, image_base64, mask_base64, reference_images, image_size
            )
            body = self.send(request)
        except GenerationError as e:
            return response_extractor.GenerationResult(error=e)

        return response_extractor.extract(body)
