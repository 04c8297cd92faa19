"""Google Gemini generateContent backend implementation."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
import requests

from src.core.base_backend import BaseBackend
from src.core.errors import (
    MissingCredentialError,
    MissingImageError,
    MissingPromptError,
    NoImageInResponseError,
    RemoteError,
)
from src.core.models import Credentials, GenerationMode, GenerationRequest, GeneratedImage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def build_endpoint(base_url: str, model: str) -> str:
    """URL of the generateContent method for a model."""
    return f"{base_url.rstrip('/')}/models/{model}:generateContent"


def redact(text: str, api_key: str) -> str:
    """Hide the API key in messages that may echo the request URL."""
    if api_key:
        return text.replace(api_key, "***")
    return text


def first_candidate_parts(body: Any) -> List[Dict[str, Any]]:
    """Content parts of the first candidate, or an empty list.

    Tolerates any missing or mistyped level of the envelope.
    """
    if not isinstance(body, dict):
        return []

    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return []

    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return []

    return [part for part in parts if isinstance(part, dict)]


def find_inline_image(parts: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """First part carrying inline image data, in either key spelling."""
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if isinstance(inline, dict) and inline.get("data"):
            return inline
    return None


def error_message_from_response(response: requests.Response) -> str:
    """Extract ``error.message`` from an error body, with a generic fallback."""
    fallback = f"HTTP error! status: {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])

    return fallback


class GeminiBackend(BaseBackend):
    """Backend implementation using the Gemini generateContent API.

    Each call is a single POST with the API key as a query parameter.
    Nothing is retried.

    Attributes:
        model: Image generation model name
        base_url: Base URL of the Generative Language API
        timeout: Request timeout in seconds, or None to wait indefinitely
    """

    DEFAULT_MODEL = "gemini-2.0-flash-preview-image-generation"

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: Optional[float] = None
    ):
        """Initialize the Gemini backend.

        Args:
            model: Optional model name (defaults to the image preview model)
            base_url: API base URL
            timeout: Request timeout in seconds
        """
        self.model = model or self.DEFAULT_MODEL
        self.base_url = base_url
        self.timeout = timeout
        logger.info(f"Initialized Gemini backend with model: {self.model}")

    @property
    def endpoint(self) -> str:
        return build_endpoint(self.base_url, self.model)

    def generate_image(
        self,
        request: GenerationRequest,
        credentials: Credentials
    ) -> GeneratedImage:
        """Generate an image using the Gemini API.

        Supports both text-to-image and image-to-image generation.

        Args:
            request: The generation request
            credentials: Credentials holding the API key

        Returns:
            GeneratedImage with the first inline image of the first candidate

        Raises:
            MissingCredentialError: If no API key is present
            MissingPromptError: If the prompt is empty
            MissingImageError: If image-to-image mode has no inline image
            RemoteError: If the call fails or the service reports an error
            NoImageInResponseError: If the response holds no image part
        """
        if not credentials.has_key:
            raise MissingCredentialError()
        if not request.prompt.strip():
            raise MissingPromptError()
        if request.mode == GenerationMode.IMAGE_TO_IMAGE and request.inline_image is None:
            raise MissingImageError()

        api_key = credentials.api_key.strip()
        logger.info(f"Generating {request.mode.value} with prompt: {request.prompt[:50]}...")

        try:
            response = requests.post(
                self.endpoint,
                params={"key": api_key},
                json=request.to_payload(),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            message = redact(str(e), api_key)
            logger.error(f"Gemini request failed: {message}")
            raise RemoteError(f"Failed to reach Gemini API: {message}") from e

        if not response.ok:
            message = error_message_from_response(response)
            logger.error(f"Gemini API error ({response.status_code}): {message}")
            raise RemoteError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Gemini returned a non-JSON body: {e}")
            raise RemoteError(
                "Invalid response from Gemini API",
                status_code=response.status_code
            ) from e

        parts = first_candidate_parts(body)
        inline = find_inline_image(parts)
        if inline is None:
            logger.warning("Gemini response contained no inline image data")
            raise NoImageInResponseError(status_code=response.status_code)

        texts = [part["text"] for part in parts if isinstance(part.get("text"), str)]
        metadata = {
            "model": self.model,
            "generation_type": request.mode.value,
        }
        if texts:
            metadata["text"] = "\n".join(texts)

        result = GeneratedImage(
            image_base64=inline["data"],
            mime_type=inline.get("mimeType") or inline.get("mime_type") or "image/png",
            prompt=request.prompt,
            backend=self.name,
            timestamp=datetime.now(),
            metadata=metadata
        )

        logger.info(f"Successfully generated image ({len(result.image_base64)} base64 chars)")
        return result

    @property
    def name(self) -> str:
        """Get the backend name.

        Returns:
            The string "Gemini"
        """
        return "Gemini"

    @property
    def supported_models(self) -> list[str]:
        """Get a list of Gemini models that can return images."""
        return [
            "gemini-2.0-flash-preview-image-generation",
            "gemini-2.5-flash-image",
            "gemini-2.5-flash-image-preview",
        ]
