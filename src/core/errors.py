"""Error types raised while preparing and running a generation."""

from enum import Enum
from typing import Optional


class ValidationReason(str, Enum):
    """Why a generation was rejected before any network call."""
    MISSING_CREDENTIAL = "missing_credential"
    MISSING_PROMPT = "missing_prompt"
    MISSING_IMAGE = "missing_image"


class GenerationValidationError(ValueError):
    """Inputs are incomplete; nothing was sent to the service.

    Attributes:
        reason: Which input was missing
        message: User-facing explanation
    """

    reason: ValidationReason

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingCredentialError(GenerationValidationError):
    reason = ValidationReason.MISSING_CREDENTIAL

    def __init__(self, message: str = "Please enter your Google API Key"):
        super().__init__(message)


class MissingPromptError(GenerationValidationError):
    reason = ValidationReason.MISSING_PROMPT

    def __init__(self, message: str = "Please enter a prompt"):
        super().__init__(message)


class MissingImageError(GenerationValidationError):
    reason = ValidationReason.MISSING_IMAGE

    def __init__(self, message: str = "Please upload an image for image-to-image mode"):
        super().__init__(message)


class UnsupportedMediaTypeError(ValueError):
    """The uploaded file is not one of the accepted image types."""

    def __init__(self, mime_type: Optional[str]):
        super().__init__("Please upload a valid image file (JPEG, PNG, WebP)")
        self.mime_type = mime_type


class PayloadTooLargeError(ValueError):
    """The uploaded file exceeds the size ceiling."""

    def __init__(self, size: int, limit: int):
        limit_mb = limit // (1024 * 1024)
        super().__init__(f"Image file size must be less than {limit_mb}MB")
        self.size = size
        self.limit = limit


class RemoteError(RuntimeError):
    """The generation service failed or returned an error body.

    Attributes:
        message: Message supplied by the service, or a generic fallback
        status_code: HTTP status, when a response was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NoImageInResponseError(RemoteError):
    """The service answered successfully but sent no image part."""

    def __init__(
        self,
        message: str = "No image data found in the response",
        status_code: Optional[int] = None
    ):
        super().__init__(message, status_code)
