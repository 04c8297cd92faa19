"""Core data models for Gemini image generation."""

import base64
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, model_validator


class GenerationMode(str, Enum):
    """Which kind of generation the user asked for."""
    TEXT_TO_IMAGE = "text-to-image"
    IMAGE_TO_IMAGE = "image-to-image"


class StatusKind(str, Enum):
    """Kinds of status shown to the user."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class Credentials(BaseModel):
    """API credentials for the Gemini service.

    The key is opaque: it is only checked for being non-empty at the
    moment it is used.
    """

    api_key: str = Field(
        default="",
        description="Google API key"
    )

    @property
    def has_key(self) -> bool:
        """Whether a usable (non-blank) key is present."""
        return bool(self.api_key and self.api_key.strip())

    def __repr__(self) -> str:
        """Never echo the key itself."""
        return f"Credentials(has_key={self.has_key})"

    __str__ = __repr__


class Preferences(BaseModel):
    """User preferences persisted across sessions."""

    auto_enhance: bool = False
    dark_mode: bool = False


class UploadedImage(BaseModel):
    """A validated source image held for image-to-image generation.

    Attributes:
        data: Base64 payload without any data-URI prefix
        mime_type: Detected mime type of the upload
        filename: Original file name, for display
    """

    data: str = Field(..., min_length=1, description="Base64 image payload")
    mime_type: str = Field(..., description="Mime type of the uploaded file")
    filename: str = Field(default="", description="Original file name")

    class Config:
        frozen = True


class InlineImage(BaseModel):
    """Inline image part of an outbound request."""

    mime_type: str
    data: str = Field(..., min_length=1)

    class Config:
        frozen = True


class GenerationRequest(BaseModel):
    """Request model for a single generation call.

    Attributes:
        prompt: Final prompt text (after optional enhancement)
        mode: Text-to-image or image-to-image
        inline_image: The source image for image-to-image mode
        response_modalities: Output types requested from the service
    """

    prompt: str = Field(
        ...,
        min_length=1,
        description="Text prompt describing the desired image"
    )
    mode: GenerationMode = Field(
        default=GenerationMode.TEXT_TO_IMAGE,
        description="Generation mode"
    )
    inline_image: Optional[InlineImage] = Field(
        default=None,
        description="Source image sent inline with the prompt"
    )
    response_modalities: List[str] = Field(
        default_factory=lambda: ["TEXT", "IMAGE"],
        description="Modalities requested in the response"
    )

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "prompt": "A serene landscape with mountains and a lake at sunset",
                "mode": "text-to-image",
                "inline_image": None,
                "response_modalities": ["TEXT", "IMAGE"]
            }
        }

    @model_validator(mode="after")
    def _check_inline_image(self) -> "GenerationRequest":
        if not self.prompt.strip():
            raise ValueError("prompt must not be blank")
        if self.mode == GenerationMode.IMAGE_TO_IMAGE and self.inline_image is None:
            raise ValueError("image-to-image requests need an inline image")
        if self.mode == GenerationMode.TEXT_TO_IMAGE and self.inline_image is not None:
            raise ValueError("text-to-image requests cannot carry an inline image")
        return self

    def to_payload(self) -> Dict[str, Any]:
        """Render the request as the generateContent JSON body."""
        parts: List[Dict[str, Any]] = [{"text": self.prompt}]
        if self.inline_image is not None:
            parts.append({
                "inline_data": {
                    "mime_type": self.inline_image.mime_type,
                    "data": self.inline_image.data,
                }
            })

        return {
            "contents": [{"parts": parts}],
            "generationConfig": {"responseModalities": list(self.response_modalities)},
        }


class GeneratedImage(BaseModel):
    """Response model for generated images.

    Attributes:
        image_base64: Base64 image payload exactly as returned by the service
        mime_type: Mime type reported alongside the payload
        prompt: The prompt used to generate the image
        backend: Name of the backend that generated the image
        timestamp: When the image was generated
        metadata: Additional information about the generation
    """

    image_base64: str = Field(
        ...,
        min_length=1,
        description="Base64 image payload"
    )
    mime_type: str = Field(
        default="image/png",
        description="Mime type of the image payload"
    )
    prompt: str = Field(
        ...,
        description="The prompt used to generate the image"
    )
    backend: str = Field(
        ...,
        description="Name of the backend that generated the image"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the image was generated"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional information about the generation"
    )

    @property
    def image_data(self) -> bytes:
        """Raw image bytes decoded from the payload."""
        return base64.b64decode(self.image_base64)


class StatusMessage(BaseModel):
    """The single current status shown to the user."""

    kind: StatusKind
    text: str

    class Config:
        frozen = True

    @classmethod
    def info(cls, text: str) -> "StatusMessage":
        return cls(kind=StatusKind.INFO, text=text)

    @classmethod
    def success(cls, text: str) -> "StatusMessage":
        return cls(kind=StatusKind.SUCCESS, text=text)

    @classmethod
    def error(cls, text: str) -> "StatusMessage":
        return cls(kind=StatusKind.ERROR, text=text)


class EnhancementResult(BaseModel):
    """Outcome of a best-effort prompt enhancement.

    Attributes:
        prompt: Prompt to use next; the original when enhancement failed
        enhanced: Whether the prompt was actually rewritten
        error: Why enhancement was skipped or failed, if it was
    """

    prompt: str
    enhanced: bool = False
    error: Optional[str] = None


class SessionState(BaseModel):
    """Everything the user has entered for the current session.

    Mode and uploaded image are set independently: removing the image
    leaves the mode as it was.
    """

    credentials: Credentials = Field(default_factory=Credentials)
    prompt: str = ""
    mode: GenerationMode = GenerationMode.TEXT_TO_IMAGE
    uploaded_image: Optional[UploadedImage] = None
    preferences: Preferences = Field(default_factory=Preferences)

    def attach_image(self, image: UploadedImage) -> None:
        """Replace the active upload and switch to image-to-image."""
        self.uploaded_image = image
        self.mode = GenerationMode.IMAGE_TO_IMAGE

    def remove_image(self) -> None:
        """Drop the active upload without touching the mode."""
        self.uploaded_image = None

    def snapshot(self) -> "SessionSnapshot":
        """Immutable copy of the state, taken when a generation is dispatched."""
        return SessionSnapshot(
            credentials=self.credentials.model_copy(),
            prompt=self.prompt,
            mode=self.mode,
            uploaded_image=self.uploaded_image,
            auto_enhance=self.preferences.auto_enhance,
        )


class SessionSnapshot(BaseModel):
    """Frozen view of a session used by one generation run."""

    credentials: Credentials
    prompt: str
    mode: GenerationMode
    uploaded_image: Optional[UploadedImage] = None
    auto_enhance: bool = False

    class Config:
        frozen = True
