"""Builds generation requests from session inputs."""

from typing import Optional

from src.core.errors import MissingImageError, MissingPromptError
from src.core.models import (
    GenerationMode,
    GenerationRequest,
    InlineImage,
    UploadedImage,
)

# Inline images are labelled JPEG whatever the upload's real type was.
DEFAULT_INLINE_MIME_TYPE = "image/jpeg"

RESPONSE_MODALITIES = ("TEXT", "IMAGE")


def build_request(
    mode: GenerationMode,
    final_prompt: str,
    uploaded_image: Optional[UploadedImage] = None,
    use_upload_mime_type: bool = False
) -> GenerationRequest:
    """Assemble the outbound request.

    The prompt is always the first part. Image-to-image requests get
    exactly one inline image part; text-to-image requests never get one,
    even if an upload is still attached to the session.

    Args:
        mode: Generation mode
        final_prompt: Prompt text after optional enhancement
        uploaded_image: Active upload, required for image-to-image
        use_upload_mime_type: Label the inline image with the upload's
            own mime type instead of JPEG

    Returns:
        GenerationRequest ready to send

    Raises:
        MissingPromptError: If the prompt is empty
        MissingImageError: If image-to-image mode has no upload
    """
    if not final_prompt or not final_prompt.strip():
        raise MissingPromptError()

    inline_image = None
    if mode == GenerationMode.IMAGE_TO_IMAGE:
        if uploaded_image is None:
            raise MissingImageError()

        mime_type = DEFAULT_INLINE_MIME_TYPE
        if use_upload_mime_type and uploaded_image.mime_type:
            mime_type = uploaded_image.mime_type

        inline_image = InlineImage(mime_type=mime_type, data=uploaded_image.data)

    return GenerationRequest(
        prompt=final_prompt,
        mode=mode,
        inline_image=inline_image,
        response_modalities=list(RESPONSE_MODALITIES),
    )
