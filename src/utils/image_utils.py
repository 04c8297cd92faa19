"""Image utility functions for upload encoding, display and download."""

import base64
import binascii
import io
import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, Union
from PIL import Image

from src.core.errors import PayloadTooLargeError, UnsupportedMediaTypeError
from src.core.models import GeneratedImage, UploadedImage

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class ImageFormat:
    """Accepted upload mime types."""
    JPEG = "image/jpeg"
    PNG = "image/png"
    WEBP = "image/webp"

    ALLOWED = (JPEG, PNG, WEBP)


_EXTENSIONS = {
    ImageFormat.JPEG: "jpg",
    ImageFormat.PNG: "png",
    ImageFormat.WEBP: "webp",
}


def strip_data_uri(value: str) -> str:
    """Remove a leading ``data:<mime>;base64,`` prefix, if present."""
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


def encode(
    file_bytes: bytes,
    mime_type: Optional[str],
    max_bytes: int = MAX_UPLOAD_BYTES
) -> str:
    """Encode an uploaded image for transport.

    Args:
        file_bytes: Raw file contents
        mime_type: Declared mime type of the file
        max_bytes: Size ceiling in bytes

    Returns:
        Base64 payload with no data-URI prefix

    Raises:
        UnsupportedMediaTypeError: If the type is not JPEG, PNG or WebP
        PayloadTooLargeError: If the file is larger than ``max_bytes``
    """
    if (mime_type or "").lower() not in ImageFormat.ALLOWED:
        raise UnsupportedMediaTypeError(mime_type)

    if len(file_bytes) > max_bytes:
        raise PayloadTooLargeError(len(file_bytes), max_bytes)

    return base64.b64encode(file_bytes).decode("ascii")


def decode(payload: str) -> bytes:
    """Decode a base64 payload (with or without data-URI prefix) to bytes.

    Raises:
        ValueError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(strip_data_uri(payload), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e


def detect_mime_type(data: bytes) -> Optional[str]:
    """Guess an image mime type from its leading bytes.

    Returns:
        One of the accepted mime types, or None if unrecognized
    """
    if data.startswith(b'\x89PNG'):
        return ImageFormat.PNG
    if data.startswith(b'\xff\xd8'):
        return ImageFormat.JPEG
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return ImageFormat.WEBP
    return None


def load_upload(
    path: Union[str, Path],
    mime_type: Optional[str] = None,
    max_bytes: int = MAX_UPLOAD_BYTES
) -> UploadedImage:
    """Read and validate an image file chosen by the user.

    The mime type is taken from the caller if given, otherwise guessed
    from the file name, otherwise sniffed from the contents when the name
    does not look like an image.

    Args:
        path: Path to the uploaded file
        mime_type: Mime type reported by the upload widget, if any
        max_bytes: Size ceiling in bytes

    Returns:
        UploadedImage ready to attach to a session

    Raises:
        UnsupportedMediaTypeError: If the file is not an accepted image type
        PayloadTooLargeError: If the file is too large
        OSError: If the file cannot be read
    """
    path = Path(path)
    file_bytes = path.read_bytes()

    resolved = mime_type
    if not resolved:
        guessed = mimetypes.guess_type(path.name)[0]
        if guessed and guessed.startswith("image/"):
            resolved = guessed
        else:
            resolved = detect_mime_type(file_bytes)

    data = encode(file_bytes, resolved, max_bytes=max_bytes)

    logger.info(f"Accepted upload '{path.name}' ({resolved}, {len(file_bytes)} bytes)")
    return UploadedImage(data=data, mime_type=resolved.lower(), filename=path.name)


def to_pil_image(payload: str) -> Image.Image:
    """Decode a base64 payload into a PIL Image for display.

    Args:
        payload: Base64 image data

    Returns:
        PIL Image object
    """
    image = Image.open(io.BytesIO(decode(payload)))
    image.load()
    return image


def create_download(
    generated_image: GeneratedImage,
    prefix: str = "swap-creations",
    timestamp: Optional[datetime] = None
) -> Tuple[bytes, str]:
    """Turn a generated image into a downloadable file.

    The bytes are the decoded payload, unchanged.

    Args:
        generated_image: GeneratedImage object
        prefix: Fixed file name prefix
        timestamp: Time used in the file name (defaults to now)

    Returns:
        Tuple of (image_bytes, filename)
    """
    image_bytes = decode(generated_image.image_base64)

    mime_type = generated_image.mime_type or detect_mime_type(image_bytes)
    extension = _EXTENSIONS.get(mime_type, "jpg")

    moment = timestamp or datetime.now()
    millis = int(moment.timestamp() * 1000)
    filename = f"{prefix}-{millis}.{extension}"

    return image_bytes, filename
