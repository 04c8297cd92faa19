"""Image generation orchestrator."""

import logging
import threading
from typing import Callable, List, Optional, Protocol

from pydantic import BaseModel

from src.core.base_backend import BaseBackend
from src.core.errors import (
    GenerationValidationError,
    MissingCredentialError,
    MissingImageError,
    MissingPromptError,
    RemoteError,
)
from src.core.models import (
    GenerationMode,
    GeneratedImage,
    SessionSnapshot,
    SessionState,
    StatusMessage,
)
from src.core.request_builder import build_request
from src.utils.prompt_enhancer import PromptEnhancer

logger = logging.getLogger(__name__)

ENHANCING_MESSAGE = "Enhancing prompt..."
GENERATING_MESSAGE = "Generating image..."
SUCCESS_MESSAGE = "Image generated successfully!"
BUSY_MESSAGE = "A generation is already in progress"
FALLBACK_ERROR_MESSAGE = "Failed to generate image. Please check your API key and try again."


class StatusSink(Protocol):
    """Receives status transitions for a generation run."""

    def report(self, status: StatusMessage) -> None:
        ...


class LatestStatusSink:
    """Keeps only the most recent status."""

    def __init__(self):
        self.current: Optional[StatusMessage] = None

    def report(self, status: StatusMessage) -> None:
        self.current = status


class CallbackStatusSink:
    """Forwards each status to a callable."""

    def __init__(self, callback: Callable[[StatusMessage], None]):
        self.callback = callback

    def report(self, status: StatusMessage) -> None:
        self.callback(status)


class RecordingStatusSink(LatestStatusSink):
    """Latest-status sink that also records every transition, in order."""

    def __init__(self):
        super().__init__()
        self.history: List[StatusMessage] = []

    def report(self, status: StatusMessage) -> None:
        super().report(status)
        self.history.append(status)


class GenerationOutcome(BaseModel):
    """Result of one orchestrated generation.

    Attributes:
        status: Terminal status reported for the run
        image: Generated image on success
        error: The exception that ended the run, on failure
        final_prompt: Prompt actually sent (after optional enhancement)
    """

    status: StatusMessage
    image: Optional[GeneratedImage] = None
    error: Optional[Exception] = None
    final_prompt: Optional[str] = None

    class Config:
        arbitrary_types_allowed = True

    @property
    def succeeded(self) -> bool:
        return self.image is not None


class ImageGenerator:
    """Runs the validate, enhance, build and dispatch sequence for a session.

    Only one generation may be in flight at a time; the flag is set before
    the enhancer is called and cleared once the backend call resolves.

    Attributes:
        backend: Backend that performs the generation call
        enhancer: Prompt enhancer used when auto-enhance is on
        sink: Receiver of status transitions
        use_upload_mime_type: Label inline images with the upload's own type
    """

    def __init__(
        self,
        backend: BaseBackend,
        enhancer: Optional[PromptEnhancer] = None,
        sink: Optional[StatusSink] = None,
        use_upload_mime_type: bool = False
    ):
        """Initialize the image generator.

        Args:
            backend: The backend to use for generation
            enhancer: Optional prompt enhancer
            sink: Optional status sink (defaults to a LatestStatusSink)
            use_upload_mime_type: See class attributes
        """
        self.backend = backend
        self.enhancer = enhancer or PromptEnhancer()
        self.sink = sink if sink is not None else LatestStatusSink()
        self.use_upload_mime_type = use_upload_mime_type
        self._lock = threading.Lock()
        self._in_flight = False

        logger.info(f"Initialized ImageGenerator with backend: {backend.name}")

    @property
    def is_busy(self) -> bool:
        """Whether a generation is currently in flight."""
        return self._in_flight

    def _acquire(self) -> bool:
        with self._lock:
            if self._in_flight:
                return False
            self._in_flight = True
            return True

    def _release(self) -> None:
        with self._lock:
            self._in_flight = False

    @staticmethod
    def validate(snapshot: SessionSnapshot) -> None:
        """Pre-network checks, in the order the user sees them.

        Raises:
            MissingCredentialError: If no API key is present
            MissingPromptError: If the prompt is empty
            MissingImageError: If image-to-image mode has no upload
        """
        if not snapshot.credentials.has_key:
            raise MissingCredentialError()
        if not snapshot.prompt.strip():
            raise MissingPromptError()
        if snapshot.mode == GenerationMode.IMAGE_TO_IMAGE and snapshot.uploaded_image is None:
            raise MissingImageError()

    @staticmethod
    def _fail(
        sink: StatusSink,
        error: Exception,
        final_prompt: Optional[str] = None
    ) -> GenerationOutcome:
        message = getattr(error, "message", None) or str(error) or FALLBACK_ERROR_MESSAGE
        status = StatusMessage.error(message)
        sink.report(status)
        return GenerationOutcome(status=status, error=error, final_prompt=final_prompt)

    def generate(
        self,
        session: SessionState,
        sink: Optional[StatusSink] = None
    ) -> GenerationOutcome:
        """Generate an image for the current session.

        Args:
            session: Session state; a snapshot is taken immediately
            sink: Status sink for this run only (defaults to ``self.sink``)

        Returns:
            GenerationOutcome with the terminal status and, on success, the image
        """
        snapshot = session.snapshot()
        sink = sink if sink is not None else self.sink

        if not self._acquire():
            logger.warning("Generation requested while another is in flight")
            return GenerationOutcome(
                status=StatusMessage.error(BUSY_MESSAGE),
                error=RuntimeError(BUSY_MESSAGE),
            )

        try:
            return self._run(snapshot, sink)
        finally:
            self._release()

    def _run(self, snapshot: SessionSnapshot, sink: StatusSink) -> GenerationOutcome:
        try:
            self.validate(snapshot)
        except GenerationValidationError as e:
            logger.info(f"Generation rejected: {e.reason.value}")
            return self._fail(sink, e)

        final_prompt = snapshot.prompt
        enhanced = False
        if snapshot.auto_enhance:
            sink.report(StatusMessage.info(ENHANCING_MESSAGE))
            result = self.enhancer.try_enhance(snapshot.prompt, snapshot.credentials)
            final_prompt = result.prompt
            enhanced = result.enhanced

        sink.report(StatusMessage.info(GENERATING_MESSAGE))

        try:
            request = build_request(
                snapshot.mode,
                final_prompt,
                snapshot.uploaded_image,
                use_upload_mime_type=self.use_upload_mime_type,
            )
            image = self.backend.generate_image(request, snapshot.credentials)

        except GenerationValidationError as e:
            return self._fail(sink, e, final_prompt)

        except RemoteError as e:
            logger.error(f"Generation failed with {self.backend.name}: {e}")
            return self._fail(sink, e, final_prompt)

        except Exception as e:
            logger.exception(f"Unexpected error during generation: {e}")
            return self._fail(sink, e, final_prompt)

        image.metadata["prompt_enhanced"] = enhanced
        if enhanced:
            image.metadata["original_prompt"] = snapshot.prompt

        status = StatusMessage.success(SUCCESS_MESSAGE)
        sink.report(status)
        logger.info(f"Successfully generated image with {self.backend.name}")
        return GenerationOutcome(status=status, image=image, final_prompt=final_prompt)
