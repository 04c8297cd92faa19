"""Abstract base class for image generation backends."""

from abc import ABC, abstractmethod
from .models import Credentials, GenerationRequest, GeneratedImage


class BaseBackend(ABC):
    """Abstract interface that image generation backends must implement.

    Credentials are passed per call rather than held by the backend, so
    one backend instance can serve whatever key the user currently has
    entered.
    """

    @abstractmethod
    def generate_image(
        self,
        request: GenerationRequest,
        credentials: Credentials
    ) -> GeneratedImage:
        """Generate an image for a request.

        Args:
            request: The generation request containing prompt and optional image
            credentials: Credentials to authenticate the call

        Returns:
            GeneratedImage containing the image payload and metadata

        Raises:
            GenerationValidationError: If the inputs are incomplete (no network call made)
            RemoteError: If the service fails or returns no image
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the human-readable name of this backend."""
        pass

    @property
    @abstractmethod
    def supported_models(self) -> list[str]:
        """Get a list of models supported by this backend."""
        pass

    def __repr__(self) -> str:
        """String representation of the backend."""
        return f"{self.__class__.__name__}(name='{self.name}')"
