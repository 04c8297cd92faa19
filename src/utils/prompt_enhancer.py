"""Best-effort prompt enhancement through a Gemini text model."""

import logging
from typing import Any, Callable, Dict, Optional
import requests

from src.backends.gemini import (
    DEFAULT_BASE_URL,
    build_endpoint,
    first_candidate_parts,
    redact,
)
from src.core.models import Credentials, EnhancementResult

logger = logging.getLogger(__name__)

ENHANCEMENT_TEMPLATE = (
    "Enhance this image generation prompt to be more descriptive and artistic "
    "while keeping the original intent. Make it more detailed for better AI "
    "image generation. Original prompt: \"{prompt}\""
)


def fallback_to_input(
    stage: Callable[[str], EnhancementResult]
) -> Callable[[str], EnhancementResult]:
    """Wrap a prompt stage so any failure passes the input through unchanged."""

    def wrapper(prompt: str) -> EnhancementResult:
        try:
            return stage(prompt)
        except Exception as e:
            logger.warning(f"Prompt enhancement failed, using original prompt: {e}")
            return EnhancementResult(prompt=prompt, enhanced=False, error=str(e))

    return wrapper


class PromptEnhancer:
    """Rewrites prompts into more detailed ones before image generation.

    Enhancement is cosmetic: it never fails the caller. On any problem the
    original prompt comes back verbatim.

    Attributes:
        model: Text model used for the rewrite
        max_output_tokens: Upper bound on the rewritten prompt length
        temperature: Sampling temperature for the rewrite
    """

    DEFAULT_MODEL = "gemini-2.0-flash-exp"

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        max_output_tokens: int = 200,
        temperature: float = 0.7,
        timeout: Optional[float] = None
    ):
        """Initialize the prompt enhancer.

        Args:
            model: Text model name
            base_url: API base URL
            max_output_tokens: Output length bound
            temperature: Creativity parameter
            timeout: Request timeout in seconds
        """
        self.model = model or self.DEFAULT_MODEL
        self.base_url = base_url
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self.timeout = timeout
        logger.info(f"PromptEnhancer initialized with model: {self.model}")

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        """JSON body for the enhancement call."""
        return {
            "contents": [{
                "parts": [{"text": ENHANCEMENT_TEMPLATE.format(prompt=prompt)}]
            }],
            "generationConfig": {
                "maxOutputTokens": self.max_output_tokens,
                "temperature": self.temperature,
            },
        }

    def _request_enhancement(self, prompt: str, api_key: str) -> EnhancementResult:
        try:
            response = requests.post(
                build_endpoint(self.base_url, self.model),
                params={"key": api_key},
                json=self.build_payload(prompt),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise RuntimeError(redact(str(e), api_key)) from e

        if not response.ok:
            raise RuntimeError(f"enhancement endpoint returned HTTP {response.status_code}")

        parts = first_candidate_parts(response.json())
        text = parts[0].get("text") if parts else None
        if not isinstance(text, str) or not text.strip():
            return EnhancementResult(prompt=prompt, enhanced=False, error="no completion text")

        enhanced = text.strip()
        logger.debug(f"Enhanced prompt: '{prompt}' -> '{enhanced}'")
        return EnhancementResult(prompt=enhanced, enhanced=True)

    def try_enhance(self, prompt: str, credentials: Credentials) -> EnhancementResult:
        """Enhance a prompt, reporting what happened.

        Args:
            prompt: Original prompt
            credentials: Credentials holding the API key

        Returns:
            EnhancementResult; its prompt is the original one unless the
            rewrite succeeded
        """
        if not prompt or not prompt.strip():
            return EnhancementResult(prompt=prompt, enhanced=False, error="empty prompt")
        if not credentials.has_key:
            return EnhancementResult(prompt=prompt, enhanced=False, error="missing API key")

        api_key = credentials.api_key.strip()
        stage = fallback_to_input(lambda p: self._request_enhancement(p, api_key))
        result = stage(prompt)

        if not result.enhanced:
            logger.info(f"Using original prompt ({result.error})")
        return result

    def enhance(self, prompt: str, credentials: Credentials) -> str:
        """Enhance a prompt, returning the original on any failure.

        Args:
            prompt: Original prompt
            credentials: Credentials holding the API key

        Returns:
            The rewritten prompt, or ``prompt`` unchanged
        """
        return self.try_enhance(prompt, credentials).prompt

    def __repr__(self) -> str:
        """String representation."""
        return f"PromptEnhancer(model='{self.model}')"
