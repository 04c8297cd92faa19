"""Shared test fixtures and configuration."""

import base64
import io
import os
from unittest.mock import Mock

import pytest
from PIL import Image

from src.core.models import Credentials, GeneratedImage, UploadedImage


@pytest.fixture
def sample_prompt():
    """Return a sample prompt for testing."""
    return "A beautiful sunset over mountains"


@pytest.fixture
def sample_fake_image():
    """Return a fake PIL Image for testing."""
    return Image.new('RGB', (64, 64), color='red')


@pytest.fixture
def sample_image_bytes(sample_fake_image):
    """Return sample image as PNG bytes."""
    img_byte_arr = io.BytesIO()
    sample_fake_image.save(img_byte_arr, format='PNG')
    return img_byte_arr.getvalue()


@pytest.fixture
def sample_image_b64(sample_image_bytes):
    """Return sample image as a base64 string."""
    return base64.b64encode(sample_image_bytes).decode("ascii")


@pytest.fixture
def sample_uploaded_image(sample_image_b64):
    """Return an UploadedImage holding the sample PNG."""
    return UploadedImage(data=sample_image_b64, mime_type="image/png", filename="sample.png")


@pytest.fixture
def sample_generated_image(sample_image_b64, sample_prompt):
    """Return a sample GeneratedImage for testing."""
    return GeneratedImage(
        image_base64=sample_image_b64,
        mime_type="image/png",
        prompt=sample_prompt,
        backend="test_backend",
        metadata={"model": "test-model"}
    )


@pytest.fixture
def test_api_key():
    """Return a test API key."""
    return "AIza_test_key_12345"


@pytest.fixture
def credentials(test_api_key):
    """Return credentials holding the test key."""
    return Credentials(api_key=test_api_key)


@pytest.fixture
def make_response():
    """Factory for mocked ``requests.Response`` objects."""

    def _make(status_code=200, json_body=None, json_error=None):
        response = Mock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 400
        if json_error is not None:
            response.json.side_effect = json_error
        else:
            response.json.return_value = json_body
        return response

    return _make


@pytest.fixture
def image_envelope(sample_image_b64):
    """A generateContent success body with one text part and one image part."""
    return {
        "candidates": [{
            "content": {
                "parts": [
                    {"text": "Here is your image"},
                    {"inlineData": {"mimeType": "image/png", "data": sample_image_b64}},
                ]
            }
        }]
    }


@pytest.fixture
def text_only_envelope():
    """A generateContent success body with no image part."""
    return {
        "candidates": [{
            "content": {"parts": [{"text": "I can't draw that."}]}
        }]
    }


# Skip integration tests unless explicitly requested
def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests unless RUN_INTEGRATION_TESTS is set."""
    skip_integration = pytest.mark.skip(reason="Integration tests disabled (set RUN_INTEGRATION_TESTS=true to enable)")

    for item in items:
        if "integration" in item.keywords:
            if not os.getenv("RUN_INTEGRATION_TESTS", "").lower() == "true":
                item.add_marker(skip_integration)
