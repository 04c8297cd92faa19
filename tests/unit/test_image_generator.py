"""Unit tests for the image generation orchestrator."""

import threading
from unittest.mock import Mock, patch

import pytest
import requests

from src.backends.gemini import GeminiBackend
from src.core.base_backend import BaseBackend
from src.core.errors import (
    MissingCredentialError,
    MissingImageError,
    MissingPromptError,
    NoImageInResponseError,
    RemoteError,
    ValidationReason,
)
from src.core.image_generator import (
    BUSY_MESSAGE,
    ENHANCING_MESSAGE,
    GENERATING_MESSAGE,
    SUCCESS_MESSAGE,
    CallbackStatusSink,
    ImageGenerator,
    LatestStatusSink,
    RecordingStatusSink,
)
from src.core.models import (
    Credentials,
    EnhancementResult,
    GenerationMode,
    GeneratedImage,
    Preferences,
    SessionState,
    StatusKind,
    StatusMessage,
)
from src.utils.prompt_enhancer import PromptEnhancer


class _Backend(BaseBackend):
    """Backend double with a configurable result."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def generate_image(self, request, credentials):
        self.calls.append((request, credentials))
        if self.error is not None:
            raise self.error
        return self.result

    @property
    def name(self):
        return "Fake"

    @property
    def supported_models(self):
        return ["fake"]


def _session(prompt="a cat", key="key", auto_enhance=False, mode=GenerationMode.TEXT_TO_IMAGE,
             image=None):
    return SessionState(
        credentials=Credentials(api_key=key),
        prompt=prompt,
        mode=mode,
        uploaded_image=image,
        preferences=Preferences(auto_enhance=auto_enhance),
    )


@pytest.fixture
def enhancer():
    mock = Mock(spec=PromptEnhancer)
    mock.try_enhance.side_effect = lambda prompt, creds: EnhancementResult(
        prompt=f"{prompt}, enhanced", enhanced=True
    )
    return mock


@pytest.fixture
def backend(sample_generated_image):
    return _Backend(result=sample_generated_image)


class TestStatusSinks:
    """Tests for the status sinks."""

    def test_latest_overwrites(self):
        sink = LatestStatusSink()
        sink.report(StatusMessage.info("one"))
        sink.report(StatusMessage.error("two"))

        assert sink.current == StatusMessage.error("two")

    def test_callback(self):
        seen = []
        CallbackStatusSink(seen.append).report(StatusMessage.info("x"))

        assert seen == [StatusMessage.info("x")]


class TestImageGenerator:
    """Tests for ImageGenerator."""

    def test_success_without_enhancement(self, backend, enhancer, sample_generated_image):
        sink = RecordingStatusSink()
        gen = ImageGenerator(backend, enhancer, sink)

        outcome = gen.generate(_session())

        assert outcome.succeeded
        assert outcome.image.image_base64 == sample_generated_image.image_base64
        assert outcome.final_prompt == "a cat"
        assert outcome.image.metadata["prompt_enhanced"] is False
        enhancer.try_enhance.assert_not_called()
        assert sink.history == [
            StatusMessage.info(GENERATING_MESSAGE),
            StatusMessage.success(SUCCESS_MESSAGE),
        ]

    def test_success_with_enhancement(self, backend, enhancer):
        sink = RecordingStatusSink()
        gen = ImageGenerator(backend, enhancer, sink)

        outcome = gen.generate(_session(auto_enhance=True))

        assert outcome.final_prompt == "a cat, enhanced"
        request, _ = backend.calls[0]
        assert request.prompt == "a cat, enhanced"
        assert outcome.image.metadata["original_prompt"] == "a cat"
        assert [s.text for s in sink.history] == [
            ENHANCING_MESSAGE, GENERATING_MESSAGE, SUCCESS_MESSAGE
        ]
        assert sink.current.kind == StatusKind.SUCCESS

    def test_image_to_image_sends_upload(self, backend, enhancer, sample_uploaded_image):
        gen = ImageGenerator(backend, enhancer)

        gen.generate(_session(mode=GenerationMode.IMAGE_TO_IMAGE, image=sample_uploaded_image))

        request, _ = backend.calls[0]
        assert request.inline_image.data == sample_uploaded_image.data
        assert request.inline_image.mime_type == "image/jpeg"

    def test_upload_mime_type_option(self, backend, enhancer, sample_uploaded_image):
        gen = ImageGenerator(backend, enhancer, use_upload_mime_type=True)

        gen.generate(_session(mode=GenerationMode.IMAGE_TO_IMAGE, image=sample_uploaded_image))

        request, _ = backend.calls[0]
        assert request.inline_image.mime_type == "image/png"

    @pytest.mark.parametrize("session,error_type,reason,message", [
        (_session(key=""), MissingCredentialError, ValidationReason.MISSING_CREDENTIAL,
         "Please enter your Google API Key"),
        (_session(prompt="  "), MissingPromptError, ValidationReason.MISSING_PROMPT,
         "Please enter a prompt"),
        (_session(mode=GenerationMode.IMAGE_TO_IMAGE), MissingImageError,
         ValidationReason.MISSING_IMAGE, "Please upload an image for image-to-image mode"),
    ])
    def test_validation_failures(self, backend, enhancer, session, error_type, reason, message):
        sink = RecordingStatusSink()
        gen = ImageGenerator(backend, enhancer, sink)
        session.preferences.auto_enhance = True

        outcome = gen.generate(session)

        assert not outcome.succeeded
        assert isinstance(outcome.error, error_type)
        assert outcome.error.reason == reason
        assert sink.history == [StatusMessage.error(message)]
        assert backend.calls == []
        enhancer.try_enhance.assert_not_called()

    def test_remote_error_is_terminal(self, enhancer):
        backend = _Backend(error=RemoteError("invalid key", status_code=403))
        sink = RecordingStatusSink()

        outcome = ImageGenerator(backend, enhancer, sink).generate(_session())

        assert outcome.status == StatusMessage.error("invalid key")
        assert sink.history[-1] == StatusMessage.error("invalid key")
        assert len(backend.calls) == 1

    def test_unexpected_error_is_terminal(self, enhancer):
        backend = _Backend(error=KeyError("boom"))
        sink = RecordingStatusSink()

        outcome = ImageGenerator(backend, enhancer, sink).generate(_session())

        assert outcome.status.kind == StatusKind.ERROR
        assert [s.kind for s in sink.history] == [StatusKind.INFO, StatusKind.ERROR]

    def test_per_call_sink(self, backend, enhancer):
        default_sink = RecordingStatusSink()
        call_sink = RecordingStatusSink()
        gen = ImageGenerator(backend, enhancer, default_sink)

        gen.generate(_session(), sink=call_sink)

        assert default_sink.history == []
        assert len(call_sink.history) == 2

    def test_in_flight_flag(self, enhancer, sample_generated_image):
        started = threading.Event()
        release = threading.Event()

        class _Blocking(_Backend):
            def generate_image(self, request, credentials):
                started.set()
                release.wait(timeout=5)
                return sample_generated_image

        gen = ImageGenerator(_Blocking(), enhancer)
        results = {}
        worker = threading.Thread(target=lambda: results.update(first=gen.generate(_session())))
        worker.start()
        assert started.wait(timeout=5)

        assert gen.is_busy
        second = gen.generate(_session())
        release.set()
        worker.join(timeout=5)

        assert second.status == StatusMessage.error(BUSY_MESSAGE)
        assert results["first"].succeeded
        assert not gen.is_busy

    def test_flag_set_before_enhancement(self, backend):
        seen = {}
        enhancer = Mock(spec=PromptEnhancer)

        gen = ImageGenerator(backend, enhancer)

        def _check(prompt, creds):
            seen["busy"] = gen.is_busy
            return EnhancementResult(prompt=prompt)

        enhancer.try_enhance.side_effect = _check

        gen.generate(_session(auto_enhance=True))

        assert seen["busy"] is True
        assert not gen.is_busy

    def test_flag_cleared_after_failure(self, enhancer):
        gen = ImageGenerator(_Backend(error=RemoteError("x")), enhancer)

        gen.generate(_session())

        assert not gen.is_busy

    def test_session_changes_after_dispatch_are_ignored(self, enhancer, sample_generated_image):
        session = _session(prompt="original")

        class _Mutating(_Backend):
            def generate_image(self, request, credentials):
                session.prompt = "changed"
                return super().generate_image(request, credentials)

        backend = _Mutating(result=sample_generated_image)
        ImageGenerator(backend, enhancer).generate(session)

        assert backend.calls[0][0].prompt == "original"


class TestEndToEnd:
    """Scenarios through the real backend and enhancer with HTTP mocked."""

    def setup_method(self):
        self.sink = RecordingStatusSink()
        self.generator = ImageGenerator(GeminiBackend(), PromptEnhancer(), self.sink)

    @patch('requests.post')
    def test_missing_key_makes_no_call(self, mock_post):
        outcome = self.generator.generate(_session(key=""))

        assert isinstance(outcome.error, MissingCredentialError)
        mock_post.assert_not_called()

    @patch('requests.post')
    def test_image_mode_without_upload(self, mock_post):
        outcome = self.generator.generate(_session(mode=GenerationMode.IMAGE_TO_IMAGE))

        assert isinstance(outcome.error, MissingImageError)
        mock_post.assert_not_called()

    @patch('requests.post')
    def test_enhancer_timeout_uses_original_prompt(self, mock_post, make_response, image_envelope):
        mock_post.side_effect = [
            requests.exceptions.Timeout("timed out"),
            make_response(200, image_envelope),
        ]

        outcome = self.generator.generate(_session(prompt="a red car", auto_enhance=True))

        assert outcome.succeeded
        assert mock_post.call_count == 2
        generation_body = mock_post.call_args_list[1].kwargs["json"]
        assert generation_body["contents"][0]["parts"][0]["text"] == "a red car"
        assert [s.text for s in self.sink.history] == [
            ENHANCING_MESSAGE, GENERATING_MESSAGE, SUCCESS_MESSAGE
        ]

    @patch('requests.post')
    def test_enhanced_prompt_is_sent(self, mock_post, make_response, image_envelope):
        mock_post.side_effect = [
            make_response(200, {"candidates": [{"content": {"parts": [{"text": "a vivid red car"}]}}]}),
            make_response(200, image_envelope),
        ]

        outcome = self.generator.generate(_session(prompt="a red car", auto_enhance=True))

        generation_body = mock_post.call_args_list[1].kwargs["json"]
        assert generation_body["contents"][0]["parts"][0]["text"] == "a vivid red car"
        assert outcome.final_prompt == "a vivid red car"

    @patch('requests.post')
    def test_forbidden_reports_service_message(self, mock_post, make_response):
        mock_post.return_value = make_response(403, {"error": {"message": "invalid key"}})

        outcome = self.generator.generate(_session())

        assert outcome.status == StatusMessage.error("invalid key")
        assert self.sink.current == StatusMessage.error("invalid key")

    @patch('requests.post')
    def test_text_only_response(self, mock_post, make_response, text_only_envelope):
        mock_post.return_value = make_response(200, text_only_envelope)

        outcome = self.generator.generate(_session())

        assert isinstance(outcome.error, NoImageInResponseError)
        assert outcome.status.kind == StatusKind.ERROR
        assert "no image data found" in outcome.status.text.lower()

    @patch('requests.post')
    def test_success_returns_exact_payload(self, mock_post, make_response, image_envelope,
                                           sample_image_b64):
        mock_post.return_value = make_response(200, image_envelope)

        outcome = self.generator.generate(_session())

        assert isinstance(outcome.image, GeneratedImage)
        assert outcome.image.image_base64 == sample_image_b64
        assert self.sink.current == StatusMessage.success(SUCCESS_MESSAGE)
