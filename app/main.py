"""Main Gradio application for Gemini text-to-image and image-to-image generation."""

import logging
import os
import queue
import tempfile
from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, Optional, Tuple
from PIL import Image
import gradio as gr

from app.config import settings
from src.backends.gemini import GeminiBackend
from src.core.errors import PayloadTooLargeError, UnsupportedMediaTypeError
from src.core.image_generator import CallbackStatusSink, GenerationOutcome, ImageGenerator
from src.core.models import (
    Credentials,
    GenerationMode,
    GeneratedImage,
    SessionState,
    StatusKind,
    StatusMessage,
)
from src.utils.credential_store import PreferenceStore
from src.utils.image_utils import create_download, load_upload, to_pil_image
from src.utils.prompt_enhancer import PromptEnhancer

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

_STATUS_ICONS = {
    StatusKind.INFO: "⏳",
    StatusKind.SUCCESS: "✅",
    StatusKind.ERROR: "❌",
}

DARK_MODE_JS = """
(enabled) => {
    document.body.classList.toggle('dark', enabled);
    return enabled;
}
"""


def create_generator() -> ImageGenerator:
    """Create the image generator from settings.

    Returns:
        ImageGenerator wired to the Gemini backend and prompt enhancer
    """
    backend = GeminiBackend(
        model=settings.generation_model,
        base_url=settings.api_base_url,
        timeout=settings.timeout,
    )
    enhancer = PromptEnhancer(
        model=settings.enhancement_model,
        base_url=settings.api_base_url,
        max_output_tokens=settings.enhancement_max_output_tokens,
        temperature=settings.enhancement_temperature,
        timeout=settings.timeout,
    )
    if backend.model not in backend.supported_models:
        logger.warning(
            f"Model {backend.model} is not a known image model "
            f"(known: {', '.join(backend.supported_models)}); responses may carry no image"
        )
    gen = ImageGenerator(
        backend,
        enhancer,
        use_upload_mime_type=settings.use_upload_mime_type,
    )
    logger.info(f"Initialized generator with {backend!r} and {enhancer!r}")
    return gen


# Shared across sessions: one store file, one in-flight guard
store = PreferenceStore(settings.preferences_path)
generator = create_generator()


def format_status(status: Optional[StatusMessage]) -> str:
    """Render a status for the status line."""
    if status is None:
        return ""
    return f"{_STATUS_ICONS[status.kind]} {status.text}"


def _preview(payload: str) -> Optional[Image.Image]:
    """Decode a payload for display, or None if it is not a readable image."""
    try:
        return to_pil_image(payload)
    except (ValueError, OSError) as e:
        logger.warning(f"Cannot display image: {e}")
        return None


def load_session() -> Tuple[SessionState, str, bool, bool, str]:
    """Build a fresh session from the preference store.

    Returns:
        Tuple of (session, api key, auto-enhance flag, dark-mode flag, status text)
    """
    credentials = store.get()
    if not credentials.has_key and settings.gemini_api_key:
        credentials = Credentials(api_key=settings.gemini_api_key)

    preferences = store.get_preferences()
    session = SessionState(credentials=credentials, preferences=preferences)

    status = ""
    try:
        settings.validate_required_keys(credentials.api_key)
    except ValueError as e:
        logger.warning(str(e))
        status = format_status(StatusMessage.info(str(e)))

    return (
        session,
        credentials.api_key,
        preferences.auto_enhance,
        preferences.dark_mode,
        status,
    )


def update_api_key(api_key: str, session: SessionState) -> SessionState:
    """Use the API key for this session and persist it.

    A key equal to the environment default is not written to the store
    unless a key has been saved before.
    """
    api_key = api_key or ""
    session.credentials = Credentials(api_key=api_key)

    if api_key and api_key == settings.gemini_api_key and not store.get().has_key:
        return session

    store.set(api_key)
    return session


def update_auto_enhance(enabled: bool, session: SessionState) -> SessionState:
    """Persist the auto-enhance flag."""
    store.set_auto_enhance(enabled)
    session.preferences.auto_enhance = enabled
    return session


def update_dark_mode(enabled: bool, session: SessionState) -> SessionState:
    """Persist the dark-mode flag."""
    store.set_dark_mode(enabled)
    session.preferences.dark_mode = enabled
    return session


def update_prompt(prompt: str, session: SessionState) -> SessionState:
    session.prompt = prompt or ""
    return session


def update_mode(mode_value: str, session: SessionState) -> SessionState:
    session.mode = GenerationMode(mode_value)
    return session


def upload_image(
    file_path: Optional[str],
    session: SessionState
) -> Tuple[SessionState, Optional[Image.Image], str, str]:
    """Validate an uploaded file and attach it to the session.

    Args:
        file_path: Temporary path of the uploaded file
        session: Current session

    Returns:
        Tuple of (session, preview image, status text, mode value)
    """
    if not file_path:
        return session, None, "", session.mode.value

    try:
        uploaded = load_upload(file_path, max_bytes=settings.max_upload_bytes)
    except (UnsupportedMediaTypeError, PayloadTooLargeError) as e:
        preview = _preview(session.uploaded_image.data) if session.uploaded_image else None
        return session, preview, format_status(StatusMessage.error(str(e))), session.mode.value
    except OSError as e:
        logger.error(f"Failed to read upload {file_path}: {e}")
        preview = _preview(session.uploaded_image.data) if session.uploaded_image else None
        return (
            session,
            preview,
            format_status(StatusMessage.error("Failed to process image file")),
            session.mode.value,
        )

    session.attach_image(uploaded)
    status = StatusMessage.success(f'Image "{uploaded.filename}" uploaded successfully')
    return session, _preview(uploaded.data), format_status(status), session.mode.value


def remove_image(session: SessionState) -> Tuple[SessionState, None, str]:
    """Drop the active upload. The mode is left unchanged."""
    session.remove_image()
    return session, None, format_status(StatusMessage.info("Image removed"))


def run_generation(
    prompt: str,
    api_key: str,
    mode_value: str,
    session: SessionState
) -> Iterator[Tuple[str, Optional[Image.Image], Optional[GeneratedImage], dict]]:
    """Run one generation, streaming status updates to the UI.

    The prompt, key and mode are read from the components at click time,
    so edits whose change events have not been processed yet still apply.

    Args:
        prompt: Current prompt text
        api_key: Current API key text
        mode_value: Current mode selector value
        session: Current session

    Yields:
        Tuples of (status text, output image, generated image state, button update)
    """
    session.prompt = prompt or ""
    session.credentials = Credentials(api_key=api_key or "")
    session.mode = GenerationMode(mode_value)

    updates: "queue.Queue[StatusMessage]" = queue.Queue()
    sink = CallbackStatusSink(updates.put)

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(generator.generate, session, sink)

        while not (future.done() and updates.empty()):
            try:
                status = updates.get(timeout=0.1)
            except queue.Empty:
                continue
            if status.kind == StatusKind.INFO:
                yield format_status(status), gr.update(), gr.update(), gr.update(interactive=False)

        outcome: GenerationOutcome = future.result()

    if outcome.succeeded:
        preview = _preview(outcome.image.image_base64)
        yield format_status(outcome.status), preview, outcome.image, gr.update(interactive=True)
    else:
        yield format_status(outcome.status), gr.update(), gr.update(), gr.update(interactive=True)


def download_image(generated: Optional[GeneratedImage]) -> Optional[str]:
    """Write the last generated image to a temporary file for download.

    Args:
        generated: Last generated image, if any

    Returns:
        Path to temporary file for download, or None if no image available
    """
    if generated is None:
        logger.warning("No image available for download")
        return None

    image_bytes, filename = create_download(generated, prefix=settings.download_prefix)

    temp_path = os.path.join(tempfile.gettempdir(), filename)
    with open(temp_path, 'wb') as f:
        f.write(image_bytes)

    logger.info(f"Created download: {filename} ({len(image_bytes)} bytes) at {temp_path}")
    return temp_path


def create_ui():
    """Create the Gradio interface.

    Returns:
        Gradio Blocks interface
    """
    with gr.Blocks(title="Gemini Image Studio") as demo:
        session = gr.State(SessionState())
        last_image = gr.State(None)

        gr.Markdown(
            """
            # 🎨 Gemini Image Studio

            Generate images from text, or transform an uploaded image, with Google Gemini.
            """
        )

        with gr.Row():
            api_key_input = gr.Textbox(
                label="🔑 Google API Key",
                type="password",
                placeholder="Enter your Google API key",
                scale=4,
            )
            auto_enhance = gr.Checkbox(label="✨ Auto Enhance", value=False, scale=1)
            dark_mode = gr.Checkbox(label="🌙 Dark Mode", value=False, scale=1)

        with gr.Row():
            with gr.Column(scale=1):
                mode = gr.Radio(
                    choices=[
                        ("Text to Image", GenerationMode.TEXT_TO_IMAGE.value),
                        ("Image to Image", GenerationMode.IMAGE_TO_IMAGE.value),
                    ],
                    value=GenerationMode.TEXT_TO_IMAGE.value,
                    label="Mode",
                )
                upload = gr.File(
                    label="Source image (JPEG, PNG, WebP, max 10MB)",
                    file_types=[".jpg", ".jpeg", ".png", ".webp"],
                    type="filepath",
                )
                preview = gr.Image(label="Uploaded image", type="pil", interactive=False)
                remove_btn = gr.Button("🗑️ Remove Image", variant="secondary", size="sm")

                prompt_input = gr.Textbox(
                    label="Prompt",
                    placeholder="Describe the image you want...",
                    lines=4,
                )
                generate_btn = gr.Button("🎨 Generate Image", variant="primary", size="lg")
                status_display = gr.Markdown()

            with gr.Column(scale=1):
                output_image = gr.Image(label="Generated Image", type="pil", interactive=False)
                download_btn = gr.Button("💾 Download", variant="secondary")
                download_file = gr.File(label="Download", interactive=False)

        demo.load(
            fn=load_session,
            outputs=[session, api_key_input, auto_enhance, dark_mode, status_display],
        ).then(fn=None, inputs=[dark_mode], js=DARK_MODE_JS)

        api_key_input.change(fn=update_api_key, inputs=[api_key_input, session], outputs=[session])
        auto_enhance.change(fn=update_auto_enhance, inputs=[auto_enhance, session], outputs=[session])
        dark_mode.change(fn=update_dark_mode, inputs=[dark_mode, session], outputs=[session]).then(
            fn=None, inputs=[dark_mode], js=DARK_MODE_JS
        )
        prompt_input.change(fn=update_prompt, inputs=[prompt_input, session], outputs=[session])
        mode.change(fn=update_mode, inputs=[mode, session], outputs=[session])

        upload.upload(
            fn=upload_image,
            inputs=[upload, session],
            outputs=[session, preview, status_display, mode],
        )
        remove_btn.click(fn=remove_image, inputs=[session], outputs=[session, preview, status_display])

        generate_btn.click(
            fn=run_generation,
            inputs=[prompt_input, api_key_input, mode, session],
            outputs=[status_display, output_image, last_image, generate_btn],
            concurrency_limit=1,
        )
        download_btn.click(fn=download_image, inputs=[last_image], outputs=[download_file])

    return demo


if __name__ == "__main__":
    # Create and launch the UI
    demo = create_ui()

    logger.info("Launching Gradio application...")
    demo.launch(
        server_name=settings.server_name,
        server_port=settings.server_port,
        share=False
    )
