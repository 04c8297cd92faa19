"""Application configuration management."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    These settings are automatically loaded from the .env file or environment variables.
    The API key normally comes from the preference store the UI writes to; an
    environment value is only used as a starting default.

    Attributes:
        gemini_api_key: Optional default Google API key
        api_base_url: Base URL of the Generative Language API
        generation_model: Model used for image generation
        enhancement_model: Model used to rewrite prompts
        timeout: Request timeout in seconds (None waits indefinitely)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        preferences_path: JSON file holding the API key and UI flags
        run_integration_tests: Whether to run integration tests
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # API Keys
    gemini_api_key: str = ""

    # Model Configuration
    api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    generation_model: str = "gemini-2.0-flash-preview-image-generation"
    enhancement_model: str = "gemini-2.0-flash-exp"
    enhancement_max_output_tokens: int = 200
    enhancement_temperature: float = 0.7

    # Application Settings
    log_level: str = "INFO"
    timeout: Optional[int] = 60
    preferences_path: str = "~/.gemini_image_studio/preferences.json"
    download_prefix: str = "swap-creations"
    max_upload_bytes: int = 10 * 1024 * 1024
    use_upload_mime_type: bool = False  # label inline images with the upload's own type

    # Server
    server_name: str = "0.0.0.0"
    server_port: int = 7861

    # Testing
    run_integration_tests: bool = False

    def validate_required_keys(self, stored_key: Optional[str] = None) -> None:
        """Validate that an API key is available from somewhere.

        Args:
            stored_key: Key previously saved in the preference store

        Raises:
            ValueError: If neither the environment nor the store holds a key
        """
        if (stored_key or "").strip() or self.gemini_api_key.strip():
            return

        raise ValueError(
            "GEMINI_API_KEY is not set and no key has been saved yet. "
            "Enter your key in the UI or set it in your .env file. "
            "Get a key from: https://aistudio.google.com/app/apikey"
        )


# Global settings instance
settings = Settings()
