"""Local key-value store for the API key and UI preferences."""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from src.core.models import Credentials, Preferences

logger = logging.getLogger(__name__)


class PreferenceStore:
    """Persists string key/value pairs to a small JSON file.

    Every setter writes through immediately. Values are plain strings;
    boolean flags are stored as "true"/"false".

    Attributes:
        path: Location of the JSON file
    """

    API_KEY = "gemini_api_key"
    DARK_MODE = "dark-mode"
    AUTO_ENHANCE = "auto-enhance"

    def __init__(self, path: Union[str, Path]):
        """Initialize the store.

        Args:
            path: JSON file to read from and write to (created on first write)
        """
        self.path = Path(path).expanduser()
        self._values: Dict[str, str] = self._load()
        logger.debug(f"Preference store opened at {self.path}")

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preference file {self.path}: {e}")
            return {}

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring preference file {self.path}: not a JSON object")
            return {}

        return {str(k): str(v) for k, v in raw.items()}

    def _save(self) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._values, indent=2), encoding="utf-8")
            return True
        except OSError as e:
            logger.error(f"Failed to save preferences to {self.path}: {e}")
            return False

    def get_value(self, key: str) -> Optional[str]:
        """Get a raw string value."""
        return self._values.get(key)

    def set_value(self, key: str, value: str) -> bool:
        """Set a raw string value and persist it.

        Returns:
            True if the value reached disk, False if the write failed
        """
        self._values[key] = value
        return self._save()

    def _get_flag(self, key: str) -> bool:
        return self._values.get(key) == "true"

    def _set_flag(self, key: str, value: bool) -> bool:
        return self.set_value(key, "true" if value else "false")

    def get(self) -> Credentials:
        """Get the stored credentials (empty key if none saved)."""
        return Credentials(api_key=self._values.get(self.API_KEY, ""))

    def set(self, key: str) -> bool:
        """Store the API key as-is."""
        return self.set_value(self.API_KEY, key)

    def get_preferences(self) -> Preferences:
        """Get the stored preference flags."""
        return Preferences(
            auto_enhance=self._get_flag(self.AUTO_ENHANCE),
            dark_mode=self._get_flag(self.DARK_MODE),
        )

    def set_auto_enhance(self, enabled: bool) -> bool:
        return self._set_flag(self.AUTO_ENHANCE, enabled)

    def set_dark_mode(self, enabled: bool) -> bool:
        return self._set_flag(self.DARK_MODE, enabled)

    def __repr__(self) -> str:
        """String representation."""
        return f"PreferenceStore(path='{self.path}', keys={sorted(self._values)})"
