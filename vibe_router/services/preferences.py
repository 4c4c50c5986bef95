"""
User Preference Store

Persists the user's chosen provider, model and API keys as a small JSON
document (``<config_dir>/config.json``). The file is read once when the
router is constructed and rewritten by every setter.

File format (camelCase keys, shared with the CLI):

    {
      "provider": "anthropic",
      "model": "claude-sonnet-4-20250514",
      "apiKeys": {"openrouter": "sk-or-..."}
    }

A missing or corrupt file yields empty preferences; corruption is logged.
"""

import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from vibe_router.observability.logging import get_logger

logger = get_logger(__name__)

CONFIG_FILE_NAME = "config.json"


class UserPreferences(BaseModel):
    """Persisted user selection."""

    provider: Optional[str] = None
    model: Optional[str] = None
    api_keys: dict[str, str] = Field(default_factory=dict, alias="apiKeys")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class PreferenceStore:
    """
    Load/save ``UserPreferences`` in a config directory.

    Args:
        config_dir: Directory holding ``config.json``; created on first save.
    """

    def __init__(self, config_dir: Path) -> None:
        self._path = Path(config_dir) / CONFIG_FILE_NAME
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> UserPreferences:
        if not self._path.exists():
            return UserPreferences()
        try:
            return UserPreferences.model_validate_json(
                self._path.read_text(encoding="utf-8")
            )
        except (OSError, PydanticValidationError) as e:
            logger.warning(
                "ignoring unreadable preference file",
                path=str(self._path),
                error=str(e),
            )
            return UserPreferences()

    def save(self, preferences: UserPreferences) -> None:
        """Write atomically via a temporary file in the same directory."""
        payload = preferences.model_dump_json(by_alias=True, indent=2, exclude_none=True)
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".json.tmp")
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self._path)
