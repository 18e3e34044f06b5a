"""JSON-file persistence for user settings."""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Union

from pydantic import ValidationError as PydanticValidationError

from recipe_bridge.models.settings import UserSettings, UserSettingsUpdate
from recipe_bridge.utils.exceptions import SettingsStoreError

logger = logging.getLogger(__name__)


class SettingsStore:
    """Loads and saves a single `UserSettings` document."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> UserSettings:
        """
        Read settings from disk.

        A missing, unreadable or invalid file yields default settings.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return UserSettings()
        except OSError as e:
            logger.warning(f"Failed to read settings file {self.path}, using defaults: {e}")
            return UserSettings()

        try:
            return UserSettings.model_validate(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(f"Invalid settings file {self.path}, using defaults: {e}")
            return UserSettings()

    def save(self, user_settings: UserSettings) -> None:
        """Write settings atomically (temp file + rename)."""
        payload = json.dumps(user_settings.model_dump(mode="json"), indent=2, ensure_ascii=False)
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".settings-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Failed to save settings to {self.path}: {e}", exc_info=True)
            raise SettingsStoreError(f"Failed to save settings: {e}") from e

    def update(self, changes: UserSettingsUpdate) -> UserSettings:
        """Merge `changes` into the saved settings and persist the result."""
        with self._lock:
            current = self.load()
            patch = changes.model_dump(exclude_none=True)
            updated = current.model_copy(update=patch)
            # Re-validate so the merged document is still a valid UserSettings.
            updated = UserSettings.model_validate(updated.model_dump())
            self.save(updated)

        logger.info("User settings updated", extra={"fields": sorted(patch)})
        return updated
