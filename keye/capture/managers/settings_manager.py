import asyncio
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import aiofiles

from keye.constants import DEFAULT_AUTO_CLEAR_MINUTES, DEFAULT_CLIPBOARD_CLEAR_MINUTES

logger = logging.getLogger(__name__)

_SETTINGS_KEYS = {
    'autoClearMinutes': 'auto_clear_minutes',
    'clipboardClearMinutes': 'clipboard_clear_minutes',
}


def _is_interval(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


@dataclass(frozen=True)
class CaptureSettings:
    """Live configuration of the capture coordinator.

    ``auto_clear_minutes`` of 0 disables session expiry. The clipboard
    interval is only forwarded to the clipboard collaborator.
    """

    auto_clear_minutes: float = DEFAULT_AUTO_CLEAR_MINUTES
    clipboard_clear_minutes: float = DEFAULT_CLIPBOARD_CLEAR_MINUTES

    def merged(self, payload: Optional[Mapping[str, Any]]) -> 'CaptureSettings':
        """Apply a camelCase settings payload, ignoring unknown keys and invalid values."""
        if not payload:
            return self
        changes: dict[str, float] = {}
        for wire_key, field_name in _SETTINGS_KEYS.items():
            if wire_key not in payload:
                continue
            value = payload[wire_key]
            if _is_interval(value):
                changes[field_name] = value
            else:
                logger.warning(f'Ignoring invalid setting {wire_key}={value!r}')
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict[str, float]:
        return {
            wire_key: getattr(self, field_name) for wire_key, field_name in _SETTINGS_KEYS.items()
        }


class SettingsManager:
    """
    Loads and saves coordinator settings as a JSON file.

    Persistence is best-effort: a missing, unreadable or corrupt file yields
    the defaults, and a failed save leaves the in-memory settings in charge.
    """

    def __init__(self, path: str | Path, defaults: CaptureSettings = CaptureSettings()):
        """
        Initialize settings manager.

        Args:
            path: Location of the settings JSON file.
            defaults: Settings used when nothing can be loaded.
        """
        self._path = Path(path)
        self._defaults = defaults
        self._save_lock = asyncio.Lock()
        self._save_tasks: list[asyncio.Task] = []
        logger.debug(f'SettingsManager initialized: {self._path}')

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> CaptureSettings:
        """
        Read settings from disk.

        Returns:
            Stored values layered over the defaults.
        """
        try:
            async with aiofiles.open(self._path, encoding='utf-8') as f:
                stored = json.loads(await f.read())
        except FileNotFoundError:
            logger.debug(f'No settings file at {self._path}; using defaults')
            return self._defaults
        except (OSError, ValueError) as exc:
            logger.warning(f'Failed to load settings from {self._path}: {exc}; using defaults')
            return self._defaults

        if not isinstance(stored, dict):
            logger.warning(f'Settings file {self._path} is not a JSON object; using defaults')
            return self._defaults
        settings = self._defaults.merged(stored)
        logger.info(f'Settings loaded: {settings.to_dict()}')
        return settings

    async def save(self, settings: CaptureSettings) -> bool:
        """
        Write settings to disk.

        Returns:
            Whether the file was written.
        """
        async with self._save_lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(self._path, 'w', encoding='utf-8') as f:
                    await f.write(json.dumps(settings.to_dict(), indent=2))
            except OSError as exc:
                logger.warning(f'Failed to save settings to {self._path}: {exc}')
                return False
        logger.debug(f'Settings saved to {self._path}')
        return True

    def schedule_save(self, settings: CaptureSettings) -> None:
        """Save in the background from synchronous code running on the event loop."""
        try:
            task = asyncio.get_running_loop().create_task(self.save(settings))
        except RuntimeError:
            logger.warning('No running event loop; settings not persisted')
            return
        self._save_tasks.append(task)
        task.add_done_callback(
            lambda t: self._save_tasks.remove(t) if t in self._save_tasks else None
        )

    async def flush(self) -> None:
        """Wait for background saves to finish."""
        if self._save_tasks:
            await asyncio.gather(*self._save_tasks, return_exceptions=True)
