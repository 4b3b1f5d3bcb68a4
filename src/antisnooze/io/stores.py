"""Settings and history collaborators, optionally persisted as JSON files."""

import datetime
import pathlib
from typing import Callable, List, Optional, Union

import pydantic

from antisnooze.core import config, models

logger = config.get_logger()

_HISTORY_ADAPTER = pydantic.TypeAdapter(List[models.AlarmHistory])


class SettingsStore:
    """Holds the alarm settings and notifies listeners on every change.

    When a path is given, changes are written through to that JSON file and the
    file is read back on construction.
    """

    def __init__(
        self,
        path: Optional[Union[pathlib.Path, str]] = None,
        default: Optional[models.AlarmSettings] = None,
    ) -> None:
        """Initialize the store.

        Args:
            path: JSON file the settings are persisted to. None keeps them in
                memory only.
            default: The settings to use when nothing has been persisted yet.
        """
        self._path = pathlib.Path(path) if path is not None else None
        self._listeners: List[Callable[[models.AlarmSettings], None]] = []
        self._settings = default if default is not None else models.AlarmSettings()

        if self._path is not None and self._path.exists():
            try:
                self._settings = models.AlarmSettings.model_validate_json(
                    self._path.read_text()
                )
            except pydantic.ValidationError as e:
                logger.warning(
                    "Ignoring unreadable settings file %s: %s", self._path, e
                )

    @property
    def settings(self) -> models.AlarmSettings:
        """The current settings snapshot."""
        return self._settings

    def subscribe(self, listener: Callable[[models.AlarmSettings], None]) -> None:
        """Register a listener called with every new settings snapshot."""
        self._listeners.append(listener)

    def update(self, settings: models.AlarmSettings) -> None:
        """Replace the settings, persist them and notify the listeners."""
        self._settings = settings
        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(settings.model_dump_json(by_alias=True, indent=4))
            logger.debug("Settings saved in: %s", self._path)
        for listener in list(self._listeners):
            listener(settings)


class HistoryStore:
    """Append-only alarm history whose last entry can be amended."""

    def __init__(self, path: Optional[Union[pathlib.Path, str]] = None) -> None:
        """Initialize the store.

        Args:
            path: JSON file the history is persisted to. None keeps it in memory
                only.
        """
        self._path = pathlib.Path(path) if path is not None else None
        self._entries: List[models.AlarmHistory] = []

        if self._path is not None and self._path.exists():
            try:
                self._entries = _HISTORY_ADAPTER.validate_json(self._path.read_bytes())
            except pydantic.ValidationError as e:
                logger.warning("Ignoring unreadable history file %s: %s", self._path, e)

    @property
    def entries(self) -> List[models.AlarmHistory]:
        """Copies of all history entries, oldest first."""
        return [entry.model_copy() for entry in self._entries]

    @property
    def last(self) -> Optional[models.AlarmHistory]:
        """A copy of the most recent entry, if any."""
        return self._entries[-1].model_copy() if self._entries else None

    def append(self, entry: models.AlarmHistory) -> None:
        """Add a new entry at the end of the history."""
        self._entries.append(entry)
        self._save()

    def update_last(
        self,
        wake_up_time: Optional[datetime.datetime] = None,
        increment_doze_off_count: bool = False,
    ) -> None:
        """Amend the most recent entry.

        Args:
            wake_up_time: If given, stamped as the entry's wake up time.
            increment_doze_off_count: If True, count one more doze-off.
        """
        if not self._entries:
            logger.warning("No alarm history to update.")
            return

        last = self._entries[-1]
        if wake_up_time is not None:
            last.wake_up_time = wake_up_time
        if increment_doze_off_count:
            last.doze_off_count += 1
        self._save()

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_bytes(
            _HISTORY_ADAPTER.dump_json(self._entries, by_alias=True, indent=4)
        )
