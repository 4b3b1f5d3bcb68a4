"""Device collaborators: haptics, local notifications and background sessions."""

import abc
import datetime
import enum
from typing import List, Optional

from antisnooze.core import config

logger = config.get_logger()


class HapticKind(str, enum.Enum):
    """Haptic patterns the engine asks the device to play."""

    notification = "notification"
    click = "click"
    direction_up = "direction_up"
    success = "success"


class HapticDevice(abc.ABC):
    """Plays haptic pulses. Calls are fire-and-forget."""

    @abc.abstractmethod
    def play_pulse(self, kind: HapticKind) -> None:
        """Play a single haptic pulse."""
        pass


class NotificationScheduler(abc.ABC):
    """Schedules the local wall-clock notification mirroring the alarm."""

    @abc.abstractmethod
    def schedule(self, when: datetime.datetime) -> None:
        """Replace the pending alarm notification with one at when.

        Raises:
            PermissionError: If the user denied notifications.
        """
        pass

    @abc.abstractmethod
    def cancel(self) -> None:
        """Remove the pending alarm notification, if any."""
        pass


class BackgroundSession(abc.ABC):
    """Keeps the process running while the screen is off."""

    @abc.abstractmethod
    def start(self) -> None:
        """Start the session.

        Raises:
            BackgroundSessionError: If the session could not be started.
        """
        pass

    @abc.abstractmethod
    def stop(self) -> None:
        """End the session."""
        pass


class RecordingHapticDevice(HapticDevice):
    """Haptic device that only remembers what it was asked to play."""

    def __init__(self) -> None:
        """Initialize with an empty pulse log."""
        self.pulses: List[HapticKind] = []

    def play_pulse(self, kind: HapticKind) -> None:
        """Append the pulse to the log."""
        self.pulses.append(kind)


class RecordingNotificationScheduler(NotificationScheduler):
    """Notification scheduler that keeps the pending notification in memory."""

    def __init__(self, permitted: bool = True) -> None:
        """Initialize the scheduler.

        Args:
            permitted: False to behave as if the user denied notifications.
        """
        self.permitted = permitted
        self.pending: Optional[datetime.datetime] = None

    def schedule(self, when: datetime.datetime) -> None:
        """Remember when as the pending notification."""
        if not self.permitted:
            raise PermissionError("Notifications are not permitted.")
        self.pending = when

    def cancel(self) -> None:
        """Forget the pending notification."""
        self.pending = None


class NullBackgroundSession(BackgroundSession):
    """Background session for processes that never get suspended."""

    def __init__(self) -> None:
        """Initialize with an empty start/stop log."""
        self.calls: List[str] = []

    def start(self) -> None:
        """Record the start."""
        self.calls.append("start")

    def stop(self) -> None:
        """Record the stop."""
        self.calls.append("stop")
