"""Vibration escalation: turn alarm intensity and posture into haptic pulses."""

import enum
from typing import Callable, Optional

from antisnooze.core import config, models, scheduling
from antisnooze.io import devices

logger = config.get_logger()

CONTINUOUS_HAPTICS = {
    models.VibrationIntensity.light: devices.HapticKind.notification,
    models.VibrationIntensity.medium: devices.HapticKind.direction_up,
    models.VibrationIntensity.strong: devices.HapticKind.success,
}


class VibrationState(str, enum.Enum):
    """States of the vibration controller."""

    idle = "idle"
    continuous = "continuous"
    paused = "paused"


class VibrationController:
    """Escalates the haptic stimulus without vibrating forever.

    idle -> continuous -> paused -> continuous (resumed) | idle (stopped)

    Continuous vibration pauses by itself after a maximum duration. A paused
    controller resumes after the pause timeout, or earlier once the pause check
    finds the wearer still lying down. If the wearer is upright at a check the
    controller stays paused and calls on_upright instead.

    Attributes:
        settings: The tunable durations.
        is_alarm_active: Hook reporting whether the alarm is still ringing.
        on_upright: Hook called when a pause check finds the wearer upright.
        pulse_count: Number of pulses requested so far.
    """

    def __init__(
        self,
        scheduler: scheduling.Scheduler,
        haptics: devices.HapticDevice,
        is_lying_down: Callable[[], bool],
        settings: Optional[config.Settings] = None,
    ) -> None:
        """Initialize the controller.

        Args:
            scheduler: The scheduling context for every vibration timer.
            haptics: The device playing the pulses.
            is_lying_down: Reads the classifier's published posture.
            settings: The tunable constants. Defaults to config.Settings().
        """
        self.settings = settings if settings is not None else config.Settings()
        self.is_alarm_active: Callable[[], bool] = lambda: True
        self.on_upright: Optional[Callable[[], None]] = None
        self.pulse_count = 0

        self._scheduler = scheduler
        self._haptics = haptics
        self._is_lying_down = is_lying_down
        self._state = VibrationState.idle
        self._intensity = models.VibrationIntensity.medium

        self._escalation_timer: Optional[scheduling.TimerHandle] = None
        self._second_pulse_timer: Optional[scheduling.TimerHandle] = None
        self._pulse_timer: Optional[scheduling.TimerHandle] = None
        self._max_duration_timer: Optional[scheduling.TimerHandle] = None
        self._pause_check_timer: Optional[scheduling.TimerHandle] = None
        self._pause_timeout_timer: Optional[scheduling.TimerHandle] = None

    @property
    def state(self) -> VibrationState:
        """The current vibration state."""
        return self._state

    @property
    def intensity(self) -> models.VibrationIntensity:
        """The intensity of the current or last alarm."""
        return self._intensity

    def start(self, intensity: models.VibrationIntensity) -> None:
        """Start the alarm vibration pattern for the given intensity.

        Light plays one pulse, medium two pulses a short delay apart; both
        escalate to continuous vibration after the escalation delay if the alarm
        is still ringing by then. Strong escalates immediately.

        Args:
            intensity: The configured vibration intensity.
        """
        self.stop()
        self._intensity = intensity
        logger.info("Starting vibration, intensity: %s", intensity.name)

        if intensity == models.VibrationIntensity.strong:
            self.start_continuous()
            return

        if intensity == models.VibrationIntensity.light:
            self._pulse(devices.HapticKind.notification)
        else:
            self._pulse(devices.HapticKind.click)
            self._second_pulse_timer = self._scheduler.call_later(
                self.settings.MEDIUM_SECOND_PULSE_SECONDS, self._second_pulse
            )
        self._escalation_timer = self._scheduler.call_later(
            self.settings.ESCALATION_DELAY_SECONDS, self._escalate
        )

    def start_continuous(self) -> None:
        """Vibrate continuously. Idempotent while continuous, resumes if paused."""
        if self._state == VibrationState.continuous:
            return
        if self._state == VibrationState.paused:
            self.resume()
            return

        logger.info("Starting continuous vibration.")
        self._cancel("_escalation_timer")
        self._enter_continuous()

    def pause(self) -> None:
        """Pause continuous vibration. Ignored in any other state."""
        if self._state != VibrationState.continuous:
            return

        logger.info("Pausing vibration.")
        self._state = VibrationState.paused
        self._cancel("_pulse_timer")
        self._cancel("_max_duration_timer")
        self._pause_check_timer = self._scheduler.call_later(
            self.settings.PAUSE_CHECK_SECONDS, self._on_pause_check
        )
        self._pause_timeout_timer = self._scheduler.call_later(
            self.settings.PAUSE_TIMEOUT_SECONDS, self._on_pause_timeout
        )

    def resume(self) -> None:
        """Resume paused vibration. Ignored in any other state."""
        if self._state != VibrationState.paused:
            return

        logger.info("Resuming vibration.")
        self._enter_continuous()

    def stop(self) -> None:
        """Stop vibrating and cancel every pending vibration timer."""
        if self._state != VibrationState.idle:
            logger.info("Stopping vibration.")
        self._state = VibrationState.idle
        for timer_name in (
            "_escalation_timer",
            "_second_pulse_timer",
            "_pulse_timer",
            "_max_duration_timer",
            "_pause_check_timer",
            "_pause_timeout_timer",
        ):
            self._cancel(timer_name)

    def _enter_continuous(self) -> None:
        self._cancel("_pause_check_timer")
        self._cancel("_pause_timeout_timer")
        self._cancel("_pulse_timer")
        self._cancel("_max_duration_timer")

        self._state = VibrationState.continuous
        self._pulse(CONTINUOUS_HAPTICS[self._intensity])
        self._pulse_timer = self._scheduler.call_repeating(
            self.settings.PULSE_INTERVAL_SECONDS, self._on_pulse_interval
        )
        self._max_duration_timer = self._scheduler.call_later(
            self.settings.CONTINUOUS_MAX_SECONDS, self._on_max_duration
        )

    def _second_pulse(self) -> None:
        self._second_pulse_timer = None
        self._pulse(devices.HapticKind.click)

    def _escalate(self) -> None:
        self._escalation_timer = None
        if self.is_alarm_active() and self._state == VibrationState.idle:
            self.start_continuous()

    def _on_pulse_interval(self) -> None:
        if self._state == VibrationState.continuous:
            self._pulse(CONTINUOUS_HAPTICS[self._intensity])

    def _on_max_duration(self) -> None:
        self._max_duration_timer = None
        logger.debug(
            "Continuous vibration reached %ss.", self.settings.CONTINUOUS_MAX_SECONDS
        )
        self.pause()

    def _on_pause_check(self) -> None:
        self._pause_check_timer = None
        self._resume_if_lying_down()

    def _on_pause_timeout(self) -> None:
        self._pause_timeout_timer = None
        self._resume_if_lying_down()

    def _resume_if_lying_down(self) -> None:
        if self._state != VibrationState.paused or not self.is_alarm_active():
            return
        if self._is_lying_down():
            self.resume()
            return

        logger.info("Wearer is upright while vibration is paused.")
        if self.on_upright is not None:
            self.on_upright()

    def _pulse(self, kind: devices.HapticKind) -> None:
        self.pulse_count += 1
        try:
            self._haptics.play_pulse(kind)
        except Exception as e:
            logger.warning("Haptic pulse %s failed: %s", kind.value, e)

    def _cancel(self, timer_name: str) -> None:
        timer = getattr(self, timer_name)
        if timer is not None:
            timer.cancel()
            setattr(self, timer_name, None)
