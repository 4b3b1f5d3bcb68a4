"""Classify the wearer as lying down or upright from accelerometer and step data."""

import dataclasses
import datetime
import enum
from typing import Callable, List, Optional

from antisnooze.core import config, exceptions, models, scheduling
from antisnooze.io import sensors
from antisnooze.processing import metrics

logger = config.get_logger()


class EventKind(str, enum.Enum):
    """Signals raised by the classifier."""

    lay_down = "lay_down"
    wake_confirmed = "wake_confirmed"
    doze_off = "doze_off"
    motion_while_lying = "motion_while_lying"


class WakeSource(str, enum.Enum):
    """Which signal path confirmed that the wearer got up."""

    posture = "posture"
    motion = "motion"
    steps = "steps"


@dataclasses.dataclass(frozen=True)
class ClassifierEvent:
    """Dataclass describing a classifier signal.

    Attributes:
        kind: What happened.
        timestamp: When it happened.
        source: For wake_confirmed events, the signal path that confirmed it.
    """

    kind: EventKind
    timestamp: datetime.datetime
    source: Optional[WakeSource] = None


Listener = Callable[[ClassifierEvent], None]


class PostureClassifier:
    """Debounced lying down / upright classification.

    Each accelerometer sample goes through two paths. The motion path measures
    the acceleration with gravity removed and counts bursts of significant
    motion; a long enough burst while lying down is taken as proof of being
    awake. The posture path low-pass filters the tilt angle and compares it to
    two thresholds (hysteresis): the filtered angle has to stay past the
    threshold for the confirmation duration (debounce) before the state flips,
    and no posture flip may follow another flip within the cooldown window.

    A third, periodic path polls the step counter. Walking while lying down
    forces the upright state regardless of the angle.

    Attributes:
        settings: The tunable thresholds and durations.
    """

    def __init__(
        self,
        scheduler: scheduling.Scheduler,
        source: sensors.AccelerometerSource,
        step_counter: Optional[sensors.StepCounter] = None,
        settings: Optional[config.Settings] = None,
    ) -> None:
        """Initialize the classifier.

        Args:
            scheduler: The scheduling context for the doze-off and step timers.
            source: Delivers the accelerometer samples.
            step_counter: Answers step count queries. Without one the step path
                is disabled.
            settings: The tunable constants. Defaults to config.Settings().
        """
        self.settings = settings if settings is not None else config.Settings()
        self._scheduler = scheduler
        self._source = source
        self._step_counter = step_counter
        self._listeners: List[Listener] = []
        self._monitoring = False

        self._state = models.SleepState()
        self._filtered_angle: Optional[float] = None
        self._pending_since: Optional[datetime.datetime] = None
        self._last_transition: Optional[datetime.datetime] = None
        self._motion_count = 0
        self._last_motion: Optional[datetime.datetime] = None

        self._doze_off_timer: Optional[scheduling.TimerHandle] = None
        self._step_timer: Optional[scheduling.TimerHandle] = None

    @property
    def state(self) -> models.SleepState:
        """A copy of the published sleep state."""
        return self._state.model_copy()

    @property
    def is_lying_down(self) -> bool:
        """The debounced posture."""
        return self._state.is_lying_down

    @property
    def is_monitoring(self) -> bool:
        """Whether samples are currently being processed."""
        return self._monitoring

    @property
    def filtered_angle(self) -> Optional[float]:
        """The low-pass filtered tilt angle, None before the first sample."""
        return self._filtered_angle

    def subscribe(self, listener: Listener) -> None:
        """Register a listener for classifier events."""
        self._listeners.append(listener)

    def start_monitoring(self) -> None:
        """Start receiving samples and polling the step counter.

        Calling this while already monitoring is a no-op.

        Raises:
            SensorUnavailableError: If the accelerometer is not available. No
                monitoring is started in that case.
        """
        if self._monitoring:
            return
        if not self._source.is_available():
            raise exceptions.SensorUnavailableError(
                "Accelerometer is not available, monitoring not started."
            )

        logger.info("Starting posture monitoring.")
        self._monitoring = True
        self._source.start(self.process_sample, self.report_sensor_error)
        if self._step_counter is not None:
            self._step_timer = self._scheduler.call_repeating(
                self.settings.STEP_POLL_SECONDS, self.poll_steps
            )

    def stop_monitoring(self) -> None:
        """Stop monitoring, cancelling every timer and forgetting the posture.

        The next monitoring session starts from the upright state, so lying down
        after it starts is a fresh lying episode.
        """
        if not self._monitoring:
            return

        logger.info("Stopping posture monitoring.")
        self._monitoring = False
        self._source.stop()
        self._cancel_doze_off_timer()
        if self._step_timer is not None:
            self._step_timer.cancel()
            self._step_timer = None

        self._state = models.SleepState()
        self._filtered_angle = None
        self._pending_since = None
        self._last_transition = None
        self._motion_count = 0
        self._last_motion = None

    def report_sensor_error(self, error: Exception) -> None:
        """Log a failed accelerometer read. The sample of that tick is dropped."""
        logger.warning("Accelerometer read failed, sample dropped: %s", error)

    def process_sample(self, sample: models.AccelerometerSample) -> None:
        """Run one accelerometer sample through the motion and posture paths.

        Args:
            sample: The reading, in units of standard gravity.
        """
        if not self._monitoring:
            return

        reading = sample.as_array()
        if not metrics.is_finite_reading(reading)[0]:
            logger.warning(
                "Dropping non-finite accelerometer sample at %s.", sample.timestamp
            )
            return

        magnitude = float(metrics.motion_magnitude(reading)[0])
        self._state.motion_level = magnitude
        if magnitude > self.settings.SIGNIFICANT_MOTION_THRESHOLD:
            self._register_motion(sample.timestamp)

        if not self._monitoring:
            return
        self._update_posture(float(metrics.tilt_angle(reading)[0]), sample.timestamp)

    def poll_steps(self) -> None:
        """Query the steps of the trailing window and force upright on walking."""
        if not self._monitoring or self._step_counter is None:
            return

        end = self._scheduler.now()
        start = end - datetime.timedelta(seconds=self.settings.STEP_WINDOW_SECONDS)
        steps = self._step_counter.query(start, end)
        if steps is None:
            logger.debug("No step count available for %s - %s.", start, end)
            return

        self._state.step_count = steps
        self._state.is_walking = steps >= self.settings.REQUIRED_STEPS_FOR_WAKE
        if steps > 0:
            self._state.last_step_time = end

        if self._state.is_walking and self._state.is_lying_down:
            logger.info("%s steps while lying down, wearer is up.", steps)
            self._flip(lying_down=False, timestamp=end, source=WakeSource.steps)

    def _register_motion(self, timestamp: datetime.datetime) -> None:
        """Count a sample with significant motion toward a motion burst."""
        self._state.last_significant_motion_time = timestamp
        if (
            self._last_motion is not None
            and (timestamp - self._last_motion).total_seconds()
            < self.settings.MOTION_RESET_SECONDS
        ):
            self._motion_count += 1
        else:
            self._motion_count = 1
        self._last_motion = timestamp

        if not self._state.is_lying_down:
            return
        if self._motion_count >= self.settings.WAKE_MOTION_COUNT:
            logger.info(
                "%s consecutive motion samples while lying down, wearer is up.",
                self._motion_count,
            )
            self._flip(lying_down=False, timestamp=timestamp, source=WakeSource.motion)
        else:
            self._emit(ClassifierEvent(EventKind.motion_while_lying, timestamp))

    def _update_posture(self, angle: float, timestamp: datetime.datetime) -> None:
        """Filter the tilt angle and apply hysteresis, cooldown and debounce."""
        self._filtered_angle = float(
            metrics.low_pass(
                angle, self.settings.SMOOTHING_ALPHA, initial=self._filtered_angle
            )[0]
        )

        if (
            self._last_transition is not None
            and (timestamp - self._last_transition).total_seconds()
            < self.settings.COOLDOWN_SECONDS
        ):
            self._pending_since = None
            return

        if self._state.is_lying_down:
            candidate = self._filtered_angle <= self.settings.UPRIGHT_ANGLE
        else:
            candidate = self._filtered_angle >= self.settings.LYING_DOWN_ANGLE

        if not candidate:
            self._pending_since = None
            return

        if self._pending_since is None:
            self._pending_since = timestamp
        if (
            timestamp - self._pending_since
        ).total_seconds() >= self.settings.CONFIRMATION_SECONDS:
            self._flip(
                lying_down=not self._state.is_lying_down,
                timestamp=timestamp,
                source=WakeSource.posture,
            )

    def _flip(
        self, lying_down: bool, timestamp: datetime.datetime, source: WakeSource
    ) -> None:
        """Commit a confirmed posture change and start its cooldown window."""
        logger.debug("Posture changed to lying_down=%s via %s.", lying_down, source)
        self._state.is_lying_down = lying_down
        self._last_transition = timestamp
        self._pending_since = None
        self._cancel_doze_off_timer()

        if lying_down:
            self._doze_off_timer = self._scheduler.call_later(
                self.settings.DOZE_OFF_SECONDS, self._on_doze_off
            )
            self._emit(ClassifierEvent(EventKind.lay_down, timestamp))
        else:
            self._motion_count = 0
            self._last_motion = None
            self._emit(ClassifierEvent(EventKind.wake_confirmed, timestamp, source))

    def _on_doze_off(self) -> None:
        """Doze-off timer expiry."""
        self._doze_off_timer = None
        if not self._state.is_lying_down:
            return
        logger.info("Still lying down after %ss.", self.settings.DOZE_OFF_SECONDS)
        self._emit(ClassifierEvent(EventKind.doze_off, self._scheduler.now()))

    def _cancel_doze_off_timer(self) -> None:
        if self._doze_off_timer is not None:
            self._doze_off_timer.cancel()
            self._doze_off_timer = None

    def _emit(self, event: ClassifierEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
