"""The alarm lifecycle: schedule, fire, confirm the wake up and reschedule."""

import dataclasses
import datetime
import enum
from typing import List, Optional

from antisnooze.core import config, exceptions, models, scheduling
from antisnooze.io import devices, stores
from antisnooze.processing import background, classifier, schedule, vibration

logger = config.get_logger()


class AlarmState(str, enum.Enum):
    """States of the alarm lifecycle."""

    idle = "idle"
    scheduled = "scheduled"
    firing = "firing"
    wake_confirming = "wake_confirming"
    completed = "completed"


@dataclasses.dataclass(frozen=True)
class Transition:
    """Dataclass recording one lifecycle state change.

    Attributes:
        time: When the change happened.
        source: The state that was left.
        target: The state that was entered.
        reason: Human readable cause of the change.
    """

    time: datetime.datetime
    source: AlarmState
    target: AlarmState
    reason: str


class AlarmLifecycle:
    """Owns the alarm from scheduling until the wearer is confirmed awake.

    idle/scheduled -> scheduled on settings changes, scheduled -> firing when
    the alarm timer expires, firing -> wake_confirming -> completed when the
    classifier confirms the wearer got up, firing -> completed on an explicit
    stop. Completion immediately reschedules the next occurrence.

    The lifecycle handles no sensor noise itself, it only reacts to the
    classifier's debounced events.
    """

    def __init__(
        self,
        scheduler: scheduling.Scheduler,
        posture: classifier.PostureClassifier,
        controller: vibration.VibrationController,
        history: stores.HistoryStore,
        notifications: Optional[devices.NotificationScheduler] = None,
        session: Optional[background.BackgroundSessionKeeper] = None,
        settings: Optional[config.Settings] = None,
    ) -> None:
        """Initialize the lifecycle and wire it to the classifier and controller.

        Args:
            scheduler: The scheduling context for the alarm timers.
            posture: The posture classifier, started while the alarm rings.
            controller: The vibration controller, started while the alarm rings.
            history: Receives one entry per fired alarm.
            notifications: Mirrors the next fire time as a local notification.
            session: Keeps the process alive from shortly before the alarm
                until the wake up is confirmed.
            settings: The tunable constants. Defaults to config.Settings().
        """
        self.settings = settings if settings is not None else config.Settings()
        self._scheduler = scheduler
        self._classifier = posture
        self._controller = controller
        self._history = history
        self._notifications = notifications
        self._session = session

        self._state = AlarmState.idle
        self._alarm_settings = models.AlarmSettings()
        self._deferred_settings: Optional[models.AlarmSettings] = None
        self._next_alarm_date: Optional[datetime.datetime] = None
        self._fired_at: Optional[datetime.datetime] = None
        self._alarm_active = False
        self._alarm_timer: Optional[scheduling.TimerHandle] = None
        self._pre_alarm_timer: Optional[scheduling.TimerHandle] = None
        self.transitions: List[Transition] = []

        self._classifier.subscribe(self.handle_event)
        self._controller.is_alarm_active = lambda: self._alarm_active
        self._controller.on_upright = self._on_upright_while_paused

    @property
    def state(self) -> AlarmState:
        """The current lifecycle state."""
        return self._state

    @property
    def is_alarm_active(self) -> bool:
        """Whether the alarm is currently ringing."""
        return self._alarm_active

    @property
    def next_alarm_date(self) -> Optional[datetime.datetime]:
        """The armed fire time, None when nothing is armed."""
        return self._next_alarm_date

    @property
    def alarm_settings(self) -> models.AlarmSettings:
        """The settings snapshot the lifecycle currently works from."""
        return self._alarm_settings

    def update_settings(self, alarm_settings: models.AlarmSettings) -> None:
        """Take a new settings snapshot and re-arm the alarm timer.

        Settings received while the alarm rings are kept and applied once the
        alarm completes.

        Args:
            alarm_settings: The new settings.
        """
        if self._state == AlarmState.firing:
            logger.info("Alarm is ringing, new settings apply after wake up.")
            self._deferred_settings = alarm_settings
            return
        self._alarm_settings = alarm_settings
        self._reschedule()

    def fire(self) -> None:
        """Ring the alarm: start the classifier and the vibration pattern."""
        if self._state == AlarmState.firing:
            return
        self._cancel_timers()
        now = self._scheduler.now()

        logger.info("Alarm firing at %s.", now)
        self._alarm_active = True
        self._fired_at = now
        self._transition(AlarmState.firing, "alarm time reached")
        self._history.append(models.AlarmHistory(alarm_time=now))

        if self._session is not None:
            self._session.start()
        try:
            self._classifier.start_monitoring()
        except exceptions.SensorUnavailableError:
            logger.warning("No posture monitoring, relying on the wall-clock alarm.")
        self._controller.start(self._alarm_settings.vibration_intensity)

    def complete_stop(self, reason: str = "stop requested") -> None:
        """Stop the ringing alarm for good and schedule the next occurrence.

        Args:
            reason: Why the alarm stops, recorded in the transition log.
        """
        if self._state != AlarmState.firing:
            logger.debug("No ringing alarm to stop.")
            return
        self._complete(reason)

    def cancel(self) -> None:
        """Disarm the alarm without touching the history."""
        logger.info("Cancelling alarm.")
        self._cancel_timers()
        self._next_alarm_date = None
        self._deferred_settings = None
        self._cancel_notification()
        if self._state == AlarmState.firing:
            self._shut_down()
        else:
            self._stop_session()
        self._transition(AlarmState.idle, "alarm cancelled")

    def catch_up(self) -> None:
        """Fire an alarm whose time passed while the process was suspended."""
        if self._state != AlarmState.scheduled or self._next_alarm_date is None:
            return
        overdue = (self._scheduler.now() - self._next_alarm_date).total_seconds()
        if overdue < 0:
            return
        if overdue <= self.settings.CATCH_UP_SECONDS:
            logger.info("Alarm time passed %ss ago, firing now.", overdue)
            self.fire()
            return

        logger.warning("Missed the alarm at %s.", self._next_alarm_date)
        self._reschedule(after=self._next_alarm_date)

    def handle_event(self, event: classifier.ClassifierEvent) -> None:
        """React to a classifier event while the alarm rings."""
        if self._state != AlarmState.firing:
            return

        if event.kind == classifier.EventKind.wake_confirmed:
            source = event.source.value if event.source is not None else "unknown"
            self._confirm_wake(f"wake confirmed by {source}")
        elif event.kind == classifier.EventKind.doze_off:
            logger.info("Wearer dozed off again.")
            self._history.update_last(increment_doze_off_count=True)
            self._controller.start_continuous()
        elif event.kind == classifier.EventKind.motion_while_lying:
            self._controller.pause()

    def handle_action(self, action: models.AlarmAction) -> None:
        """Carry out a command received from the companion device."""
        logger.debug("Received alarm action: %s", action.value)
        if action == models.AlarmAction.stop:
            self.complete_stop("stop requested remotely")
        elif action == models.AlarmAction.snooze:
            logger.warning("Snooze is not supported, stopping the alarm instead.")
            self.complete_stop("snooze requested remotely")
        elif action == models.AlarmAction.start_monitoring:
            try:
                self._classifier.start_monitoring()
            except exceptions.SensorUnavailableError:
                logger.warning("Monitoring requested but no accelerometer available.")
        elif action == models.AlarmAction.stop_monitoring:
            self._classifier.stop_monitoring()

    def _on_upright_while_paused(self) -> None:
        if not self._classifier.is_monitoring:
            logger.info("No posture data, resuming vibration.")
            self._controller.resume()
            return
        self._confirm_wake("upright while vibration paused")

    def _confirm_wake(self, reason: str) -> None:
        if self._state != AlarmState.firing:
            return
        self._transition(AlarmState.wake_confirming, reason)
        self._complete(reason)

    def _complete(self, reason: str) -> None:
        now = self._scheduler.now()
        logger.info("Alarm completed at %s: %s.", now, reason)
        self._shut_down()
        self._history.update_last(wake_up_time=now)
        self._transition(AlarmState.completed, reason)

        if self._deferred_settings is not None:
            self._alarm_settings = self._deferred_settings
            self._deferred_settings = None
        self._reschedule(after=self._fired_at)

    def _shut_down(self) -> None:
        self._controller.stop()
        self._alarm_active = False
        self._classifier.stop_monitoring()
        if self._session is not None:
            self._session.stop()

    def _reschedule(self, after: Optional[datetime.datetime] = None) -> None:
        """Arm the timer for the next occurrence strictly later than after."""
        self._cancel_timers()
        now = self._scheduler.now()
        reference = now
        if after is not None:
            reference = max(now, after + datetime.timedelta(seconds=1))
        self._next_alarm_date = schedule.next_alarm_date(
            self._alarm_settings, reference
        )

        if self._next_alarm_date is None:
            self._stop_session()
            self._cancel_notification()
            self._transition(AlarmState.idle, "alarm inactive")
            return

        self._alarm_timer = self._scheduler.call_at(self._next_alarm_date, self.fire)
        pre_alarm = self._next_alarm_date - datetime.timedelta(
            seconds=self.settings.PRE_ALARM_SECONDS
        )
        if pre_alarm > now:
            self._stop_session()
            if self._session is not None:
                self._pre_alarm_timer = self._scheduler.call_at(
                    pre_alarm, self._warm_up
                )
        self._schedule_notification(self._next_alarm_date)

        logger.info("Next alarm at %s.", self._next_alarm_date)
        self._transition(AlarmState.scheduled, f"next alarm at {self._next_alarm_date}")

    def _warm_up(self) -> None:
        self._pre_alarm_timer = None
        if self._session is not None:
            logger.debug("Starting background session ahead of the alarm.")
            self._session.start()

    def _stop_session(self) -> None:
        if self._session is not None and self._state != AlarmState.firing:
            self._session.stop()

    def _schedule_notification(self, when: datetime.datetime) -> None:
        if self._notifications is None:
            return
        try:
            self._notifications.schedule(when)
        except PermissionError as e:
            logger.warning("Notification not scheduled, %s", e)

    def _cancel_notification(self) -> None:
        if self._notifications is not None:
            self._notifications.cancel()

    def _cancel_timers(self) -> None:
        for timer in (self._alarm_timer, self._pre_alarm_timer):
            if timer is not None:
                timer.cancel()
        self._alarm_timer = None
        self._pre_alarm_timer = None

    def _transition(self, target: AlarmState, reason: str) -> None:
        if target == self._state:
            return
        self.transitions.append(
            Transition(
                time=self._scheduler.now(),
                source=self._state,
                target=target,
                reason=reason,
            )
        )
        logger.debug(
            "Alarm state %s -> %s (%s)", self._state.value, target.value, reason
        )
        self._state = target
