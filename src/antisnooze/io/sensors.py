"""Sensor collaborators: accelerometer sample sources and step counters."""

import abc
import bisect
import datetime
from typing import Callable, Iterable, List, Optional

from antisnooze.core import config, models, scheduling

logger = config.get_logger()

SampleCallback = Callable[[models.AccelerometerSample], None]
ErrorCallback = Callable[[Exception], None]


class AccelerometerSource(abc.ABC):
    """Pushes accelerometer samples onto the scheduling context."""

    @abc.abstractmethod
    def is_available(self) -> bool:
        """Whether the device can deliver accelerometer samples at all."""
        pass

    @abc.abstractmethod
    def start(self, on_sample: SampleCallback, on_error: ErrorCallback) -> None:
        """Start delivering samples, in arrival order.

        Args:
            on_sample: Receives every sample.
            on_error: Receives read errors. The sample of that tick is dropped.
        """
        pass

    @abc.abstractmethod
    def stop(self) -> None:
        """Stop delivering samples. No callback runs after stop() returns."""
        pass


class StepCounter(abc.ABC):
    """Answers how many steps were taken in a window of time."""

    @abc.abstractmethod
    def query(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> Optional[int]:
        """Count the steps taken in [start, end].

        Returns:
            The number of steps, or None if the count could not be obtained.
        """
        pass


class ReplayAccelerometerSource(AccelerometerSource):
    """Replays recorded samples at their timestamps on a scheduler.

    The samples are re-read from the iterable factory on every start(), so the
    source can be stopped and started again.
    """

    def __init__(
        self,
        scheduler: scheduling.Scheduler,
        samples: Callable[[], Iterable[models.AccelerometerSample]],
        available: bool = True,
    ) -> None:
        """Initialize the source.

        Args:
            scheduler: The scheduling context samples are delivered on.
            samples: Factory returning the samples in time order.
            available: Whether to pretend the sensor exists.
        """
        self._scheduler = scheduler
        self._samples = samples
        self._available = available
        self._handles: List[scheduling.TimerHandle] = []

    def is_available(self) -> bool:
        """Whether the replayed sensor is reported as present."""
        return self._available

    def start(self, on_sample: SampleCallback, on_error: ErrorCallback) -> None:
        """Schedule every sample not older than the current time."""
        self.stop()
        now = self._scheduler.now()
        for sample in self._samples():
            if sample.timestamp < now:
                continue
            self._handles.append(
                self._scheduler.call_at(
                    sample.timestamp, lambda sample=sample: on_sample(sample)
                )
            )
        logger.debug("Replaying %s accelerometer samples.", len(self._handles))

    def stop(self) -> None:
        """Cancel every sample still waiting for delivery."""
        for handle in self._handles:
            handle.cancel()
        self._handles = []


class ReplayStepCounter(StepCounter):
    """Counts steps from a list of recorded step timestamps."""

    def __init__(self, step_times: Iterable[datetime.datetime]) -> None:
        """Initialize the counter.

        Args:
            step_times: One timestamp per recorded step.
        """
        self._step_times = sorted(step_times)

    def query(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> Optional[int]:
        """Count the recorded steps in [start, end]."""
        return bisect.bisect_right(self._step_times, end) - bisect.bisect_left(
            self._step_times, start
        )
