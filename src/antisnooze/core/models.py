"""Internal data model."""

import datetime
import enum
from typing import Iterator, Optional, Tuple

import numpy as np
import polars as pl
import pydantic
from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel

from antisnooze.core import config

logger = config.get_logger()

DAYS_PER_WEEK = 7


class VibrationIntensity(enum.IntEnum):
    """Haptic strength chosen by the user for the alarm."""

    light = 1
    medium = 2
    strong = 3


class AlarmAction(str, enum.Enum):
    """Remote commands one device can send the other."""

    stop = "stop"
    snooze = "snooze"
    start_monitoring = "startMonitoring"
    stop_monitoring = "stopMonitoring"


class AlarmSettings(BaseModel):
    """Immutable snapshot of the user's alarm settings.

    Attributes:
        wake_up_time: Time of day the alarm goes off, at minute precision.
        is_active: Whether the alarm is armed at all.
        vibration_intensity: Starting strength of the haptic stimulus.
        repeat_days: Seven flags, Sunday first. If none is set the alarm is a
            one-shot alarm for the next occurrence of `wake_up_time`.
    """

    model_config = pydantic.ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    wake_up_time: datetime.time = datetime.time(7, 0)
    is_active: bool = False
    vibration_intensity: VibrationIntensity = VibrationIntensity.medium
    repeat_days: Tuple[bool, ...] = (False,) * DAYS_PER_WEEK

    @field_validator("wake_up_time")
    def truncate_wake_up_time(cls, v: datetime.time) -> datetime.time:
        """Drop seconds, microseconds and time zone from the wake up time.

        Args:
            cls: The class.
            v: The wake up time to truncate.

        Returns:
            The wake up time at minute precision.
        """
        return datetime.time(v.hour, v.minute)

    @field_validator("repeat_days")
    def validate_repeat_days(cls, v: Tuple[bool, ...]) -> Tuple[bool, ...]:
        """Validate that there is exactly one flag per weekday.

        Args:
            cls: The class.
            v: The repeat day flags to validate.

        Returns:
            v: The flags if there are seven of them.

        Raises:
            ValueError: If there are not exactly seven flags.
        """
        if len(v) != DAYS_PER_WEEK:
            raise ValueError(
                f"repeat_days must contain {DAYS_PER_WEEK} entries, got {len(v)}"
            )
        return v

    @property
    def repeats(self) -> bool:
        """True when at least one weekday is selected."""
        return any(self.repeat_days)


class SleepState(BaseModel):
    """Published posture/motion state of the wearer.

    Only the posture classifier writes this state; everybody else receives
    copies.
    """

    model_config = pydantic.ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_lying_down: bool = False
    motion_level: float = 0.0
    last_significant_motion_time: Optional[datetime.datetime] = None
    is_walking: bool = False
    step_count: int = 0
    last_step_time: Optional[datetime.datetime] = None


class AlarmHistory(BaseModel):
    """One fired alarm and how the wake up went."""

    model_config = pydantic.ConfigDict(alias_generator=to_camel, populate_by_name=True)

    alarm_time: datetime.datetime
    wake_up_time: Optional[datetime.datetime] = None
    doze_off_count: int = 0


class AccelerometerSample(BaseModel):
    """A single three-axis accelerometer reading, in units of standard gravity."""

    model_config = pydantic.ConfigDict(frozen=True)

    x: float
    y: float
    z: float
    timestamp: datetime.datetime

    def as_array(self) -> np.ndarray:
        """Return the reading as a (3,) array."""
        return np.array([self.x, self.y, self.z], dtype=float)


class Measurement(BaseModel):
    """A single measurement of a sensor and its corresponding time."""

    model_config = pydantic.ConfigDict(arbitrary_types_allowed=True)

    measurements: np.ndarray
    time: pl.Series

    @field_validator("measurements")
    def validate_measurements_not_empty(cls, v: np.ndarray) -> np.ndarray:
        """Validate that the measurements array is not empty.

        Args:
            cls: The class.
            v: The measurements array to validate.

        Returns:
            v: The measurements array if it is not empty.

        Raises:
            ValueError: If the measurements array is empty.
        """
        if v.size == 0:
            raise ValueError("measurements array must not be empty")
        return v

    @field_validator("time")
    def validate_time(cls, v: pl.Series) -> pl.Series:
        """Validate the time series.

        Check that the time series is a datetime series, contains only unique
        entries, and is sorted.

        Args:
            cls: The class.
            v: The time series to validate.

        Returns:
            v: The time series if it is valid.

        Raises:
            ValueError: If the time series is not a datetime series, is not sorted,
                contains duplicates or is empty.
        """
        if not isinstance(v.dtype, pl.datatypes.Datetime):
            raise ValueError("Time must be a datetime series")
        if v.is_empty():
            raise ValueError("Time series cannot be empty")
        if not v.is_unique().all():
            raise ValueError("Time series must contain unique entries")
        if not v.is_sorted():
            raise ValueError("Time series must be sorted")
        return v


class Recording(BaseModel):
    """A recorded wake up session that can be replayed through the engine.

    Attributes:
        acceleration: Three-axis acceleration, one row per sample.
        steps: Number of steps taken at each sample time, if the recording
            carries a step channel.
    """

    acceleration: Measurement
    steps: Optional[Measurement] = None

    @field_validator("acceleration")
    def validate_acceleration(cls, v: Measurement) -> Measurement:
        """Ensure that the acceleration data is a 2D array with 3 columns.

        Args:
            cls: The class.
            v: The acceleration data to validate.

        Returns:
            v: The acceleration data if it is valid.

        Raises:
            ValueError: If the acceleration data is not a 2D array with 3 columns.
        """
        if v.measurements.ndim != 2 or v.measurements.shape[1] != 3:
            raise ValueError("acceleration must be a 2D array with 3 columns")
        return v

    @property
    def start(self) -> datetime.datetime:
        """Time of the first sample."""
        return self.acceleration.time.item(0)

    @property
    def end(self) -> datetime.datetime:
        """Time of the last sample."""
        return self.acceleration.time.item(-1)

    def samples(self) -> Iterator[AccelerometerSample]:
        """Yield the acceleration rows as samples, in time order."""
        for (x, y, z), timestamp in zip(
            self.acceleration.measurements, self.acceleration.time
        ):
            yield AccelerometerSample(
                x=float(x), y=float(y), z=float(z), timestamp=timestamp
            )

    def step_times(self) -> Iterator[datetime.datetime]:
        """Yield one timestamp per recorded step."""
        if self.steps is None:
            return
        for count, timestamp in zip(
            np.atleast_1d(self.steps.measurements), self.steps.time
        ):
            for _ in range(int(count)):
                yield timestamp
