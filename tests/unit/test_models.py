"""Testing the data models."""

import datetime
from typing import List

import numpy as np
import polars as pl
import pydantic
import pytest

from antisnooze.core import models

EPOCH = datetime.datetime(2024, 5, 2, 7, 0)


def _time(seconds: List[int]) -> pl.Series:
    """Datetime series at the given offsets from EPOCH."""
    return pl.Series(
        "time",
        [EPOCH + datetime.timedelta(seconds=second) for second in seconds],
        dtype=pl.Datetime("us"),
    )


def test_alarm_settings_defaults() -> None:
    """Test the default alarm settings."""
    settings = models.AlarmSettings()

    assert settings.wake_up_time == datetime.time(7, 0)
    assert not settings.is_active
    assert settings.vibration_intensity == models.VibrationIntensity.medium
    assert not settings.repeats


def test_alarm_settings_truncated_to_minutes() -> None:
    """Test seconds are dropped from the wake up time."""
    settings = models.AlarmSettings(wake_up_time=datetime.time(6, 30, 45, 12))

    assert settings.wake_up_time == datetime.time(6, 30)


@pytest.mark.parametrize("days", [(), (True,) * 6, (False,) * 8])
def test_alarm_settings_repeat_days_length(days: tuple) -> None:
    """Test there must be exactly seven repeat flags."""
    with pytest.raises(ValueError):
        models.AlarmSettings(repeat_days=days)


def test_alarm_settings_camel_case() -> None:
    """Test the settings accept and produce the camel case wire names."""
    settings = models.AlarmSettings.model_validate(
        {
            "wakeUpTime": "06:15",
            "isActive": True,
            "vibrationIntensity": 1,
            "repeatDays": [False, True, False, False, False, False, False],
        }
    )

    dumped = settings.model_dump(by_alias=True)

    assert settings.vibration_intensity == models.VibrationIntensity.light
    assert settings.repeats
    assert set(dumped) == {"wakeUpTime", "isActive", "vibrationIntensity", "repeatDays"}


def test_alarm_settings_frozen() -> None:
    """Test settings snapshots cannot be changed."""
    settings = models.AlarmSettings()

    with pytest.raises(pydantic.ValidationError):
        settings.is_active = True  # type: ignore[misc]


def test_alarm_action_values() -> None:
    """Test the raw values of the remote actions."""
    assert models.AlarmAction("startMonitoring") == models.AlarmAction.start_monitoring
    assert models.AlarmAction.stop_monitoring.value == "stopMonitoring"


def test_accelerometer_sample_as_array() -> None:
    """Test the sample as a numpy vector."""
    sample = models.AccelerometerSample(x=0.1, y=-0.2, z=0.98, timestamp=EPOCH)

    assert np.array_equal(sample.as_array(), np.array([0.1, -0.2, 0.98]))


def test_measurement_model_time_type() -> None:
    """Test the error when time is not a datetime series."""
    time = pl.Series([1, 2, 3])
    with pytest.raises(ValueError):
        models.Measurement(measurements=np.array([1, 2, 3]), time=time)


def test_measurement_model_time_unique() -> None:
    """Test the error when time is not unique."""
    with pytest.raises(ValueError):
        models.Measurement(measurements=np.array([1, 2, 3]), time=_time([1, 1, 3]))


def test_measurement_model_time_sorted() -> None:
    """Test the error when time is not sorted."""
    with pytest.raises(ValueError):
        models.Measurement(measurements=np.array([1, 2, 3]), time=_time([2, 1, 3]))


def test_measurement_model_time_empty() -> None:
    """Test the error when time is empty."""
    with pytest.raises(ValueError):
        models.Measurement(measurements=np.array([1, 2, 3]), time=_time([]))


def test_measurement_model_measurements_empty() -> None:
    """Test the error when measurements is empty."""
    with pytest.raises(ValueError):
        models.Measurement(measurements=np.array([]), time=_time([1, 2, 3]))


def test_recording_acceleration_three_columns() -> None:
    """Test the Recording to catch acceleration without three axes."""
    acceleration = models.Measurement(
        measurements=np.array([[1, 2], [3, 4]]), time=_time([1, 2])
    )

    with pytest.raises(ValueError):
        models.Recording(acceleration=acceleration)


def test_recording_samples() -> None:
    """Test the recording is replayed as samples in time order."""
    acceleration = models.Measurement(
        measurements=np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 1.0]]), time=_time([0, 1])
    )
    recording = models.Recording(acceleration=acceleration)

    samples = list(recording.samples())

    assert recording.start == EPOCH
    assert recording.end == EPOCH + datetime.timedelta(seconds=1)
    assert [sample.x for sample in samples] == [1.0, 0.0]
    assert samples[1].timestamp == recording.end
    assert list(recording.step_times()) == []


def test_recording_step_times() -> None:
    """Test step counts are expanded to one timestamp per step."""
    acceleration = models.Measurement(
        measurements=np.zeros((3, 3)), time=_time([0, 1, 2])
    )
    steps = models.Measurement(measurements=np.array([0, 2, 1]), time=_time([0, 1, 2]))
    recording = models.Recording(acceleration=acceleration, steps=steps)

    step_times = list(recording.step_times())

    assert step_times == [
        EPOCH + datetime.timedelta(seconds=1),
        EPOCH + datetime.timedelta(seconds=1),
        EPOCH + datetime.timedelta(seconds=2),
    ]
