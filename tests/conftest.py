"""Fixtures used by pytest."""

import pathlib
from datetime import datetime, timedelta
from typing import Callable, Tuple

import numpy as np
import polars as pl
import pytest

from antisnooze.core import config, models, scheduling
from antisnooze.io import sensors

LYING = (1.0, 0.0, 0.0)
UPRIGHT = (0.0, 0.0, 1.0)
SHAKING = (2.0, 0.0, 0.0)

Vector = Tuple[float, float, float]
SampleFactory = Callable[[Vector, datetime], models.AccelerometerSample]
Feeder = Callable[..., None]


@pytest.fixture
def start_time() -> datetime:
    """A Thursday morning, one hour before a 07:00 alarm."""
    return datetime(2024, 5, 2, 6, 0)


@pytest.fixture
def scheduler(start_time: datetime) -> scheduling.VirtualScheduler:
    """A virtual clock starting at start_time."""
    return scheduling.VirtualScheduler(start_time)


@pytest.fixture
def unsmoothed_settings() -> config.Settings:
    """Default settings without tilt smoothing, so that timings are exact."""
    return config.Settings(SMOOTHING_ALPHA=1.0)


@pytest.fixture
def idle_source(
    scheduler: scheduling.VirtualScheduler,
) -> sensors.ReplayAccelerometerSource:
    """An available accelerometer that never delivers on its own."""
    return sensors.ReplayAccelerometerSource(scheduler, lambda: [])


@pytest.fixture
def sample() -> SampleFactory:
    """Factory building a sample from an (x, y, z) vector and a timestamp."""

    def _make(
        vector: Tuple[float, float, float], timestamp: datetime
    ) -> models.AccelerometerSample:
        x, y, z = vector
        return models.AccelerometerSample(x=x, y=y, z=z, timestamp=timestamp)

    return _make


@pytest.fixture
def feed(
    scheduler: scheduling.VirtualScheduler,
    sample: SampleFactory,
) -> Feeder:
    """Feed one sample per second to a sample callback for a number of seconds.

    The clock advances one second before every sample, so each sample carries the
    current virtual time and every timer due in between runs first.
    """

    def _feed(
        on_sample: Callable[[models.AccelerometerSample], None],
        vector: Tuple[float, float, float],
        seconds: int,
    ) -> None:
        for _ in range(seconds):
            scheduler.advance(1)
            on_sample(sample(vector, scheduler.now()))

    return _feed


@pytest.fixture
def recording_frame() -> pl.DataFrame:
    """Ten minutes of 1 Hz samples starting at 07:00.

    The wearer lies still for four minutes after the alarm, then sits up and
    walks away.
    """
    start = datetime(2024, 5, 2, 7, 0)
    n_samples = 600
    lying_samples = 240
    vectors = np.array(
        [LYING] * lying_samples + [UPRIGHT] * (n_samples - lying_samples)
    )
    steps = np.zeros(n_samples, dtype=int)
    steps[lying_samples + 10 :] = 2
    return pl.DataFrame(
        {
            "time": [start + timedelta(seconds=i) for i in range(n_samples)],
            "x": vectors[:, 0],
            "y": vectors[:, 1],
            "z": vectors[:, 2],
            "steps": steps,
        }
    )


@pytest.fixture
def recording_csv(
    tmp_path: pathlib.Path, recording_frame: pl.DataFrame
) -> pathlib.Path:
    """The recording_frame written to a csv file."""
    path = tmp_path / "recording.csv"
    recording_frame.write_csv(path)
    return path


@pytest.fixture
def recording_parquet(
    tmp_path: pathlib.Path, recording_frame: pl.DataFrame
) -> pathlib.Path:
    """The recording_frame written to a parquet file."""
    path = tmp_path / "recording.parquet"
    recording_frame.write_parquet(path)
    return path


@pytest.fixture
def sample_data_txt(tmp_path: pathlib.Path) -> pathlib.Path:
    """Text file to test invalid file types."""
    path = tmp_path / "example_text.txt"
    path.write_text("not a recording")
    return path
