"""Test the writers module."""

import datetime
import json
import pathlib

import polars as pl
import pytest

from antisnooze.core import exceptions, models
from antisnooze.io.writers import writers


@pytest.fixture
def dummy_results() -> writers.SessionResults:
    """Makes a results object for the purpose of testing."""
    dummy_date = datetime.datetime(2024, 5, 2, 7, 0)
    timeline = pl.DataFrame(
        {
            "time": [dummy_date + datetime.timedelta(seconds=i) for i in range(10)],
            "is_lying_down": [True] * 5 + [False] * 5,
            "alarm_state": ["firing"] * 9 + ["scheduled"],
        }
    )
    return writers.SessionResults(
        timeline=timeline,
        history=[
            models.AlarmHistory(
                alarm_time=dummy_date,
                wake_up_time=dummy_date + datetime.timedelta(seconds=9),
                doze_off_count=1,
            )
        ],
        transitions=[
            {
                "time": dummy_date,
                "source": "scheduled",
                "target": "firing",
                "reason": "alarm time reached",
            }
        ],
        pulse_count=12,
        processing_params={"intensity": "medium"},
    )


@pytest.mark.parametrize("file_name", ["test_output.csv", "test_output.parquet"])
def test_save_results(
    dummy_results: writers.SessionResults, file_name: str, tmp_path: pathlib.Path
) -> None:
    """Test saving the timeline and its JSON summary."""
    output = tmp_path / "results" / file_name

    dummy_results.save_results(output)

    assert output.exists()
    assert output.with_suffix(".json").exists()


def test_save_timeline_csv(
    dummy_results: writers.SessionResults, tmp_path: pathlib.Path
) -> None:
    """Test the saved timeline holds one row per replayed sample."""
    output = tmp_path / "timeline.csv"

    dummy_results.save_results(output)
    saved = pl.read_csv(output)

    assert saved.height == 10
    assert saved.columns == ["time", "is_lying_down", "alarm_state"]


def test_summary_contents(
    dummy_results: writers.SessionResults, tmp_path: pathlib.Path
) -> None:
    """Test the JSON summary carries history, transitions and parameters."""
    output = tmp_path / "summary.csv"

    dummy_results.save_summary_as_json(output)
    with open(output.with_suffix(".json")) as f:
        summary = json.load(f)

    assert summary["pulse_count"] == 12
    assert summary["history"][0]["dozeOffCount"] == 1
    assert summary["history"][0]["alarmTime"] == "2024-05-02T07:00:00"
    assert summary["transitions"][0]["target"] == "firing"
    assert summary["processing_parameters"] == {"intensity": "medium"}
    assert "antisnooze_version" in summary


def test_woke_up(dummy_results: writers.SessionResults) -> None:
    """Test the wake up flag follows the last history entry."""
    assert dummy_results.woke_up

    dummy_results.history.append(
        models.AlarmHistory(alarm_time=datetime.datetime(2024, 5, 3, 7, 0))
    )

    assert not dummy_results.woke_up


def test_no_history_did_not_wake(dummy_results: writers.SessionResults) -> None:
    """Test a replay in which no alarm fired."""
    dummy_results.history = []

    assert not dummy_results.woke_up


def test_validate_output_invalid_file_type(tmp_path: pathlib.Path) -> None:
    """Test when output is an invalid file type."""
    output = tmp_path / "bad_file.zip"

    with pytest.raises(exceptions.InvalidFileTypeError):
        writers.SessionResults.validate_output(output)
