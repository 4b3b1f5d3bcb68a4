"""Module containing the output classes for writing replay results to files."""

import datetime
import json
import pathlib
from typing import Any, Dict, List, Optional

import polars as pl
import pydantic

from antisnooze.core import config, exceptions, models

VALID_FILE_TYPES = (".csv", ".parquet")

logger = config.get_logger()


class SessionResults(pydantic.BaseModel):
    """Dataclass containing results of orchestrator.run().

    Attributes:
        timeline: One row per replayed sample with the classifier, alarm and
            vibration state after that sample.
        history: The alarm history written during the replay.
        transitions: The alarm lifecycle transitions, oldest first.
        pulse_count: Number of haptic pulses requested.
        processing_params: The settings the replay ran with.
    """

    model_config = pydantic.ConfigDict(arbitrary_types_allowed=True)

    timeline: pl.DataFrame
    history: List[models.AlarmHistory] = []
    transitions: List[Dict[str, Any]] = []
    pulse_count: int = 0
    processing_params: Optional[Dict[str, Any]] = None

    @property
    def woke_up(self) -> bool:
        """Whether the last fired alarm ended with a confirmed wake up time."""
        return bool(self.history) and self.history[-1].wake_up_time is not None

    def save_results(self, output: pathlib.Path) -> None:
        """Save the timeline as a csv or parquet file, with a JSON summary.

        Args:
            output: The path and file name of the data to be saved. as either a csv or
                parquet files.
        """
        logger.debug("Saving results.")
        self.validate_output(output=output)
        output.parent.mkdir(parents=True, exist_ok=True)

        if output.suffix == ".csv":
            self.timeline.write_csv(output, separator=",")
        elif output.suffix == ".parquet":
            self.timeline.write_parquet(output)

        logger.info("Results saved in: %s", output)
        self.save_summary_as_json(output)

    def save_summary_as_json(self, output_path: pathlib.Path) -> None:
        """Save the alarm history, transitions and parameters as a JSON file.

        Args:
            output_path: Path where the data file was saved. The JSON file will use
                the same name but with .json extension.
        """
        summary = {
            "processing_time": datetime.datetime.now().isoformat(timespec="seconds"),
            "antisnooze_version": config.get_version(),
            "pulse_count": self.pulse_count,
            "history": [
                entry.model_dump(mode="json", by_alias=True) for entry in self.history
            ],
            "transitions": self.transitions,
            "processing_parameters": self.processing_params,
        }

        summary_path = output_path.with_suffix(".json")

        with open(summary_path, "w") as f:
            json.dump(summary, f, indent=4, default=str)

        logger.debug("Summary saved in: %s", summary_path)

    @classmethod
    def validate_output(cls, output: pathlib.Path) -> None:
        """Validates that the output path exists and is a valid format.

        Args:
            output: the name of the file to be saved, and the directory it will
                be saved in. Must be a .csv or .parquet file.

        Raises:
            InvalidFileTypeError:If the output file path ends with any extension other
                    than csv or parquet.
        """
        if output.suffix not in VALID_FILE_TYPES:
            raise exceptions.InvalidFileTypeError(
                f"The extension: {output.suffix} is not supported."
                "Please save the file as .csv or .parquet",
            )
