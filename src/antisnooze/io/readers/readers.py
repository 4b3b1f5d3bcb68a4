"""Function to read recorded wake up sessions from a file."""

import pathlib
from typing import Union

import polars as pl

from antisnooze.core import config, exceptions, models

logger = config.get_logger()

VALID_FILE_TYPES = (".csv", ".parquet")
ACCELERATION_COLUMNS = ("x", "y", "z")


def read_recording(file_name: Union[pathlib.Path, str]) -> models.Recording:
    """Read a recorded session from a .csv or .parquet file.

    The file needs a `time` column and one column per acceleration axis (`x`, `y`,
    `z`, in units of standard gravity). An optional `steps` column holds the
    number of steps taken at each sample time. Rows with a missing or non-finite
    acceleration value are dropped.

    Args:
        file_name: The filename to read the recording from.

    Returns:
        Recording class

    Raises:
        InvalidFileTypeError: If the file extension is not supported.
        ValueError: If a required column is missing or no usable rows remain.
    """
    file_name = pathlib.Path(file_name)
    if file_name.suffix not in VALID_FILE_TYPES:
        raise exceptions.InvalidFileTypeError(
            f"The extension: {file_name.suffix} is not supported. "
            "Please provide a .csv or .parquet file."
        )

    if file_name.suffix == ".csv":
        data = pl.read_csv(file_name, try_parse_dates=True)
    else:
        data = pl.read_parquet(file_name)

    required = ("time", *ACCELERATION_COLUMNS)
    missing = [column for column in required if column not in data.columns]
    if missing:
        raise ValueError(f"Recording {file_name} is missing columns: {missing}")
    if not isinstance(data["time"].dtype, pl.datatypes.Datetime):
        data = data.with_columns(pl.col("time").str.to_datetime())

    valid = data.filter(
        pl.all_horizontal(
            [
                pl.col(column).cast(pl.Float64).is_finite().fill_null(False)
                for column in ACCELERATION_COLUMNS
            ]
        )
    ).sort("time")
    dropped = data.height - valid.height
    if dropped:
        logger.warning("Dropped %s rows with non-finite acceleration.", dropped)
    if valid.is_empty():
        raise ValueError(f"Recording {file_name} contains no usable samples.")

    acceleration = models.Measurement(
        measurements=valid.select(list(ACCELERATION_COLUMNS))
        .cast(pl.Float64)
        .to_numpy(),
        time=valid["time"],
    )

    steps = None
    if "steps" in valid.columns:
        steps = models.Measurement(
            measurements=valid["steps"].fill_null(0).cast(pl.Int64).to_numpy(),
            time=valid["time"],
        )

    logger.debug("Read %s samples from %s.", valid.height, file_name)
    return models.Recording(acceleration=acceleration, steps=steps)
