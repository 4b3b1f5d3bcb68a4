"""CLI for antisnooze."""

import datetime
import logging
import pathlib
from enum import Enum
from typing import Optional

import typer

from antisnooze.core import config, exceptions

logger = config.get_logger()
app = typer.Typer(
    help="Replay recorded wake up sessions through the antisnooze alarm engine.",
)


class OutputFileType(str, Enum):
    """Valid output file types for saving data."""

    csv = ".csv"
    parquet = ".parquet"


class Intensity(str, Enum):
    """Setting a vibration intensity class for typer.

    This class is used to define the literal types that are allowed for the
    vibration intensity, and parsing the strings for the orchestrator.
    """

    light = "light"
    medium = "medium"
    strong = "strong"


def version_check(version: bool) -> None:
    """Print the current version of antisnooze and exit."""
    if version:
        typer.echo(f"antisnooze version: {config.get_version()}")
        raise typer.Exit()


def _parse_wake_up_time(wake_up_time: Optional[str]) -> Optional[datetime.time]:
    """Parse a HH:MM string into a time.

    Args:
        wake_up_time: The time string, or None.

    Returns:
        The parsed time, None if no string was given.

    Raises:
        typer.BadParameter: If the string is not a valid HH:MM time.
    """
    if wake_up_time is None:
        return None
    try:
        return datetime.datetime.strptime(wake_up_time.strip(), "%H:%M").time()
    except ValueError:
        raise typer.BadParameter(f"Invalid wake up time: {wake_up_time}, use HH:MM.")


@app.command()
def main(
    input: pathlib.Path = typer.Argument(
        ..., help="Path to the recorded session(s).", exists=True
    ),
    output: pathlib.Path = typer.Option(
        None,
        "-o",
        "--output",
        help="Path where data will be saved. Supports .csv and .parquet formats.",
    ),
    output_filetype: OutputFileType = typer.Option(
        ".csv",
        "-O",
        "--output-filetype",
        help="Format for save files when processing directories. ",
    ),
    intensity: Intensity = typer.Option(
        Intensity.medium,
        "-i",
        "--intensity",
        help="Vibration intensity of the alarm. "
        "Must choose one of 'light', 'medium', or 'strong'.",
        case_sensitive=False,
    ),
    wake_up_time: str = typer.Option(
        None,
        "-w",
        "--wake-up-time",
        help="Time of day the alarm goes off, as HH:MM. "
        "Defaults to the minute of the first recorded sample.",
    ),
    verbosity: bool = typer.Option(
        False,
        "-v",
        "--verbosity",
        help="Determines the level of verbosity. Use -v for DEBUG. "
        "Defaults to INFO if not included.",
    ),
    version: bool = typer.Option(
        False,
        "-V",
        "--version",
        help="Print the current version of antisnooze and exit.",
        is_eager=True,
        callback=version_check,
    ),
) -> None:
    """Run antisnooze orchestrator with command line arguments."""
    from antisnooze.core import orchestrator

    log_level = logging.INFO
    if verbosity:
        log_level = logging.DEBUG
    logger.setLevel(log_level)

    parsed_wake_up_time = _parse_wake_up_time(wake_up_time)

    logger.debug("Running antisnooze. arguments given: %s", locals())
    try:
        orchestrator.run(
            input=input,
            output=output,
            wake_up_time=parsed_wake_up_time,
            intensity=intensity.value,  # type: ignore[arg-type] # Covered by Intensity Enum class
            verbosity=log_level,
            output_filetype=output_filetype.value,  # type: ignore[arg-type]
        )
    except exceptions.EmptyDirectoryError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
