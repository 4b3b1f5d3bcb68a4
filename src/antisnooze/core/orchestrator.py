"""Python based runner: wire the engine and replay recorded wake up sessions."""

import dataclasses
import datetime
import itertools
import logging
import pathlib
from typing import Dict, List, Literal, Optional, Union

import polars as pl
from rich import progress

from antisnooze.core import config, exceptions, models, scheduling
from antisnooze.io import devices, sensors, stores, sync
from antisnooze.io.readers import readers
from antisnooze.io.writers import writers
from antisnooze.processing import background, classifier, lifecycle, vibration

logger = config.get_logger()

VALID_FILE_TYPES = (".csv", ".parquet")


@dataclasses.dataclass
class Engine:
    """Dataclass holding one fully wired alarm engine.

    Attributes:
        scheduler: The single scheduling context every component runs on.
        classifier: Publishes the debounced posture.
        controller: Drives the haptic pattern.
        lifecycle: Owns the alarm and connects the other components.
        session: Keeps the process alive while the alarm needs it.
        settings_store: The alarm settings, feeding the lifecycle.
        history: The alarm history written by the lifecycle.
        sync: The device sync endpoint mirroring state to the companion.
    """

    scheduler: scheduling.Scheduler
    classifier: classifier.PostureClassifier
    controller: vibration.VibrationController
    lifecycle: lifecycle.AlarmLifecycle
    session: background.BackgroundSessionKeeper
    settings_store: stores.SettingsStore
    history: stores.HistoryStore
    sync: sync.DeviceSync


def build_engine(
    scheduler: scheduling.Scheduler,
    source: sensors.AccelerometerSource,
    step_counter: Optional[sensors.StepCounter] = None,
    haptics: Optional[devices.HapticDevice] = None,
    notifications: Optional[devices.NotificationScheduler] = None,
    session: Optional[devices.BackgroundSession] = None,
    transport: Optional[sync.SyncTransport] = None,
    settings_store: Optional[stores.SettingsStore] = None,
    history: Optional[stores.HistoryStore] = None,
    settings: Optional[config.Settings] = None,
) -> Engine:
    """Create the engine components and connect them.

    The lifecycle receives every settings change and every remote action, and
    each classifier event pushes the current sleep state to the companion.
    Collaborators that are not given are replaced by in-memory versions.

    Args:
        scheduler: The scheduling context every component runs on.
        source: Delivers accelerometer samples.
        step_counter: Answers step count queries, optional.
        haptics: Plays the pulses.
        notifications: Mirrors the alarm as a local notification.
        session: The platform background session.
        transport: The channel to the companion device.
        settings_store: Holds the alarm settings.
        history: Receives the alarm history.
        settings: The tunable constants. Defaults to config.Settings().

    Returns:
        The wired engine, with the stored alarm settings already applied.
    """
    settings = settings if settings is not None else config.Settings()
    if settings_store is None:
        settings_store = stores.SettingsStore()
    if history is None:
        history = stores.HistoryStore()

    posture = classifier.PostureClassifier(
        scheduler, source, step_counter=step_counter, settings=settings
    )
    controller = vibration.VibrationController(
        scheduler,
        haptics if haptics is not None else devices.RecordingHapticDevice(),
        is_lying_down=lambda: posture.is_lying_down,
        settings=settings,
    )
    keeper = background.BackgroundSessionKeeper(
        scheduler,
        session if session is not None else devices.NullBackgroundSession(),
        settings=settings,
    )
    alarm = lifecycle.AlarmLifecycle(
        scheduler,
        posture,
        controller,
        history,
        notifications=notifications,
        session=keeper,
        settings=settings,
    )
    device_sync = sync.DeviceSync(
        transport if transport is not None else sync.LoopbackTransport(), scheduler
    )

    settings_store.subscribe(alarm.update_settings)
    device_sync.on_alarm_settings = settings_store.update
    device_sync.on_alarm_action = alarm.handle_action
    posture.subscribe(lambda event: device_sync.send_sleep_state(posture.state))

    alarm.update_settings(settings_store.settings)
    return Engine(
        scheduler=scheduler,
        classifier=posture,
        controller=controller,
        lifecycle=alarm,
        session=keeper,
        settings_store=settings_store,
        history=history,
        sync=device_sync,
    )


def run(
    input: Union[pathlib.Path, str],
    output: Optional[Union[pathlib.Path, str]] = None,
    wake_up_time: Optional[Union[datetime.time, str]] = None,
    intensity: Literal["light", "medium", "strong"] = "medium",
    settings: Optional[config.Settings] = None,
    verbosity: int = logging.WARNING,
    output_filetype: Literal[".csv", ".parquet"] = ".csv",
) -> Union[writers.SessionResults, Dict[str, writers.SessionResults]]:
    """Replays recorded sessions through the alarm engine, for files or directories.

    The run() function will execute the _run_file() function on individual files, or
    _run_directory() on entire directories. When the input path points to a file, the
    name of the save file will be taken from the given output path (if any). When the
    input path points to a directory the output path must be a valid directory as well.
    Output file names will be derived from original file names in the case of directory
    processing.

    Args:
        input: Path to the input file or directory of files to be read. Currently,
            this supports .csv and .parquet recordings.
        output: Path to directory data will be saved to. If processing a single file the
            path should end in the save file name in either .csv or .parquet formats.
        wake_up_time: Time of day the alarm goes off, as a time or "HH:MM". Defaults
            to the minute of the first sample of each recording.
        intensity: The vibration intensity of the alarm.
        settings: The tunable constants. Defaults to config.Settings(), which reads
            ANTISNOOZE_ environment variables.
        verbosity: The logging level for the logger.
        output_filetype: Specifies the data format for the save files. Only used when
            processing directories.

    Returns:
        The replay results as a SessionResults object or as a dictionary of
        SessionResults objects.

    Raises:
        ValueError: If the intensity or the wake up time is invalid.
    """
    logger.setLevel(verbosity)

    input = pathlib.Path(input)
    output = pathlib.Path(output) if output is not None else None
    settings = settings if settings is not None else config.Settings()

    if intensity not in models.VibrationIntensity.__members__:
        message = (
            f"Invalid intensity: {intensity}. Choose 'light', 'medium' or 'strong'."
        )
        logger.error(message)
        raise ValueError(message)
    if isinstance(wake_up_time, str):
        wake_up_time = datetime.time.fromisoformat(wake_up_time)

    if input.is_file():
        return _run_file(
            input=input,
            output=output,
            wake_up_time=wake_up_time,
            intensity=intensity,
            settings=settings,
            verbosity=verbosity,
        )

    return _run_directory(
        input=input,
        output=output,
        wake_up_time=wake_up_time,
        intensity=intensity,
        settings=settings,
        verbosity=verbosity,
        output_filetype=output_filetype,
    )


def _run_directory(
    input: pathlib.Path,
    output: Optional[pathlib.Path] = None,
    wake_up_time: Optional[datetime.time] = None,
    intensity: Literal["light", "medium", "strong"] = "medium",
    settings: Optional[config.Settings] = None,
    verbosity: int = logging.WARNING,
    output_filetype: Literal[".csv", ".parquet"] = ".csv",
) -> Dict[str, writers.SessionResults]:
    """Replays every recording of a directory.

    Args:
        input: Path to the input directory of recordings.
        output: Path to directory data will be saved to.
        wake_up_time: Time of day the alarm goes off.
        intensity: The vibration intensity of the alarm.
        settings: The tunable constants.
        verbosity: The logging level for the logger.
        output_filetype: Specifies the data format for the save files.

    Returns:
        A dictionary of SessionResults objects keyed by input file name.

    Raises:
        ValueError: If the output given is not a directory.
        ValueError: If the output_filetype is not a valid type.
        EmptyDirectoryError: If the input directory contained no recordings.
    """
    if output is not None:
        if output.is_file():
            raise ValueError(
                "Output is a file, but must be a directory when input is a directory."
            )
        if output_filetype not in VALID_FILE_TYPES:
            raise ValueError(
                "Invalid output_filetype: "
                f"{output_filetype}. Valid options are: {VALID_FILE_TYPES}."
            )

    file_names = sorted(
        itertools.chain(input.glob("*.csv"), input.glob("*.parquet"))
    )

    if not file_names:
        raise exceptions.EmptyDirectoryError(
            f"Directory {input} contains no .csv or .parquet files."
        )
    results_dict = {}
    with progress.Progress(
        progress.SpinnerColumn(),
        progress.TextColumn("[progress.description]{task.description}"),
        progress.BarColumn(),
        progress.TaskProgressColumn(),
        console=None,
    ) as progress_bar:
        task = progress_bar.add_task(
            f"[cyan]Replaying recordings in {input.name}...", total=len(file_names)
        )

        for file in file_names:
            output_file_path = (
                output / pathlib.Path(file.stem).with_suffix(output_filetype)
                if output
                else None
            )
            logger.debug(
                "Processing directory: %s, current file: %s, save path: %s",
                input,
                file,
                output_file_path,
            )
            try:
                results_dict[str(file)] = _run_file(
                    input=file,
                    output=output_file_path,
                    wake_up_time=wake_up_time,
                    intensity=intensity,
                    settings=settings,
                    verbosity=verbosity,
                )
            except Exception as e:
                logger.error("Did not run file: %s, Error: %s", file, e)
            progress_bar.update(task, advance=1)
    logger.info("Processing for directory %s completed successfully.", input)
    return results_dict


def _run_file(
    input: pathlib.Path,
    output: Optional[pathlib.Path] = None,
    wake_up_time: Optional[datetime.time] = None,
    intensity: Literal["light", "medium", "strong"] = "medium",
    settings: Optional[config.Settings] = None,
    verbosity: int = logging.WARNING,
) -> writers.SessionResults:
    """Replays one recorded session through the alarm engine.

    The engine runs on a virtual clock starting one minute before the first sample.
    The alarm is armed as a one-shot alarm at wake_up_time; once it fires, the
    recorded samples and steps drive the classifier until the recording ends.

    Args:
        input: Path to the recording. Currently, this supports .csv and .parquet.
        output: Path to save data to. The path should end in the save file name in
            either .csv or .parquet formats.
        wake_up_time: Time of day the alarm goes off. Defaults to the minute of the
            first sample.
        intensity: The vibration intensity of the alarm.
        settings: The tunable constants.
        verbosity: The logging level for the logger.

    Returns:
        The replay timeline, alarm history and transitions as a SessionResults object.
    """
    logger.setLevel(verbosity)
    settings = settings if settings is not None else config.Settings()
    if output is not None:
        writers.SessionResults.validate_output(output=output)

    recording = readers.read_recording(input)
    first_minute = recording.start.replace(second=0, microsecond=0)
    clock_start = first_minute - datetime.timedelta(minutes=1)
    if wake_up_time is None:
        wake_up_time = recording.start.time()

    scheduler = scheduling.VirtualScheduler(clock_start)
    engine = build_engine(
        scheduler,
        sensors.ReplayAccelerometerSource(scheduler, recording.samples),
        step_counter=(
            sensors.ReplayStepCounter(recording.step_times())
            if recording.steps is not None
            else None
        ),
        settings=settings,
    )
    engine.settings_store.update(
        models.AlarmSettings(
            wake_up_time=wake_up_time,
            is_active=True,
            vibration_intensity=models.VibrationIntensity[intensity],
        )
    )

    next_alarm = engine.lifecycle.next_alarm_date
    if next_alarm is None or next_alarm > recording.end:
        logger.warning(
            "Alarm at %s does not go off during the recording (%s - %s).",
            next_alarm,
            recording.start,
            recording.end,
        )

    timeline = _replay(engine, recording)
    if engine.lifecycle.state == lifecycle.AlarmState.firing:
        logger.info("Alarm still ringing at the end of %s.", input)

    results = writers.SessionResults(
        timeline=timeline,
        history=engine.history.entries,
        transitions=[
            {
                "time": transition.time.isoformat(),
                "source": transition.source.value,
                "target": transition.target.value,
                "reason": transition.reason,
            }
            for transition in engine.lifecycle.transitions
        ],
        pulse_count=engine.controller.pulse_count,
        processing_params={
            "wake_up_time": wake_up_time.strftime("%H:%M"),
            "intensity": intensity,
            **settings.model_dump(),
        },
    )

    if output is not None:
        results.save_results(output=output)

    return results


def _replay(engine: Engine, recording: models.Recording) -> pl.DataFrame:
    """Advance the virtual clock through the recording, one row per sample."""
    scheduler = engine.scheduler
    if not isinstance(scheduler, scheduling.VirtualScheduler):
        raise TypeError("Replay needs a VirtualScheduler.")

    rows: Dict[str, List] = {
        "time": [],
        "tilt_angle": [],
        "motion_level": [],
        "is_lying_down": [],
        "is_walking": [],
        "alarm_state": [],
        "vibration_state": [],
    }
    for timestamp in recording.acceleration.time:
        scheduler.advance_to(timestamp)
        state = engine.classifier.state
        rows["time"].append(timestamp)
        rows["tilt_angle"].append(engine.classifier.filtered_angle)
        rows["motion_level"].append(state.motion_level)
        rows["is_lying_down"].append(state.is_lying_down)
        rows["is_walking"].append(state.is_walking)
        rows["alarm_state"].append(engine.lifecycle.state.value)
        rows["vibration_state"].append(engine.controller.state.value)

    return pl.DataFrame(
        rows,
        schema={
            "time": pl.Datetime("us"),
            "tilt_angle": pl.Float64,
            "motion_level": pl.Float64,
            "is_lying_down": pl.Boolean,
            "is_walking": pl.Boolean,
            "alarm_state": pl.String,
            "vibration_state": pl.String,
        },
    )
