"""Custom exceptions for antisnooze."""

from antisnooze.core import config

logger = config.get_logger()


class LoggedException(Exception):
    """Base class that automatically logs messages."""

    def __init__(self, message: str) -> None:
        """Initialize a new instance of the LoggedException class.

        Args:
            message: The message to display.
        """
        logger.exception(message)
        super().__init__(message)


class SensorUnavailableError(LoggedException):
    """The accelerometer cannot deliver samples on this device."""

    pass


class BackgroundSessionError(LoggedException):
    """The background execution session could not be started or has failed."""

    pass


class SyncEncodeError(LoggedException):
    """A payload could not be encoded for the device sync contract."""

    pass


class SyncDecodeError(LoggedException):
    """A received sync envelope could not be decoded."""

    pass


class InvalidFileTypeError(LoggedException):
    """antisnooze did not expect this file extension."""

    pass


class EmptyDirectoryError(LoggedException):
    """No .csv or .parquet recordings were found in the directory."""

    pass
