"""Configuration module for antisnooze."""

import logging
from importlib import metadata

import pydantic
import pydantic_settings


def get_version() -> str:
    """Return antisnooze version."""
    try:
        return metadata.version("antisnooze")
    except metadata.PackageNotFoundError:
        return "Version unknown"


def get_logger() -> logging.Logger:
    """Gets the antisnooze logger."""
    logger = logging.getLogger("antisnooze")
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)s - %(funcName)s - %(message)s",  # noqa: E501
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


class Settings(pydantic_settings.BaseSettings):
    """Tunable constants of the engine.

    Every value can be overridden through an environment variable carrying the
    ``ANTISNOOZE_`` prefix, e.g. ``ANTISNOOZE_COOLDOWN_SECONDS=15``. Angles are in
    degrees, accelerations in units of standard gravity and durations in seconds.
    """

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix="ANTISNOOZE_", frozen=True
    )

    # Posture classification.
    LYING_DOWN_ANGLE: float = pydantic.Field(default=70.0, gt=0, lt=180)
    UPRIGHT_ANGLE: float = pydantic.Field(default=45.0, gt=0, lt=180)
    SMOOTHING_ALPHA: float = pydantic.Field(default=0.3, gt=0, le=1)
    CONFIRMATION_SECONDS: float = pydantic.Field(default=3.0, ge=0)
    COOLDOWN_SECONDS: float = pydantic.Field(default=10.0, ge=0)

    # Motion bursts.
    SIGNIFICANT_MOTION_THRESHOLD: float = pydantic.Field(default=0.3, gt=0)
    MOTION_RESET_SECONDS: float = pydantic.Field(default=3.0, gt=0)
    WAKE_MOTION_COUNT: int = pydantic.Field(default=5, ge=1)
    DOZE_OFF_SECONDS: float = pydantic.Field(default=180.0, gt=0)

    # Step counting.
    STEP_POLL_SECONDS: float = pydantic.Field(default=2.0, gt=0)
    STEP_WINDOW_SECONDS: float = pydantic.Field(default=10.0, gt=0)
    REQUIRED_STEPS_FOR_WAKE: int = pydantic.Field(default=10, ge=1)

    # Vibration escalation.
    PULSE_INTERVAL_SECONDS: float = pydantic.Field(default=2.0, gt=0)
    CONTINUOUS_MAX_SECONDS: float = pydantic.Field(default=60.0, gt=0)
    PAUSE_TIMEOUT_SECONDS: float = pydantic.Field(default=30.0, gt=0)
    PAUSE_CHECK_SECONDS: float = pydantic.Field(default=5.0, gt=0)
    ESCALATION_DELAY_SECONDS: float = pydantic.Field(default=5.0, ge=0)
    MEDIUM_SECOND_PULSE_SECONDS: float = pydantic.Field(default=1.0, ge=0)

    # Lifecycle.
    SESSION_RETRY_SECONDS: float = pydantic.Field(default=3.0, gt=0)
    PRE_ALARM_SECONDS: float = pydantic.Field(default=300.0, ge=0)
    CATCH_UP_SECONDS: float = pydantic.Field(default=60.0, ge=0)

    @pydantic.model_validator(mode="after")
    def validate_hysteresis(self) -> "Settings":
        """Validate that the two posture thresholds form a hysteresis band.

        Returns:
            The validated settings.

        Raises:
            ValueError: If the upright threshold is not below the lying threshold.
        """
        if self.UPRIGHT_ANGLE >= self.LYING_DOWN_ANGLE:
            raise ValueError(
                "UPRIGHT_ANGLE must be smaller than LYING_DOWN_ANGLE, got "
                f"{self.UPRIGHT_ANGLE} and {self.LYING_DOWN_ANGLE}."
            )
        return self
