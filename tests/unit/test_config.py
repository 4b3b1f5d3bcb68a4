"""Test logging and settings in config.py."""

import logging

import pydantic
import pytest

from antisnooze.core import config


def test_get_logger(caplog: pytest.LogCaptureFixture) -> None:
    """Test the antisnooze logger with level set to default 20 (info)."""
    if logging.getLogger("antisnooze").handlers:
        logging.getLogger("antisnooze").handlers.clear()
    logger = config.get_logger()
    logger.setLevel(logging.INFO)

    logger.debug("Debug message here.")
    logger.info("Info message here.")
    logger.warning("Warning message here.")

    assert logger.getEffectiveLevel() == 20
    assert "Debug message here" not in caplog.text
    assert "Info message here." in caplog.text
    assert "Warning message here." in caplog.text


def test_get_logger_second_call() -> None:
    """Test get logger when a handler already exists."""
    logger = config.get_logger()
    second_logger = config.get_logger()

    assert len(logger.handlers) == len(second_logger.handlers) == 1
    assert logger.handlers[0] is second_logger.handlers[0]
    assert logger is second_logger


def test_settings_defaults() -> None:
    """Test the default thresholds and durations."""
    settings = config.Settings()

    assert settings.LYING_DOWN_ANGLE == 70.0
    assert settings.UPRIGHT_ANGLE == 45.0
    assert settings.CONFIRMATION_SECONDS == 3.0
    assert settings.COOLDOWN_SECONDS == 10.0
    assert settings.DOZE_OFF_SECONDS == 180.0
    assert settings.CONTINUOUS_MAX_SECONDS == 60.0
    assert settings.PAUSE_TIMEOUT_SECONDS == 30.0


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that environment variables override the defaults."""
    monkeypatch.setenv("ANTISNOOZE_COOLDOWN_SECONDS", "15")
    monkeypatch.setenv("ANTISNOOZE_WAKE_MOTION_COUNT", "7")

    settings = config.Settings()

    assert settings.COOLDOWN_SECONDS == 15.0
    assert settings.WAKE_MOTION_COUNT == 7


def test_settings_inverted_hysteresis() -> None:
    """Test that the upright threshold must stay below the lying threshold."""
    with pytest.raises(pydantic.ValidationError, match="UPRIGHT_ANGLE"):
        config.Settings(UPRIGHT_ANGLE=80.0, LYING_DOWN_ANGLE=70.0)


@pytest.mark.parametrize(
    "overrides",
    [
        {"SMOOTHING_ALPHA": 0.0},
        {"SMOOTHING_ALPHA": 1.5},
        {"PULSE_INTERVAL_SECONDS": 0.0},
        {"WAKE_MOTION_COUNT": 0},
    ],
)
def test_settings_out_of_range(overrides: dict) -> None:
    """Test that out of range values are rejected."""
    with pytest.raises(pydantic.ValidationError):
        config.Settings(**overrides)


def test_settings_frozen() -> None:
    """Test that settings cannot be changed after creation."""
    settings = config.Settings()

    with pytest.raises(pydantic.ValidationError):
        settings.COOLDOWN_SECONDS = 1.0  # type: ignore[misc]
