"""Calculate the per-sample signal metrics: motion magnitude and tilt angle."""

from typing import Optional, Union

import numpy as np

ArrayLike = Union[np.ndarray, list, tuple]


def motion_magnitude(acceleration: ArrayLike) -> np.ndarray:
    """Compute the motion magnitude, the acceleration with gravity removed.

    This is the absolute Euclidean norm minus one standard gravity unit. Unlike
    ENMO the deviation below one g is kept, since free-fall-like readings during
    a quick movement are motion as well.

    Args:
        acceleration: Three-axis acceleration in g, either a single (3,) reading
            or an (N, 3) array of readings.

    Returns:
        The motion magnitude per reading, as an (N,) array.
    """
    acceleration = np.atleast_2d(np.asarray(acceleration, dtype=float))
    return np.abs(np.linalg.norm(acceleration, axis=1) - 1.0)


def tilt_angle(acceleration: ArrayLike) -> np.ndarray:
    """Calculate the angle between the device z axis and the gravity vector.

    0 degrees means the z axis points straight up, 90 degrees means the device
    lies on its side.

    Args:
        acceleration: Three-axis acceleration in g, either a single (3,) reading
            or an (N, 3) array of readings.

    Returns:
        The tilt angle per reading in degrees, as an (N,) array.
    """
    acceleration = np.atleast_2d(np.asarray(acceleration, dtype=float))
    xy_projection_magnitude = np.linalg.norm(acceleration[:, 0:2], axis=1)

    angle_radians = np.arctan2(xy_projection_magnitude, acceleration[:, 2])

    return np.degrees(angle_radians)


def low_pass(
    values: ArrayLike, alpha: float, initial: Optional[float] = None
) -> np.ndarray:
    """Apply a one-pole low-pass filter (exponential smoothing).

    filtered[i] = filtered[i - 1] * (1 - alpha) + values[i] * alpha

    Args:
        values: The signal to smooth.
        alpha: The smoothing factor in (0, 1]. 1 disables smoothing.
        initial: The filter state before the first value. Defaults to the first
            value, so that the output starts on the signal.

    Returns:
        The filtered signal.

    Raises:
        ValueError: If alpha is outside of (0, 1].
    """
    if not 0 < alpha <= 1:
        raise ValueError(f"alpha must be in (0, 1], got {alpha}.")
    values = np.atleast_1d(np.asarray(values, dtype=float))
    if values.size == 0:
        return values
    filtered = np.empty_like(values)
    state = values[0] if initial is None else initial
    for idx, value in enumerate(values):
        state = state * (1 - alpha) + value * alpha
        filtered[idx] = state
    return filtered


def is_finite_reading(acceleration: ArrayLike) -> np.ndarray:
    """Flag the readings whose three axes are all finite numbers."""
    acceleration = np.atleast_2d(np.asarray(acceleration, dtype=float))
    return np.all(np.isfinite(acceleration), axis=1)
