"""Configuration parameters for the goal mover.

This module centralizes all configuration parameters including:
- Rotation and translation velocity profiles
- Lateral PID gains
- Obstacle and stall abort policy
- Reference frame names
- Robot link and visualization settings

Module-level constants are the documented defaults. At runtime the controllers
never read these constants directly: they read an immutable ``MoverConfig``
snapshot from a ``ConfigStore``, which can be swapped atomically while goals
are executing.
"""

import dataclasses
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

# ============================================================================
# Rotation Parameters
# ============================================================================

MIN_TURNING_VELOCITY = 0.02
"""Minimum commanded angular velocity while rotating (rad/s).

Floor of the rotation profile. Enough to overcome static friction so the
robot keeps creeping toward the target heading instead of stalling just
short of the tolerance.
"""

MAX_TURNING_VELOCITY = 1.0
"""Maximum commanded angular velocity while rotating (rad/s)."""

ANGULAR_ACCELERATION = 0.3
"""Angular deceleration used for the stop profile (rad/s²).

The profile is v = sqrt(2 * a * remaining), i.e. the speed from which the
robot can still stop exactly at the target with constant deceleration a.
"""

ANGULAR_TOLERANCE = 0.01
"""Heading error below which a rotation is considered done (rad).
Also the smallest yaw delta for which a rotation phase is started at all."""

ROTATIONAL_GAIN = 2.5
"""Proportional gain applied to the remaining angle (1/s).

Dominates the rotation profile in the last few degrees, where the
sqrt profile becomes too steep.
"""

# ============================================================================
# Translation Parameters
# ============================================================================

MAX_LINEAR_VELOCITY = 0.5
"""Maximum commanded linear velocity (m/s)."""

LINEAR_ACCELERATION = 0.1
"""Linear deceleration used for the stop profile (m/s²)."""

LINEAR_TOLERANCE = 0.1
"""Distance below which the goal position is considered reached (m).
Goals closer than this only get a final orientation correction."""

LINEAR_GAIN = 1.0
"""Proportional gain applied to the remaining distance (1/s)."""

VELOCITY_THRESHOLD = 0.1
"""Linear velocity below which translation may finish (m/s).

Translation succeeds only when the commanded speed is below this AND the
distance is within LINEAR_TOLERANCE.
"""

# ============================================================================
# Lateral PID (keeps the robot on the straight line to the goal)
# ============================================================================

LATERAL_KP = 2.0
"""Proportional gain on lateral error (rad/s per m)."""

LATERAL_KI = 0.0
"""Integral gain on lateral error.

Disabled by default: the lateral error is re-measured from localization every
tick, so there is no steady-state bias to integrate away.
"""

LATERAL_KD = 20.0
"""Derivative gain on the per-tick change of lateral error.

Large because the derivative is taken per tick (50 Hz), not per second.
"""

MAX_LATERAL_VELOCITY = 0.5
"""Clamp on the angular command produced by the lateral PID (rad/s)."""

SIDE_RECOVER_WEIGHT = 1.0
"""Weighting of the lateral offset before it enters the PID (dimensionless)."""

MIN_SIDE_DIST = 0.3
"""Minimum clearance to keep on each side (m). Forwarded to the obstacle sensor."""

# ============================================================================
# Abort Policy
# ============================================================================

LOCALIZATION_LATENCY = 0.5
"""Settling delay after each motion phase (s).

Lets a slower but more accurate localization source catch up before the
next phase trusts the robot pose.
"""

ABORT_TIMEOUT = 5.0
"""Time the robot may keep moving away from the goal before aborting (s)."""

OBSTACLE_WAIT_THRESHOLD = 60.0
"""Time to wait for an obstacle to clear before aborting (s)."""

FORWARD_OBSTACLE_THRESHOLD = 0.5
"""Obstacle distance in the travel direction below which the robot pauses (m)."""

REVERSE_WITHOUT_TURNING_THRESHOLD = 0.5
"""Goals behind the robot and closer than this are reached by backing up
instead of turning around first (m)."""

# ============================================================================
# Reference Frames
# ============================================================================

PREFERRED_PLANNING_FRAME = ""
"""Frame the goal is planned in. Empty means plan in the goal's own frame."""

ALTERNATE_PLANNING_FRAME = "odom"
"""Fallback planning frame when the preferred one is unavailable."""

PREFERRED_DRIVING_FRAME = "map"
"""Frame used to execute motion when available (accurate, may update slowly)."""

ALTERNATE_DRIVING_FRAME = "odom"
"""Fallback driving frame (continuous, drifts over time)."""

BASE_FRAME = "base_footprint"
"""Frame rigidly attached to the robot body."""

# ============================================================================
# Loop Rates
# ============================================================================

CONTROL_RATE_HZ = 50.0
"""Rate of the goal execution loop (Hz)."""

MONITOR_RATE_HZ = 20.0
"""Rate of the idle loop refreshing obstacle readings (Hz)."""

# ============================================================================
# Robot Link Configuration
# ============================================================================

WS_URI = "ws://localhost:8765"
"""WebSocket URI of the robot link."""

WS_RETRY_DELAY_SECONDS = 1
"""Initial retry delay for failed WebSocket connections (seconds)."""

WS_MAX_RETRY_DELAY_SECONDS = 60
"""Maximum retry delay with exponential backoff (seconds)."""

WS_TIMEOUT_SECONDS = 5.0
"""Timeout for WebSocket message reception (seconds)."""

TRANSFORM_MAX_AGE = 1.0
"""Age after which a streamed transform link is treated as unavailable (seconds).

Goals then abort on the missing robot pose instead of driving on a frozen one.
"""

# ============================================================================
# Visualization Colors
# ============================================================================

PLOT_ORANGE = "#f74823"
"""Primary color - measured/commanded data."""

PLOT_BLUE = "#2374f7"
"""Secondary color - reference and planned values."""

PLOT_CREAM = "#fffdee"
"""Light color for text on dark backgrounds."""

PLOT_TAUPE = "#686a5f"
"""Neutral color for thresholds, grids and guides."""

PLOT_YELLOW = "#ffa726"
"""Accent color for highlights and warnings."""

PLOT_DARK_BLUE = "#0d1b2a"
"""Dark background color."""

# Terminal color codes (ANSI escape sequences)
TERM_ORANGE = "\033[38;2;247;72;35m"
TERM_BLUE = "\033[38;2;35;116;247m"
TERM_RESET = "\033[0m"


@dataclass(frozen=True)
class MoverConfig:
    """Immutable snapshot of every runtime-reconfigurable parameter.

    Controllers take one snapshot per tick, so related values such as
    ``min_turning_velocity`` and ``max_turning_velocity`` always come from
    the same version. No cross-field validation is performed.
    """

    min_turning_velocity: float = MIN_TURNING_VELOCITY
    max_turning_velocity: float = MAX_TURNING_VELOCITY
    angular_acceleration: float = ANGULAR_ACCELERATION
    angular_tolerance: float = ANGULAR_TOLERANCE
    rotational_gain: float = ROTATIONAL_GAIN
    max_linear_velocity: float = MAX_LINEAR_VELOCITY
    linear_acceleration: float = LINEAR_ACCELERATION
    linear_tolerance: float = LINEAR_TOLERANCE
    linear_gain: float = LINEAR_GAIN
    velocity_threshold: float = VELOCITY_THRESHOLD
    lateral_kp: float = LATERAL_KP
    lateral_ki: float = LATERAL_KI
    lateral_kd: float = LATERAL_KD
    max_lateral_velocity: float = MAX_LATERAL_VELOCITY
    side_recover_weight: float = SIDE_RECOVER_WEIGHT
    min_side_dist: float = MIN_SIDE_DIST
    localization_latency: float = LOCALIZATION_LATENCY
    abort_timeout: float = ABORT_TIMEOUT
    obstacle_wait_threshold: float = OBSTACLE_WAIT_THRESHOLD
    forward_obstacle_threshold: float = FORWARD_OBSTACLE_THRESHOLD
    reverse_without_turning_threshold: float = REVERSE_WITHOUT_TURNING_THRESHOLD
    preferred_planning_frame: str = PREFERRED_PLANNING_FRAME
    alternate_planning_frame: str = ALTERNATE_PLANNING_FRAME
    preferred_driving_frame: str = PREFERRED_DRIVING_FRAME
    alternate_driving_frame: str = ALTERNATE_DRIVING_FRAME
    base_frame: str = BASE_FRAME

    @classmethod
    def field_names(cls) -> Iterable[str]:
        return [f.name for f in dataclasses.fields(cls)]

    def with_changes(self, **changes: Any) -> "MoverConfig":
        """Return a copy with the given fields replaced.

        Values are coerced to the declared field type so that parameters
        arriving as strings (CLI) or ints (JSON) behave like the defaults.

        Raises:
            ValueError: If a name is not a known parameter, a value is None
                or a value cannot be converted.
        """
        types = {f.name: f.type for f in dataclasses.fields(self)}
        coerced: Dict[str, Any] = {}
        for name, value in changes.items():
            if name not in types:
                raise ValueError(f"Unknown parameter: {name}")
            if value is None:
                raise ValueError(f"Parameter {name} cannot be null")
            if types[name] in (str, "str"):
                coerced[name] = str(value)
            else:
                coerced[name] = float(value)
        return dataclasses.replace(self, **coerced)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return dataclasses.asdict(self)


class ConfigStore:
    """Versioned holder for the active ``MoverConfig``.

    Updates build a new immutable snapshot and swap it in under a lock, so a
    reader never sees a half-applied update.

    Attributes:
        version: Incremented on every successful update.
    """

    def __init__(self, config: Optional[MoverConfig] = None) -> None:
        self._lock = threading.Lock()
        self._config = config if config is not None else MoverConfig()
        self.version = 0

    def snapshot(self) -> MoverConfig:
        """Return the current configuration snapshot."""
        with self._lock:
            return self._config

    def update(self, **changes: Any) -> MoverConfig:
        """Apply parameter changes atomically.

        Args:
            **changes: Parameter names and new values.

        Returns:
            The new snapshot.

        Raises:
            ValueError: If any name is unknown (nothing is applied).
        """
        with self._lock:
            self._config = self._config.with_changes(**changes)
            self.version += 1
            config = self._config
        logging.warning(f"Parameter change detected: {', '.join(sorted(changes))}")
        return config


def load_config(path: Union[str, Path]) -> MoverConfig:
    """Load parameter overrides from a JSON file.

    The file holds a flat object of parameter names to values; missing
    parameters keep their defaults.

    Args:
        path: Path to the JSON file.

    Returns:
        Configuration with the overrides applied.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the JSON is not an object or names an unknown parameter.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a JSON object: {config_path}")

    return MoverConfig().with_changes(**data)


def parse_param_overrides(param_specs: Iterable[str]) -> Dict[str, str]:
    """Parse ``NAME=VALUE`` command-line overrides.

    Args:
        param_specs: Strings of the form ``name=value``.

    Returns:
        Mapping of parameter name to raw string value.

    Raises:
        ValueError: If a spec has no ``=``.
    """
    overrides: Dict[str, str] = {}
    for param_spec in param_specs:
        if "=" not in param_spec:
            raise ValueError(f"Invalid parameter specification: {param_spec} (expected NAME=VALUE)")
        name, value = param_spec.split("=", 1)
        overrides[name.strip()] = value.strip()
    return overrides
