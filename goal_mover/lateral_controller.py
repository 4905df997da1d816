"""Lateral PID for straight-line driving.

This module provides the feedback controller that keeps the robot on the
straight line between start and goal while translating. Localization drift
shows up as a lateral offset of the goal in the robot base frame; the PID turns
that offset into an angular command layered on top of the forward motion.
"""

from typing import Dict


class LateralPID:
    """PID controller on the lateral offset of the goal.

    Control law (per tick, no dt scaling):
        e = w * y_goal_in_base
        rotation = clamp(K_p * e + K_i * sum(e) + K_d * (e - e_prev), ±rotation_limit)

    The derivative is the change per control tick, so K_d is tuned for a
    fixed loop rate.

    Attributes:
        integral: Accumulated lateral error.
        prev_error: Error from the previous tick.
    """

    def __init__(self) -> None:
        self.integral: float = 0.0
        self.prev_error: float = 0.0
        self._first = True
        self.error: float = 0.0
        self.derivative: float = 0.0
        self.rotation: float = 0.0

    def compute_control(
        self,
        lateral_offset: float,
        kp: float,
        ki: float,
        kd: float,
        weight: float,
        rotation_limit: float,
    ) -> float:
        """Compute the angular correction for one tick.

        Gains are passed per call so that a configuration update between
        ticks takes effect immediately.

        Args:
            lateral_offset: Goal y coordinate in the robot base frame (m).
            kp: Proportional gain.
            ki: Integral gain.
            kd: Derivative gain (per tick).
            weight: Side recover weight applied to the offset.
            rotation_limit: Symmetric clamp on the output (rad/s).

        Returns:
            Angular velocity command (rad/s).
        """
        error = weight * lateral_offset

        # No derivative kick on the first tick of a phase
        derivative = 0.0 if self._first else error - self.prev_error
        self._first = False

        self.integral += error
        self.prev_error = error

        rotation = kp * error + ki * self.integral + kd * derivative
        rotation = max(-rotation_limit, min(rotation_limit, rotation))

        self.error = error
        self.derivative = derivative
        self.rotation = rotation
        return rotation

    def reset(self) -> None:
        """Reset integral and derivative states to zero.

        Call this when a new translation phase starts.
        """
        self.integral = 0.0
        self.prev_error = 0.0
        self._first = True
        self.error = 0.0
        self.derivative = 0.0
        self.rotation = 0.0

    def get_diagnostics(self) -> Dict[str, float]:
        """Get diagnostic information for logging and debugging."""
        return {
            "lateral_error": self.error,
            "lateral_integral": self.integral,
            "lateral_derivative": self.derivative,
            "rotation": self.rotation,
        }
