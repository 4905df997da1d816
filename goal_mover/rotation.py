"""Closed-loop rotation in place.

The angular velocity follows a deceleration-to-stop profile:

    v = max(v_min, min(k_rot * r, v_max, sqrt(2 * a * r)))

where r is the remaining angle, limited by how far the robot can turn before
hitting an obstacle. The sqrt term is the speed from which the robot can stop
exactly at the target with constant deceleration a; the proportional term
takes over in the last few degrees; v_min overcomes static friction.
"""

import logging
import math

from .config import MoverConfig
from .errors import TransformUnavailable
from .geometry import normalize_angle, rad2deg
from .phase import PhaseController, PhaseOutcome, TickResult


def rotation_velocity(config: MoverConfig, remaining: float) -> float:
    """Unsigned angular speed for a remaining (obstacle-limited) angle.

    Args:
        config: Active configuration snapshot.
        remaining: Non-negative angle still to turn (rad).

    Returns:
        Angular speed (rad/s), never below ``min_turning_velocity``.
    """
    return max(
        config.min_turning_velocity,
        min(
            config.rotational_gain * remaining,
            min(config.max_turning_velocity, math.sqrt(2.0 * config.angular_acceleration * remaining)),
        ),
    )


class RotationController(PhaseController):
    """Rotates the robot by a relative yaw in the driving frame.

    Active → {Succeeded, Aborted, Preempted}. Each tick re-reads the robot
    yaw, so the loop corrects for slip and localization updates.
    """

    name = "rotation"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.driving_frame = ""
        self.base_frame = ""
        self.requested_yaw = 0.0

    def _current_yaw(self) -> float:
        try:
            pose = self.pose_source.lookup(self.base_frame, self.driving_frame)
        except TransformUnavailable:
            raise TransformUnavailable("Cannot determine robot pose for rotation") from None
        return pose.yaw

    async def run(self, yaw_delta: float, driving_frame: str) -> PhaseOutcome:
        """Rotate by ``yaw_delta`` relative to the current heading.

        Args:
            yaw_delta: Relative rotation (rad), positive is counter-clockwise.
            driving_frame: Frame the heading is measured in.

        Returns:
            SUCCEEDED or PREEMPTED.

        Raises:
            TransformUnavailable: If the robot pose cannot be looked up.
        """
        self.driving_frame = driving_frame
        self.base_frame = self.config_store.snapshot().base_frame

        try:
            current_yaw = self._current_yaw()
        except TransformUnavailable:
            self.command_sink.send(0.0, 0.0)
            raise
        self.requested_yaw = normalize_angle(current_yaw + yaw_delta)
        logging.info(f"Requested rotation to {rad2deg(self.requested_yaw):.1f}°")

        return await self._run_loop()

    def tick(self, config: MoverConfig) -> TickResult:
        current_yaw = self._current_yaw()

        angle_remaining = normalize_angle(self.requested_yaw - current_yaw)

        obstacle = self.obstacle_sensor.obstacle_angle(angle_remaining > 0)
        remaining = min(abs(angle_remaining), abs(obstacle))
        velocity = rotation_velocity(config, remaining)

        outcome = None
        if self.preempt_requested():
            logging.info("Stopping rotation due to preempt")
            velocity = 0.0
            outcome = PhaseOutcome.PREEMPTED
        elif abs(angle_remaining) < config.angular_tolerance:
            logging.info(f"Done rotation, error {rad2deg(angle_remaining):.2f} degrees")
            velocity = 0.0
            outcome = PhaseOutcome.SUCCEEDED

        if angle_remaining < 0.0:
            velocity = -velocity

        logging.debug(
            f"Angle remaining: {rad2deg(angle_remaining):.2f}, angular velocity: {velocity:.3f}"
        )
        return TickResult(angular=velocity, linear=0.0, outcome=outcome)
