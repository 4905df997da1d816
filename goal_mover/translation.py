"""Closed-loop straight-line translation toward the goal.

Each tick the goal is re-expressed in the robot base frame. Its distance
drives a deceleration-to-stop speed profile, its lateral offset drives the
lateral PID, and obstacle readings in the travel direction can pause the
robot. Two watchdogs can abort the goal: an obstacle that does not clear
within ``obstacle_wait_threshold``, and a distance to the goal that keeps
growing for longer than ``abort_timeout``.
"""

import logging
import math
from typing import Optional

from .config import MoverConfig
from .errors import NoProgress, ObstaclePersistent, TransformUnavailable
from .geometry import RigidTransform
from .lateral_controller import LateralPID
from .obstacles import SnapshotHolder
from .phase import PhaseController, PhaseOutcome, TickResult
from .telemetry import NullTelemetry, TelemetrySink


def translation_velocity(config: MoverConfig, remaining: float) -> float:
    """Unsigned linear speed for a remaining (obstacle-limited) distance."""
    return min(
        config.linear_gain * remaining,
        min(config.max_linear_velocity, math.sqrt(2.0 * config.linear_acceleration * remaining)),
    )


class TranslationController(PhaseController):
    """Drives forward or backward to a goal in the driving frame.

    Active → {Succeeded, Aborted, Preempted}.

    Attributes:
        snapshot_holder: Latest forward obstacle reading from the monitor loop.
        telemetry: Receives the lateral debug triple every tick.
        lateral: Lateral PID state for the current phase.
        forward: Travel direction decided at phase entry.
        best_distance: Smallest distance to the goal seen so far.
        last_progress_time: Last tick on which the distance did not exceed the best.
        pausing_for_obstacle: True while stopped for an obstacle.
        obstacle_pause_start: When the current obstacle pause began.
    """

    name = "translation"

    def __init__(
        self,
        *args,
        snapshot_holder: Optional[SnapshotHolder] = None,
        telemetry: Optional[TelemetrySink] = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.snapshot_holder = snapshot_holder
        self.telemetry = telemetry if telemetry is not None else NullTelemetry()
        self.lateral = LateralPID()
        self.goal_in_driving = RigidTransform.identity()
        self.driving_frame = ""
        self.base_frame = ""
        self.forward = True
        self.best_distance = math.inf
        self.last_progress_time = 0.0
        self.pausing_for_obstacle = False
        self.obstacle_pause_start: Optional[float] = None

    def _goal_in_base(self) -> RigidTransform:
        try:
            driving_in_base = self.pose_source.lookup(self.driving_frame, self.base_frame)
        except TransformUnavailable:
            raise TransformUnavailable("Cannot determine robot pose for linear") from None
        return driving_in_base * self.goal_in_driving

    def _obstacle_distance(self) -> float:
        # Forward readings come from the monitor loop; backward ones are queried directly
        if self.forward and self.snapshot_holder is not None:
            return self.snapshot_holder.latest().forward_dist
        return self.obstacle_sensor.obstacle_distance(self.forward).forward_dist

    async def run(self, goal_in_driving: RigidTransform, driving_frame: str) -> PhaseOutcome:
        """Drive in a straight line to ``goal_in_driving``.

        Args:
            goal_in_driving: Goal pose in the driving frame.
            driving_frame: Frame the goal is expressed in.

        Returns:
            SUCCEEDED or PREEMPTED.

        Raises:
            TransformUnavailable: If the robot pose cannot be looked up.
            ObstaclePersistent: If an obstacle does not clear in time.
            NoProgress: If the robot keeps moving away from the goal.
        """
        self.goal_in_driving = goal_in_driving
        self.driving_frame = driving_frame
        self.base_frame = self.config_store.snapshot().base_frame

        try:
            goal_in_base = self._goal_in_base()
        except TransformUnavailable:
            self.command_sink.send(0.0, 0.0)
            raise

        remaining_x, remaining_y = goal_in_base.planar_offset()
        self.forward = remaining_x > 0.0
        self.best_distance = math.hypot(remaining_x, remaining_y)
        self.last_progress_time = self.clock()
        self.pausing_for_obstacle = False
        self.obstacle_pause_start = None
        self.lateral.reset()

        logging.info(
            f"Moving {'forward' if self.forward else 'backward'} {self.best_distance:.3f} meters"
        )
        return await self._run_loop()

    def tick(self, config: MoverConfig) -> TickResult:
        now = self.clock()
        goal_in_base = self._goal_in_base()
        remaining_x, remaining_y = goal_in_base.planar_offset()
        distance = math.hypot(remaining_x, remaining_y)

        # PID loop to control rotation to keep robot on path
        rotation = self.lateral.compute_control(
            remaining_y,
            config.lateral_kp,
            config.lateral_ki,
            config.lateral_kd,
            config.side_recover_weight,
            config.max_lateral_velocity,
        )
        if not self.forward:
            # Backing up: turning toward the offset moves the rear away from it
            rotation = -rotation
        self.telemetry.publish_lateral_error(remaining_x, self.lateral.error, rotation)

        # Collision avoidance
        obstacle_dist = self._obstacle_distance()
        velocity = translation_velocity(config, min(abs(obstacle_dist), abs(distance)))

        error = None
        if obstacle_dist < config.forward_obstacle_threshold:
            velocity = 0.0
            if not self.pausing_for_obstacle:
                logging.info("PAUSING for OBSTACLE")
                self.pausing_for_obstacle = True
                self.obstacle_pause_start = now
            else:
                logging.debug(f"Still waiting for obstacle at {obstacle_dist:.2f} meters")
                if now - self.obstacle_pause_start > config.obstacle_wait_threshold:
                    error = ObstaclePersistent("Aborting due to obstacle")
        elif self.pausing_for_obstacle:
            logging.info("Resuming after obstacle has gone")
            self.pausing_for_obstacle = False

        # Stall detection
        if distance > self.best_distance:
            if now - self.last_progress_time > config.abort_timeout:
                error = error or NoProgress("No progress towards goal for longer than timeout")
        else:
            self.best_distance = distance
            self.last_progress_time = now

        if error is not None:
            return TickResult(0.0, 0.0, PhaseOutcome.ABORTED, error)

        if self.preempt_requested():
            logging.info("Stopping move due to preempt")
            return TickResult(0.0, 0.0, PhaseOutcome.PREEMPTED)

        if abs(velocity) < config.velocity_threshold and distance < config.linear_tolerance:
            logging.info(
                f"Done linear, error: x: {remaining_x:.3f} meters, y: {remaining_y:.3f} meters"
            )
            return TickResult(0.0, 0.0, PhaseOutcome.SUCCEEDED)

        if not self.forward:
            velocity = -velocity

        logging.debug(
            f"Distance remaining: {distance:.3f}, linear velocity: {velocity:.3f}, rotation: {rotation:.3f}"
        )
        return TickResult(angular=rotation, linear=velocity)
