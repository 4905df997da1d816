"""Goal decomposition into a rotate-translate-rotate maneuver.

Plan a path that involves rotating to face the goal, going straight towards
it, and then rotating for the final orientation. Goals that are close and
behind the robot are reached by backing straight up instead of turning
around first.
"""

import logging
import math
from dataclasses import dataclass

from .config import MoverConfig
from .errors import InvalidGoal
from .geometry import Pose2D, RigidTransform, normalize_angle, rad2deg


@dataclass(frozen=True)
class Goal:
    """A target pose in a named frame. Immutable once accepted.

    Attributes:
        target_pose: Requested position and orientation.
        frame_id: Frame the pose is expressed in (no leading '/').
    """

    target_pose: Pose2D
    frame_id: str

    def __post_init__(self) -> None:
        # Frame ids may arrive with a leading '/' from older clients
        if self.frame_id.startswith("/"):
            object.__setattr__(self, "frame_id", self.frame_id[1:])

    @classmethod
    def from_xyyaw(cls, x: float, y: float, yaw: float, frame_id: str) -> "Goal":
        return cls(Pose2D(float(x), float(y), float(yaw)), frame_id)


def validate_goal(goal: Goal) -> None:
    """Reject goals that cannot be executed.

    Raises:
        InvalidGoal: If the orientation or position is not a finite number.
    """
    if not math.isfinite(goal.target_pose.yaw):
        raise InvalidGoal("Aborting goal because an invalid orientation was specified")
    if not (math.isfinite(goal.target_pose.x) and math.isfinite(goal.target_pose.y)):
        raise InvalidGoal("Aborting goal because an invalid position was specified")
    if not goal.frame_id:
        raise InvalidGoal("Aborting goal because no frame was specified")


@dataclass(frozen=True)
class Maneuver:
    """Ordered motion computed once per goal.

    Attributes:
        initial_yaw_delta: Rotation before driving (rad), 0 when skipped.
        signed_distance: Straight-line travel (m); negative means backwards,
            0 when translation is skipped.
        final_yaw_delta: Rotation after driving (rad), 0 when skipped.
        reverse_without_turning: True if the goal is reached by backing up.
    """

    initial_yaw_delta: float
    signed_distance: float
    final_yaw_delta: float
    reverse_without_turning: bool

    @property
    def has_initial_rotation(self) -> bool:
        return self.initial_yaw_delta != 0.0

    @property
    def has_translation(self) -> bool:
        return self.signed_distance != 0.0

    @property
    def has_final_rotation(self) -> bool:
        return self.final_yaw_delta != 0.0


class GoalPlanner:
    """Decomposes a goal in the driving frame into a ``Maneuver``."""

    def decompose(
        self,
        config: MoverConfig,
        goal_in_driving: RigidTransform,
        robot_in_driving: RigidTransform,
    ) -> Maneuver:
        """Compute the maneuver from the robot's current pose to the goal.

        Args:
            config: Active configuration snapshot.
            goal_in_driving: Goal pose in the driving frame.
            robot_in_driving: Robot base pose in the driving frame.

        Returns:
            The maneuver to execute.
        """
        goal_in_base = robot_in_driving.inverse() * goal_in_driving
        remaining_x, remaining_y = goal_in_base.planar_offset()
        distance = math.hypot(remaining_x, remaining_y)

        logging.info(
            f"Goal in base: {remaining_x:.3f} {remaining_y:.3f} {rad2deg(goal_in_base.yaw):.1f}°"
        )

        reverse_without_turning = (
            distance < config.reverse_without_turning_threshold and remaining_x < 0.0
        )

        if distance > config.linear_tolerance:
            requested_yaw = math.atan2(remaining_y, remaining_x)
            if reverse_without_turning:
                # Point the back of the robot at the goal instead of the front
                requested_yaw = normalize_angle(requested_yaw - math.copysign(math.pi, requested_yaw))
            signed_distance = -distance if reverse_without_turning else distance
        else:
            requested_yaw = 0.0
            signed_distance = 0.0
            reverse_without_turning = False

        initial_yaw_delta = requested_yaw if abs(requested_yaw) > config.angular_tolerance else 0.0

        current_yaw = robot_in_driving.yaw
        goal_yaw = goal_in_driving.yaw
        final_yaw_delta = normalize_angle(goal_yaw - (current_yaw + requested_yaw))
        if abs(final_yaw_delta) <= config.angular_tolerance:
            final_yaw_delta = 0.0

        maneuver = Maneuver(
            initial_yaw_delta=initial_yaw_delta,
            signed_distance=signed_distance,
            final_yaw_delta=final_yaw_delta,
            reverse_without_turning=reverse_without_turning,
        )
        logging.debug(f"Maneuver: {maneuver}")
        return maneuver
