"""Planning and driving frame selection.

It is assumed that localization is imperfect: the accurate frame (e.g. map)
may be delayed and update slowly, while the continuous frame (e.g. odom)
updates often but drifts, particularly after rotating. Goals are therefore
planned in the most globally consistent frame available and executed in the
most continuously available one. Each choice falls back once; there are no
other retries.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Tuple

from .config import MoverConfig
from .errors import TransformUnavailable
from .geometry import RigidTransform, rad2deg
from .planner import Goal
from .pose_source import PoseSource


class FrameChoice(enum.Enum):
    """Which configured frame was actually used."""

    PREFERRED = "preferred"
    ALTERNATE = "alternate"
    GOAL_NATIVE = "goal_native"


@dataclass(frozen=True)
class FrameSelection:
    """Frames chosen once per goal, plus the poses resolved with them.

    Attributes:
        planning_frame: Frame the goal geometry is interpreted in.
        driving_frame: Frame motion is executed in.
        planning_choice: Which planning frame option was used.
        driving_choice: Which driving frame option was used.
        goal_in_planning: Goal pose in the planning frame.
        goal_in_driving: Goal pose in the driving frame.
        robot_in_driving: Robot base pose in the driving frame at resolution time.
        robot_in_goal_frame: Robot base pose in the goal frame, the start of
            the published plan.
    """

    planning_frame: str
    driving_frame: str
    planning_choice: FrameChoice
    driving_choice: FrameChoice
    goal_in_planning: RigidTransform
    goal_in_driving: RigidTransform
    robot_in_driving: RigidTransform
    robot_in_goal_frame: RigidTransform


class FrameResolver:
    """Chooses planning and driving frames for a goal."""

    def __init__(self, pose_source: PoseSource) -> None:
        self.pose_source = pose_source

    def _transform_pose(self, source: str, target: str, pose: RigidTransform) -> RigidTransform:
        return self.pose_source.lookup(source, target) * pose

    def resolve_planning_frame(
        self, config: MoverConfig, goal_frame: str, goal_pose: RigidTransform
    ) -> Tuple[str, RigidTransform, FrameChoice]:
        """Express the goal in the planning frame.

        Args:
            config: Active configuration snapshot.
            goal_frame: Frame the goal was given in.
            goal_pose: Goal pose in ``goal_frame``.

        Returns:
            Tuple of (planning_frame, goal pose in it, choice).

        Raises:
            TransformUnavailable: If the preferred and the configured alternate
                planning frames both fail.
        """
        preferred = config.preferred_planning_frame
        alternate = config.alternate_planning_frame

        if not preferred:
            logging.info(f"Planning in goal frame: {goal_frame}")
            return goal_frame, goal_pose, FrameChoice.GOAL_NATIVE

        try:
            return preferred, self._transform_pose(goal_frame, preferred, goal_pose), FrameChoice.PREFERRED
        except TransformUnavailable as e:
            logging.warning(f"{preferred} not available for planning ({e.reason})")

        if not alternate:
            logging.warning(f"No alternate planning frame, planning in goal frame {goal_frame}")
            return goal_frame, goal_pose, FrameChoice.GOAL_NATIVE

        logging.warning(f"Will attempt to plan in {alternate} frame")
        try:
            return alternate, self._transform_pose(goal_frame, alternate, goal_pose), FrameChoice.ALTERNATE
        except TransformUnavailable:
            raise TransformUnavailable("No localization available for planning") from None

    def resolve_driving_frame(self, config: MoverConfig) -> Tuple[str, RigidTransform, FrameChoice]:
        """Find the robot pose in the driving frame.

        Returns:
            Tuple of (driving_frame, robot base pose in it, choice).

        Raises:
            TransformUnavailable: If neither driving frame is available.
        """
        preferred = config.preferred_driving_frame
        alternate = config.alternate_driving_frame
        try:
            robot = self.pose_source.lookup(config.base_frame, preferred)
            return preferred, robot, FrameChoice.PREFERRED
        except TransformUnavailable:
            logging.warning(f"{preferred} not available, attempting to drive using {alternate} frame")

        try:
            robot = self.pose_source.lookup(config.base_frame, alternate)
        except TransformUnavailable:
            raise TransformUnavailable("Cannot determine robot pose in driving frame") from None
        return alternate, robot, FrameChoice.ALTERNATE

    def goal_in_driving_frame(
        self, goal_frame: str, goal_pose: RigidTransform, driving_frame: str
    ) -> RigidTransform:
        """Express the goal in the chosen driving frame.

        Raises:
            TransformUnavailable: If the goal frame cannot be related to the driving frame.
        """
        try:
            return self._transform_pose(goal_frame, driving_frame, goal_pose)
        except TransformUnavailable:
            raise TransformUnavailable("Cannot determine goal pose in driving frame") from None

    def resolve(self, config: MoverConfig, goal: Goal) -> FrameSelection:
        """Choose both frames for ``goal`` and express it in them.

        The robot must also be locatable in the goal's own frame, since the
        published plan runs from the robot to the goal in that frame.

        Args:
            config: Active configuration snapshot.
            goal: The accepted goal.

        Returns:
            The frames and the poses resolved with them.

        Raises:
            TransformUnavailable: With the reason of the first stage that failed.
        """
        goal_pose = RigidTransform.from_pose2d(goal.target_pose)
        planning_frame, goal_in_planning, planning_choice = self.resolve_planning_frame(
            config, goal.frame_id, goal_pose
        )
        planned = goal_in_planning.to_pose2d()
        logging.info(
            f"Goal in {planning_frame}: {planned.x:.3f} {planned.y:.3f} {rad2deg(planned.yaw):.1f}°"
        )

        try:
            robot_in_goal_frame = self.pose_source.lookup(config.base_frame, goal.frame_id)
        except TransformUnavailable:
            raise TransformUnavailable("Cannot determine robot pose in goal frame") from None

        driving_frame, robot_in_driving, driving_choice = self.resolve_driving_frame(config)
        goal_in_driving = self.goal_in_driving_frame(goal.frame_id, goal_pose, driving_frame)

        return FrameSelection(
            planning_frame=planning_frame,
            driving_frame=driving_frame,
            planning_choice=planning_choice,
            driving_choice=driving_choice,
            goal_in_planning=goal_in_planning,
            goal_in_driving=goal_in_driving,
            robot_in_driving=robot_in_driving,
            robot_in_goal_frame=robot_in_goal_frame,
        )
