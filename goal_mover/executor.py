"""Goal execution state machine.

One ``execute`` call runs one accepted goal to a terminal state:

    ResolveFrames → Decompose
        → [InitialRotation] → Settle → [Translation → Settle] → [FinalRotation]
        → Succeeded

Any failing stage ends the goal as ABORTED with a reason; a preemption request
ends it as PREEMPTED. Every path returns an explicit ``GoalResult``. The settle
steps wait ``localization_latency`` so that a slower, more accurate
localization source can catch up before the next phase trusts the pose.
"""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import CONTROL_RATE_HZ, ConfigStore, TERM_BLUE, TERM_RESET
from .errors import GoalAborted, InvalidGoal
from .frames import FrameResolver, FrameSelection
from .geometry import rad2deg
from .obstacles import ObstacleSensor, SnapshotHolder
from .phase import PhaseOutcome
from .planner import Goal, GoalPlanner, Maneuver, validate_goal
from .pose_source import PoseSource
from .rate import Clock, Sleeper
from .rotation import RotationController
from .telemetry import CommandSink, NullTelemetry, TelemetrySink
from .translation import TranslationController


class GoalStatus(enum.Enum):
    """Lifecycle of a goal."""

    PENDING = "pending"
    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"
    PREEMPTED = "preempted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self not in (GoalStatus.PENDING, GoalStatus.ACTIVE)


class ExecutorStage(enum.Enum):
    """Stage the executor is currently in."""

    IDLE = "idle"
    RESOLVE_FRAMES = "resolve_frames"
    DECOMPOSE = "decompose"
    INITIAL_ROTATION = "initial_rotation"
    TRANSLATION = "translation"
    FINAL_ROTATION = "final_rotation"
    SETTLING = "settling"
    DONE = "done"


@dataclass(frozen=True)
class GoalResult:
    """Terminal outcome of one goal."""

    status: GoalStatus
    reason: str = ""
    selection: Optional[FrameSelection] = None
    maneuver: Optional[Maneuver] = None


class GoalExecutor:
    """Runs accepted goals through frame resolution, planning and the motion phases.

    Attributes:
        stage: Current ``ExecutorStage`` (for status reporting).
        rotation: Controller used for both rotation phases.
        translation: Controller used for the straight-line phase.
    """

    def __init__(
        self,
        pose_source: PoseSource,
        obstacle_sensor: ObstacleSensor,
        config_store: ConfigStore,
        command_sink: CommandSink,
        telemetry: Optional[TelemetrySink] = None,
        snapshot_holder: Optional[SnapshotHolder] = None,
        preempt_requested: Callable[[], bool] = lambda: False,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
        rate_hz: float = CONTROL_RATE_HZ,
    ) -> None:
        self.pose_source = pose_source
        self.config_store = config_store
        self.telemetry = telemetry if telemetry is not None else NullTelemetry()
        self.preempt_requested = preempt_requested
        self.sleep = sleep
        self.resolver = FrameResolver(pose_source)
        self.planner = GoalPlanner()

        controller_args = dict(
            pose_source=pose_source,
            obstacle_sensor=obstacle_sensor,
            config_store=config_store,
            command_sink=command_sink,
            preempt_requested=preempt_requested,
            clock=clock,
            sleep=sleep,
            rate_hz=rate_hz,
        )
        self.rotation = RotationController(**controller_args)
        self.translation = TranslationController(
            snapshot_holder=snapshot_holder, telemetry=self.telemetry, **controller_args
        )
        self.stage = ExecutorStage.IDLE

    def _publish_plan(self, goal: Goal, selection: FrameSelection) -> None:
        """Publish the two-point path (goal, robot) in the goal frame."""
        robot = selection.robot_in_goal_frame
        self.telemetry.publish_path(
            goal.frame_id,
            [(goal.target_pose.x, goal.target_pose.y), (robot.x, robot.y)],
        )

    async def _settle(self) -> None:
        self.stage = ExecutorStage.SETTLING
        await self.sleep(self.config_store.snapshot().localization_latency)

    async def _run_phases(self, selection: FrameSelection, maneuver: Maneuver) -> GoalStatus:
        frame = selection.driving_frame

        if maneuver.has_translation:
            if maneuver.has_initial_rotation:
                self.stage = ExecutorStage.INITIAL_ROTATION
                if await self.rotation.run(maneuver.initial_yaw_delta, frame) is PhaseOutcome.PREEMPTED:
                    return GoalStatus.PREEMPTED
            await self._settle()
            if self.preempt_requested():
                return GoalStatus.PREEMPTED

            self.stage = ExecutorStage.TRANSLATION
            if await self.translation.run(selection.goal_in_driving, frame) is PhaseOutcome.PREEMPTED:
                return GoalStatus.PREEMPTED
            await self._settle()
            if self.preempt_requested():
                return GoalStatus.PREEMPTED

        if maneuver.has_final_rotation:
            self.stage = ExecutorStage.FINAL_ROTATION
            if await self.rotation.run(maneuver.final_yaw_delta, frame) is PhaseOutcome.PREEMPTED:
                return GoalStatus.PREEMPTED

        return GoalStatus.SUCCEEDED

    async def execute(self, goal: Goal) -> GoalResult:
        """Execute one goal to a terminal state.

        Args:
            goal: The accepted goal.

        Returns:
            GoalResult with SUCCEEDED, ABORTED (with reason), PREEMPTED or
            REJECTED (invalid goal, nothing was executed).
        """
        pose = goal.target_pose
        logging.info(
            f"{TERM_BLUE}Received goal {pose.x:.3f} {pose.y:.3f} {rad2deg(pose.yaw):.1f}° "
            f"in {goal.frame_id}{TERM_RESET}"
        )
        try:
            validate_goal(goal)
        except InvalidGoal as e:
            logging.error(e.reason)
            return GoalResult(GoalStatus.REJECTED, e.reason)

        config = self.config_store.snapshot()
        selection: Optional[FrameSelection] = None
        maneuver: Optional[Maneuver] = None
        try:
            self.stage = ExecutorStage.RESOLVE_FRAMES
            selection = self.resolver.resolve(config, goal)
            self._publish_plan(goal, selection)

            self.stage = ExecutorStage.DECOMPOSE
            maneuver = self.planner.decompose(config, selection.goal_in_driving, selection.robot_in_driving)

            status = await self._run_phases(selection, maneuver)
        except GoalAborted as e:
            logging.error(e.reason)
            return GoalResult(GoalStatus.ABORTED, e.reason, selection, maneuver)
        except Exception as e:
            # The phase loop has already stopped the robot
            reason = f"Unexpected error during {self.stage.value}: {e}"
            logging.exception(reason)
            return GoalResult(GoalStatus.ABORTED, reason, selection, maneuver)
        finally:
            self.stage = ExecutorStage.DONE

        if status is GoalStatus.PREEMPTED:
            logging.info("Goal preempted")
        else:
            logging.info(f"{TERM_BLUE}✓ Goal succeeded{TERM_RESET}")
        return GoalResult(status, "", selection, maneuver)
