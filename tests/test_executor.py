import asyncio
import math

import pytest

from goal_mover.config import MoverConfig
from goal_mover.executor import ExecutorStage, GoalStatus
from goal_mover.frames import FrameChoice
from goal_mover.geometry import RigidTransform, normalize_angle
from goal_mover.planner import Goal

PERIOD = 0.02


def execute(world, x, y, yaw, frame="odom", executor=None):
    executor = executor or world.executor()
    return asyncio.run(executor.execute(Goal.from_xyyaw(x, y, yaw, frame)))


def test_goal_ahead_succeeds(world):
    result = execute(world, 1.0, 0.0, 0.0)

    assert result.status is GoalStatus.SUCCEEDED
    assert result.reason == ""
    assert result.selection.planning_frame == "odom"
    assert result.selection.planning_choice is FrameChoice.GOAL_NATIVE
    assert result.selection.driving_frame == "map"
    assert result.selection.driving_choice is FrameChoice.PREFERRED
    assert not result.maneuver.has_initial_rotation
    assert world.distance_to(1.0, 0.0) < 0.11
    assert world.robot.history[-1][1:] == (0.0, 0.0)


def test_plan_is_published_in_goal_frame(world):
    execute(world, 1.0, 0.0, 0.0)

    frame, points = world.telemetry.paths[0]
    assert frame == "odom"
    assert points[0] == pytest.approx((1.0, 0.0))
    assert points[1] == pytest.approx((0.0, 0.0))


def test_goal_behind_is_reached_by_backing_up(world):
    result = execute(world, -0.3, 0.0, 0.0)

    assert result.status is GoalStatus.SUCCEEDED
    assert result.maneuver.reverse_without_turning
    assert all(cmd[2] <= 0.0 for cmd in world.robot.history)
    assert world.distance_to(-0.3, 0.0) < 0.11


def test_goal_to_the_side_turns_drives_and_turns(world):
    result = execute(world, 0.0, 1.0, math.pi / 2)

    assert result.status is GoalStatus.SUCCEEDED
    assert result.maneuver.has_initial_rotation
    assert world.distance_to(0.0, 1.0) < 0.11
    assert abs(normalize_angle(world.robot.yaw - math.pi / 2)) < 0.1


def test_goal_at_current_position_only_rotates(world):
    result = execute(world, 0.0, 0.0, math.pi / 2)

    assert result.status is GoalStatus.SUCCEEDED
    assert not result.maneuver.has_translation
    assert all(cmd[2] == 0.0 for cmd in world.robot.history)
    assert abs(normalize_angle(world.robot.yaw - math.pi / 2)) < 0.02
    assert world.telemetry.lateral == []


def test_settle_waits_for_localization(world):
    world.store.update(localization_latency=2.0)
    execute(world, 1.0, 0.0, 0.0)

    # The first command is sent only after settling
    assert world.robot.history[0][0] >= 2.0


def test_invalid_goal_is_rejected_without_motion(world):
    result = execute(world, 1.0, 0.0, float("nan"))

    assert result.status is GoalStatus.REJECTED
    assert "invalid orientation" in result.reason
    assert world.robot.history == []
    assert world.telemetry.paths == []


def test_unknown_goal_frame_aborts(world):
    result = execute(world, 1.0, 0.0, 0.0, frame="gps")

    assert result.status is GoalStatus.ABORTED
    assert result.reason == "Cannot determine robot pose in goal frame"
    assert world.robot.history == []


def test_drives_in_odom_without_map(make_world):
    world = make_world(with_map=False)
    result = execute(world, 1.0, 0.0, 0.0)

    assert result.status is GoalStatus.SUCCEEDED
    assert result.selection.driving_frame == "odom"
    assert result.selection.driving_choice is FrameChoice.ALTERNATE


def test_no_driving_frame_aborts(make_world):
    world = make_world(MoverConfig(preferred_driving_frame="gps", alternate_driving_frame="utm"))
    result = execute(world, 1.0, 0.0, 0.0)

    assert result.status is GoalStatus.ABORTED
    assert result.reason == "Cannot determine robot pose in driving frame"
    assert result.selection is None


def test_map_correction_during_settle_is_honoured(world):
    world.store.update(localization_latency=1.0)

    # Localization shifts the robot 0.2 m back in map before translation starts
    world.clock.call_at(0.5, lambda: world.robot.set_map_to_odom(RigidTransform.from_pose(-0.2, 0.0, 0.0)))
    result = execute(world, 1.0, 0.0, 0.0, frame="map")

    assert result.status is GoalStatus.SUCCEEDED
    assert world.robot.x == pytest.approx(1.2, abs=0.11)


def test_preempt_stops_within_one_tick(world):
    world.request_preempt_at(1.0)
    executor = world.executor()
    result = execute(world, 3.0, 0.0, 0.0, executor=executor)

    assert result.status is GoalStatus.PREEMPTED
    stamp, angular, linear = world.robot.history[-1]
    assert (angular, linear) == (0.0, 0.0)
    assert stamp <= 1.0 + PERIOD + 1e-9
    assert executor.stage is ExecutorStage.DONE


def test_obstacle_abort_reason(world):
    world.store.update(obstacle_wait_threshold=2.0)
    world.sensor.add_obstacle(world.sensor.front + 0.3, 0.0)
    result = execute(world, 2.0, 0.0, 0.0)

    assert result.status is GoalStatus.ABORTED
    assert result.reason == "Aborting due to obstacle"
    assert result.maneuver.signed_distance == pytest.approx(2.0)


def test_unexpected_error_stops_robot_and_aborts(world):
    # A negative acceleration makes the stop profile undefined mid-translation
    world.clock.call_at(1.0, lambda: world.store.update(linear_acceleration=-0.1))
    executor = world.executor()
    result = execute(world, 3.0, 0.0, 0.0, executor=executor)

    assert result.status is GoalStatus.ABORTED
    assert result.reason.startswith("Unexpected error during translation")
    stamp, angular, linear = world.robot.history[-1]
    assert (angular, linear) == (0.0, 0.0)
    assert stamp <= 1.0 + PERIOD + 1e-9
    assert executor.stage is ExecutorStage.DONE
