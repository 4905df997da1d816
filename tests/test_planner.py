import math

import pytest

from goal_mover.config import MoverConfig
from goal_mover.errors import InvalidGoal
from goal_mover.geometry import RigidTransform
from goal_mover.planner import Goal, GoalPlanner, validate_goal

ORIGIN = RigidTransform.identity()


def decompose(x, y, yaw, robot=ORIGIN, config=None):
    return GoalPlanner().decompose(config or MoverConfig(), RigidTransform.from_pose(x, y, yaw), robot)


def test_straight_ahead_needs_no_rotation():
    maneuver = decompose(1.0, 0.0, 0.0)
    assert not maneuver.has_initial_rotation
    assert maneuver.signed_distance == pytest.approx(1.0)
    assert not maneuver.has_final_rotation
    assert not maneuver.reverse_without_turning


def test_close_goal_behind_backs_up_without_turning():
    maneuver = decompose(-0.3, 0.0, 0.0)
    assert maneuver.reverse_without_turning
    assert not maneuver.has_initial_rotation
    assert maneuver.signed_distance == pytest.approx(-0.3)
    assert not maneuver.has_final_rotation


def test_reverse_points_the_back_at_the_goal():
    maneuver = decompose(-0.3, 0.1, 0.0)
    assert maneuver.reverse_without_turning
    # After the turn the rear of the robot faces the goal
    heading = maneuver.initial_yaw_delta
    rear = heading + math.pi
    assert math.atan2(math.sin(rear), math.cos(rear)) == pytest.approx(math.atan2(0.1, -0.3))
    assert maneuver.initial_yaw_delta < 0.0
    # Final rotation undoes the initial one
    assert maneuver.final_yaw_delta == pytest.approx(-maneuver.initial_yaw_delta)


def test_far_goal_behind_turns_around():
    maneuver = decompose(-1.0, 0.0, 0.0)
    assert not maneuver.reverse_without_turning
    assert abs(maneuver.initial_yaw_delta) == pytest.approx(math.pi)
    assert maneuver.signed_distance == pytest.approx(1.0)
    assert abs(maneuver.final_yaw_delta) == pytest.approx(math.pi)


def test_goal_within_tolerance_only_rotates():
    maneuver = decompose(0.05, 0.0, math.pi / 2)
    assert not maneuver.has_initial_rotation
    assert not maneuver.has_translation
    assert maneuver.final_yaw_delta == pytest.approx(math.pi / 2)


def test_decomposition_accounts_for_robot_pose():
    robot = RigidTransform.from_pose(1.0, 1.0, math.pi / 2)
    maneuver = decompose(1.0, 3.0, math.pi, robot=robot)
    # Goal is straight ahead of a robot facing +y
    assert not maneuver.has_initial_rotation
    assert maneuver.signed_distance == pytest.approx(2.0)
    assert maneuver.final_yaw_delta == pytest.approx(math.pi / 2)


def test_rotations_below_tolerance_are_skipped():
    config = MoverConfig(angular_tolerance=0.05)
    maneuver = decompose(2.0, 0.04, 0.03, config=config)
    assert not maneuver.has_initial_rotation
    assert not maneuver.has_final_rotation


def test_goal_strips_leading_slash():
    assert Goal.from_xyyaw(1, 2, 0, "/map").frame_id == "map"


@pytest.mark.parametrize(
    "goal, message",
    [
        (Goal.from_xyyaw(1.0, 0.0, float("nan"), "map"), "invalid orientation"),
        (Goal.from_xyyaw(float("inf"), 0.0, 0.0, "map"), "invalid position"),
        (Goal.from_xyyaw(1.0, 0.0, 0.0, ""), "no frame"),
    ],
)
def test_invalid_goals_are_rejected(goal, message):
    with pytest.raises(InvalidGoal, match=message):
        validate_goal(goal)
