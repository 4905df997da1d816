import asyncio
import math

import pytest

from goal_mover.config import MoverConfig
from goal_mover.errors import TransformUnavailable
from goal_mover.geometry import normalize_angle
from goal_mover.phase import PhaseOutcome
from goal_mover.rotation import RotationController, rotation_velocity

PERIOD = 0.02


def test_rotation_velocity_profile():
    config = MoverConfig()
    # Far from the target the velocity is capped
    assert rotation_velocity(config, 3.0) == config.max_turning_velocity
    # Mid-range it follows the stop profile
    assert rotation_velocity(config, 0.5) == pytest.approx(math.sqrt(2 * 0.3 * 0.5))
    # Close in it is proportional, then floored
    assert rotation_velocity(config, 0.02) == pytest.approx(0.05)
    assert rotation_velocity(config, 0.001) == config.min_turning_velocity


@pytest.mark.parametrize("yaw_delta", [math.pi / 2, -2.0, 0.3])
def test_rotation_converges(world, yaw_delta):
    controller = RotationController(**world.controller_kwargs())

    outcome = asyncio.run(controller.run(yaw_delta, "odom"))

    assert outcome is PhaseOutcome.SUCCEEDED
    assert abs(normalize_angle(world.robot.yaw - yaw_delta)) < 0.02

    config = world.store.snapshot()
    angular = [cmd[1] for cmd in world.robot.history]
    active, final = angular[:-1], angular[-1]
    assert final == 0.0
    assert all(cmd[2] == 0.0 for cmd in world.robot.history)
    assert all(math.copysign(1.0, w) == math.copysign(1.0, yaw_delta) for w in active)
    assert all(config.min_turning_velocity <= abs(w) <= config.max_turning_velocity for w in active)
    # Deceleration only: speed never increases
    speeds = [abs(w) for w in active]
    assert all(b <= a + 1e-9 for a, b in zip(speeds, speeds[1:]))


def test_rotation_takes_the_short_way(world):
    world.robot.yaw = 3.0
    world.robot.publish_transforms()
    controller = RotationController(**world.controller_kwargs())

    # Target -3.0 is 0.28 rad counter-clockwise across the +/-pi boundary
    asyncio.run(controller.run(normalize_angle(-3.0 - 3.0), "odom"))

    assert all(cmd[1] >= 0.0 for cmd in world.robot.history)
    assert abs(normalize_angle(world.robot.yaw + 3.0)) < 0.02


def test_rotation_is_limited_by_obstacle_angle(world):
    # Point just beside the footprint blocks turning left early
    world.sensor.add_obstacle(0.1, 0.25)
    controller = RotationController(**world.controller_kwargs())
    controller.driving_frame = "odom"
    controller.base_frame = "base_footprint"
    controller.requested_yaw = math.pi / 2

    result = controller.tick(world.store.snapshot())

    free = world.sensor.obstacle_angle(True)
    assert free < math.pi / 2
    assert result.angular == pytest.approx(rotation_velocity(world.store.snapshot(), free))


def test_rotation_preempted_within_one_tick(world):
    world.request_preempt_at(0.5)
    controller = RotationController(**world.controller_kwargs())

    outcome = asyncio.run(controller.run(math.pi, "odom"))

    assert outcome is PhaseOutcome.PREEMPTED
    stamp, angular, linear = world.robot.history[-1]
    assert (angular, linear) == (0.0, 0.0)
    assert 0.5 <= stamp <= 0.5 + PERIOD + 1e-9
    assert world.robot.history[-2][1] != 0.0


def test_rotation_without_pose_stops_and_raises(world):
    controller = RotationController(**world.controller_kwargs())
    with pytest.raises(TransformUnavailable):
        asyncio.run(controller.run(1.0, "utm"))
    assert world.robot.history[-1][1:] == (0.0, 0.0)


def test_config_change_applies_on_next_tick(world):
    world.clock.call_at(0.1, lambda: world.store.update(max_turning_velocity=0.4))
    controller = RotationController(**world.controller_kwargs())

    asyncio.run(controller.run(math.pi / 2, "odom"))

    early = [abs(w) for t, w, _ in world.robot.history if t < 0.1]
    late = [abs(w) for t, w, _ in world.robot.history if t > 0.1]
    assert max(early) > 0.4
    assert max(late) <= 0.4


def test_tick_before_run_holds_zero_heading(world):
    world.robot.yaw = 0.5
    world.robot.publish_transforms()
    controller = RotationController(**world.controller_kwargs())
    controller.driving_frame = "odom"
    controller.base_frame = "base_footprint"

    result = controller.tick(world.store.snapshot())

    assert result.angular < 0.0
    assert result.outcome is None


def test_tick_failure_stops_and_raises(world):
    world.clock.call_at(0.3, lambda: world.store.update(angular_acceleration=-0.3))
    controller = RotationController(**world.controller_kwargs())

    with pytest.raises(ValueError):
        asyncio.run(controller.run(math.pi, "odom"))

    stamp, angular, linear = world.robot.history[-1]
    assert (angular, linear) == (0.0, 0.0)
    assert stamp <= 0.3 + PERIOD + 1e-9
