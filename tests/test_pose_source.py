import math

import pytest

from goal_mover.errors import TransformUnavailable
from goal_mover.geometry import RigidTransform
from goal_mover.simulation import SimClock
from goal_mover.pose_source import TransformTree


@pytest.fixture
def tree():
    tree = TransformTree()
    tree.set_transform("map", "odom", RigidTransform.from_pose(1.0, 0.0, math.pi / 2))
    tree.set_transform("odom", "base_footprint", RigidTransform.from_pose(2.0, 0.0, 0.0))
    return tree


def test_lookup_composes_chain(tree):
    robot_in_map = tree.lookup("base_footprint", "map")
    # odom is rotated 90 degrees in map, so odom's x axis is map's y axis
    assert (robot_in_map.x, robot_in_map.y) == pytest.approx((1.0, 2.0))
    assert robot_in_map.yaw == pytest.approx(math.pi / 2)


def test_lookup_reverse_direction_is_inverse(tree):
    forward = tree.lookup("base_footprint", "map")
    backward = tree.lookup("map", "base_footprint")
    identity = forward * backward
    assert (identity.x, identity.y, identity.yaw) == pytest.approx((0.0, 0.0, 0.0), abs=1e-12)


def test_lookup_same_frame_is_identity(tree):
    same = tree.lookup("odom", "odom")
    assert (same.x, same.y, same.yaw) == pytest.approx((0.0, 0.0, 0.0), abs=1e-12)


def test_unknown_frame(tree):
    with pytest.raises(TransformUnavailable, match="does not exist"):
        tree.lookup("base_footprint", "gps")
    assert not tree.can_transform("gps", "map")
    assert tree.can_transform("map", "base_footprint")


def test_disconnected_frames(tree):
    tree.set_transform("world", "marker", RigidTransform.identity())
    with pytest.raises(TransformUnavailable, match="not connected"):
        tree.lookup("marker", "map")


def test_cycles_are_rejected(tree):
    with pytest.raises(ValueError):
        tree.set_transform("base_footprint", "map", RigidTransform.identity())
    with pytest.raises(ValueError):
        tree.set_transform("odom", "odom", RigidTransform.identity())


def test_stale_links_are_unavailable():
    clock = SimClock()
    tree = TransformTree(max_age=1.0, clock=clock)
    tree.set_transform("odom", "base_footprint", RigidTransform.identity())
    assert tree.can_transform("base_footprint", "odom")

    clock.advance(1.5)
    with pytest.raises(TransformUnavailable, match="stale"):
        tree.lookup("base_footprint", "odom")


def test_remove_and_frames(tree):
    assert tree.frames() == ["base_footprint", "map", "odom"]
    tree.remove("base_footprint")
    assert not tree.can_transform("base_footprint", "odom")
