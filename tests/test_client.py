import json
import logging
import math

import pytest

from goal_mover.client import MoverClient, WebSocketSink
from goal_mover.config import TRANSFORM_MAX_AGE
from goal_mover.errors import TransformUnavailable
from goal_mover.executor import GoalStatus
from goal_mover.simulation import SimClock


@pytest.fixture
def client():
    return MoverClient("ws://localhost:8765")


def test_invalid_uri():
    with pytest.raises(ValueError, match="Invalid WebSocket URI"):
        MoverClient("http://localhost:8765")


def test_transform_messages_build_the_tree(client):
    client.parse_and_route_message(
        json.dumps({"message_type": "transform", "parent": "map", "child": "odom", "x": 1.0, "y": 0.0, "yaw": 0.0})
    )
    client.parse_and_route_message(
        json.dumps(
            {"message_type": "transform", "parent": "odom", "child": "base_footprint", "x": 0.5, "y": 0.2, "yaw": 0.1}
        ).encode("utf-8")
    )

    robot = client.tree.lookup("base_footprint", "map")
    assert (robot.x, robot.y, robot.yaw) == pytest.approx((1.5, 0.2, 0.1))


def test_obstacle_message_null_means_clear(client):
    client.parse_and_route_message(
        json.dumps({"message_type": "obstacles", "forward": 0.8, "left": None, "rear": 0.3})
    )

    forward = client.obstacle_sensor.obstacle_distance(True)
    assert forward.forward_dist == 0.8
    assert forward.left_dist == math.inf
    assert forward.right_dist == math.inf
    assert client.obstacle_sensor.obstacle_distance(False).forward_dist == 0.3


def test_params_message_updates_config(client):
    client.parse_and_route_message(json.dumps({"message_type": "params", "max_linear_velocity": 0.3}))
    assert client.config_store.snapshot().max_linear_velocity == 0.3


def test_unknown_param_is_logged_and_ignored(client, caplog):
    before = client.config_store.snapshot()
    with caplog.at_level(logging.ERROR):
        client.parse_and_route_message(json.dumps({"message_type": "params", "warp_speed": 9}))

    assert "Error processing message data" in caplog.text
    assert client.config_store.snapshot() == before


def test_invalid_json_is_logged(client, caplog):
    with caplog.at_level(logging.ERROR):
        client.parse_and_route_message("{not json")
    assert "Error parsing JSON" in caplog.text


def test_goal_message_defaults_to_map_frame(client):
    handle = client.process_goal_message({"message_type": "goal", "x": 1.0, "y": 2.0})

    assert handle.goal.frame_id == "map"
    assert handle.goal.target_pose.yaw == 0.0
    assert handle.status is GoalStatus.PENDING
    status = json.loads(client.link.queue.get_nowait())
    assert status == {
        "message_type": "goal_status",
        "goal_id": handle.goal_id,
        "status": "pending",
        "reason": "",
    }


def test_invalid_goal_message_is_rejected(client):
    handle = client.process_goal_message({"x": 1.0, "y": 0.0, "yaw": float("nan"), "frame_id": "odom"})
    assert handle.status is GoalStatus.REJECTED


def test_sink_serializes_infinite_distances_as_null():
    sink = WebSocketSink()
    sink.on_connect()
    sink.publish_obstacle_distance(1.25, math.inf, math.inf)
    sink.send(0.1, 0.4)
    sink.publish_path("odom", [(1.0, 0.0), (0.0, 0.0)])

    assert json.loads(sink.queue.get_nowait()) == {
        "message_type": "obstacle_distance",
        "forward": 1.25,
        "left": None,
        "right": None,
    }
    assert json.loads(sink.queue.get_nowait()) == {"message_type": "cmd_vel", "angular": 0.1, "linear": 0.4}
    assert json.loads(sink.queue.get_nowait())["points"] == [[1.0, 0.0], [0.0, 0.0]]


def test_sink_drops_when_full():
    sink = WebSocketSink(maxsize=2)
    sink.on_connect()
    for _ in range(5):
        sink.send(0.0, 0.0)

    assert sink.queue.qsize() == 2
    assert sink.dropped == 3


def test_null_frame_param_is_rejected(client, caplog):
    before = client.config_store.snapshot()
    with caplog.at_level(logging.ERROR):
        client.parse_and_route_message(json.dumps({"message_type": "params", "preferred_driving_frame": None}))

    assert "cannot be null" in caplog.text
    assert client.config_store.snapshot() == before


def test_sink_drops_commands_while_disconnected():
    sink = WebSocketSink()
    for _ in range(1500):
        sink.send(0.2, 0.5)
    sink.publish_goal_status(1, "active")

    assert sink.dropped == 1500
    assert sink.queue.qsize() == 1
    assert json.loads(sink.queue.get_nowait())["message_type"] == "goal_status"


def test_reconnect_does_not_replay_commands():
    sink = WebSocketSink()
    sink.on_connect()
    sink.send(0.2, 0.5)
    sink.publish_goal_status(1, "active")
    sink.send(0.2, 0.5)

    sink.on_disconnect()
    sink.send(0.3, 0.5)
    sink.on_connect()

    assert sink.dropped == 3
    queued = [json.loads(sink.queue.get_nowait()) for _ in range(sink.queue.qsize())]
    assert [m["message_type"] for m in queued] == ["goal_status"]


def test_client_transforms_expire(client):
    assert client.tree.max_age == TRANSFORM_MAX_AGE

    clock = SimClock()
    client = MoverClient("ws://localhost:8765", clock=clock)
    link = {"message_type": "transform", "x": 0.0, "y": 0.0, "yaw": 0.0}
    client.parse_and_route_message(json.dumps(dict(link, parent="map", child="odom", static=True)))
    client.parse_and_route_message(json.dumps(dict(link, parent="odom", child="base_footprint", x=1.0)))
    assert client.tree.lookup("base_footprint", "map").x == pytest.approx(1.0)

    clock.advance(TRANSFORM_MAX_AGE + 0.5)
    # The static map -> odom link survives
    assert client.tree.lookup("odom", "map").x == pytest.approx(0.0)
    with pytest.raises(TransformUnavailable, match="stale"):
        client.tree.lookup("base_footprint", "map")
