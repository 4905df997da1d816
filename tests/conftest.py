"""Shared fixtures: a simulated robot world on simulated time."""

import math
from typing import List, Tuple

import pytest

from goal_mover.config import ConfigStore, MoverConfig
from goal_mover.executor import GoalExecutor
from goal_mover.pose_source import TransformTree
from goal_mover.simulation import PointObstacleSensor, SimClock, SimulatedRobot
from goal_mover.telemetry import CommandSink, TelemetrySink


class RecordingSink(CommandSink, TelemetrySink):
    """Keeps everything it receives."""

    def __init__(self) -> None:
        self.commands: List[Tuple[float, float]] = []
        self.paths: List[Tuple[str, list]] = []
        self.obstacles: List[Tuple[float, float, float]] = []
        self.lateral: List[Tuple[float, float, float]] = []
        self.statuses: List[Tuple[int, str, str]] = []

    def send(self, angular, linear):
        self.commands.append((angular, linear))

    def publish_path(self, frame_id, points):
        self.paths.append((frame_id, list(points)))

    def publish_obstacle_distance(self, forward, left, right):
        self.obstacles.append((forward, left, right))

    def publish_lateral_error(self, remaining_x, lateral_error, rotation):
        self.lateral.append((remaining_x, lateral_error, rotation))

    def publish_goal_status(self, goal_id, status, reason=""):
        self.statuses.append((goal_id, status, reason))


class World:
    """Simulated robot at the odom origin with map and odom aligned."""

    def __init__(self, config: MoverConfig = None, with_map: bool = True, **robot_kwargs) -> None:
        self.clock = SimClock()
        self.tree = TransformTree(clock=self.clock)
        self.robot = SimulatedRobot(
            self.tree, self.clock, map_frame="map" if with_map else "", **robot_kwargs
        )
        self.sensor = PointObstacleSensor(self.robot)
        self.store = ConfigStore(config)
        self.telemetry = RecordingSink()
        self.preempt = False

    def controller_kwargs(self):
        return dict(
            pose_source=self.tree,
            obstacle_sensor=self.sensor,
            config_store=self.store,
            command_sink=self.robot,
            preempt_requested=lambda: self.preempt,
            clock=self.clock,
            sleep=self.clock.sleep,
        )

    def executor(self, preempt_requested=None) -> GoalExecutor:
        kwargs = self.controller_kwargs()
        if preempt_requested is not None:
            kwargs["preempt_requested"] = preempt_requested
        return GoalExecutor(telemetry=self.telemetry, **kwargs)

    def request_preempt_at(self, when: float) -> None:
        self.clock.call_at(when, lambda: setattr(self, "preempt", True))

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.robot.x - x, self.robot.y - y)


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def make_world():
    return World
