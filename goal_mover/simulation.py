"""Kinematic robot simulation for offline runs and tests.

This module provides:
- ``SimClock``: simulated time with an awaitable sleep and scheduled callbacks
- ``SimulatedRobot``: unicycle model driven by the velocity commands, keeping
  the map → odom → base transforms of a ``TransformTree`` up to date
- ``PointObstacleSensor``: obstacle distances and turning angles computed
  from point obstacles around a rectangular footprint

The robot integrates each command over the time until the next one arrives
(zero-order hold), so it behaves the same on simulated or wall-clock time.
"""

import asyncio
import heapq
import itertools
import logging
import math
import time
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .config import BASE_FRAME, ConfigStore
from .executor import GoalExecutor, GoalResult
from .geometry import RigidTransform, normalize_angle, rad2deg
from .obstacles import ObstacleSensor, ObstacleSnapshot
from .planner import Goal
from .pose_source import TransformTree
from .rate import Clock
from .telemetry import CommandSink, FanOut, TelemetrySink

Point2 = Tuple[float, float]


class SimClock:
    """Simulated monotonic clock.

    Calling the instance returns the current simulated time. ``sleep`` jumps
    time forward instantly and fires any callbacks scheduled in between, in
    time order.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._timers: List[Tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()

    def __call__(self) -> float:
        return self.now

    def call_at(self, when: float, callback: Callable[[], None]) -> None:
        """Run ``callback`` once simulated time reaches ``when``."""
        heapq.heappush(self._timers, (when, next(self._seq), callback))

    def advance(self, delay: float) -> None:
        target = self.now + max(0.0, delay)
        while self._timers and self._timers[0][0] <= target:
            when, _, callback = heapq.heappop(self._timers)
            self.now = max(self.now, when)
            callback()
        self.now = target

    async def sleep(self, delay: float) -> None:
        self.advance(delay)
        # Let other tasks run
        await asyncio.sleep(0)


class SimulatedRobot(CommandSink):
    """Unicycle robot integrating (angular, linear) commands.

    Pose is kept in the odom frame. The map → odom link is a fixed transform
    that can be changed to model a localization correction.

    Attributes:
        x: Position in odom (m).
        y: Position in odom (m).
        yaw: Heading in odom (rad).
        angular: Last commanded angular velocity (rad/s).
        linear: Last commanded linear velocity (m/s).
        linear_scale: Multiplier applied to linear commands (e.g. -1 for
            miswired wheels).
        history: (time, angular, linear) of every command received.
    """

    def __init__(
        self,
        tree: TransformTree,
        clock: Clock = time.monotonic,
        x: float = 0.0,
        y: float = 0.0,
        yaw: float = 0.0,
        map_to_odom: Optional[RigidTransform] = None,
        map_frame: str = "map",
        odom_frame: str = "odom",
        base_frame: str = BASE_FRAME,
        linear_scale: float = 1.0,
    ) -> None:
        self.tree = tree
        self.clock = clock
        self.x = x
        self.y = y
        self.yaw = normalize_angle(yaw)
        self.map_frame = map_frame
        self.odom_frame = odom_frame
        self.base_frame = base_frame
        self.linear_scale = linear_scale
        self.angular = 0.0
        self.linear = 0.0
        self.history: List[Tuple[float, float, float]] = []
        self._last_update = clock()

        if map_frame:
            self.set_map_to_odom(map_to_odom if map_to_odom is not None else RigidTransform.identity())
        self.publish_transforms()

    def set_map_to_odom(self, transform: RigidTransform) -> None:
        self.tree.set_transform(self.map_frame, self.odom_frame, transform, self.clock())

    def publish_transforms(self) -> None:
        """Publish odom -> base from the current pose."""
        self.tree.set_transform(
            self.odom_frame,
            self.base_frame,
            RigidTransform.from_pose(self.x, self.y, self.yaw),
            self.clock(),
        )

    def update_pose(self) -> None:
        """Integrate the last command up to now."""
        now = self.clock()
        dt = now - self._last_update
        self._last_update = now
        if dt <= 0.0:
            return

        if abs(self.angular) < 0.0001:
            # Straight line motion
            self.x += self.linear * math.cos(self.yaw) * dt
            self.y += self.linear * math.sin(self.yaw) * dt
        else:
            # Arc motion
            self.yaw += self.angular * dt
            self.x += self.linear * math.cos(self.yaw) * dt
            self.y += self.linear * math.sin(self.yaw) * dt
        self.yaw = normalize_angle(self.yaw)

    def send(self, angular: float, linear: float) -> None:
        self.update_pose()
        self.angular = angular
        self.linear = linear * self.linear_scale
        self.history.append((self.clock(), angular, linear))
        self.publish_transforms()

    def pose_in_odom(self) -> RigidTransform:
        return RigidTransform.from_pose(self.x, self.y, self.yaw)


class PointObstacleSensor(ObstacleSensor):
    """Obstacle sensor over point obstacles given in the robot's odom frame.

    The robot footprint is a rectangle extending ``front`` ahead of the base
    origin, ``rear`` behind it and ``half_width`` to each side.

    - Travel distance: nearest point inside the corridor swept by the
      footprint widened by ``min_side_dist``, measured from the bumper.
    - Side distances: nearest point beside the footprint, measured from its side.
    - Turning angle: smallest rotation at which a point enters the footprint,
      found by sweeping in ``angle_step`` increments.
    """

    def __init__(
        self,
        robot: SimulatedRobot,
        points: Sequence[Point2] = (),
        half_width: float = 0.2,
        front: float = 0.25,
        rear: float = 0.25,
        angle_step: float = math.radians(1.0),
    ) -> None:
        self.robot = robot
        self.points: List[Point2] = list(points)
        self.half_width = half_width
        self.front = front
        self.rear = rear
        self.angle_step = angle_step

    def add_obstacle(self, x: float, y: float) -> None:
        self.points.append((x, y))

    def clear_obstacles(self) -> None:
        self.points = []

    def _points_in_base(self) -> np.ndarray:
        if not self.points:
            return np.empty((0, 2))
        base_in_odom = self.robot.pose_in_odom()
        world = np.array(self.points, dtype=float)
        # p_base = R^T (p_odom - t)
        rotation = base_in_odom.rotation[:2, :2]
        offset = world - np.array([base_in_odom.x, base_in_odom.y])
        return offset @ rotation

    def obstacle_distance(self, forward: bool) -> ObstacleSnapshot:
        pts = self._points_in_base()
        if len(pts) == 0:
            return ObstacleSnapshot(stamp=self.robot.clock())

        xs, ys = pts[:, 0], pts[:, 1]
        corridor = np.abs(ys) <= self.half_width + self.min_side_dist
        if forward:
            ahead = corridor & (xs > self.front)
            travel = xs[ahead] - self.front
        else:
            ahead = corridor & (xs < -self.rear)
            travel = -xs[ahead] - self.rear

        alongside = (xs >= -self.rear) & (xs <= self.front)
        left = ys[alongside & (ys > self.half_width)] - self.half_width
        right = -ys[alongside & (ys < -self.half_width)] - self.half_width

        forward_left = self._closest(pts[(xs > 0.0) & (ys >= 0.0)], (math.inf, math.inf))
        forward_right = self._closest(pts[(xs > 0.0) & (ys < 0.0)], (math.inf, -math.inf))

        return ObstacleSnapshot(
            forward_dist=float(travel.min()) if travel.size else math.inf,
            left_dist=float(left.min()) if left.size else math.inf,
            right_dist=float(right.min()) if right.size else math.inf,
            forward_left_point=forward_left,
            forward_right_point=forward_right,
            stamp=self.robot.clock(),
        )

    @staticmethod
    def _closest(pts: np.ndarray, default: Point2) -> Point2:
        if len(pts) == 0:
            return default
        i = int(np.argmin(np.hypot(pts[:, 0], pts[:, 1])))
        return float(pts[i, 0]), float(pts[i, 1])

    def obstacle_angle(self, turn_left: bool) -> float:
        pts = self._points_in_base()
        if len(pts) == 0:
            return math.inf

        # Only points within the footprint's swept circle can be hit
        reach = math.hypot(max(self.front, self.rear), self.half_width)
        pts = pts[np.hypot(pts[:, 0], pts[:, 1]) <= reach]
        if len(pts) == 0:
            return math.inf

        steps = np.arange(self.angle_step, math.pi + self.angle_step, self.angle_step)
        # Turning left by theta moves fixed points clockwise in the base frame
        thetas = -steps if turn_left else steps
        cos_t, sin_t = np.cos(thetas)[:, None], np.sin(thetas)[:, None]
        rx = cos_t * pts[:, 0] - sin_t * pts[:, 1]
        ry = sin_t * pts[:, 0] + cos_t * pts[:, 1]
        inside = (rx <= self.front) & (rx >= -self.rear) & (np.abs(ry) <= self.half_width)
        hits = np.nonzero(inside.any(axis=1))[0]
        if hits.size == 0:
            return math.inf
        # Last safe angle before contact
        return float(steps[hits[0]] - self.angle_step)


async def run_simulated_goal(
    goal: Goal,
    config_store: Optional[ConfigStore] = None,
    obstacle_at: Optional[float] = None,
    telemetry: Optional[TelemetrySink] = None,
    clock: Optional[SimClock] = None,
) -> GoalResult:
    """Execute one goal against the simulated robot on simulated time.

    The robot starts at the origin of odom with map and odom aligned.

    Args:
        goal: Goal to execute.
        config_store: Runtime configuration (default: built-in defaults).
        obstacle_at: If set, place a point obstacle this far ahead of the
            robot's start position.
        telemetry: Also receives every command and telemetry message.
        clock: Simulated clock to run on (default: a new one starting at 0).

    Returns:
        The executor's result.
    """
    config_store = config_store if config_store is not None else ConfigStore()
    clock = clock if clock is not None else SimClock()
    tree = TransformTree(clock=clock)
    robot = SimulatedRobot(tree, clock, base_frame=config_store.snapshot().base_frame)
    sensor = PointObstacleSensor(robot)
    if obstacle_at is not None:
        sensor.add_obstacle(sensor.front + obstacle_at, 0.0)

    sinks = FanOut(robot, telemetry) if telemetry is not None else robot
    executor = GoalExecutor(
        tree,
        sensor,
        config_store,
        command_sink=sinks,
        telemetry=telemetry,
        clock=clock,
        sleep=clock.sleep,
    )
    result = await executor.execute(goal)
    logging.info(
        f"Final pose in odom: {robot.x:.3f} {robot.y:.3f} {rad2deg(robot.yaw):.1f}° "
        f"after {clock.now:.1f} s simulated"
    )
    return result
