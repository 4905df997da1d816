"""Obstacle readings shared between the monitor loop and the controllers.

The obstacle sensor reduces range data to a few directional distances. The
20 Hz ``ObstacleMonitor`` refreshes the forward reading into a
``SnapshotHolder``; the 50 Hz controllers read the latest complete snapshot
from it. Snapshots are immutable and swapped under a lock, so a reader never
sees a partially updated reading.
"""

import asyncio
import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

from .config import MONITOR_RATE_HZ, MIN_SIDE_DIST, ConfigStore
from .rate import Clock, LoopRate, Sleeper
from .telemetry import TelemetrySink

Point2 = Tuple[float, float]


@dataclass(frozen=True)
class ObstacleSnapshot:
    """Directional obstacle distances at one instant.

    Attributes:
        forward_dist: Free distance in the queried travel direction (m).
        left_dist: Free distance to the left (m).
        right_dist: Free distance to the right (m).
        forward_left_point: Closest obstacle point ahead-left in the base frame.
        forward_right_point: Closest obstacle point ahead-right in the base frame.
        stamp: Time the reading was taken (s).
    """

    forward_dist: float = math.inf
    left_dist: float = math.inf
    right_dist: float = math.inf
    forward_left_point: Point2 = field(default=(math.inf, math.inf))
    forward_right_point: Point2 = field(default=(math.inf, -math.inf))
    stamp: float = 0.0


class ObstacleSensor(ABC):
    """Directional obstacle queries.

    Attributes:
        min_side_dist: Clearance to keep on each side (m). Updated by the
            monitor loop from the active configuration.
    """

    min_side_dist: float = MIN_SIDE_DIST

    @abstractmethod
    def obstacle_distance(self, forward: bool) -> ObstacleSnapshot:
        """Return distances with ``forward_dist`` measured forward or backward."""

    @abstractmethod
    def obstacle_angle(self, turn_left: bool) -> float:
        """Return how far (rad) the robot can turn in the given direction before a collision."""


class LatestObstacleSensor(ObstacleSensor):
    """Obstacle sensor backed by the last reading received from the robot link.

    The robot side reduces its scans; this class only stores the most recent
    reduced values. Until the first reading arrives every direction is clear.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._forward = math.inf
        self._rear = math.inf
        self._left = math.inf
        self._right = math.inf
        self._angle_left = math.inf
        self._angle_right = math.inf
        self._stamp = 0.0

    def update(
        self,
        forward: float = math.inf,
        left: float = math.inf,
        right: float = math.inf,
        rear: float = math.inf,
        angle_left: float = math.inf,
        angle_right: float = math.inf,
    ) -> None:
        with self._lock:
            self._forward = float(forward)
            self._left = float(left)
            self._right = float(right)
            self._rear = float(rear)
            self._angle_left = float(angle_left)
            self._angle_right = float(angle_right)
            self._stamp = self._clock()

    def obstacle_distance(self, forward: bool) -> ObstacleSnapshot:
        with self._lock:
            return ObstacleSnapshot(
                forward_dist=self._forward if forward else self._rear,
                left_dist=self._left,
                right_dist=self._right,
                stamp=self._stamp,
            )

    def obstacle_angle(self, turn_left: bool) -> float:
        with self._lock:
            return self._angle_left if turn_left else self._angle_right


class SnapshotHolder:
    """Single-slot, lock-protected holder for the latest obstacle snapshot."""

    def __init__(self, initial: Optional[ObstacleSnapshot] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = initial if initial is not None else ObstacleSnapshot()

    def publish(self, snapshot: ObstacleSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def latest(self) -> ObstacleSnapshot:
        with self._lock:
            return self._snapshot


class ObstacleMonitor:
    """Idle loop that keeps the shared forward obstacle reading fresh.

    Each tick it forwards ``min_side_dist`` to the sensor, takes a forward
    reading, publishes it to the holder and emits the distance triple as
    telemetry. Runs for the lifetime of the process, goal or not.
    """

    def __init__(
        self,
        sensor: ObstacleSensor,
        holder: SnapshotHolder,
        config_store: ConfigStore,
        telemetry: TelemetrySink,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
        rate_hz: float = MONITOR_RATE_HZ,
    ) -> None:
        self.sensor = sensor
        self.holder = holder
        self.config_store = config_store
        self.telemetry = telemetry
        self.rate = LoopRate(rate_hz, clock, sleep)
        self.should_stop = False

    def poll_once(self) -> ObstacleSnapshot:
        """Take one forward reading and publish it."""
        self.sensor.min_side_dist = self.config_store.snapshot().min_side_dist
        snapshot = self.sensor.obstacle_distance(True)
        self.holder.publish(snapshot)
        self.telemetry.publish_obstacle_distance(
            snapshot.forward_dist, snapshot.left_dist, snapshot.right_dist
        )
        return snapshot

    async def run(self, should_stop: Optional[Callable[[], bool]] = None) -> None:
        """Poll at the monitor rate until stopped."""
        logging.debug("Obstacle monitor started")
        while not self.should_stop and not (should_stop and should_stop()):
            self.poll_once()
            await self.rate.sleep()

    def stop(self) -> None:
        self.should_stop = True
