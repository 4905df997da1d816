"""Shared machinery for fixed-rate control phases.

Both motion controllers run the same outer loop: sleep to hold the rate, take
one configuration snapshot, compute one command, emit it, and stop on a
terminal outcome. ``PhaseController`` implements that loop; subclasses set up
their per-phase state in ``run`` and compute commands in ``tick``.
"""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import CONTROL_RATE_HZ, ConfigStore, MoverConfig
from .errors import GoalAborted
from .obstacles import ObstacleSensor
from .pose_source import PoseSource
from .rate import Clock, LoopRate, Sleeper
from .telemetry import CommandSink


class PhaseOutcome(enum.Enum):
    """Terminal states of a single motion phase."""

    SUCCEEDED = "succeeded"
    PREEMPTED = "preempted"
    ABORTED = "aborted"


@dataclass
class TickResult:
    """Command and optional terminal outcome produced by one tick."""

    angular: float
    linear: float
    outcome: Optional[PhaseOutcome] = None
    error: Optional[GoalAborted] = None


class PhaseController:
    """Base class for the rotation and translation controllers.

    Attributes:
        pose_source: Transform lookup used every tick.
        obstacle_sensor: Directional obstacle queries.
        config_store: Source of one configuration snapshot per tick.
        command_sink: Receives exactly one command per tick.
        preempt_requested: Polled once per tick; True stops the phase.
    """

    name = "phase"

    def __init__(
        self,
        pose_source: PoseSource,
        obstacle_sensor: ObstacleSensor,
        config_store: ConfigStore,
        command_sink: CommandSink,
        preempt_requested: Callable[[], bool] = lambda: False,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
        rate_hz: float = CONTROL_RATE_HZ,
    ) -> None:
        self.pose_source = pose_source
        self.obstacle_sensor = obstacle_sensor
        self.config_store = config_store
        self.command_sink = command_sink
        self.preempt_requested = preempt_requested
        self.clock = clock
        self.sleep = sleep
        self.rate_hz = rate_hz

    def tick(self, config: MoverConfig) -> TickResult:
        raise NotImplementedError

    async def _run_loop(self) -> PhaseOutcome:
        """Tick until a terminal outcome; raise on abort.

        Returns:
            SUCCEEDED or PREEMPTED.

        Raises:
            GoalAborted: After emitting the terminal zero command.
            Exception: Any other failure inside a tick, also after a zero command.
        """
        rate = LoopRate(self.rate_hz, self.clock, self.sleep)
        while True:
            await rate.sleep()
            config = self.config_store.snapshot()
            try:
                result = self.tick(config)
            except Exception:
                # Never leave the last command in force
                self.command_sink.send(0.0, 0.0)
                raise

            self.command_sink.send(result.angular, result.linear)

            if result.error is not None:
                raise result.error
            if result.outcome is not None:
                logging.debug(f"{self.name} finished: {result.outcome.value}")
                return result.outcome
