"""Single-slot preempting goal server.

At most one goal executes at a time. A goal submitted while another one is
executing goes into a one-element mailbox and requests preemption of the
active goal; the controllers notice within one tick and stop. A goal still
waiting in the mailbox when an even newer one arrives is discarded as
PREEMPTED without ever running.

States: IDLE (nothing to do), EXECUTING (a goal is running), PREEMPTING
(the running goal has been asked to stop).
"""

import asyncio
import enum
import itertools
import logging
from typing import Callable, Optional

from .errors import InvalidGoal
from .executor import GoalExecutor, GoalStatus
from .planner import Goal, validate_goal
from .telemetry import NullTelemetry, TelemetrySink


class ServerState(enum.Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    PREEMPTING = "preempting"


class GoalHandle:
    """Tracks one submitted goal until it reaches a terminal status.

    Attributes:
        goal_id: Sequential id, unique within the process.
        goal: The submitted goal.
        status: Current ``GoalStatus``.
        reason: Abort/reject/preempt reason, empty on success.
    """

    _ids = itertools.count(1)

    def __init__(self, goal: Goal) -> None:
        self.goal_id = next(self._ids)
        self.goal = goal
        self.status = GoalStatus.PENDING
        self.reason = ""
        self._done = asyncio.Event()

    def _finish(self, status: GoalStatus, reason: str = "") -> None:
        self.status = status
        self.reason = reason
        self._done.set()

    @property
    def done(self) -> bool:
        return self.status.is_terminal

    async def wait(self) -> GoalStatus:
        """Wait until the goal reaches a terminal status."""
        await self._done.wait()
        return self.status

    def __repr__(self) -> str:
        return f"GoalHandle(id={self.goal_id}, status={self.status.value})"


class GoalServer:
    """Serves goals one at a time with preemption.

    Attributes:
        state: Current ``ServerState``.
        executor: Executor built with this server's preemption check.
        active: Handle of the executing goal, if any.
    """

    def __init__(
        self,
        executor_factory: Callable[[Callable[[], bool]], GoalExecutor],
        telemetry: Optional[TelemetrySink] = None,
    ) -> None:
        """Initialize the server.

        Args:
            executor_factory: Builds the executor given the preemption check
                its controllers must poll.
            telemetry: Receives goal status changes.
        """
        self.state = ServerState.IDLE
        self.telemetry = telemetry if telemetry is not None else NullTelemetry()
        self.executor = executor_factory(self.preempt_requested)
        self.active: Optional[GoalHandle] = None
        self._pending: Optional[GoalHandle] = None
        self._wakeup = asyncio.Event()
        self._stopped = False

    def preempt_requested(self) -> bool:
        return self.state is ServerState.PREEMPTING

    def _set_status(self, handle: GoalHandle, status: GoalStatus, reason: str = "") -> None:
        if status.is_terminal:
            handle._finish(status, reason)
        else:
            handle.status = status
        self.telemetry.publish_goal_status(handle.goal_id, status.value, reason)

    def submit(self, goal: Goal) -> GoalHandle:
        """Accept a new goal, preempting whatever is running.

        Invalid goals are rejected immediately and do not disturb the
        active goal.

        Returns:
            Handle tracking the goal.
        """
        handle = GoalHandle(goal)
        try:
            validate_goal(goal)
        except InvalidGoal as e:
            logging.error(e.reason)
            self._set_status(handle, GoalStatus.REJECTED, e.reason)
            return handle

        if self._pending is not None:
            self._set_status(self._pending, GoalStatus.PREEMPTED, "Superseded by a newer goal")
        self._pending = handle
        self._set_status(handle, GoalStatus.PENDING)

        if self.state is ServerState.EXECUTING:
            logging.info("New goal received, preempting the active goal")
            self.state = ServerState.PREEMPTING
        self._wakeup.set()
        return handle

    def cancel(self) -> None:
        """Stop the active goal and drop any pending one (operator stop)."""
        if self._pending is not None:
            self._set_status(self._pending, GoalStatus.PREEMPTED, "Canceled")
            self._pending = None
        if self.state is ServerState.EXECUTING:
            logging.info("Cancel requested, preempting the active goal")
            self.state = ServerState.PREEMPTING

    async def run(self) -> None:
        """Execute goals from the mailbox until ``stop`` is called."""
        while not self._stopped:
            if self._pending is None:
                self.state = ServerState.IDLE
                self._wakeup.clear()
                await self._wakeup.wait()
                continue

            handle = self._pending
            self._pending = None
            self.active = handle
            self.state = ServerState.EXECUTING
            self._set_status(handle, GoalStatus.ACTIVE)

            result = await self.executor.execute(handle.goal)

            self._set_status(handle, result.status, result.reason)
            self.active = None

        self.state = ServerState.IDLE

    def stop(self) -> None:
        """Preempt the active goal and make ``run`` return."""
        self._stopped = True
        self.cancel()
        self._wakeup.set()
