"""Exception taxonomy for goal execution.

``InvalidGoal`` is raised before execution starts and leads to a rejected goal.
``GoalAborted`` and its subclasses terminate the whole goal; the executor turns
them into an ABORTED result carrying ``reason``. Preemption is not an error and
has no exception here.
"""


class MoverError(Exception):
    """Base class for all goal execution errors."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InvalidGoal(MoverError):
    """Goal rejected before execution (e.g. non-finite orientation)."""


class GoalAborted(MoverError):
    """A phase failed and the goal must be aborted."""


class TransformUnavailable(GoalAborted):
    """A required frame-to-frame transform could not be looked up."""


class ObstaclePersistent(GoalAborted):
    """An obstacle blocked the path for longer than the wait threshold."""


class NoProgress(GoalAborted):
    """Distance to the goal kept growing for longer than the abort timeout."""
