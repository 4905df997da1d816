"""Goal Mover - Point-to-Point Motion Execution for Mobile Robots

Given a target pose in a named reference frame, the goal mover rotates to face
the goal, drives straight to it and rotates to the requested heading, all under
closed-loop feedback from localization, while pausing for or aborting on
obstacles in the way.

## Architecture Overview

### Frame Resolution (frames.py)
Plans the goal in the most globally consistent frame available (e.g. map) and
drives in the most continuously available one (e.g. odom), falling back once
when the preferred frame is unavailable.

### Goal Decomposition (planner.py)
Turns the goal into a rotate-translate-rotate maneuver. Close goals behind the
robot are reached by backing up instead of turning around.

### Motion Phases (rotation.py, translation.py)
Fixed-rate (50 Hz) closed loops with deceleration-to-stop velocity profiles.
Translation layers a lateral PID (lateral_controller.py) on top to hold the
straight line, pauses for obstacles and aborts when blocked for too long or
when the robot keeps moving away from the goal.

### Execution (executor.py, server.py)
``GoalExecutor`` sequences the stages for one goal; ``GoalServer`` runs one
goal at a time and preempts the active goal when a new one arrives.

## Modules

- `config.py` - Documented defaults and the runtime-reconfigurable ``ConfigStore``
- `geometry.py` - Rigid transforms and angle helpers
- `pose_source.py` - Frame-to-frame transform lookup
- `obstacles.py` - Obstacle readings, snapshot holder and 20 Hz monitor
- `client.py` - WebSocket robot link and logging setup
- `simulation.py` - Kinematic robot and point obstacles for offline runs
- `telemetry.py` - Command/telemetry sinks and CSV recording
- `visualization.py`, `plot_results.py` - Plots of recorded runs

## Quick Start

```bash
# Connect to a robot
python -m goal_mover --uri ws://robot:8765 --record .

# Execute one goal against the simulator
python -m goal_mover --simulate 2.0 1.0 90
```
"""

__version__ = "0.1.0"

from .config import ConfigStore, MoverConfig
from .errors import GoalAborted, InvalidGoal, MoverError
from .executor import GoalExecutor, GoalResult, GoalStatus
from .planner import Goal, GoalPlanner, Maneuver
from .pose_source import PoseSource, TransformTree
from .server import GoalHandle, GoalServer
from .telemetry import DataCollector

__all__ = [
    "ConfigStore",
    "MoverConfig",
    "MoverError",
    "InvalidGoal",
    "GoalAborted",
    "Goal",
    "GoalPlanner",
    "Maneuver",
    "GoalExecutor",
    "GoalResult",
    "GoalStatus",
    "GoalServer",
    "GoalHandle",
    "PoseSource",
    "TransformTree",
    "DataCollector",
]
