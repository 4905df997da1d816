"""Command output, telemetry and CSV recording for goal execution.

This module provides:
- ``CommandSink``: where the per-tick (angular, linear) command goes
- ``TelemetrySink``: planned path, obstacle distances, lateral debug, goal status
- ``DataCollector``: CSV recorder implementing both, one directory per run
- ``FanOut``: forwards to several sinks (e.g. robot link + recorder)
"""

import csv
import os
import time
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, TextIO, Tuple

from .config import TERM_BLUE, TERM_RESET

Point2 = Tuple[float, float]


class CommandSink(ABC):
    """Receives one velocity command per control tick."""

    @abstractmethod
    def send(self, angular: float, linear: float) -> None:
        """Emit a command (rad/s, m/s)."""


class TelemetrySink:
    """Receives debug and status telemetry. Every method defaults to a no-op."""

    def publish_path(self, frame_id: str, points: Sequence[Point2]) -> None:
        pass

    def publish_obstacle_distance(self, forward: float, left: float, right: float) -> None:
        pass

    def publish_lateral_error(self, remaining_x: float, lateral_error: float, rotation: float) -> None:
        pass

    def publish_goal_status(self, goal_id: int, status: str, reason: str = "") -> None:
        pass


class NullTelemetry(TelemetrySink):
    """Telemetry sink that drops everything."""


class FanOut(CommandSink, TelemetrySink):
    """Forward commands and telemetry to several sinks in order."""

    def __init__(self, *sinks: Any) -> None:
        self.sinks = list(sinks)

    def send(self, angular: float, linear: float) -> None:
        for sink in self.sinks:
            if isinstance(sink, CommandSink):
                sink.send(angular, linear)

    def publish_path(self, frame_id: str, points: Sequence[Point2]) -> None:
        for sink in self._telemetry():
            sink.publish_path(frame_id, points)

    def publish_obstacle_distance(self, forward: float, left: float, right: float) -> None:
        for sink in self._telemetry():
            sink.publish_obstacle_distance(forward, left, right)

    def publish_lateral_error(self, remaining_x: float, lateral_error: float, rotation: float) -> None:
        for sink in self._telemetry():
            sink.publish_lateral_error(remaining_x, lateral_error, rotation)

    def publish_goal_status(self, goal_id: int, status: str, reason: str = "") -> None:
        for sink in self._telemetry():
            sink.publish_goal_status(goal_id, status, reason)

    def _telemetry(self) -> List[TelemetrySink]:
        return [s for s in self.sinks if isinstance(s, TelemetrySink)]


class DataCollector(CommandSink, TelemetrySink):
    """Manages CSV file creation and logging for goal execution data.

    This class handles all recording responsibilities:
    - Creates timestamped output directories
    - Initializes CSV files with headers
    - Writes commands and telemetry as they are emitted
    - Ensures proper cleanup on shutdown

    Attributes:
        run_dir: Directory path for this run's output files.
        clock: Timestamp source for rows.
    """

    COMMAND_HEADERS = ["timestamp", "angular", "linear"]
    OBSTACLE_HEADERS = ["timestamp", "forward", "left", "right"]
    LATERAL_HEADERS = ["timestamp", "remaining_x", "lateral_error", "rotation"]
    PLAN_HEADERS = ["timestamp", "frame_id", "point", "x", "y"]
    GOAL_HEADERS = ["timestamp", "goal_id", "status", "reason"]

    def __init__(
        self,
        output_dir: str = ".",
        run_dir: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable.
            clock: Timestamp source (default: wall clock).

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.clock = clock
        self._files: List[TextIO] = []
        self._writers: dict = {}

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.command_output_path: Path = self.run_dir / "commands.csv"
        self.obstacle_output_path: Path = self.run_dir / "obstacle_distance.csv"
        self.lateral_output_path: Path = self.run_dir / "lateral_error.csv"
        self.plan_output_path: Path = self.run_dir / "plan.csv"
        self.goal_output_path: Path = self.run_dir / "goals.csv"

    def setup(self) -> None:
        """Create all CSV files and write their headers.

        Must be called before writing data.
        """
        for key, path, headers in (
            ("commands", self.command_output_path, self.COMMAND_HEADERS),
            ("obstacles", self.obstacle_output_path, self.OBSTACLE_HEADERS),
            ("lateral", self.lateral_output_path, self.LATERAL_HEADERS),
            ("plan", self.plan_output_path, self.PLAN_HEADERS),
            ("goals", self.goal_output_path, self.GOAL_HEADERS),
        ):
            f = open(path, "w", newline="")
            writer = csv.writer(f)
            writer.writerow(headers)
            f.flush()
            self._files.append(f)
            self._writers[key] = (f, writer)

        print(f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}/{TERM_RESET}")

    def _write(self, key: str, row: List[Any]) -> None:
        entry = self._writers.get(key)
        if entry is None:
            # Not set up (or already cleaned up): recording is best effort
            return
        f, writer = entry
        writer.writerow([self.clock()] + row)
        f.flush()

    def send(self, angular: float, linear: float) -> None:
        self._write("commands", [angular, linear])

    def publish_obstacle_distance(self, forward: float, left: float, right: float) -> None:
        self._write("obstacles", [forward, left, right])

    def publish_lateral_error(self, remaining_x: float, lateral_error: float, rotation: float) -> None:
        self._write("lateral", [remaining_x, lateral_error, rotation])

    def publish_path(self, frame_id: str, points: Sequence[Point2]) -> None:
        for i, (x, y) in enumerate(points):
            self._write("plan", [frame_id, i, x, y])

    def publish_goal_status(self, goal_id: int, status: str, reason: str = "") -> None:
        self._write("goals", [goal_id, status, reason])

    def cleanup(self) -> None:
        """Close all CSV files and log final output location."""
        for f in self._files:
            f.close()
        self._files = []
        self._writers = {}
        print(f"{TERM_BLUE}✓ Saved run data to {self.run_dir}/{TERM_RESET}")

    def __enter__(self) -> "DataCollector":
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()
