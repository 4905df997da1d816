#!/usr/bin/env python3
"""
WebSocket Robot Link for the Goal Mover

This module connects the goal mover to a robot over a WebSocket. The robot
side streams frame transforms and reduced obstacle readings, and forwards
goals, cancel requests and parameter updates from its operator. The mover
answers with one velocity command per control tick plus telemetry (planned
path, obstacle distances, lateral error, goal status).

All messages are JSON objects keyed by ``message_type``.
"""

import asyncio
import json
import logging
import math
import signal
import time
from typing import Any, Dict, Optional, Sequence, Union

import websockets

from .config import (
    PREFERRED_DRIVING_FRAME,
    TERM_BLUE,
    TERM_RESET,
    TRANSFORM_MAX_AGE,
    WS_MAX_RETRY_DELAY_SECONDS,
    WS_RETRY_DELAY_SECONDS,
    WS_TIMEOUT_SECONDS,
    WS_URI,
    ConfigStore,
)
from .executor import GoalExecutor
from .geometry import RigidTransform
from .obstacles import LatestObstacleSensor, ObstacleMonitor, SnapshotHolder
from .planner import Goal
from .pose_source import TransformTree
from .rate import Clock
from .server import GoalHandle, GoalServer
from .telemetry import CommandSink, DataCollector, FanOut, TelemetrySink

OUTBOUND_QUEUE_SIZE = 1000


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return record.getMessage()
        return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        formatter = CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


def _json_number(value: float) -> Optional[float]:
    # JSON has no infinity; "nothing detected" goes out as null
    return value if math.isfinite(value) else None


def _read_distance(data: Dict[str, Any], key: str) -> float:
    value = data.get(key)
    return math.inf if value is None else float(value)


class WebSocketSink(CommandSink, TelemetrySink):
    """Queues outbound messages for the connection's sender task.

    Commands and telemetry are produced from the control loops and must never
    block them, so messages are queued and dropped when the queue is full.
    Velocity commands are only meaningful for the tick that produced them:
    they are dropped while the link is down and purged from the queue when
    it goes down, so a reconnect never replays old motion.

    Attributes:
        queue: Serialized messages waiting for the sender task.
        dropped: Number of messages discarded so far.
        connected: Whether a connection is currently up.
    """

    def __init__(self, maxsize: int = OUTBOUND_QUEUE_SIZE) -> None:
        self.queue: "asyncio.Queue[str]" = asyncio.Queue(maxsize)
        self.dropped = 0
        self.connected = False

    def on_connect(self) -> None:
        self.connected = True

    def on_disconnect(self) -> None:
        """Mark the link down and purge queued velocity commands."""
        self.connected = False
        kept = []
        while not self.queue.empty():
            message = self.queue.get_nowait()
            if json.loads(message)["message_type"] == "cmd_vel":
                self.dropped += 1
            else:
                kept.append(message)
        for message in kept:
            self.queue.put_nowait(message)
        logging.debug(f"Link down, {len(kept)} telemetry messages kept for reconnect")

    def _put(self, message: Dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(json.dumps(message))
        except asyncio.QueueFull:
            self.dropped += 1
            logging.debug(f"Outbound queue full, dropped {message['message_type']}")

    def send(self, angular: float, linear: float) -> None:
        if not self.connected:
            self.dropped += 1
            return
        self._put({"message_type": "cmd_vel", "angular": angular, "linear": linear})

    def publish_path(self, frame_id: str, points: Sequence[Any]) -> None:
        self._put(
            {
                "message_type": "plan",
                "frame_id": frame_id,
                "points": [[x, y] for x, y in points],
            }
        )

    def publish_obstacle_distance(self, forward: float, left: float, right: float) -> None:
        self._put(
            {
                "message_type": "obstacle_distance",
                "forward": _json_number(forward),
                "left": _json_number(left),
                "right": _json_number(right),
            }
        )

    def publish_lateral_error(self, remaining_x: float, lateral_error: float, rotation: float) -> None:
        self._put(
            {
                "message_type": "lateral_error",
                "remaining_x": remaining_x,
                "lateral_error": lateral_error,
                "rotation": rotation,
            }
        )

    def publish_goal_status(self, goal_id: int, status: str, reason: str = "") -> None:
        self._put(
            {"message_type": "goal_status", "goal_id": goal_id, "status": status, "reason": reason}
        )


class MoverClient:
    """Goal mover runtime connected to a robot over WebSocket.

    This class wires the complete pipeline:
    - WebSocket connection with reconnect and exponential backoff
    - Transform tree and obstacle sensor fed from inbound messages
    - Obstacle monitor loop (20 Hz) and goal server
    - Outbound commands and telemetry, optionally recorded to CSV

    Attributes:
        uri: WebSocket URI to connect to.
        config_store: Active runtime configuration.
        tree: Transform tree fed by ``transform`` messages.
        obstacle_sensor: Latest reduced obstacle reading.
        server: Goal server executing goals.
        data_collector: CSV recorder, or None when not recording.
        should_stop: Flag indicating whether to stop.
    """

    def __init__(
        self,
        uri: str = WS_URI,
        config_store: Optional[ConfigStore] = None,
        record_dir: Optional[str] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize the client.

        Args:
            uri: WebSocket URI to connect to (must start with ws:// or wss://).
            config_store: Runtime configuration (default: built-in defaults).
            record_dir: Base directory for CSV recording; None disables it.
            clock: Time source for transform and obstacle staleness.

        Raises:
            ValueError: If URI format is invalid.
        """
        if not uri or not uri.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid WebSocket URI: {uri}. Must start with 'ws://' or 'wss://'")

        self.uri = uri
        self.should_stop = False
        self.config_store = config_store if config_store is not None else ConfigStore()

        self.tree = TransformTree(max_age=TRANSFORM_MAX_AGE, clock=clock)
        self.obstacle_sensor = LatestObstacleSensor(clock=clock)
        self.snapshot_holder = SnapshotHolder()
        self.link = WebSocketSink()

        self.data_collector = DataCollector(output_dir=record_dir) if record_dir is not None else None
        sinks = FanOut(self.link, *([self.data_collector] if self.data_collector is not None else []))

        self.monitor = ObstacleMonitor(
            self.obstacle_sensor, self.snapshot_holder, self.config_store, telemetry=sinks
        )
        self.server = GoalServer(
            lambda preempt_requested: GoalExecutor(
                self.tree,
                self.obstacle_sensor,
                self.config_store,
                command_sink=sinks,
                telemetry=sinks,
                snapshot_holder=self.snapshot_holder,
                preempt_requested=preempt_requested,
            ),
            telemetry=sinks,
        )

    def process_transform_message(self, data: Dict[str, Any]) -> None:
        """Update one parent → child link of the transform tree.

        Links flagged ``static`` are published once and never go stale.
        """
        transform = RigidTransform.from_pose(float(data["x"]), float(data["y"]), float(data["yaw"]))
        self.tree.set_transform(
            str(data["parent"]), str(data["child"]), transform, static=bool(data.get("static", False))
        )

    def process_obstacle_message(self, data: Dict[str, Any]) -> None:
        """Store the latest reduced obstacle reading. Missing or null means clear."""
        self.obstacle_sensor.update(
            forward=_read_distance(data, "forward"),
            left=_read_distance(data, "left"),
            right=_read_distance(data, "right"),
            rear=_read_distance(data, "rear"),
            angle_left=_read_distance(data, "angle_left"),
            angle_right=_read_distance(data, "angle_right"),
        )

    def process_goal_message(self, data: Dict[str, Any]) -> GoalHandle:
        """Submit a goal; its id is reported back through ``goal_status`` messages."""
        frame_id = data.get("frame_id") or PREFERRED_DRIVING_FRAME
        goal = Goal.from_xyyaw(data["x"], data["y"], data.get("yaw", 0.0), str(frame_id))
        handle = self.server.submit(goal)
        return handle

    def process_params_message(self, data: Dict[str, Any]) -> None:
        changes = {k: v for k, v in data.items() if k != "message_type"}
        if changes:
            self.config_store.update(**changes)

    def parse_and_route_message(self, message: Union[str, bytes]) -> None:
        """Parse incoming message and route to appropriate handler.

        Args:
            message: Raw JSON message string or bytes from WebSocket.
        """
        try:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            data = json.loads(message)

            message_type = data.get("message_type")

            if message_type == "transform":
                self.process_transform_message(data)
            elif message_type == "obstacles":
                self.process_obstacle_message(data)
            elif message_type == "goal":
                self.process_goal_message(data)
            elif message_type == "cancel":
                self.server.cancel()
            elif message_type == "params":
                self.process_params_message(data)
            else:
                logging.debug(f"\nReceived unknown message: {json.dumps(data, indent=2)}\n")

        except json.JSONDecodeError as e:
            logging.error(f"Error parsing JSON: {e}")
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logging.error(f"Error processing message data: {e}")

    async def _send_outbound(self, websocket: Any) -> None:
        while True:
            message = await self.link.queue.get()
            await websocket.send(message)

    async def run_link(self) -> None:
        """Connect to the robot and exchange messages.

        Maintains a connection to the WebSocket server with automatic retry logic
        and exponential backoff. Continues running until ``stop`` is called.
        """
        retry_delay = WS_RETRY_DELAY_SECONDS
        max_retry_delay = WS_MAX_RETRY_DELAY_SECONDS

        while not self.should_stop:
            try:
                async with websockets.connect(self.uri) as websocket:
                    logging.info(f"{TERM_BLUE}✓ Connected to robot at {self.uri}{TERM_RESET}")
                    retry_delay = WS_RETRY_DELAY_SECONDS
                    self.link.on_connect()
                    sender = asyncio.create_task(self._send_outbound(websocket))
                    try:
                        while not self.should_stop:
                            try:
                                message = await asyncio.wait_for(
                                    websocket.recv(), timeout=WS_TIMEOUT_SECONDS
                                )
                            except asyncio.TimeoutError:
                                continue
                            except websockets.exceptions.ConnectionClosed:
                                logging.warning("Connection closed by robot")
                                break
                            self.parse_and_route_message(message)
                    finally:
                        sender.cancel()
                        self.link.on_disconnect()

            except (OSError, websockets.exceptions.WebSocketException) as e:
                if self.should_stop:
                    break
                logging.error(f"Connection error: {e}")
                logging.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, max_retry_delay)

    async def run(self) -> None:
        """Run the obstacle monitor, the goal server and the robot link until stopped."""
        monitor_task = asyncio.create_task(self.monitor.run())
        server_task = asyncio.create_task(self.server.run())
        try:
            await self.run_link()
        finally:
            self.server.stop()
            self.monitor.stop()
            await asyncio.gather(monitor_task, server_task)

    def stop(self) -> None:
        """Signal the client to stop."""
        self.should_stop = True

    def __enter__(self) -> "MoverClient":
        if self.data_collector is not None:
            self.data_collector.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.data_collector is not None:
            self.data_collector.cleanup()


async def main(
    uri: str = WS_URI,
    config_store: Optional[ConfigStore] = None,
    record_dir: Optional[str] = None,
) -> None:
    """Main entry point for the robot link.

    Creates a MoverClient, sets up signal handlers for graceful shutdown,
    and runs until interrupted.

    Args:
        uri: WebSocket URI of the robot.
        config_store: Runtime configuration.
        record_dir: Base directory for CSV recording; None disables it.
    """
    with MoverClient(uri, config_store=config_store, record_dir=record_dir) as client:
        loop = asyncio.get_running_loop()

        def signal_handler() -> None:
            """Handle shutdown signals (SIGINT, SIGTERM)."""
            logging.info("\nShutdown signal received...")
            client.stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        await client.run()
