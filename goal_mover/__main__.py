"""
Main entry point when running the goal_mover module with python -m.

Connects to a robot over WebSocket by default. With ``--simulate X Y YAW`` it
instead executes a single goal against the kinematic simulator and exits.
"""

import argparse
import asyncio
import logging
import math
import sys
from typing import List, Optional

from .client import main, setup_logging
from .config import WS_URI, ConfigStore, MoverConfig, load_config, parse_param_overrides
from .executor import GoalStatus
from .planner import Goal
from .simulation import SimClock, run_simulated_goal
from .telemetry import DataCollector


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="goal_mover",
        description="Point-to-point goal mover: rotate, drive straight, rotate",
    )
    parser.add_argument("--uri", default=WS_URI, help=f"Robot WebSocket URI (default: {WS_URI})")
    parser.add_argument("--config", help="JSON file with parameter overrides")
    parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Override one parameter (repeatable, applied after --config)",
    )
    parser.add_argument(
        "--record",
        metavar="DIR",
        help="Record commands and telemetry as CSV under DIR/results/run_<timestamp>/",
    )
    parser.add_argument(
        "--simulate",
        nargs=3,
        type=float,
        metavar=("X", "Y", "YAW"),
        help="Execute one goal (yaw in degrees) against the kinematic simulator",
    )
    parser.add_argument(
        "--frame", default="odom", help="Frame of the simulated goal (default: odom)"
    )
    parser.add_argument(
        "--obstacle-at",
        type=float,
        metavar="D",
        help="Simulated point obstacle D meters ahead of the start position",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps"
    )
    return parser


def build_config_store(config_path: Optional[str], param_specs: List[str]) -> ConfigStore:
    config = load_config(config_path) if config_path else MoverConfig()
    overrides = parse_param_overrides(param_specs)
    if overrides:
        config = config.with_changes(**overrides)
    return ConfigStore(config)


def simulate(args: argparse.Namespace, config_store: ConfigStore) -> int:
    x, y, yaw_deg = args.simulate
    goal = Goal.from_xyyaw(x, y, math.radians(yaw_deg), args.frame)
    clock = SimClock()

    if args.record:
        with DataCollector(output_dir=args.record, clock=clock) as collector:
            result = asyncio.run(
                run_simulated_goal(goal, config_store, args.obstacle_at, telemetry=collector, clock=clock)
            )
    else:
        result = asyncio.run(run_simulated_goal(goal, config_store, args.obstacle_at, clock=clock))

    logging.info(f"Goal {result.status.value}{': ' + result.reason if result.reason else ''}")
    return 0 if result.status is GoalStatus.SUCCEEDED else 1


if __name__ == "__main__":
    args = build_parser().parse_args()

    setup_logging(args.verbose)

    try:
        config_store = build_config_store(args.config, args.param)
    except (FileNotFoundError, ValueError) as e:
        logging.error(f"Invalid configuration: {e}")
        sys.exit(2)

    if args.simulate:
        sys.exit(simulate(args, config_store))

    try:
        asyncio.run(main(args.uri, config_store=config_store, record_dir=args.record))
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)
