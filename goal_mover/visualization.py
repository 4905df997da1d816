"""
Visualization utilities for recorded goal mover runs.

This module loads the CSV files written by ``DataCollector`` and plots the
command profile, the lateral error during translation, the obstacle
distances and the published plans.
"""

from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from .config import FORWARD_OBSTACLE_THRESHOLD
from .plot_styles import (
    PLOT_BLUE,
    PLOT_CMAP,
    PLOT_ORANGE,
    PLOT_TAUPE,
    PLOT_YELLOW,
    add_legend,
    create_figure,
    load_csv_data,
    load_csv_to_dict,
    save_figure,
    style_axis,
)

COMMANDS_FILE = "commands.csv"
OBSTACLES_FILE = "obstacle_distance.csv"
LATERAL_FILE = "lateral_error.csv"
PLAN_FILE = "plan.csv"


def relative_time(data: Dict[str, np.ndarray], t0: Optional[float] = None) -> np.ndarray:
    """Timestamps shifted so the run starts at 0 (or at ``t0`` when given)."""
    timestamps = data["timestamp"]
    if len(timestamps) == 0:
        return timestamps
    return timestamps - (timestamps[0] if t0 is None else t0)


def load_plans(filepath: Path) -> List[Dict[str, object]]:
    """Group ``plan.csv`` rows into one entry per published plan.

    Returns:
        List of dicts with keys 'timestamp', 'frame_id' and 'points' (N x 2 array).
    """
    headers, rows = load_csv_data(filepath)
    if headers[:5] != ["timestamp", "frame_id", "point", "x", "y"]:
        raise ValueError(f"Unexpected plan CSV headers: {headers}")

    plans: List[Dict[str, object]] = []
    for row in rows:
        if len(row) != 5:
            continue
        try:
            stamp, frame_id, index, x, y = float(row[0]), row[1], int(row[2]), float(row[3]), float(row[4])
        except ValueError:
            continue
        if index == 0:
            plans.append({"timestamp": stamp, "frame_id": frame_id, "points": []})
        if plans:
            plans[-1]["points"].append((x, y))

    for plan in plans:
        plan["points"] = np.array(plan["points"])
    return plans


def plot_command_profile(
    commands: Dict[str, np.ndarray], title: str = "Velocity Commands", save_path: Optional[Path] = None
) -> Figure:
    """Plot commanded angular and linear velocity over time."""
    fig, (ax1, ax2) = create_figure(2, figsize=(12, 7), title=title)
    t = relative_time(commands)

    ax1.step(t, commands["angular"], where="post", color=PLOT_ORANGE, label="Angular")
    style_axis(ax1, ylabel="Angular (rad/s)")
    add_legend(ax1)

    ax2.step(t, commands["linear"], where="post", color=PLOT_BLUE, label="Linear")
    style_axis(ax2, xlabel="Time (s)", ylabel="Linear (m/s)")
    add_legend(ax2)

    plt.tight_layout()
    if save_path:
        save_figure(fig, save_path)
    return fig


def plot_lateral_error(
    lateral: Dict[str, np.ndarray], title: str = "Lateral Correction", save_path: Optional[Path] = None
) -> Figure:
    """Plot lateral error and the PID rotation against remaining distance."""
    fig, (ax1, ax2) = create_figure(2, figsize=(12, 7), title=title)
    t = relative_time(lateral)

    ax1.plot(t, lateral["lateral_error"], color=PLOT_ORANGE, label="Lateral error")
    ax1.axhline(0.0, color=PLOT_TAUPE, linestyle="--", linewidth=1.0)
    style_axis(ax1, ylabel="Error (m)")
    add_legend(ax1)

    ax2.plot(t, lateral["rotation"], color=PLOT_BLUE, label="Rotation command")
    ax2_twin = ax2.twinx()
    ax2_twin.plot(t, lateral["remaining_x"], color=PLOT_YELLOW, alpha=0.6, label="Remaining x")
    style_axis(ax2, xlabel="Time (s)", ylabel="Rotation (rad/s)")
    style_axis(ax2_twin, ylabel="Remaining x (m)", grid=False)
    ax2_twin.patch.set_visible(False)
    add_legend(ax2, loc="upper left")
    add_legend(ax2_twin, loc="upper right")

    plt.tight_layout()
    if save_path:
        save_figure(fig, save_path)
    return fig


def plot_obstacle_distances(
    obstacles: Dict[str, np.ndarray],
    threshold: float = FORWARD_OBSTACLE_THRESHOLD,
    title: str = "Obstacle Distances",
    save_path: Optional[Path] = None,
) -> Figure:
    """Plot forward/left/right obstacle distances with the pause threshold."""
    fig, (ax,) = create_figure(1, figsize=(12, 5), title=title)
    t = relative_time(obstacles)

    for key, color in (("forward", PLOT_ORANGE), ("left", PLOT_BLUE), ("right", PLOT_YELLOW)):
        values = np.where(np.isfinite(obstacles[key]), obstacles[key], np.nan)
        ax.plot(t, values, color=color, label=key.capitalize())
    ax.axhline(threshold, color=PLOT_TAUPE, linestyle="--", linewidth=1.0, label="Pause threshold")
    style_axis(ax, xlabel="Time (s)", ylabel="Distance (m)")
    add_legend(ax)

    plt.tight_layout()
    if save_path:
        save_figure(fig, save_path)
    return fig


def plot_plans(
    plans: List[Dict[str, object]], title: str = "Planned Paths", save_path: Optional[Path] = None
) -> Figure:
    """Plot every published (goal, robot) plan, colored by time."""
    fig, (ax,) = create_figure(1, figsize=(8, 8), title=title)

    colors = PLOT_CMAP(np.linspace(0.0, 1.0, max(len(plans), 1)))
    for plan, color in zip(plans, colors):
        points = plan["points"]
        if len(points) < 2:
            continue
        goal, robot = points[0], points[-1]
        ax.annotate(
            "",
            xy=goal,
            xytext=robot,
            arrowprops=dict(arrowstyle="->", color=color, linewidth=1.5),
        )
        ax.plot(*robot, "o", color=color, markersize=6)
        ax.plot(*goal, "*", color=color, markersize=10, label=f"Goal in {plan['frame_id']}")

    style_axis(ax, xlabel="X (m)", ylabel="Y (m)")
    ax.set_aspect("equal", adjustable="datalim")
    if plans:
        add_legend(ax)

    plt.tight_layout()
    if save_path:
        save_figure(fig, save_path)
    return fig


def plot_run_summary(run_dir: Path, save_plots: bool = False, show_plots: bool = True) -> List[Figure]:
    """Generate summary plots for a complete run.

    Files missing from the run directory are skipped; ``commands.csv`` is required.

    Args:
        run_dir: Directory written by ``DataCollector``.
        save_plots: If True, save plots to run directory.
        show_plots: If True, display plots interactively.

    Returns:
        The created figures.

    Raises:
        FileNotFoundError: If commands.csv is not found.
    """
    run_name = run_dir.name
    commands = load_csv_to_dict(run_dir / COMMANDS_FILE)

    def target(name: str) -> Optional[Path]:
        return run_dir / name if save_plots else None

    figures = [
        plot_command_profile(commands, f"{run_name} - Velocity Commands", target("commands.png"))
    ]

    lateral_path = run_dir / LATERAL_FILE
    if lateral_path.exists():
        lateral = load_csv_to_dict(lateral_path)
        if len(lateral["timestamp"]) > 0:
            figures.append(
                plot_lateral_error(lateral, f"{run_name} - Lateral Correction", target("lateral_error.png"))
            )

    obstacles_path = run_dir / OBSTACLES_FILE
    if obstacles_path.exists():
        obstacles = load_csv_to_dict(obstacles_path)
        if len(obstacles["timestamp"]) > 0:
            figures.append(
                plot_obstacle_distances(
                    obstacles, title=f"{run_name} - Obstacle Distances", save_path=target("obstacles.png")
                )
            )

    plan_path = run_dir / PLAN_FILE
    if plan_path.exists():
        plans = load_plans(plan_path)
        if plans:
            figures.append(plot_plans(plans, f"{run_name} - Planned Paths", target("plans.png")))

    if show_plots:
        plt.show()
    return figures
