import asyncio

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pytest  # noqa: E402

from goal_mover.plot_results import find_latest_run, list_runs  # noqa: E402
from goal_mover.planner import Goal  # noqa: E402
from goal_mover.simulation import SimClock, run_simulated_goal  # noqa: E402
from goal_mover.telemetry import DataCollector  # noqa: E402
from goal_mover.visualization import load_plans, plot_run_summary  # noqa: E402


@pytest.fixture
def run_dir(tmp_path):
    clock = SimClock()
    path = tmp_path / "results" / "run_20260101_120000"
    with DataCollector(run_dir=str(path), clock=clock) as collector:
        asyncio.run(
            run_simulated_goal(Goal.from_xyyaw(1.0, 0.5, 0.0, "odom"), telemetry=collector, clock=clock)
        )
    return path


def test_plans_are_grouped(run_dir):
    plans = load_plans(run_dir / "plan.csv")
    assert len(plans) == 1
    assert plans[0]["frame_id"] == "odom"
    assert plans[0]["points"].shape == (2, 2)


def test_run_summary_saves_figures(run_dir):
    figures = plot_run_summary(run_dir, save_plots=True, show_plots=False)

    assert (run_dir / "commands.png").exists()
    assert (run_dir / "lateral_error.png").exists()
    assert (run_dir / "plans.png").exists()
    # No obstacle monitor in simulation: empty obstacle file is skipped
    assert len(figures) == 3
    for fig in figures:
        plt.close(fig)


def test_summary_requires_commands(tmp_path):
    with pytest.raises(FileNotFoundError):
        plot_run_summary(tmp_path, show_plots=False)


def test_latest_run(run_dir, tmp_path):
    (tmp_path / "results" / "run_20250101_000000").mkdir()
    assert find_latest_run(tmp_path / "results") == run_dir
    assert len(list_runs(tmp_path / "results")) == 2
    with pytest.raises(FileNotFoundError):
        find_latest_run(tmp_path / "missing")
