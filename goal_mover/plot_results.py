#!/usr/bin/env python3
"""
Standalone script to visualize recorded goal mover runs.

Loads the CSV files of a run directory written with ``--record`` and plots
the velocity commands, lateral correction, obstacle distances and plans.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

import matplotlib

from .config import TERM_BLUE, TERM_RESET


def list_runs(results_dir: Path) -> List[Path]:
    """Return run directories in ``results_dir``, oldest first."""
    if not results_dir.exists():
        raise FileNotFoundError(f"Results directory not found: {results_dir}")
    return sorted(d for d in results_dir.iterdir() if d.is_dir() and d.name.startswith("run_"))


def find_latest_run(results_dir: Path) -> Path:
    """Find the most recent run directory.

    Args:
        results_dir: Path to the results directory.

    Returns:
        Path to the most recent run directory.

    Raises:
        FileNotFoundError: If no run directories are found.
    """
    run_dirs = list_runs(results_dir)
    if not run_dirs:
        raise FileNotFoundError(f"No run directories found in {results_dir}")
    return run_dirs[-1]


def main() -> None:
    """Main entry point for the plotting script."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    parser = argparse.ArgumentParser(
        description="Visualize recorded goal mover runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Plot the most recent run
  python -m goal_mover.plot_results

  # Plot a specific run directory
  python -m goal_mover.plot_results results/run_20251114_184704

  # Save figures to the run directory without showing them
  python -m goal_mover.plot_results --save --no-show

  # List all available runs
  python -m goal_mover.plot_results --list
        """,
    )
    parser.add_argument(
        "run_dir",
        nargs="?",
        default=None,
        help="Run directory to plot. If not specified, plots the most recent run.",
    )
    parser.add_argument(
        "--results-dir",
        type=str,
        default="results",
        help="Path to the results directory (default: results)",
    )
    parser.add_argument(
        "--save", action="store_true", help="Save plots as PNG files in the run directory"
    )
    parser.add_argument(
        "--no-show",
        action="store_true",
        help="Do not display plots interactively (useful with --save)",
    )
    parser.add_argument("--list", action="store_true", help="List all available runs and exit")

    args = parser.parse_args()
    results_dir = Path(args.results_dir)

    if args.list:
        try:
            runs = list_runs(results_dir)
        except FileNotFoundError as e:
            logging.error(f"Error: {e}")
            sys.exit(1)
        logging.info("Available runs:")
        for i, run_dir in enumerate(runs, 1):
            logging.info(f"  {i}. {run_dir.name}")
        return

    if args.run_dir:
        run_dir = Path(args.run_dir)
        if not run_dir.is_dir():
            logging.error(f"Error: Run directory not found: {run_dir}")
            sys.exit(1)
    else:
        try:
            run_dir = find_latest_run(results_dir)
        except FileNotFoundError as e:
            logging.error(f"Error: {e}")
            sys.exit(1)
        logging.info(f"{TERM_BLUE}Plotting most recent run: {run_dir}{TERM_RESET}")

    if args.no_show:
        matplotlib.use("Agg")

    # Imported after the backend is chosen
    from .visualization import plot_run_summary

    try:
        plot_run_summary(run_dir=run_dir, save_plots=args.save, show_plots=not args.no_show)
    except FileNotFoundError as e:
        logging.error(f"Error: {e}")
        logging.info(f"Make sure {run_dir} contains commands.csv")
        sys.exit(1)
    except ValueError as e:
        logging.error(f"Error generating plots: {e}")
        sys.exit(1)

    if args.save:
        logging.info(f"{TERM_BLUE}✓ Saved plots to {run_dir}/{TERM_RESET}")


if __name__ == "__main__":
    main()
