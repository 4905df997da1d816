"""Shared plotting utilities and styles for goal mover visualizations.

This module provides:
- Color scheme and colormap
- CSV data loading functions
- Common plot styling functions

All visualization modules should import from this module to ensure consistency.
"""

import csv
from pathlib import Path
from typing import Dict, List, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.colors import LinearSegmentedColormap

from .config import (
    PLOT_BLUE,
    PLOT_CREAM,
    PLOT_DARK_BLUE,
    PLOT_ORANGE,
    PLOT_TAUPE,
    PLOT_YELLOW,
)

# ============================================================================
# Color Scheme and Colormaps
# ============================================================================

__all__ = [
    "PLOT_ORANGE",
    "PLOT_BLUE",
    "PLOT_CREAM",
    "PLOT_TAUPE",
    "PLOT_YELLOW",
    "PLOT_DARK_BLUE",
    "PLOT_CMAP",
    "load_csv_data",
    "load_csv_to_dict",
    "style_axis",
    "add_legend",
    "create_figure",
    "save_figure",
]

PLOT_CMAP = LinearSegmentedColormap.from_list("goal_mover", [PLOT_ORANGE, PLOT_BLUE])
"""Colormap transitioning from orange to blue, used for time gradients."""


# ============================================================================
# CSV Data Loading
# ============================================================================


def load_csv_data(filepath: Path) -> Tuple[List[str], List[List[str]]]:
    """Load CSV file and return headers and data rows.

    Args:
        filepath: Path to the CSV file.

    Returns:
        Tuple containing (headers, data_rows).

    Raises:
        FileNotFoundError: If the CSV file does not exist.
    """
    if not filepath.exists():
        raise FileNotFoundError(f"CSV file not found: {filepath}")

    with open(filepath, newline="") as f:
        reader = csv.reader(f)
        headers = next(reader)
        data_rows = list(reader)

    return headers, data_rows


def load_csv_to_dict(csv_path: Path) -> Dict[str, np.ndarray]:
    """Load CSV file into dictionary of numpy arrays.

    Automatically converts numeric values to floats. Non-numeric values
    (frame names, status strings, empty cells) become NaN; ``inf`` stays
    infinite.

    Args:
        csv_path: Path to CSV file.

    Returns:
        Dictionary mapping column names to numpy arrays.

    Raises:
        FileNotFoundError: If the CSV file does not exist.

    Example:
        >>> data = load_csv_to_dict(Path("commands.csv"))
        >>> print(data.keys())
        dict_keys(['timestamp', 'angular', 'linear'])
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        data: Dict[str, List[float]] = {name: [] for name in reader.fieldnames or []}
        for row in reader:
            for key, value in row.items():
                try:
                    data[key].append(float(value))
                except (ValueError, TypeError):
                    data[key].append(np.nan)

    return {key: np.array(values) for key, values in data.items()}


# ============================================================================
# Plot Styling Functions
# ============================================================================


def style_axis(
    ax: Axes,
    title: str = "",
    xlabel: str = "",
    ylabel: str = "",
    grid: bool = True,
    dark_mode: bool = True,
) -> None:
    """Apply consistent styling to a matplotlib axis.

    Args:
        ax: Matplotlib axis to style.
        title: Plot title (optional).
        xlabel: X-axis label (optional).
        ylabel: Y-axis label (optional).
        grid: Whether to show grid lines (default: True).
        dark_mode: Whether to use dark mode styling (default: True).
    """
    text_color = PLOT_CREAM if dark_mode else None

    if title:
        ax.set_title(title, fontweight="bold", color=text_color)
    if xlabel:
        ax.set_xlabel(xlabel, color=text_color)
    if ylabel:
        ax.set_ylabel(ylabel, color=text_color)

    if grid:
        ax.grid(True, alpha=0.3, linestyle="--", linewidth=0.5)

    if dark_mode:
        ax.set_facecolor(PLOT_DARK_BLUE)
        ax.tick_params(colors=PLOT_CREAM, which="both")
        for spine in ax.spines.values():
            spine.set_edgecolor(PLOT_TAUPE)


def add_legend(ax: Axes, loc: str = "best", dark_mode: bool = True, **kwargs) -> None:
    """Add a legend with the shared styling.

    Args:
        ax: Matplotlib axis to add legend to.
        loc: Legend location (default: "best").
        dark_mode: Whether to use dark mode styling (default: True).
        **kwargs: Additional keyword arguments passed to ax.legend().
    """
    legend_kwargs = {
        "loc": loc,
        "framealpha": 0.9,
        "edgecolor": PLOT_TAUPE,
    }

    if dark_mode:
        legend_kwargs["facecolor"] = PLOT_DARK_BLUE
        legend_kwargs["labelcolor"] = PLOT_CREAM

    # User kwargs take precedence
    legend_kwargs.update(kwargs)

    ax.legend(**legend_kwargs)


# ============================================================================
# Figure Creation Helpers
# ============================================================================


def create_figure(
    nrows: int = 1,
    figsize: Tuple[float, float] = (12, 8),
    dark_mode: bool = True,
    title: str = "",
) -> Tuple[plt.Figure, np.ndarray]:
    """Create a figure with ``nrows`` stacked axes sharing the time axis.

    Args:
        nrows: Number of subplot rows.
        figsize: Figure size in inches (width, height).
        dark_mode: Whether to use dark mode styling (default: True).
        title: Optional main figure title.

    Returns:
        Tuple of (figure, 1-D array of axes).
    """
    facecolor = PLOT_DARK_BLUE if dark_mode else None
    fig, axes = plt.subplots(nrows, 1, figsize=figsize, facecolor=facecolor, sharex=True, squeeze=False)
    if title:
        fig.suptitle(title, fontsize=14, fontweight="bold", color=PLOT_CREAM if dark_mode else None)
    return fig, axes[:, 0]


def save_figure(
    fig: plt.Figure, filepath: Path, dpi: int = 150, bbox_inches: str = "tight"
) -> None:
    """Save figure with consistent settings.

    Args:
        fig: Matplotlib figure to save.
        filepath: Path where to save the figure.
        dpi: Resolution in dots per inch (default: 150).
        bbox_inches: Bounding box setting (default: "tight").
    """
    fig.savefig(filepath, dpi=dpi, bbox_inches=bbox_inches, facecolor=fig.get_facecolor())
    print(f"Saved figure to {filepath}")
