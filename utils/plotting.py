from __future__ import annotations

from pathlib import Path
from typing import Optional

HAS_MPL = False
plt = None  # type: ignore[assignment]

try:  # pragma: no cover - optional dependency
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    HAS_MPL = True
except ImportError:  # pragma: no cover - optional dependency missing
    plt = None  # type: ignore[assignment]


def ensure_out_dir(pathlike) -> Path:
    """Ensure the given directory exists and return it as a Path."""
    path = Path(pathlike)
    path.mkdir(parents=True, exist_ok=True)
    return path


def dashboard(rows: int, cols: int, title: str):
    """Create a titled grid of subplots sized for a dashboard, or ``(None, None)``."""
    if not HAS_MPL:
        return None, None
    fig, axes = plt.subplots(rows, cols, figsize=(cols * 5.5, rows * 3.5), squeeze=False)
    fig.suptitle(title, fontsize=15)
    return fig, axes


def style_axes(ax, title: str, xlabel: Optional[str] = None, ylabel: Optional[str] = None):
    """Apply consistent styling to a matplotlib Axes object."""
    ax.set_title(title)
    if xlabel:
        ax.set_xlabel(xlabel)
    if ylabel:
        ax.set_ylabel(ylabel)
    ax.grid(True, alpha=0.3)
    return ax


def save(fig, path) -> Path:
    """Save *fig* to *path* (parents created) and close it; a no-op without matplotlib."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if fig is not None:
        fig.tight_layout(rect=(0, 0.03, 1, 0.95))
        fig.savefig(str(target), bbox_inches="tight")
        plt.close(fig)
    return target


__all__ = [
    "HAS_MPL",
    "ensure_out_dir",
    "dashboard",
    "style_axes",
    "save",
]
