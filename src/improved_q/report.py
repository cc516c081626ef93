"""Console and file reports for experiment results."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import matplotlib
import numpy as np
import pandas as pd

# Sem janelas de gráfico: os relatórios só salvam PNG.
matplotlib.use("Agg", force=True)
from matplotlib import pyplot as plt  # noqa: E402


def format_q_table(q_table: np.ndarray) -> str:
    """Render the Q-table with one row per action and one column per state.

    Values are truncated towards zero, e.g.::

            |  s0   s1 ...
        ---------------
          a0|   0    4 ...
    """

    state_count, action_count = q_table.shape
    lines = [" " * 4 + "|" + "".join(f"{'s' + str(state):>4} " for state in range(state_count))]
    lines.append("-" * (5 * state_count))
    for action in range(action_count):
        cells = "".join(f"{int(q_table[state, action]):>4} " for state in range(state_count))
        lines.append(f"{'a' + str(action):>4}|" + cells)
    return "\n".join(lines)


def format_rate_table(rates: pd.DataFrame) -> str:
    """One line per episode with the reward rate of every trial, comma-separated."""

    return "\n".join(", ".join(str(float(value)) for value in row) for row in rates.to_numpy())


def summarize_rates(rates: pd.DataFrame) -> pd.DataFrame:
    """Mean, standard deviation and range of the reward rate per episode."""

    summary = pd.DataFrame(
        {
            "mean": rates.mean(axis=1),
            "std": rates.std(axis=1, ddof=0),
            "min": rates.min(axis=1),
            "max": rates.max(axis=1),
        }
    )
    summary.index.name = rates.index.name
    return summary


def _timestamped(outdir: str | Path, prefix: str, suffix: str, ts: Optional[str]) -> Path:
    out = Path(outdir)
    out.mkdir(parents=True, exist_ok=True)
    ts = ts or datetime.now().strftime("%Y%m%d_%H%M%S")
    return out / f"{prefix}_{ts}{suffix}"


def save_rates_csv(rates: pd.DataFrame, outdir: str | Path = "reports", ts: Optional[str] = None) -> Path:
    """Write the raw rate matrix to ``outdir`` and return the file path."""

    path = _timestamped(outdir, "improved_q_rates", ".csv", ts)
    rates.to_csv(path)
    return path


def plot_learning_curve(rates: pd.DataFrame, outdir: str | Path = "reports", ts: Optional[str] = None) -> Path:
    """Plot the mean reward rate per episode with a min/max band."""

    summary = summarize_rates(rates)
    episodes = np.arange(1, len(summary) + 1)

    fig, ax = plt.subplots(figsize=(12, 6))
    ax.plot(episodes, summary["mean"], label="Média entre trials", color="blue")
    ax.fill_between(episodes, summary["min"], summary["max"], color="blue", alpha=0.15, label="Min / Max")
    ax.set_title(f"Recompensa média por ação ({rates.shape[1]} trials)")
    ax.set_xlabel("Episódio")
    ax.set_ylabel("Recompensa / ação")
    ax.grid(True)
    ax.legend()
    fig.tight_layout()

    path = _timestamped(Path(outdir) / "charts", "improved_q_learning_curve", ".png", ts)
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path
