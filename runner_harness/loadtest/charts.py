from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

LOGGER = logging.getLogger("runner_harness.load.charts")

sns.set_style("whitegrid")
plt.rcParams["savefig.dpi"] = 150
plt.rcParams["axes.titlesize"] = 13
plt.rcParams["legend.fontsize"] = 9

STATUS_COLORS = {
    "success": "#2E86AB",
    "failed": "#C73E1D",
    "canceled": "#F18F01",
}

LANGUAGE_NAMES = {
    "python": "Python",
    "go": "Go",
    "cpp": "C++",
    "java": "Java",
    "javascript": "JavaScript",
}


def render_latency_chart(df: pd.DataFrame, chart_path: Path | str) -> Path | None:
    """Render a boxplot of job latency by language, coloured by terminal status."""
    chart_path = Path(chart_path)
    if df.empty or "total_duration_ms" not in df.columns:
        LOGGER.warning("No latency data available for latency chart")
        return None

    df = df[df["total_duration_ms"].notna()].copy()
    df["language_display"] = df["language"].map(lambda x: LANGUAGE_NAMES.get(x, str(x).title()))
    language_order = sorted(df["language_display"].unique())
    status_order = [status for status in STATUS_COLORS if status in set(df["status"])]

    fig, ax = plt.subplots(figsize=(max(6, 2 * len(language_order) + 2), 6))
    sns.boxplot(
        data=df,
        x="language_display",
        y="total_duration_ms",
        hue="status",
        order=language_order,
        hue_order=status_order,
        palette=[STATUS_COLORS[status] for status in status_order],
        ax=ax,
        linewidth=1.5,
        width=0.7,
    )

    mean_ms = float(np.mean(df["total_duration_ms"].astype(float)))
    ax.axhline(mean_ms, color="#555555", linestyle="--", linewidth=1.0, label=f"mean {mean_ms:.0f} ms")
    ax.set_title(f"Job Latency by Language ({len(df)} jobs)", fontweight="bold", pad=15)
    ax.set_xlabel("Language", fontweight="semibold", labelpad=10)
    ax.set_ylabel("Submit to terminal status (ms)", fontweight="semibold", labelpad=10)
    ax.set_ylim(bottom=0)
    ax.legend(loc="upper right", frameon=True, title="Status")

    chart_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white", edgecolor="none")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path


__all__ = ["render_latency_chart"]
