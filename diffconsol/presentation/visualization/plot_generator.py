"""
Visualization services for the consolidation pipeline.
"""

import os
from typing import List, Optional

import matplotlib

matplotlib.use("Agg")  # Use non-GUI backend for headless environments
matplotlib.rcParams["svg.fonttype"] = "none"  # Keep text editable in SVGs

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
import upsetplot as up
from adjustText import adjust_text

from diffconsol.infrastructure.logger import Logger

DIRECTION_PALETTE = {
    "up": "#d73027",
    "down": "#4575b4",
    "mixed": "#808080",
    "inconsistent": "#808080",
}


class PlotGenerator:
    """Figures for consolidated tables, regions and cross-platform overlaps"""

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger if logger is not None else Logger()

    def _save(self, fig, output_path: str) -> None:
        parent = os.path.dirname(output_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        for ext in ["pdf", "svg", "png"]:
            fig.savefig(output_path.replace(".png", f".{ext}"), bbox_inches="tight")
        plt.close(fig)
        self.logger.log_save(output_path)

    def create_volcano_plot(
        self,
        logfc: pd.Series,
        pvalues: pd.Series,
        significant: pd.Series,
        output_path: str,
        labels: Optional[pd.Series] = None,
        n_labels: int = 15,
        title: str = "Volcano Plot",
    ) -> None:
        """
        Volcano plot of fold change against -log10 p-value.

        Args:
            logfc: Fold change per feature
            pvalues: P-value per feature
            significant: Significance flag per feature
            output_path: Output .png path (pdf and svg written alongside)
            labels: Text label per feature; the most significant are annotated
            n_labels: Number of labelled features
            title: Plot title
        """
        x = logfc.to_numpy(dtype=np.float64)
        y = -np.log10(np.clip(pvalues.to_numpy(dtype=np.float64), 1e-300, 1))
        sig = significant.to_numpy(dtype=bool)

        colors = np.where(
            sig & (x > 0),
            DIRECTION_PALETTE["up"],
            np.where(sig & (x < 0), DIRECTION_PALETTE["down"], "lightgray"),
        )

        fig, ax = plt.subplots(figsize=(8, 7))
        ax.scatter(x, y, c=colors, s=8, linewidths=0)
        ax.axvline(0, color="black", linewidth=0.5)
        ax.set_xlabel("log2 fold change")
        ax.set_ylabel("-log10 p-value")
        ax.set_title(title.replace("_", " "))

        if labels is not None and sig.any() and n_labels > 0:
            order = np.argsort(-y[sig], kind="mergesort")[:n_labels]
            label_values = labels.to_numpy()[sig]
            texts = [
                ax.text(x[sig][i], y[sig][i], str(label_values[i]), fontsize=8)
                for i in order
            ]
            adjust_text(texts, ax=ax, arrowprops=dict(arrowstyle="-", color="gray"))

        self._save(fig, output_path)

    def create_logfc_heatmap(
        self,
        table: pd.DataFrame,
        contrast_names: List[str],
        output_path: str,
        top_n: int = 50,
        title: str = "Top features",
    ) -> None:
        """
        Heatmap of per-contrast fold changes of the most significant features.

        Args:
            table: Consolidated table with <contrast>.logFC columns, sorted by PValue
            contrast_names: Contrasts to show as columns
            output_path: Output .png path
            top_n: Number of features shown
            title: Plot title
        """
        columns = [f"{name}.logFC" for name in contrast_names]
        top = table.head(top_n)
        if top.empty:
            self.logger.log_warning("No features for the fold-change heatmap")
            return

        data = top[columns].copy()
        data.columns = contrast_names
        if "symbol" in top.columns:
            data.index = top["symbol"].fillna(pd.Series(top.index, index=top.index))

        limit = float(np.nanmax(np.abs(data.to_numpy()))) or 1.0
        fig, ax = plt.subplots(figsize=(2 + 1.2 * len(columns), 2 + 0.25 * len(data)))
        sns.heatmap(
            data,
            cmap="RdBu_r",
            center=0,
            vmin=-limit,
            vmax=limit,
            cbar_kws={"label": "log2 fold change"},
            ax=ax,
        )
        ax.set_title(title.replace("_", " "))
        self._save(fig, output_path)

    def create_region_summary_plot(
        self, regions: pd.DataFrame, output_path: str, title: str = "Regions"
    ) -> None:
        """Bar chart of significant regions per direction and histogram of widths"""
        fig, axes = plt.subplots(1, 2, figsize=(11, 4.5))

        significant = regions[regions["significant"]]
        counts = (
            significant["direction"]
            .value_counts()
            .reindex(["up", "down", "mixed"], fill_value=0)
        )
        axes[0].bar(
            counts.index,
            counts.to_numpy(),
            color=[DIRECTION_PALETTE[d] for d in counts.index],
        )
        axes[0].set_ylabel("Significant regions")
        axes[0].set_title("Direction")

        axes[1].hist(regions["width"].to_numpy(), bins=50, color="gray")
        axes[1].set_xlabel("Region width (bp)")
        axes[1].set_ylabel("Regions")
        axes[1].set_title("Width")

        fig.suptitle(title.replace("_", " "))
        fig.tight_layout()
        self._save(fig, output_path)

    def create_upset_plot(
        self, membership: pd.DataFrame, output_path: str, title: str = "Upset Plot"
    ) -> None:
        """
        UpSet plot of the overlaps between significant sets.

        Args:
            membership: Boolean feature x dataset table
            output_path: Output .png path
            title: Plot title
        """
        if membership.shape[1] < 2 or not membership.to_numpy().any():
            self.logger.log_warning("Not enough significant sets for an upset plot")
            return

        data = up.from_indicators(list(membership.columns), data=membership)
        fig = plt.figure(figsize=(10, 6))
        up.UpSet(
            data, subset_size="count", sort_by="cardinality", show_counts=True
        ).plot(fig=fig)
        fig.suptitle(title.replace("_", " "))
        self._save(fig, output_path)
