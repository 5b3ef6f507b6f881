"""
Aggregation of window-level tests into region-level statistics.
"""

from typing import Dict, List

import numpy as np
import pandas as pd

from diffconsol.domain.exceptions import ConsolidationError
from diffconsol.domain.models import RegionResult
from diffconsol.domain.services.multiple_testing import (
    benjamini_hochberg,
    empirical_fdr,
    holm_min,
    one_sided_pvalues,
    weighted_simes,
)
from diffconsol.infrastructure.logger import Logger

METHODS = ("simes", "empirical", "best")


def _direction_of(logfc: np.ndarray) -> str:
    if np.all(logfc > 0):
        return "up"
    if np.all(logfc < 0):
        return "down"
    return "mixed"


class RegionCombiner:
    """Region-level p-values, FDR and direction calls"""

    def __init__(
        self,
        alpha: float = 0.05,
        desired_direction: str = "up",
        fc_threshold: float = 0.05,
    ):
        if desired_direction not in ("up", "down"):
            raise ValueError(
                f"Desired direction must be 'up' or 'down', got '{desired_direction}'"
            )
        self.alpha = alpha
        self.desired_direction = desired_direction
        self.fc_threshold = fc_threshold
        self.logger = Logger()

    @property
    def opposite_direction(self) -> str:
        return "down" if self.desired_direction == "up" else "up"

    def _groups(self, ids: np.ndarray) -> Dict[int, np.ndarray]:
        return pd.Series(np.arange(len(ids))).groupby(ids).indices

    def _direction_counts(
        self, logfc: np.ndarray, window_fdr: np.ndarray, members: np.ndarray
    ) -> Dict[str, int]:
        called = window_fdr[members] <= self.fc_threshold
        return {
            "n_up": int(np.sum(called & (logfc[members] > 0))),
            "n_down": int(np.sum(called & (logfc[members] < 0))),
        }

    def validate_window_pvalues(self, windows: pd.DataFrame) -> pd.DataFrame:
        """
        Reject window p-values outside [0, 1] and treat missing ones as untested.

        Args:
            windows: Window table with PValue

        Returns:
            pd.DataFrame: Copy of the windows with missing p-values set to 1
        """
        pvalues = windows["PValue"].to_numpy(dtype=np.float64)
        if np.any((pvalues < 0) | (pvalues > 1)):
            raise ConsolidationError("Window table has p-values outside [0, 1]")

        windows = windows.copy()
        n_untested = int(np.isnan(pvalues).sum())
        if n_untested:
            self.logger.log_warning(
                f"{n_untested} missing window p-values treated as untested (p = 1)"
            )
            windows["PValue"] = np.where(np.isnan(pvalues), 1.0, pvalues)
        return windows

    def combine_tests(
        self, windows: pd.DataFrame, ids: np.ndarray, weights: np.ndarray
    ) -> pd.DataFrame:
        """
        Weighted Simes p-value per region with a BH-adjusted FDR.

        Args:
            windows: Window table with logFC and PValue
            ids: Region assignment per window
            weights: Weight per window

        Returns:
            pd.DataFrame: One row per region_id
        """
        logfc = windows["logFC"].to_numpy(dtype=np.float64)
        pvalues = windows["PValue"].to_numpy(dtype=np.float64)
        window_fdr = benjamini_hochberg(pvalues)

        rows: List[dict] = []
        for region_id, members in self._groups(ids).items():
            combined, contributors = weighted_simes(pvalues[members], weights[members])
            contributing_fc = logfc[members][contributors]
            rows.append(
                {
                    "region_id": region_id,
                    **self._direction_counts(logfc, window_fdr, members),
                    "direction": _direction_of(contributing_fc),
                    "rep_logFC": float(contributing_fc[0]),
                    "PValue": combined,
                }
            )

        stats = pd.DataFrame(rows)
        stats["FDR"] = benjamini_hochberg(stats["PValue"].to_numpy())
        return stats

    def empirical_fdr(
        self, windows: pd.DataFrame, ids: np.ndarray, weights: np.ndarray
    ) -> pd.DataFrame:
        """
        Region p-values in the desired direction with an empirical FDR.

        Window p-values are split into one-sided tests for the desired and the
        opposite direction and each is combined per region with weighted Simes.
        The opposite direction serves as the null: the FDR at a threshold is
        the number of regions passing it in the wrong direction over the
        number passing it in the right direction.

        Args:
            windows: Window table with logFC and PValue
            ids: Region assignment per window
            weights: Weight per window

        Returns:
            pd.DataFrame: One row per region_id
        """
        logfc = windows["logFC"].to_numpy(dtype=np.float64)
        pvalues = windows["PValue"].to_numpy(dtype=np.float64)
        window_fdr = benjamini_hochberg(pvalues)
        right = one_sided_pvalues(logfc, pvalues, self.desired_direction)
        wrong = one_sided_pvalues(logfc, pvalues, self.opposite_direction)

        rows: List[dict] = []
        for region_id, members in self._groups(ids).items():
            w = weights[members]
            p_right, right_contributors = weighted_simes(right[members], w)
            p_wrong, _ = weighted_simes(wrong[members], w)
            _, contributors = weighted_simes(pvalues[members], w)
            rows.append(
                {
                    "region_id": region_id,
                    **self._direction_counts(logfc, window_fdr, members),
                    "direction": _direction_of(logfc[members][contributors]),
                    "rep_logFC": float(logfc[members][right_contributors[0]]),
                    "PValue": p_right,
                    "PValue.wrong": p_wrong,
                }
            )

        stats = pd.DataFrame(rows)
        stats["FDR"] = empirical_fdr(
            stats["PValue"].to_numpy(), stats["PValue.wrong"].to_numpy()
        )
        self.logger.log_step(
            "Empirical FDR",
            f"Calibrated {self.desired_direction} against "
            f"{self.opposite_direction} calls over {len(stats)} regions",
        )
        return stats

    def best_test(
        self, windows: pd.DataFrame, ids: np.ndarray, weights: np.ndarray
    ) -> pd.DataFrame:
        """
        Represent each region by its most significant window.

        The best window's p-value is Holm-adjusted for the number (weight) of
        windows in the region before the BH correction across regions.

        Args:
            windows: Window table with start, end, logFC and PValue
            ids: Region assignment per window
            weights: Weight per window

        Returns:
            pd.DataFrame: One row per region_id
        """
        logfc = windows["logFC"].to_numpy(dtype=np.float64)
        pvalues = windows["PValue"].to_numpy(dtype=np.float64)
        starts = windows["start"].to_numpy()
        ends = windows["end"].to_numpy()
        window_fdr = benjamini_hochberg(pvalues)

        rows: List[dict] = []
        for region_id, members in self._groups(ids).items():
            adjusted, best = holm_min(pvalues[members], weights[members])
            index = members[best]
            rows.append(
                {
                    "region_id": region_id,
                    **self._direction_counts(logfc, window_fdr, members),
                    "direction": _direction_of(logfc[[index]]),
                    "best_start": int(starts[index]),
                    "best_end": int(ends[index]),
                    "best_logFC": float(logfc[index]),
                    "PValue": adjusted,
                }
            )

        stats = pd.DataFrame(rows)
        stats["FDR"] = benjamini_hochberg(stats["PValue"].to_numpy())
        return stats

    def aggregate(
        self,
        method: str,
        regions: pd.DataFrame,
        windows: pd.DataFrame,
        ids: np.ndarray,
        weights: np.ndarray,
    ) -> RegionResult:
        """
        Attach region-level statistics to merged regions.

        Args:
            method: "simes", "empirical" or "best"
            regions: Regions table from RegionMerger.merge
            windows: Pooled window table
            ids: Region assignment per window
            weights: Weight per window

        Returns:
            RegionResult: Regions sorted by PValue, and the annotated windows
        """
        if method not in METHODS:
            raise ConsolidationError(
                f"Unknown region method '{method}', expected one of {METHODS}"
            )
        ids = np.asarray(ids)
        weights = np.asarray(weights, dtype=np.float64)
        if len(ids) != len(windows) or len(weights) != len(windows):
            raise ConsolidationError(
                "Region assignments and weights must align with the windows"
            )

        try:
            if len(windows) == 0:
                raise ConsolidationError("No windows to aggregate")
            windows = self.validate_window_pvalues(windows)

            if method == "simes":
                stats = self.combine_tests(windows, ids, weights)
            elif method == "empirical":
                stats = self.empirical_fdr(windows, ids, weights)
            else:
                stats = self.best_test(windows, ids, weights)

            table = regions.merge(stats, on="region_id", how="left", validate="1:1")
            table["significant"] = table["FDR"] <= self.alpha
            table = table.sort_values("PValue", kind="mergesort").reset_index(
                drop=True
            )

            annotated = windows.copy()
            annotated["region_id"] = ids
            annotated["weight"] = weights
            annotated["window_FDR"] = benjamini_hochberg(
                windows["PValue"].to_numpy(dtype=np.float64)
            )

            significant = table[table["significant"]]
            result = RegionResult(
                regions=table,
                windows=annotated,
                method=method,
                alpha=self.alpha,
                n_significant=len(significant),
                n_up=int((significant["direction"] == "up").sum()),
                n_down=int((significant["direction"] == "down").sum()),
                n_mixed=int((significant["direction"] == "mixed").sum()),
            )

            self.logger.log_threshold("FDR threshold", self.alpha)
            self.logger.log_step(
                "Region aggregation",
                f"{method}: {result.n_significant} significant regions "
                f"({result.n_up} up, {result.n_down} down, {result.n_mixed} mixed)",
            )
            return result

        except Exception as e:
            self.logger.log_error(e, f"Region aggregation ({method})")
            raise
