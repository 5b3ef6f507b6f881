"""
Merging of genomic windows into regions.
"""

from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from diffconsol.domain.exceptions import ConsolidationError, MissingColumnError
from diffconsol.domain.models import WINDOW_REQUIRED_COLUMNS, WindowSet
from diffconsol.infrastructure.logger import Logger


class RegionMerger:
    """Single-linkage merging of windows with a gap tolerance and width cap"""

    def __init__(
        self, tol: int = 100, max_width: Optional[int] = 5000, by_sign: bool = False
    ):
        if tol < 0:
            raise ValueError(f"Merge tolerance must be non-negative, got {tol}")
        if max_width is not None and max_width <= 0:
            raise ValueError(f"Maximum width must be positive, got {max_width}")
        self.tol = tol
        self.max_width = max_width
        self.by_sign = by_sign
        self.logger = Logger()

    def pool_windows(self, window_sets: List[WindowSet]) -> pd.DataFrame:
        """
        Stack window sets into one table.

        Args:
            window_sets: One WindowSet per window-width run

        Returns:
            pd.DataFrame: All windows with a `window_set` column naming their run
        """
        if not window_sets:
            raise ConsolidationError("No window sets to merge")

        names = [ws.name for ws in window_sets]
        if len(set(names)) != len(names):
            raise ConsolidationError(f"Window set names must be unique: {names}")

        frames = []
        for window_set in window_sets:
            missing = set(WINDOW_REQUIRED_COLUMNS) - set(window_set.table.columns)
            if missing:
                raise MissingColumnError(window_set.name, missing)
            frame = window_set.table.reset_index(drop=True).copy()
            frame["window_set"] = window_set.name
            frames.append(frame)
            self.logger.log_table_shape(f"Windows '{window_set.name}'", frame.shape)

        pooled = pd.concat(frames, ignore_index=True)
        pooled["start"] = pooled["start"].astype(np.int64)
        pooled["end"] = pooled["end"].astype(np.int64)
        pooled["chrom"] = pooled["chrom"].astype(str)

        bad = pooled["end"] < pooled["start"]
        if bad.any():
            raise ConsolidationError(
                f"{int(bad.sum())} windows have end < start"
            )
        return pooled

    def merge(self, windows: pd.DataFrame) -> Tuple[pd.DataFrame, np.ndarray]:
        """
        Merge windows into regions.

        Windows are visited in (chrom, start, end) order. A window joins the
        current region when it lies on the same chromosome within `tol` bases
        of the region end, the grown region stays within `max_width`, and
        (with `by_sign`) its fold change has the same sign as the region.

        Args:
            windows: Table with chrom, start and end, plus logFC (or the sign
                column of regions merged earlier) when merging by sign

        Returns:
            Tuple[pd.DataFrame, np.ndarray]: Regions table (with a sign column
            when merging by sign) and, for every input row in order, the
            region_id it was assigned to
        """
        for column in ("chrom", "start", "end"):
            if column not in windows.columns:
                raise MissingColumnError("windows", [column])
        if self.by_sign and not {"logFC", "sign"} & set(windows.columns):
            raise MissingColumnError("windows", ["logFC"])

        n = len(windows)
        ids = np.zeros(n, dtype=np.int64)
        if n == 0:
            return self._empty_regions(), ids

        chroms = windows["chrom"].astype(str).to_numpy()
        starts = windows["start"].to_numpy(dtype=np.int64)
        ends = windows["end"].to_numpy(dtype=np.int64)
        if self.by_sign and "logFC" in windows.columns:
            signs = np.sign(windows["logFC"].to_numpy(dtype=np.float64))
        elif self.by_sign:
            # Regions merged by sign carry it forward for re-merging
            signs = windows["sign"].to_numpy(dtype=np.float64)
        else:
            signs = np.zeros(n)

        keys = pd.DataFrame({"chrom": chroms, "start": starts, "end": ends})
        order = keys.sort_values(["chrom", "start", "end"]).index.to_numpy()

        records = []
        region_id = 0
        cur_chrom, cur_start, cur_end, cur_sign, cur_count = None, 0, 0, 0.0, 0

        for position in order:
            chrom, start, end, sign = (
                chroms[position],
                starts[position],
                ends[position],
                signs[position],
            )
            joins = (
                region_id > 0
                and chrom == cur_chrom
                and start - cur_end - 1 <= self.tol
                and (
                    self.max_width is None
                    or max(cur_end, end) - cur_start + 1 <= self.max_width
                )
                and (not self.by_sign or sign == cur_sign)
            )

            if joins:
                cur_end = max(cur_end, end)
                cur_count += 1
            else:
                if region_id > 0:
                    records.append(
                        (region_id, cur_chrom, cur_start, cur_end, cur_count, cur_sign)
                    )
                region_id += 1
                cur_chrom, cur_start, cur_end, cur_sign, cur_count = (
                    chrom,
                    start,
                    end,
                    sign,
                    1,
                )
            ids[position] = region_id

        records.append((region_id, cur_chrom, cur_start, cur_end, cur_count, cur_sign))

        regions = pd.DataFrame(
            records,
            columns=["region_id", "chrom", "start", "end", "n_windows", "sign"],
        )
        regions["width"] = regions["end"] - regions["start"] + 1
        columns = ["region_id", "chrom", "start", "end", "width", "n_windows"]
        if self.by_sign:
            columns.append("sign")
        regions = regions[columns]

        self.logger.log_step(
            "Region merging",
            f"Merged {n} windows into {len(regions)} regions "
            f"(tol={self.tol}, max_width={self.max_width}, by_sign={self.by_sign})",
        )
        return regions, ids

    @staticmethod
    def region_weights(ids: np.ndarray, set_labels: np.ndarray) -> np.ndarray:
        """
        Weight each window by the inverse number of windows from its own run
        in its region, so that every run contributes equally to a region.

        Args:
            ids: Region assignment per window
            set_labels: Window-set label per window

        Returns:
            np.ndarray: Weight per window
        """
        frame = pd.DataFrame({"region_id": ids, "window_set": set_labels})
        counts = frame.groupby(["region_id", "window_set"])["region_id"].transform(
            "size"
        )
        return 1.0 / counts.to_numpy(dtype=np.float64)

    @staticmethod
    def _empty_regions() -> pd.DataFrame:
        return pd.DataFrame(
            {
                "region_id": pd.Series(dtype=np.int64),
                "chrom": pd.Series(dtype=object),
                "start": pd.Series(dtype=np.int64),
                "end": pd.Series(dtype=np.int64),
                "width": pd.Series(dtype=np.int64),
                "n_windows": pd.Series(dtype=np.int64),
            }
        )
