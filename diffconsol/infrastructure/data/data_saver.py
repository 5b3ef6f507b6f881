"""
Saving of consolidated tables, genome tracks and run summaries.
"""

import os
from typing import Dict, Optional

import numpy as np
import pandas as pd

from diffconsol.infrastructure.logger import Logger

# itemRgb per region direction in BED tracks
DIRECTION_COLORS = {
    "up": "215,48,39",
    "down": "69,117,180",
    "mixed": "128,128,128",
}


class ResultTableSaver:
    """Responsible for writing result tables and tracks"""

    def __init__(self):
        self.logger = Logger()

    @staticmethod
    def _ensure_parent(file_path: str) -> None:
        parent = os.path.dirname(file_path)
        if parent:
            os.makedirs(parent, exist_ok=True)

    def save_table(
        self, table: pd.DataFrame, file_path: str, index: bool = True
    ) -> None:
        """
        Save a table as tab-delimited text.

        Args:
            table: Table to save
            file_path: Output file path
            index: Whether to write the index as the first column
        """
        try:
            self._ensure_parent(file_path)
            table.to_csv(file_path, sep="\t", index=index, float_format="%.6g")
            self.logger.log_save(file_path)

        except Exception as e:
            self.logger.log_error(e, f"Saving table to {file_path}")
            raise

    @staticmethod
    def bed_scores(fdr: pd.Series) -> np.ndarray:
        """BED score column: -10 * log10(FDR) clipped to [0, 1000]"""
        values = fdr.to_numpy(dtype=np.float64)
        with np.errstate(divide="ignore"):
            scores = -10 * np.log10(values)
        scores = np.nan_to_num(scores, nan=0.0, posinf=1000.0)
        return np.clip(scores, 0, 1000).astype(int)

    def regions_to_bed(self, regions: pd.DataFrame) -> pd.DataFrame:
        """
        Convert 1-based closed regions to BED9 rows.

        Args:
            regions: Table with region_id, chrom, start, end and optionally
                FDR and direction

        Returns:
            pd.DataFrame: BED9 columns with 0-based half-open coordinates
        """
        n = len(regions)
        start = regions["start"].to_numpy(dtype=np.int64) - 1
        end = regions["end"].to_numpy(dtype=np.int64)
        if "FDR" in regions.columns:
            scores = self.bed_scores(regions["FDR"])
        else:
            scores = np.zeros(n, dtype=int)
        if "direction" in regions.columns:
            colors = regions["direction"].map(DIRECTION_COLORS).fillna(
                DIRECTION_COLORS["mixed"]
            )
        else:
            colors = pd.Series([DIRECTION_COLORS["mixed"]] * n)

        bed = pd.DataFrame(
            {
                "chrom": regions["chrom"].astype(str).to_numpy(),
                "chromStart": start,
                "chromEnd": end,
                "name": [f"region_{r}" for r in regions["region_id"]],
                "score": scores,
                "strand": ["."] * n,
                "thickStart": start,
                "thickEnd": end,
                "itemRgb": colors.to_numpy(),
            }
        )
        return bed.sort_values(["chrom", "chromStart", "chromEnd"], kind="mergesort")

    def save_bed(
        self,
        regions: pd.DataFrame,
        file_path: str,
        track_name: Optional[str] = None,
    ) -> None:
        """
        Save regions as a BED9 track.

        Args:
            regions: Regions table
            file_path: Output .bed path
            track_name: Adds a UCSC track line with itemRgb enabled when given
        """
        try:
            self._ensure_parent(file_path)
            bed = self.regions_to_bed(regions)
            with open(file_path, "w") as handle:
                if track_name:
                    handle.write(
                        f'track name="{track_name}" description="{track_name}" '
                        'itemRgb="On"\n'
                    )
                bed.to_csv(handle, sep="\t", header=False, index=False)
            self.logger.log_save(file_path)

        except Exception as e:
            self.logger.log_error(e, f"Saving BED track to {file_path}")
            raise

    def save_summary(self, summary: Dict[str, object], file_path: str) -> None:
        """Save a run summary as 'key: value' lines"""
        try:
            self._ensure_parent(file_path)
            with open(file_path, "w") as handle:
                for key, value in summary.items():
                    handle.write(f"{key}: {value}\n")
            self.logger.log_save(file_path)

        except Exception as e:
            self.logger.log_error(e, f"Saving summary to {file_path}")
            raise
