"""
Library-size normalization and filtering of raw count matrices.
"""

import numpy as np
import pandas as pd

from diffconsol.infrastructure.logger import Logger


class CountProcessor:
    """Normalization of feature x library count matrices"""

    def __init__(self, prior_count: float = 2.0):
        self.prior_count = prior_count
        self.logger = Logger()

    def validate_counts(self, counts: pd.DataFrame) -> pd.DataFrame:
        """
        Check that a count matrix is numeric and non-negative.

        Args:
            counts: Features in rows, libraries in columns

        Returns:
            pd.DataFrame: Counts as float64
        """
        try:
            values = counts.apply(pd.to_numeric, errors="raise").astype(np.float64)
        except (ValueError, TypeError) as e:
            self.logger.log_error(e, "Count validation")
            raise ValueError("Count matrix contains non-numeric values") from e

        if values.isna().to_numpy().any():
            raise ValueError("Count matrix contains missing values")
        if (values.to_numpy() < 0).any():
            raise ValueError("Count matrix contains negative counts")

        self.logger.log_table_shape("Count matrix", values.shape)
        return values

    def library_sizes(self, counts: pd.DataFrame) -> pd.Series:
        """Total counts per library"""
        sizes = counts.sum(axis=0)
        if (sizes <= 0).any():
            empty = list(sizes.index[sizes <= 0])
            raise ValueError(f"Libraries with no counts: {empty}")
        return sizes

    def log_cpm(self, counts: pd.DataFrame) -> pd.DataFrame:
        """
        log2 counts per million with a library-size scaled prior count.

        The prior count is scaled by each library size relative to the mean
        library size and the library size is augmented by twice the scaled
        prior, as in edgeR's cpm(log=TRUE).
        """
        counts = self.validate_counts(counts)
        sizes = self.library_sizes(counts)
        scaled_prior = self.prior_count * sizes / sizes.mean()
        augmented = sizes + 2 * scaled_prior
        return np.log2((counts + scaled_prior) / augmented * 1e6)

    def average_log_cpm(self, counts: pd.DataFrame) -> pd.Series:
        """Average log2-CPM per feature, used as the AveExpr annotation"""
        return self.log_cpm(counts).mean(axis=1).rename("AveExpr")

    def filter_by_expression(
        self, counts: pd.DataFrame, min_count: float = 10, min_samples: int = 2
    ) -> pd.DataFrame:
        """
        Keep features with at least `min_count` reads in `min_samples` libraries.

        Args:
            counts: Raw counts
            min_count: Minimum count per library
            min_samples: Minimum number of libraries meeting `min_count`

        Returns:
            pd.DataFrame: Filtered counts
        """
        counts = self.validate_counts(counts)
        keep = (counts >= min_count).sum(axis=1) >= min_samples
        filtered = counts.loc[keep]

        self.logger.log_step(
            "Expression filter",
            f"Kept {int(keep.sum())} of {len(counts)} features "
            f"(min_count={min_count}, min_samples={min_samples})",
        )
        return filtered
