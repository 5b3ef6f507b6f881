"""
Intersection-union consolidation of differential result tables.
"""

from typing import List

import numpy as np
import pandas as pd

from diffconsol.domain.exceptions import (
    ConsolidationError,
    FeatureUniverseMismatchError,
    MissingColumnError,
)
from diffconsol.domain.models import (
    ANNOTATION_COLUMNS,
    CONTRAST_REQUIRED_COLUMNS,
    ContrastTable,
    IUTResult,
)
from diffconsol.domain.services.multiple_testing import benjamini_hochberg
from diffconsol.infrastructure.logger import Logger


class IntersectionUnionConsolidator:
    """Combine several contrasts into one call per feature"""

    def __init__(self, alpha: float = 0.05):
        self.alpha = alpha
        self.logger = Logger()

    def validate_tables(self, tables: List[ContrastTable]) -> pd.Index:
        """
        Check that the tables can be consolidated.

        Args:
            tables: Contrast tables to consolidate

        Returns:
            pd.Index: Common feature IDs in sorted order

        Raises:
            ConsolidationError: Fewer than two tables or duplicated names
            MissingColumnError: A table lacks logFC or PValue
            FeatureUniverseMismatchError: Feature IDs differ or repeat
        """
        if len(tables) < 2:
            raise ConsolidationError(
                f"Intersection-union needs at least two contrasts, got {len(tables)}"
            )

        names = [t.name for t in tables]
        if len(set(names)) != len(names):
            raise ConsolidationError(f"Contrast names must be unique: {names}")

        for contrast in tables:
            missing = set(CONTRAST_REQUIRED_COLUMNS) - set(contrast.table.columns)
            if missing:
                raise MissingColumnError(contrast.name, missing)

            duplicated = contrast.table.index[contrast.table.index.duplicated()]
            if len(duplicated) > 0:
                raise FeatureUniverseMismatchError(
                    contrast.name, duplicated=duplicated.unique()
                )

            pvalues = contrast.table["PValue"].to_numpy(dtype=np.float64)
            if np.any((pvalues < 0) | (pvalues > 1)):
                raise ConsolidationError(
                    f"Table '{contrast.name}' has p-values outside [0, 1]"
                )

        reference = tables[0]
        for contrast in tables[1:]:
            missing = reference.features - contrast.features
            extra = contrast.features - reference.features
            if missing or extra:
                raise FeatureUniverseMismatchError(contrast.name, missing, extra)

        return reference.table.index.sort_values()

    def consolidate(self, tables: List[ContrastTable]) -> IUTResult:
        """
        Intersection-union test across contrasts.

        The combined p-value of a feature is the largest of its per-contrast
        p-values, and is set to 1 unless every contrast changes the feature
        in the same direction.

        Args:
            tables: Contrast tables sharing one feature universe

        Returns:
            IUTResult: Consolidated table sorted by combined p-value
        """
        try:
            features = self.validate_tables(tables)
            self.logger.log_step(
                "Intersection-union",
                f"Consolidating {len(tables)} contrasts over {len(features)} features",
            )

            aligned = [t.table.loc[features] for t in tables]

            pvalues = np.column_stack(
                [a["PValue"].to_numpy(dtype=np.float64) for a in aligned]
            )
            n_untested = int(np.isnan(pvalues).sum())
            if n_untested:
                self.logger.log_warning(
                    f"{n_untested} missing p-values treated as untested (p = 1)"
                )
                pvalues = np.where(np.isnan(pvalues), 1.0, pvalues)

            logfc = np.column_stack(
                [a["logFC"].to_numpy(dtype=np.float64) for a in aligned]
            )
            all_up = np.all(logfc > 0, axis=1)
            all_down = np.all(logfc < 0, axis=1)
            consistent = all_up | all_down

            combined = pvalues.max(axis=1)
            combined[~consistent] = 1.0

            result = pd.DataFrame(index=features)
            for column in ANNOTATION_COLUMNS:
                source = next((a for a in aligned if column in a.columns), None)
                if source is not None:
                    result[column] = source[column].to_numpy()

            for contrast, table in zip(tables, aligned):
                result[f"{contrast.name}.logFC"] = table["logFC"].to_numpy()
                result[f"{contrast.name}.PValue"] = table["PValue"].to_numpy()
                if "FDR" in table.columns:
                    result[f"{contrast.name}.FDR"] = table["FDR"].to_numpy()

            result["PValue"] = combined
            result["FDR"] = benjamini_hochberg(combined)
            result["direction"] = np.where(
                all_up, "up", np.where(all_down, "down", "inconsistent")
            )
            result["significant"] = result["FDR"] <= self.alpha
            result.index.name = tables[0].table.index.name or "feature_id"

            result = result.sort_values("PValue", kind="mergesort")

            significant = result[result["significant"]]
            iut = IUTResult(
                table=result,
                contrast_names=[t.name for t in tables],
                alpha=self.alpha,
                n_significant=len(significant),
                n_up=int((significant["direction"] == "up").sum()),
                n_down=int((significant["direction"] == "down").sum()),
                n_inconsistent=int((~consistent).sum()),
            )

            self.logger.log_threshold("FDR threshold", self.alpha)
            self.logger.log_step(
                "Intersection-union",
                f"{iut.n_significant} significant ({iut.n_up} up, {iut.n_down} down), "
                f"{iut.n_inconsistent} with inconsistent direction",
            )
            return iut

        except Exception as e:
            self.logger.log_error(e, "Intersection-union consolidation")
            raise
