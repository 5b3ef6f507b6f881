"""Tests for intersection-union consolidation."""

import numpy as np
import pandas as pd
import pytest

from diffconsol.domain.exceptions import (
    ConsolidationError,
    FeatureUniverseMismatchError,
    MissingColumnError,
)
from diffconsol.domain.models import ContrastTable
from diffconsol.domain.services.intersection_union import (
    IntersectionUnionConsolidator,
)
from tests.conftest import make_contrast


class TestIntersectionUnion:
    """Tests for IntersectionUnionConsolidator.consolidate."""

    def test_opposite_directions_force_one(self):
        """Disagreeing fold changes give a combined p-value of 1."""
        tables = [
            make_contrast("a", ["geneA"], [1.0], [0.01]),
            make_contrast("b", ["geneA"], [-1.0], [0.02]),
        ]
        result = IntersectionUnionConsolidator().consolidate(tables)
        assert result.table.loc["geneA", "PValue"] == 1.0
        assert result.table.loc["geneA", "direction"] == "inconsistent"

    def test_same_direction_takes_maximum(self):
        """Agreeing fold changes give the largest p-value."""
        tables = [
            make_contrast("a", ["geneA"], [1.0], [0.01]),
            make_contrast("b", ["geneA"], [2.0], [0.04]),
        ]
        result = IntersectionUnionConsolidator().consolidate(tables)
        assert result.table.loc["geneA", "PValue"] == pytest.approx(0.04)
        assert result.table.loc["geneA", "direction"] == "up"

    def test_known_table(self, contrast_pair):
        """Combined values, FDR, ordering and counts for a small table."""
        result = IntersectionUnionConsolidator(alpha=0.05).consolidate(
            list(contrast_pair)
        )
        table = result.table

        assert list(table.index) == ["g2", "g1", "g4", "g5", "g3"]
        np.testing.assert_allclose(table["PValue"], [0.002, 0.004, 0.3, 0.9, 1.0])
        np.testing.assert_allclose(table["FDR"], [0.01, 0.01, 0.5, 1.0, 1.0])
        assert list(table["direction"]) == ["down", "up", "up", "down", "inconsistent"]
        assert list(table["significant"]) == [True, True, False, False, False]

        assert result.n_significant == 2
        assert result.n_up == 1
        assert result.n_down == 1
        assert result.n_inconsistent == 1

    def test_column_contract(self, contrast_pair):
        """Annotation first, then per-contrast statistics, then combined."""
        result = IntersectionUnionConsolidator().consolidate(list(contrast_pair))
        assert list(result.table.columns) == [
            "symbol",
            "kd1.logFC",
            "kd1.PValue",
            "kd1.FDR",
            "kd2.logFC",
            "kd2.PValue",
            "PValue",
            "FDR",
            "direction",
            "significant",
        ]
        assert result.table.loc["g3", "symbol"] == "C"
        assert result.table.index.name == "feature_id"

    def test_combined_never_below_inputs(self, random_contrasts):
        """The combined p-value is at least every per-contrast p-value."""
        result = IntersectionUnionConsolidator().consolidate(random_contrasts)
        table = result.table
        per_contrast = table[[f"{c.name}.PValue" for c in random_contrasts]]
        assert np.all(table["PValue"].to_numpy() >= per_contrast.max(axis=1).to_numpy())

        logfc = table[[f"{c.name}.logFC" for c in random_contrasts]].to_numpy()
        disagree = ~(np.all(logfc > 0, axis=1) | np.all(logfc < 0, axis=1))
        assert np.all(table["PValue"].to_numpy()[disagree] == 1.0)

    def test_sorted_by_combined_pvalue(self, random_contrasts):
        result = IntersectionUnionConsolidator().consolidate(random_contrasts)
        assert result.table["PValue"].is_monotonic_increasing

    def test_row_order_of_inputs_is_irrelevant(self, contrast_pair):
        """Tables are aligned by feature ID, not by position."""
        kd1, kd2 = contrast_pair
        shuffled = ContrastTable(name="kd2", table=kd2.table.iloc[::-1])
        expected = IntersectionUnionConsolidator().consolidate([kd1, kd2]).table
        observed = IntersectionUnionConsolidator().consolidate([kd1, shuffled]).table
        pd.testing.assert_frame_equal(expected, observed)

    def test_zero_fold_change_is_inconsistent(self):
        tables = [
            make_contrast("a", ["g"], [0.0], [0.01]),
            make_contrast("b", ["g"], [0.0], [0.01]),
        ]
        result = IntersectionUnionConsolidator().consolidate(tables)
        assert result.table.loc["g", "PValue"] == 1.0

    def test_missing_pvalue_treated_as_untested(self):
        tables = [
            make_contrast("a", ["g1", "g2"], [1.0, 1.0], [np.nan, 0.01]),
            make_contrast("b", ["g1", "g2"], [1.0, 1.0], [0.01, 0.02]),
        ]
        result = IntersectionUnionConsolidator().consolidate(tables)
        assert result.table.loc["g1", "PValue"] == 1.0
        assert result.table.loc["g2", "PValue"] == pytest.approx(0.02)


class TestValidation:
    """Tests for precondition checks."""

    def test_mismatched_universe(self):
        tables = [
            make_contrast("a", ["g1", "g2"], [1.0, 1.0], [0.1, 0.2]),
            make_contrast("b", ["g1", "g3"], [1.0, 1.0], [0.1, 0.2]),
        ]
        with pytest.raises(FeatureUniverseMismatchError) as excinfo:
            IntersectionUnionConsolidator().consolidate(tables)
        assert excinfo.value.table_name == "b"
        assert excinfo.value.missing == ["g2"]
        assert excinfo.value.extra == ["g3"]

    def test_duplicated_features(self):
        tables = [
            make_contrast("a", ["g1", "g1"], [1.0, 1.0], [0.1, 0.2]),
            make_contrast("b", ["g1", "g2"], [1.0, 1.0], [0.1, 0.2]),
        ]
        with pytest.raises(FeatureUniverseMismatchError) as excinfo:
            IntersectionUnionConsolidator().consolidate(tables)
        assert excinfo.value.duplicated == ["g1"]

    def test_needs_two_tables(self):
        with pytest.raises(ConsolidationError):
            IntersectionUnionConsolidator().consolidate(
                [make_contrast("a", ["g1"], [1.0], [0.1])]
            )

    def test_duplicated_names(self):
        tables = [
            make_contrast("a", ["g1"], [1.0], [0.1]),
            make_contrast("a", ["g1"], [1.0], [0.1]),
        ]
        with pytest.raises(ConsolidationError):
            IntersectionUnionConsolidator().consolidate(tables)

    def test_missing_column(self):
        broken = ContrastTable(
            name="b", table=pd.DataFrame({"logFC": [1.0]}, index=["g1"])
        )
        with pytest.raises(MissingColumnError):
            IntersectionUnionConsolidator().consolidate(
                [make_contrast("a", ["g1"], [1.0], [0.1]), broken]
            )

    def test_pvalue_out_of_range(self):
        tables = [
            make_contrast("a", ["g1"], [1.0], [1.5]),
            make_contrast("b", ["g1"], [1.0], [0.1]),
        ]
        with pytest.raises(ConsolidationError):
            IntersectionUnionConsolidator().consolidate(tables)
