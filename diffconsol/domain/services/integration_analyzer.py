"""
Cross-technology integration of consolidated result tables.
"""

import itertools
from typing import Dict, Optional, Set

import bioframe as bf
import numpy as np
import pandas as pd
from scipy.stats import hypergeom

from diffconsol.domain.exceptions import MissingColumnError
from diffconsol.domain.models import IntegrationResult
from diffconsol.infrastructure.logger import Logger


class IntegrationAnalyzer:
    """Overlap of significant features across RNA-seq, binding and proteomics"""

    def __init__(self, alpha: float = 0.05):
        self.alpha = alpha
        self.logger = Logger()

    def _keys(self, table: pd.DataFrame, match_column: Optional[str]) -> pd.Series:
        # Annotated region tables are matched through their genes
        if match_column is None:
            if "gene_ids" in table.columns:
                return table["gene_ids"]
            return pd.Series(table.index.astype(str), index=table.index)
        if match_column == "symbol" and "symbol" not in table.columns:
            match_column = "gene_symbols"
        if match_column not in table.columns:
            raise MissingColumnError("integration input", [match_column])
        return table[match_column]

    def feature_keys(
        self, table: pd.DataFrame, match_column: Optional[str] = None
    ) -> Set[str]:
        """All feature keys of a table, splitting comma-joined gene lists"""
        keys = self._keys(table, match_column).dropna().astype(str)
        keys = keys.str.split(",").explode().str.strip()
        return set(keys[keys != ""])

    def significant_features(
        self,
        table: pd.DataFrame,
        direction: Optional[str] = None,
        match_column: Optional[str] = None,
    ) -> Set[str]:
        """
        Keys of the significant rows of one result table.

        Args:
            table: Consolidated or plain differential result table
            direction: Restrict to "up" or "down" changes
            match_column: Column holding the key (index when None)

        Returns:
            Set[str]: Significant feature keys
        """
        if "significant" in table.columns:
            mask = table["significant"].astype(bool)
        elif "FDR" in table.columns:
            mask = table["FDR"] <= self.alpha
        else:
            raise MissingColumnError("integration input", ["FDR"])

        if direction is not None:
            if "direction" in table.columns:
                mask &= table["direction"] == direction
            elif "logFC" in table.columns:
                mask &= table["logFC"] > 0 if direction == "up" else table["logFC"] < 0
            else:
                raise MissingColumnError("integration input", ["direction"])

        return self.feature_keys(table.loc[mask], match_column)

    def significant_sets(
        self,
        tables: Dict[str, pd.DataFrame],
        direction: Optional[str] = None,
        match_column: Optional[str] = None,
    ) -> Dict[str, Set[str]]:
        """Significant feature sets keyed by dataset name"""
        sets = {
            name: self.significant_features(table, direction, match_column)
            for name, table in tables.items()
        }
        for name, features in sets.items():
            self.logger.log_step("Significant set", f"{name}: {len(features)} features")
        return sets

    @staticmethod
    def membership_table(sets: Dict[str, Set[str]]) -> pd.DataFrame:
        """Boolean feature x dataset membership of the significant sets"""
        features = sorted(set().union(*sets.values())) if sets else []
        membership = pd.DataFrame(
            {name: [f in members for f in features] for name, members in sets.items()},
            index=pd.Index(features, name="feature_id"),
            dtype=bool,
        )
        return membership

    def overlap_summary(
        self, sets: Dict[str, Set[str]], universe_size: int
    ) -> pd.DataFrame:
        """
        Pairwise overlap statistics between significant sets.

        The p-value is the hypergeometric probability of an overlap at least
        as large as observed when both sets are drawn from `universe_size`
        features.

        Args:
            sets: Significant feature sets
            universe_size: Number of features tested in every dataset

        Returns:
            pd.DataFrame: One row per dataset pair
        """
        rows = []
        for (name_a, set_a), (name_b, set_b) in itertools.combinations(
            sets.items(), 2
        ):
            intersection = len(set_a & set_b)
            union = len(set_a | set_b)
            expected = (
                len(set_a) * len(set_b) / universe_size if universe_size > 0 else np.nan
            )
            pvalue = float(
                hypergeom.sf(intersection - 1, universe_size, len(set_a), len(set_b))
            )
            rows.append(
                {
                    "dataset_a": name_a,
                    "dataset_b": name_b,
                    "n_a": len(set_a),
                    "n_b": len(set_b),
                    "intersection": intersection,
                    "union": union,
                    "jaccard": intersection / union if union else 0.0,
                    "expected": expected,
                    "PValue": min(pvalue, 1.0),
                }
            )

        overlaps = pd.DataFrame(
            rows,
            columns=[
                "dataset_a",
                "dataset_b",
                "n_a",
                "n_b",
                "intersection",
                "union",
                "jaccard",
                "expected",
                "PValue",
            ],
        )
        self.logger.log_step("Overlap summary", f"Compared {len(overlaps)} dataset pairs")
        return overlaps

    def integrate(
        self,
        tables: Dict[str, pd.DataFrame],
        direction: Optional[str] = None,
        match_column: Optional[str] = None,
    ) -> IntegrationResult:
        """
        Overlap the significant features of several datasets.

        The universe is the set of keys tested in every dataset; significant
        keys outside it are dropped before overlapping.
        """
        try:
            universes = [self.feature_keys(t, match_column) for t in tables.values()]
            universe = set.intersection(*universes) if universes else set()

            sets = self.significant_sets(tables, direction, match_column)
            sets = {name: features & universe for name, features in sets.items()}

            result = IntegrationResult(
                sets=sets,
                membership=self.membership_table(sets),
                overlaps=self.overlap_summary(sets, len(universe)),
                universe_size=len(universe),
            )
            self.logger.log_step("Shared universe", f"{len(universe)} features")
            return result

        except Exception as e:
            self.logger.log_error(e, "Cross-platform integration")
            raise

    @staticmethod
    def _gene_hits(query: pd.DataFrame, features: pd.DataFrame) -> pd.DataFrame:
        # bioframe intervals are 0-based half-open
        targets = features[
            ["chrom", "start", "end", "gene_id", "symbol", "gene_order"]
        ].copy()
        targets["start"] = targets["start"] - 1

        hits = bf.overlap(query, targets, how="inner", suffixes=("", "_gene"))
        hits = hits.sort_values(["row", "gene_order_gene"], kind="mergesort")
        return hits.groupby("row").agg(
            gene_ids=("gene_id_gene", lambda s: ",".join(s.astype(str))),
            gene_symbols=("symbol_gene", lambda s: ",".join(s.astype(str))),
        )

    def annotate_regions(
        self,
        regions: pd.DataFrame,
        genes: pd.DataFrame,
        upstream: int = 2500,
        downstream: int = 500,
    ) -> pd.DataFrame:
        """
        Assign genes to regions by promoter or gene-body overlap.

        A region is linked to the genes whose promoter (upstream..downstream of
        the strand-aware TSS) it overlaps; failing that, to the genes whose
        body it overlaps.

        Args:
            regions: Table with chrom, start, end
            genes: Table with chrom, start, end, strand, gene_id (and optional symbol)
            upstream: Bases upstream of the TSS in the promoter
            downstream: Bases downstream of the TSS in the promoter

        Returns:
            pd.DataFrame: Regions with gene_ids, gene_symbols and overlap columns
        """
        missing = {"chrom", "start", "end", "strand", "gene_id"} - set(genes.columns)
        if missing:
            raise MissingColumnError("gene annotation", missing)

        has_symbol = "symbol" in genes.columns
        genes = genes.copy()
        genes["chrom"] = genes["chrom"].astype(str)
        genes["start"] = genes["start"].astype(np.int64)
        genes["end"] = genes["end"].astype(np.int64)
        genes["gene_order"] = np.arange(len(genes))
        if not has_symbol:
            genes["symbol"] = ""

        minus = (genes["strand"] == "-").to_numpy()
        tss = np.where(minus, genes["end"], genes["start"])
        promoters = genes.assign(
            start=np.maximum(np.where(minus, tss - downstream, tss - upstream), 1),
            end=np.where(minus, tss + upstream, tss + downstream),
        )

        query = pd.DataFrame(
            {
                "chrom": regions["chrom"].astype(str).to_numpy(),
                "start": regions["start"].to_numpy(dtype=np.int64) - 1,
                "end": regions["end"].to_numpy(dtype=np.int64),
                "row": np.arange(len(regions)),
            }
        )

        promoter_hits = self._gene_hits(query, promoters).assign(overlap="promoter")
        body_hits = self._gene_hits(query, genes).assign(overlap="body")
        body_hits = body_hits.drop(promoter_hits.index, errors="ignore")
        hits = pd.concat([promoter_hits, body_hits]).reindex(np.arange(len(regions)))

        annotated = regions.copy()
        annotated["gene_ids"] = hits["gene_ids"].fillna("").to_numpy()
        annotated["gene_symbols"] = (
            hits["gene_symbols"].fillna("").to_numpy() if has_symbol else ""
        )
        annotated["overlap"] = hits["overlap"].fillna("none").to_numpy()

        counts = annotated["overlap"].value_counts()
        self.logger.log_step(
            "Region annotation",
            f"promoter={int(counts.get('promoter', 0))}, "
            f"body={int(counts.get('body', 0))}, none={int(counts.get('none', 0))}",
        )
        return annotated
