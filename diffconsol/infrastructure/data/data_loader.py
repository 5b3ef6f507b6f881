"""
Loading and initial validation of result tables for the consolidation pipeline.
"""

import os
from typing import Dict, List, Optional

import pandas as pd

from diffconsol.domain.exceptions import MissingColumnError
from diffconsol.domain.models import (
    CONTRAST_REQUIRED_COLUMNS,
    WINDOW_REQUIRED_COLUMNS,
    ContrastTable,
    WindowSet,
)
from diffconsol.infrastructure.logger import Logger

# Column names written by edgeR, limma, DESeq2 and csaw mapped to the
# pipeline's own names
COLUMN_ALIASES: Dict[str, str] = {
    # fold change
    "log2FoldChange": "logFC",
    "log2FC": "logFC",
    "logFC": "logFC",
    # p-values
    "PValue": "PValue",
    "P.Value": "PValue",
    "pvalue": "PValue",
    "pval": "PValue",
    "p.value": "PValue",
    # adjusted p-values
    "FDR": "FDR",
    "adj.P.Val": "FDR",
    "padj": "FDR",
    "qvalue": "FDR",
    # abundance
    "AveExpr": "AveExpr",
    "logCPM": "AveExpr",
    "baseMean": "AveExpr",
    # annotation
    "symbol": "symbol",
    "Symbol": "symbol",
    "SYMBOL": "symbol",
    "gene_name": "symbol",
    "external_gene_name": "symbol",
    # coordinates
    "seqnames": "chrom",
    "chr": "chrom",
    "chrom": "chrom",
    "chromosome": "chrom",
    "start": "start",
    "end": "end",
}

ID_COLUMNS = ["feature_id", "gene_id", "GeneID", "ensembl_gene_id", "protein_id", "id"]


class ResultTableLoader:
    """Responsible for loading and normalizing delimited result tables"""

    def __init__(self):
        self.logger = Logger()

    @staticmethod
    def detect_separator(file_path: str) -> Optional[str]:
        """Tab for .tsv/.txt/.tab, comma for .csv, otherwise let pandas sniff"""
        lowered = file_path.lower()
        for suffix in (".gz", ".bz2", ".xz"):
            if lowered.endswith(suffix):
                lowered = lowered[: -len(suffix)]
        if lowered.endswith((".tsv", ".txt", ".tab")):
            return "\t"
        if lowered.endswith(".csv"):
            return ","
        return None

    def read_table(self, file_path: str) -> pd.DataFrame:
        """
        Read a delimited text table.

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        if not os.path.exists(file_path):
            error = FileNotFoundError(f"File not found: {file_path}")
            self.logger.log_error(error, "Table loading")
            raise error

        separator = self.detect_separator(file_path)
        if separator is None:
            table = pd.read_csv(file_path, sep=None, engine="python")
        else:
            table = pd.read_csv(file_path, sep=separator)

        self.logger.log_table_shape(f"Loaded {os.path.basename(file_path)}", table.shape)
        return table

    @staticmethod
    def normalize_columns(table: pd.DataFrame) -> pd.DataFrame:
        """Rename known aliases, keeping the first column that maps to a name"""
        renames = {}
        taken = set(table.columns)
        for column in table.columns:
            target = COLUMN_ALIASES.get(column)
            if target is None or target == column:
                continue
            if target in taken:
                continue
            renames[column] = target
            taken.add(target)
        return table.rename(columns=renames)

    def _set_feature_index(
        self, table: pd.DataFrame, id_column: Optional[str]
    ) -> pd.DataFrame:
        if id_column is not None:
            if id_column not in table.columns:
                raise MissingColumnError("contrast", [id_column])
            column = id_column
        else:
            column = next((c for c in ID_COLUMNS if c in table.columns), None)
            if column is None:
                # Row names written by R land in an unnamed first column
                column = table.columns[0]

        table = table.set_index(column)
        table.index = table.index.astype(str)
        table.index.name = "feature_id"
        return table

    def load_contrast(
        self, file_path: str, name: str, id_column: Optional[str] = None
    ) -> ContrastTable:
        """
        Load one differential result table.

        Args:
            file_path: Path to the table
            name: Contrast name used in output column prefixes
            id_column: Column holding the feature ID (auto-detected when None)

        Returns:
            ContrastTable: Table indexed by feature ID with normalized columns
        """
        try:
            table = self.read_table(file_path)
            table = self._set_feature_index(table, id_column)
            table = self.normalize_columns(table)

            missing = set(CONTRAST_REQUIRED_COLUMNS) - set(table.columns)
            if missing:
                raise MissingColumnError(name, missing)

            self.logger.log_success(f"Loaded contrast '{name}' with {len(table)} features")
            return ContrastTable(name=name, table=table)

        except Exception as e:
            self.logger.log_error(e, f"Loading contrast '{name}' from {file_path}")
            raise

    def load_contrasts(
        self, file_paths: List[str], names: List[str]
    ) -> List[ContrastTable]:
        """Load several contrast tables; names and paths pair up in order"""
        if len(file_paths) != len(names):
            raise ValueError(
                f"Got {len(file_paths)} contrast files but {len(names)} names"
            )
        return [self.load_contrast(p, n) for p, n in zip(file_paths, names)]

    def load_windows(self, file_path: str, name: str) -> WindowSet:
        """
        Load a window-level result table (one window-width run).

        Returns:
            WindowSet: Windows with chrom, start, end, logFC and PValue
        """
        try:
            table = self.normalize_columns(self.read_table(file_path))
            missing = set(WINDOW_REQUIRED_COLUMNS) - set(table.columns)
            if missing:
                raise MissingColumnError(name, missing)

            table["chrom"] = table["chrom"].astype(str)
            self.logger.log_success(f"Loaded {len(table)} windows for '{name}'")
            return WindowSet(name=name, table=table)

        except Exception as e:
            self.logger.log_error(e, f"Loading windows '{name}' from {file_path}")
            raise

    def load_counts(self, file_path: str) -> pd.DataFrame:
        """Load a feature x library count matrix with feature IDs in the first column"""
        table = self.read_table(file_path)
        table = table.set_index(table.columns[0])
        table.index = table.index.astype(str)
        table.index.name = "feature_id"
        return table

    def load_gene_annotation(self, file_path: str) -> pd.DataFrame:
        """Load gene coordinates (chrom, start, end, strand, gene_id[, symbol])"""
        table = self.normalize_columns(self.read_table(file_path))
        missing = {"chrom", "start", "end", "strand", "gene_id"} - set(table.columns)
        if missing:
            raise MissingColumnError("gene annotation", missing)
        table["chrom"] = table["chrom"].astype(str)
        return table

    def load_result(self, file_path: str) -> pd.DataFrame:
        """Load a table written by this pipeline (feature ID or region rows)"""
        table = self.normalize_columns(self.read_table(file_path))
        if "region_id" in table.columns:
            return table.set_index("region_id")
        return self._set_feature_index(table, None)
