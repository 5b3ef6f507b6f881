"""
Core domain models for the consolidation pipeline.
Contains data structures for configuration, input tables and results.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

import pandas as pd


# Columns every contrast table must carry after alias normalization
CONTRAST_REQUIRED_COLUMNS = ["logFC", "PValue"]

# Columns every window table must carry after alias normalization
WINDOW_REQUIRED_COLUMNS = ["chrom", "start", "end", "logFC", "PValue"]

# Per-feature annotation carried into consolidated tables
ANNOTATION_COLUMNS = ["symbol", "AveExpr"]


@dataclass
class ConsolidationConfig:
    """Configuration for a consolidation run"""

    out_dir: str
    analysis_name: str
    mode: str = "iut"

    # Contrast tables (iut / integrate)
    contrast_files: List[str] = field(default_factory=list)
    contrast_names: List[str] = field(default_factory=list)

    # Window tables (regions)
    window_files: List[str] = field(default_factory=list)
    window_names: List[str] = field(default_factory=list)

    alpha: float = 0.05

    # Region merging
    merge_tol: int = 100
    max_width: Optional[int] = 5000
    merge_by_sign: bool = False

    # Region aggregation
    region_method: str = "empirical"
    desired_direction: str = "up"
    fc_threshold: float = 0.05

    # Annotation
    annotation_file: Optional[str] = None
    promoter_upstream: int = 2500
    promoter_downstream: int = 500
    counts_file: Optional[str] = None
    min_count: int = 10
    min_samples: int = 2

    # Integration
    match_column: Optional[str] = None
    integration_direction: Optional[str] = None

    # Outputs
    make_plots: bool = False
    write_bed: bool = True
    log_file: Optional[str] = None


@dataclass
class ContrastTable:
    """One differential result table, indexed by feature ID"""

    name: str
    table: pd.DataFrame

    @property
    def features(self) -> Set[str]:
        return set(self.table.index)


@dataclass
class WindowSet:
    """Genomic windows from a single window-width run"""

    name: str
    table: pd.DataFrame


@dataclass
class IUTResult:
    """Result of an intersection-union consolidation"""

    table: pd.DataFrame
    contrast_names: List[str]
    alpha: float
    n_significant: int
    n_up: int
    n_down: int
    n_inconsistent: int

    def summary(self) -> Dict[str, float]:
        return {
            "Contrasts": ",".join(self.contrast_names),
            "Features": len(self.table),
            "Alpha": self.alpha,
            "Significant": self.n_significant,
            "Significant up": self.n_up,
            "Significant down": self.n_down,
            "Inconsistent direction": self.n_inconsistent,
        }


@dataclass
class RegionResult:
    """Result of merging windows into regions and aggregating their tests"""

    regions: pd.DataFrame
    windows: pd.DataFrame
    method: str
    alpha: float
    n_significant: int
    n_up: int
    n_down: int
    n_mixed: int

    def summary(self) -> Dict[str, float]:
        return {
            "Method": self.method,
            "Windows": len(self.windows),
            "Regions": len(self.regions),
            "Alpha": self.alpha,
            "Significant": self.n_significant,
            "Significant up": self.n_up,
            "Significant down": self.n_down,
            "Significant mixed": self.n_mixed,
        }


@dataclass
class IntegrationResult:
    """Overlap of significant features across datasets"""

    sets: Dict[str, Set[str]]
    membership: pd.DataFrame
    overlaps: pd.DataFrame
    universe_size: int

    def summary(self) -> Dict[str, float]:
        summary = {"Universe": self.universe_size}
        for name, features in self.sets.items():
            summary[f"Significant in {name}"] = len(features)
        if self.membership.shape[1] > 0:
            summary["Significant in all"] = int(self.membership.all(axis=1).sum())
            summary["Significant in any"] = int(self.membership.any(axis=1).sum())
        return summary
