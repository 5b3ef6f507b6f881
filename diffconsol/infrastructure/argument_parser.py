"""
Command line argument parsing and validation for the consolidation pipeline.
"""

import argparse
import os
from typing import List, Optional, Sequence, Union

from diffconsol.domain.models import ConsolidationConfig
from diffconsol.infrastructure.logger import Logger


class ArgumentParser:
    """Command line argument parsing and validation"""

    def __init__(self):
        self.logger = Logger()
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create and configure the argument parser"""
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument(
            "-o", "--out_dir",
            type=str,
            required=True,
            help="Output directory for saving results"
        )
        common.add_argument(
            "-n", "--analysis_name",
            type=str,
            required=True,
            help="Prefix for every output file"
        )
        common.add_argument(
            "-a", "--alpha",
            type=float,
            default=0.05,
            help="FDR threshold for calling significance (default: 0.05)"
        )
        common.add_argument(
            "--plots",
            action="store_true",
            help="Also write figures (png, pdf and svg)"
        )
        common.add_argument(
            "--log_file",
            type=str,
            help="Copy log messages to this file"
        )

        parser = argparse.ArgumentParser(
            description="Consolidate differential expression, binding and proteomics results"
        )
        subparsers = parser.add_subparsers(dest="mode", required=True)

        # Intersection-union across contrasts
        iut = subparsers.add_parser(
            "iut",
            parents=[common],
            help="Intersection-union test across contrasts sharing one feature set"
        )
        iut.add_argument(
            "-c", "--contrast_files",
            type=str,
            required=True,
            help="Comma-separated result tables (edgeR, limma or DESeq2 output)"
        )
        iut.add_argument(
            "-l", "--contrast_names",
            type=str,
            help="Comma-separated contrast names, one per file (default: file names)"
        )
        iut.add_argument(
            "--counts_file",
            type=str,
            help="Raw count matrix used to add an AveExpr (average log2-CPM) column"
        )
        iut.add_argument(
            "--min_count",
            type=int,
            default=10,
            help="Reads per library for a feature to count as expressed (default: 10)"
        )
        iut.add_argument(
            "--min_samples",
            type=int,
            default=2,
            help="Libraries that must reach --min_count (default: 2)"
        )

        # Window to region consolidation
        regions = subparsers.add_parser(
            "regions",
            parents=[common],
            help="Merge windows from several window-width runs into regions"
        )
        regions.add_argument(
            "-w", "--window_files",
            type=str,
            required=True,
            help="Comma-separated window tables (chrom, start, end, logFC, PValue)"
        )
        regions.add_argument(
            "-l", "--window_names",
            type=str,
            help="Comma-separated run names, one per file (default: file names)"
        )
        regions.add_argument(
            "-t", "--merge_tol",
            type=int,
            default=100,
            help="Maximum gap in bases between windows merged into one region (default: 100)"
        )
        regions.add_argument(
            "-m", "--max_width",
            type=int,
            default=5000,
            help="Maximum region width in bases; 0 disables the limit (default: 5000)"
        )
        regions.add_argument(
            "--by_sign",
            action="store_true",
            help="Only merge adjacent windows whose fold changes share a sign"
        )
        regions.add_argument(
            "--method",
            type=str,
            choices=["empirical", "best", "simes"],
            default="empirical",
            help="Region statistic: empirical FDR, best window, or weighted Simes (default: empirical)"
        )
        regions.add_argument(
            "--direction",
            type=str,
            choices=["up", "down"],
            default="up",
            help="Biologically plausible direction for the empirical FDR (default: up)"
        )
        regions.add_argument(
            "--fc_threshold",
            type=float,
            default=0.05,
            help="Window-level FDR for counting up and down windows (default: 0.05)"
        )
        regions.add_argument(
            "-g", "--annotation_file",
            type=str,
            help="Gene coordinates (chrom, start, end, strand, gene_id) for region annotation"
        )
        regions.add_argument(
            "--promoter_upstream",
            type=int,
            default=2500,
            help="Promoter extent upstream of the TSS (default: 2500)"
        )
        regions.add_argument(
            "--promoter_downstream",
            type=int,
            default=500,
            help="Promoter extent downstream of the TSS (default: 500)"
        )
        regions.add_argument(
            "--no_bed",
            action="store_true",
            help="Do not write the BED track of regions"
        )

        # Cross-platform integration
        integrate = subparsers.add_parser(
            "integrate",
            parents=[common],
            help="Overlap significant features across datasets"
        )
        integrate.add_argument(
            "-c", "--contrast_files",
            type=str,
            required=True,
            help="Comma-separated result tables with FDR or significant columns"
        )
        integrate.add_argument(
            "-l", "--contrast_names",
            type=str,
            help="Comma-separated dataset names, one per file (default: file names)"
        )
        integrate.add_argument(
            "--match_column",
            type=str,
            help="Column used to match features across datasets (default: feature ID)"
        )
        integrate.add_argument(
            "--direction",
            type=str,
            choices=["up", "down"],
            help="Only overlap features changing in this direction"
        )

        return parser

    def parse_arguments(self, argv: Optional[Sequence[str]] = None) -> ConsolidationConfig:
        """Parse command line arguments and return ConsolidationConfig"""
        args = self.parser.parse_args(argv)

        config = ConsolidationConfig(
            out_dir=args.out_dir,
            analysis_name=args.analysis_name,
            mode=args.mode,
            alpha=args.alpha,
            make_plots=args.plots,
            log_file=args.log_file,
        )

        if args.mode in ("iut", "integrate"):
            config.contrast_files = self._parse_list(args.contrast_files)
            config.contrast_names = self._parse_list(args.contrast_names) or self._default_names(
                config.contrast_files
            )
        if args.mode == "iut":
            config.counts_file = args.counts_file
            config.min_count = args.min_count
            config.min_samples = args.min_samples
        if args.mode == "integrate":
            config.match_column = args.match_column
            config.integration_direction = args.direction
        if args.mode == "regions":
            config.window_files = self._parse_list(args.window_files)
            config.window_names = self._parse_list(args.window_names) or self._default_names(
                config.window_files
            )
            config.merge_tol = args.merge_tol
            config.max_width = args.max_width if args.max_width > 0 else None
            config.merge_by_sign = args.by_sign
            config.region_method = args.method
            config.desired_direction = args.direction
            config.fc_threshold = args.fc_threshold
            config.annotation_file = args.annotation_file
            config.promoter_upstream = args.promoter_upstream
            config.promoter_downstream = args.promoter_downstream
            config.write_bed = not args.no_bed

        # Validate configuration
        if not self.validate_config(config):
            raise ValueError("Invalid configuration")

        return config

    @staticmethod
    def _parse_list(list_input: Union[str, List[str], None]) -> List[str]:
        """Parse a comma-separated string or list"""
        if list_input is None:
            return []

        if isinstance(list_input, str):
            # Strip quotes and split by comma
            list_input = list_input.strip('"').strip("'")
            items = [item.strip().strip('"').strip("'") for item in list_input.split(",")]
        else:
            items = [item.strip().strip('"').strip("'") for item in list_input]

        return [item for item in items if item]

    @staticmethod
    def _default_names(file_paths: List[str]) -> List[str]:
        """File names without directory and extensions"""
        names = []
        for path in file_paths:
            name = os.path.basename(path)
            for suffix in (".gz", ".bz2", ".xz", ".tsv", ".csv", ".txt", ".tab"):
                if name.endswith(suffix):
                    name = name[: -len(suffix)]
            names.append(name)
        return names

    def _check_files(self, label: str, files: List[str], names: List[str]) -> bool:
        if not files:
            self.logger.log_error(ValueError(f"No {label} files given"), "Configuration validation")
            return False
        if len(files) != len(names):
            self.logger.log_error(
                ValueError(f"{len(files)} {label} files but {len(names)} names"),
                "Configuration validation"
            )
            return False
        if len(set(names)) != len(names):
            self.logger.log_error(
                ValueError(f"Duplicated {label} names: {names}"),
                "Configuration validation"
            )
            return False
        for path in files:
            if not os.path.exists(path):
                self.logger.log_error(
                    FileNotFoundError(f"{label.capitalize()} file not found: {path}"),
                    "Configuration validation"
                )
                return False
        return True

    def validate_config(self, config: ConsolidationConfig) -> bool:
        """Validate the consolidation configuration"""
        try:
            # Check if output directory can be created
            os.makedirs(config.out_dir, exist_ok=True)

            if config.mode not in ("iut", "regions", "integrate"):
                self.logger.log_error(
                    ValueError(f"Unknown mode '{config.mode}'"), "Configuration validation"
                )
                return False

            if config.mode == "iut":
                if not self._check_files("contrast", config.contrast_files, config.contrast_names):
                    return False
                if len(config.contrast_files) < 2:
                    self.logger.log_error(
                        ValueError("Intersection-union needs at least two contrasts"),
                        "Configuration validation"
                    )
                    return False

            if config.mode == "integrate":
                if not self._check_files("contrast", config.contrast_files, config.contrast_names):
                    return False

            if config.mode == "regions":
                if not self._check_files("window", config.window_files, config.window_names):
                    return False
                if config.merge_tol < 0:
                    self.logger.log_error(
                        ValueError(f"Merge tolerance {config.merge_tol} is negative"),
                        "Configuration validation"
                    )
                    return False
                if config.max_width is not None and config.max_width < config.merge_tol:
                    self.logger.log_warning(
                        f"Maximum width {config.max_width} is below the merge tolerance {config.merge_tol}"
                    )
                if config.promoter_upstream < 0 or config.promoter_downstream < 0:
                    self.logger.log_warning("Promoter extents are negative")
                if not 0 < config.fc_threshold <= 1:
                    self.logger.log_warning(
                        f"Window FDR threshold {config.fc_threshold} is outside expected range (0, 1]"
                    )

            for optional_file in (config.annotation_file, config.counts_file):
                if optional_file and not os.path.exists(optional_file):
                    self.logger.log_error(
                        FileNotFoundError(f"File not found: {optional_file}"),
                        "Configuration validation"
                    )
                    return False

            # Validate numeric parameters
            if config.alpha <= 0 or config.alpha > 1:
                self.logger.log_warning(f"Alpha value {config.alpha} is outside expected range (0, 1]")

            self.logger.log_success("Configuration validation passed")
            return True

        except OSError as e:
            self.logger.log_error(e, "Configuration validation")
            return False
