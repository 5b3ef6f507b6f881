"""
Main application service orchestrating a consolidation run.
"""

import os
from typing import Dict, Union

import pandas as pd

from diffconsol.domain.models import (
    ConsolidationConfig,
    IntegrationResult,
    IUTResult,
    RegionResult,
)
from diffconsol.domain.services.count_processor import CountProcessor
from diffconsol.domain.services.integration_analyzer import IntegrationAnalyzer
from diffconsol.domain.services.intersection_union import (
    IntersectionUnionConsolidator,
)
from diffconsol.domain.services.region_combiner import RegionCombiner
from diffconsol.domain.services.region_merger import RegionMerger
from diffconsol.infrastructure.data.data_loader import ResultTableLoader
from diffconsol.infrastructure.data.data_saver import ResultTableSaver
from diffconsol.infrastructure.logger import Logger
from diffconsol.presentation.visualization.plot_generator import PlotGenerator


class ConsolidationService:
    """Main application service orchestrating one consolidation run"""

    def __init__(self, config: ConsolidationConfig):
        self.config = config
        self.logger = Logger(config.log_file)

        # Initialize all services
        self.loader = ResultTableLoader()
        self.saver = ResultTableSaver()
        self.count_processor = CountProcessor()
        self.consolidator = IntersectionUnionConsolidator(alpha=config.alpha)
        self.merger = RegionMerger(
            tol=config.merge_tol,
            max_width=config.max_width,
            by_sign=config.merge_by_sign,
        )
        self.combiner = RegionCombiner(
            alpha=config.alpha,
            desired_direction=config.desired_direction,
            fc_threshold=config.fc_threshold,
        )
        self.integration_analyzer = IntegrationAnalyzer(alpha=config.alpha)
        self.plot_generator = PlotGenerator(self.logger)

    def _output_path(self, kind: str, extension: str = "tsv") -> str:
        return os.path.join(
            self.config.out_dir, f"{self.config.analysis_name}_{kind}.{extension}"
        )

    def run(self) -> Union[IUTResult, RegionResult, IntegrationResult]:
        """Run the analysis selected by config.mode"""
        self.logger.log_step(
            "Consolidation pipeline",
            f"Starting '{self.config.mode}' run '{self.config.analysis_name}'",
        )
        os.makedirs(self.config.out_dir, exist_ok=True)

        if self.config.mode == "iut":
            result = self.run_iut()
        elif self.config.mode == "regions":
            result = self.run_regions()
        elif self.config.mode == "integrate":
            result = self.run_integrate()
        else:
            raise ValueError(f"Unknown mode '{self.config.mode}'")

        self.logger.log_success("Consolidation pipeline completed successfully")
        return result

    def run_iut(self) -> IUTResult:
        """
        Intersection-union consolidation of the configured contrasts.

        Returns:
            IUTResult: Consolidated table and counts
        """
        try:
            # Step 1: Load contrast tables
            self.logger.log_step("Data loading", "Loading contrast tables")
            tables = self.loader.load_contrasts(
                self.config.contrast_files, self.config.contrast_names
            )

            # Step 2: Consolidate
            result = self.consolidator.consolidate(tables)

            # Step 3: Average expression from raw counts
            if self.config.counts_file:
                self.logger.log_step("Annotation", "Adding average log2-CPM")
                counts = self.loader.load_counts(self.config.counts_file)
                average = self.count_processor.average_log_cpm(counts)
                missing = result.table.index.difference(average.index)
                if len(missing) > 0:
                    self.logger.log_warning(
                        f"{len(missing)} features have no counts; AveExpr left empty"
                    )
                if "AveExpr" in result.table.columns:
                    result.table["AveExpr"] = average.reindex(result.table.index)
                else:
                    position = 1 if "symbol" in result.table.columns else 0
                    result.table.insert(
                        position, "AveExpr", average.reindex(result.table.index)
                    )

                expressed = self.count_processor.filter_by_expression(
                    counts,
                    min_count=self.config.min_count,
                    min_samples=self.config.min_samples,
                ).index
                position = result.table.columns.get_loc("AveExpr") + 1
                result.table.insert(
                    position, "expressed", result.table.index.isin(expressed)
                )

            # Step 4: Save
            self.logger.log_step("Result saving", "Saving consolidated table")
            self.saver.save_table(result.table, self._output_path("iut"))
            self.saver.save_summary(
                result.summary(), self._output_path("iut_summary", "txt")
            )

            if self.config.make_plots:
                self._plot_iut(result)

            return result

        except Exception as e:
            self.logger.log_error(e, "Intersection-union run")
            raise

    def _plot_iut(self, result: IUTResult) -> None:
        self.logger.log_step("Visualization", "Creating consolidation plots")
        table = result.table
        logfc_columns = [f"{name}.logFC" for name in result.contrast_names]
        labels = table["symbol"] if "symbol" in table.columns else pd.Series(
            table.index, index=table.index
        )
        self.plot_generator.create_volcano_plot(
            table[logfc_columns].mean(axis=1),
            table["PValue"],
            table["significant"],
            self._output_path("iut_volcano", "png"),
            labels=labels,
            title=f"{self.config.analysis_name} intersection-union",
        )
        self.plot_generator.create_logfc_heatmap(
            table,
            result.contrast_names,
            self._output_path("iut_heatmap", "png"),
            title=f"{self.config.analysis_name} top features",
        )

    def run_regions(self) -> RegionResult:
        """
        Merge windows from every run into regions and aggregate their tests.

        Returns:
            RegionResult: Region table, annotated windows and counts
        """
        try:
            # Step 1: Load window sets
            self.logger.log_step("Data loading", "Loading window tables")
            if len(self.config.window_files) != len(self.config.window_names):
                raise ValueError(
                    f"Got {len(self.config.window_files)} window files but "
                    f"{len(self.config.window_names)} names"
                )
            window_sets = [
                self.loader.load_windows(path, name)
                for path, name in zip(self.config.window_files, self.config.window_names)
            ]

            # Step 2: Merge windows into regions
            windows = self.merger.pool_windows(window_sets)
            regions, ids = self.merger.merge(windows)
            weights = self.merger.region_weights(ids, windows["window_set"].to_numpy())

            # Step 3: Region-level statistics
            result = self.combiner.aggregate(
                self.config.region_method, regions, windows, ids, weights
            )

            # Step 4: Gene annotation
            if self.config.annotation_file:
                genes = self.loader.load_gene_annotation(self.config.annotation_file)
                result.regions = self.integration_analyzer.annotate_regions(
                    result.regions,
                    genes,
                    upstream=self.config.promoter_upstream,
                    downstream=self.config.promoter_downstream,
                )

            # Step 5: Save
            self.logger.log_step("Result saving", "Saving regions and windows")
            self.saver.save_table(
                result.regions, self._output_path("regions"), index=False
            )
            self.saver.save_table(
                result.windows, self._output_path("windows"), index=False
            )
            if self.config.write_bed:
                significant = result.regions[result.regions["significant"]]
                self.saver.save_bed(
                    significant,
                    self._output_path("regions", "bed"),
                    track_name=f"{self.config.analysis_name}_regions",
                )
            self.saver.save_summary(
                result.summary(), self._output_path("regions_summary", "txt")
            )

            if self.config.make_plots:
                self.plot_generator.create_region_summary_plot(
                    result.regions,
                    self._output_path("regions_summary", "png"),
                    title=f"{self.config.analysis_name} regions",
                )

            return result

        except Exception as e:
            self.logger.log_error(e, "Region consolidation run")
            raise

    def run_integrate(self) -> IntegrationResult:
        """
        Overlap the significant features of several result tables.

        Returns:
            IntegrationResult: Membership, pairwise overlaps and sets
        """
        try:
            self.logger.log_step("Data loading", "Loading result tables")
            if len(self.config.contrast_files) != len(self.config.contrast_names):
                raise ValueError(
                    f"Got {len(self.config.contrast_files)} result files but "
                    f"{len(self.config.contrast_names)} names"
                )
            tables: Dict[str, pd.DataFrame] = {
                name: self.loader.load_result(path)
                for path, name in zip(
                    self.config.contrast_files, self.config.contrast_names
                )
            }

            result = self.integration_analyzer.integrate(
                tables,
                direction=self.config.integration_direction,
                match_column=self.config.match_column,
            )

            self.logger.log_step("Result saving", "Saving overlap tables")
            self.saver.save_table(
                result.membership.astype(int), self._output_path("membership")
            )
            self.saver.save_table(
                result.overlaps, self._output_path("overlaps"), index=False
            )
            self.saver.save_summary(
                result.summary(), self._output_path("integration_summary", "txt")
            )

            if self.config.make_plots:
                self.plot_generator.create_upset_plot(
                    result.membership,
                    self._output_path("upset", "png"),
                    title=f"{self.config.analysis_name} significant overlaps",
                )

            return result

        except Exception as e:
            self.logger.log_error(e, "Integration run")
            raise
