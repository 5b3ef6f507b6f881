"""End-to-end tests for ConsolidationService runs."""

import os

import pandas as pd
import pytest

from diffconsol.application.consolidation_service import ConsolidationService
from diffconsol.domain.models import ConsolidationConfig
from diffconsol.main import main


@pytest.fixture
def contrast_files(tmp_path, contrast_pair):
    paths = []
    for contrast in contrast_pair:
        path = tmp_path / f"{contrast.name}.tsv"
        contrast.table.to_csv(path, sep="\t")
        paths.append(str(path))
    return paths


@pytest.fixture
def window_files(tmp_path, window_sets):
    paths = []
    for window_set in window_sets:
        path = tmp_path / f"{window_set.name}.tsv"
        window_set.table.rename(columns={"chrom": "seqnames"}).to_csv(
            path, sep="\t", index=False
        )
        paths.append(str(path))
    return paths


@pytest.fixture
def annotation_file(tmp_path):
    genes = pd.DataFrame(
        {
            "chrom": ["chr1", "chr2"],
            "start": [2000, 100],
            "end": [9000, 3000],
            "strand": ["+", "-"],
            "gene_id": ["ENSG_A", "ENSG_B"],
            "symbol": ["geneA", "geneB"],
        }
    )
    path = tmp_path / "genes.tsv"
    genes.to_csv(path, sep="\t", index=False)
    return str(path)


class TestConsolidationService:
    """Tests for the three run modes"""

    def test_iut_run(self, tmp_path, contrast_files):
        out_dir = tmp_path / "results"
        config = ConsolidationConfig(
            out_dir=str(out_dir),
            analysis_name="kd",
            mode="iut",
            contrast_files=contrast_files,
            contrast_names=["kd1", "kd2"],
        )

        result = ConsolidationService(config).run()

        assert result.n_significant == 2
        saved = pd.read_csv(out_dir / "kd_iut.tsv", sep="\t", index_col=0)
        assert list(saved.index) == ["g2", "g1", "g4", "g5", "g3"]
        assert {"symbol", "kd1.logFC", "kd2.PValue", "FDR", "direction"} <= set(
            saved.columns
        )
        assert (out_dir / "kd_iut_summary.txt").exists()

    def test_iut_run_with_counts_and_plots(self, tmp_path, contrast_files):
        counts = pd.DataFrame(
            {"s1": [3, 20, 30, 40, 50], "s2": [4, 18, 33, 41, 47]},
            index=pd.Index(["g1", "g2", "g3", "g4", "g5"], name="gene_id"),
        )
        counts_path = tmp_path / "counts.tsv"
        counts.to_csv(counts_path, sep="\t")
        out_dir = tmp_path / "results"
        config = ConsolidationConfig(
            out_dir=str(out_dir),
            analysis_name="kd",
            mode="iut",
            contrast_files=contrast_files,
            contrast_names=["kd1", "kd2"],
            counts_file=str(counts_path),
            make_plots=True,
        )

        result = ConsolidationService(config).run()

        assert result.table["AveExpr"].notna().all()
        assert list(result.table.columns[:3]) == ["symbol", "AveExpr", "expressed"]
        assert result.table["expressed"].to_dict() == {
            "g2": True, "g1": False, "g4": True, "g5": True, "g3": True
        }
        for ext in ("png", "pdf", "svg"):
            assert (out_dir / f"kd_iut_volcano.{ext}").exists()
            assert (out_dir / f"kd_iut_heatmap.{ext}").exists()

    def test_regions_run(self, tmp_path, window_files, annotation_file):
        out_dir = tmp_path / "results"
        config = ConsolidationConfig(
            out_dir=str(out_dir),
            analysis_name="chart",
            mode="regions",
            window_files=window_files,
            window_names=["w150", "w500"],
            region_method="simes",
            annotation_file=annotation_file,
            make_plots=True,
        )

        result = ConsolidationService(config).run()

        assert len(result.regions) == 3
        assert set(result.regions["overlap"]) <= {"promoter", "body", "none"}
        regions = pd.read_csv(out_dir / "chart_regions.tsv", sep="\t")
        assert "gene_ids" in regions.columns
        windows = pd.read_csv(out_dir / "chart_windows.tsv", sep="\t")
        assert len(windows) == 8
        assert set(windows["window_set"]) == {"w150", "w500"}

        bed_lines = (out_dir / "chart_regions.bed").read_text().splitlines()
        assert bed_lines[0].startswith('track name="chart_regions"')
        assert len(bed_lines) == 1 + result.n_significant
        assert (out_dir / "chart_regions_summary.png").exists()

    def test_integrate_run(self, tmp_path):
        rna = pd.DataFrame(
            {
                "feature_id": ["g1", "g2", "g3", "g4"],
                "logFC": [1.0, -1.0, 0.5, 2.0],
                "FDR": [0.01, 0.02, 0.5, 0.01],
            }
        )
        protein = pd.DataFrame(
            {
                "feature_id": ["g1", "g2", "g3", "g4"],
                "logFC": [0.8, 0.3, 0.1, 1.5],
                "FDR": [0.001, 0.4, 0.9, 0.03],
            }
        )
        paths = []
        for name, table in (("rna", rna), ("protein", protein)):
            path = tmp_path / f"{name}.tsv"
            table.to_csv(path, sep="\t", index=False)
            paths.append(str(path))

        out_dir = tmp_path / "results"
        config = ConsolidationConfig(
            out_dir=str(out_dir),
            analysis_name="multi",
            mode="integrate",
            contrast_files=paths,
            contrast_names=["rna", "protein"],
            integration_direction="up",
            make_plots=True,
        )

        result = ConsolidationService(config).run()

        assert result.sets == {"rna": {"g1", "g4"}, "protein": {"g1", "g4"}}
        overlaps = pd.read_csv(out_dir / "multi_overlaps.tsv", sep="\t")
        assert overlaps.loc[0, "intersection"] == 2
        membership = pd.read_csv(out_dir / "multi_membership.tsv", sep="\t", index_col=0)
        assert membership.to_numpy().tolist() == [[1, 1], [1, 1]]
        assert (out_dir / "multi_upset.png").exists()

    def test_unknown_mode(self, tmp_path):
        config = ConsolidationConfig(out_dir=str(tmp_path), analysis_name="x", mode="other")
        with pytest.raises(ValueError):
            ConsolidationService(config).run()


class TestMain:
    """Tests for the command line entry point"""

    def test_main_success(self, tmp_path, contrast_files):
        out_dir = tmp_path / "cli"
        code = main(
            ["iut", "-o", str(out_dir), "-n", "kd", "-c", ",".join(contrast_files), "-l", "kd1,kd2"]
        )
        assert code == 0
        assert os.path.exists(out_dir / "kd_iut.tsv")

    def test_main_failure(self, tmp_path, contrast_files):
        code = main(["iut", "-o", str(tmp_path), "-n", "kd", "-c", contrast_files[0]])
        assert code == 1
