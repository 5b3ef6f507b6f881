"""Tests for result table loading and saving."""

import numpy as np
import pandas as pd
import pytest

from diffconsol.domain.exceptions import MissingColumnError
from diffconsol.infrastructure.data.data_loader import ResultTableLoader
from diffconsol.infrastructure.data.data_saver import ResultTableSaver


def write_tsv(path, table, index=True):
    table.to_csv(path, sep="\t", index=index)
    return str(path)


class TestResultTableLoader:
    """Tests for ResultTableLoader"""

    def test_edger_table(self, tmp_path):
        table = pd.DataFrame(
            {
                "logFC": [1.2, -0.4],
                "logCPM": [5.1, 3.3],
                "F": [20.1, 1.2],
                "PValue": [0.001, 0.3],
                "FDR": [0.002, 0.3],
            },
            index=["ENSG1", "ENSG2"],
        )
        path = write_tsv(tmp_path / "kd1_vs_ctrl.tsv", table)

        contrast = ResultTableLoader().load_contrast(path, "kd1")

        assert contrast.name == "kd1"
        assert contrast.table.index.name == "feature_id"
        assert list(contrast.table.index) == ["ENSG1", "ENSG2"]
        assert contrast.table.loc["ENSG1", "AveExpr"] == pytest.approx(5.1)
        assert contrast.features == {"ENSG1", "ENSG2"}

    def test_deseq2_table(self, tmp_path):
        table = pd.DataFrame(
            {
                "gene_id": ["ENSG1", "ENSG2"],
                "baseMean": [120.0, 40.0],
                "log2FoldChange": [0.8, -1.1],
                "lfcSE": [0.2, 0.3],
                "stat": [4.0, -3.7],
                "pvalue": [6e-5, 2e-4],
                "padj": [1e-4, 2e-4],
            }
        )
        path = write_tsv(tmp_path / "deseq2.tsv", table, index=False)

        contrast = ResultTableLoader().load_contrast(path, "kd2")

        assert {"logFC", "PValue", "FDR", "AveExpr"} <= set(contrast.table.columns)
        assert contrast.table.loc["ENSG2", "logFC"] == pytest.approx(-1.1)

    def test_limma_csv(self, tmp_path):
        table = pd.DataFrame(
            {
                "protein_id": ["P1", "P2"],
                "Symbol": ["MALAT1", "NEAT1"],
                "logFC": [0.5, 0.7],
                "AveExpr": [20.1, 18.4],
                "t": [3.1, 4.2],
                "P.Value": [0.01, 0.001],
                "adj.P.Val": [0.01, 0.002],
                "B": [1.0, 2.0],
            }
        )
        path = tmp_path / "tmt.csv"
        table.to_csv(path, index=False)

        contrast = ResultTableLoader().load_contrast(str(path), "tmt")

        assert contrast.table.loc["P1", "symbol"] == "MALAT1"
        assert contrast.table.loc["P2", "PValue"] == pytest.approx(0.001)

    def test_missing_columns(self, tmp_path):
        table = pd.DataFrame({"gene_id": ["g1"], "logFC": [1.0]})
        path = write_tsv(tmp_path / "bad.tsv", table, index=False)
        with pytest.raises(MissingColumnError) as excinfo:
            ResultTableLoader().load_contrast(path, "bad")
        assert excinfo.value.columns == ["PValue"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ResultTableLoader().load_contrast(str(tmp_path / "absent.tsv"), "absent")

    def test_load_contrasts_name_mismatch(self):
        with pytest.raises(ValueError):
            ResultTableLoader().load_contrasts(["a.tsv", "b.tsv"], ["a"])

    def test_csaw_windows(self, tmp_path):
        table = pd.DataFrame(
            {
                "seqnames": ["chr1", "chr2"],
                "start": [1001, 501],
                "end": [1150, 650],
                "logFC": [2.0, -1.0],
                "PValue": [1e-4, 0.02],
            }
        )
        path = write_tsv(tmp_path / "w150.tsv", table, index=False)

        windows = ResultTableLoader().load_windows(path, "w150")

        assert windows.name == "w150"
        assert list(windows.table["chrom"]) == ["chr1", "chr2"]

    @pytest.mark.parametrize(
        "file_name, expected",
        [
            ("a.tsv", "\t"),
            ("a.txt.gz", "\t"),
            ("a.csv", ","),
            ("a.CSV.bz2", ","),
            ("a.dat", None),
        ],
    )
    def test_detect_separator(self, file_name, expected):
        assert ResultTableLoader.detect_separator(file_name) == expected

    def test_alias_does_not_override_existing_column(self):
        table = pd.DataFrame({"logFC": [1.0], "log2FoldChange": [2.0]})
        normalized = ResultTableLoader.normalize_columns(table)
        assert list(normalized.columns) == ["logFC", "log2FoldChange"]


class TestResultTableSaver:
    """Tests for ResultTableSaver"""

    @pytest.fixture
    def regions(self):
        return pd.DataFrame(
            {
                "region_id": [2, 1],
                "chrom": ["chr1", "chr1"],
                "start": [5001, 1001],
                "end": [5500, 1500],
                "FDR": [0.5, 1e-3],
                "direction": ["down", "up"],
            }
        )

    def test_bed_rows(self, regions):
        bed = ResultTableSaver().regions_to_bed(regions).reset_index(drop=True)

        assert list(bed["chromStart"]) == [1000, 5000]
        assert list(bed["chromEnd"]) == [1500, 5500]
        assert list(bed["name"]) == ["region_1", "region_2"]
        assert list(bed["score"]) == [30, 3]
        assert list(bed["itemRgb"]) == ["215,48,39", "69,117,180"]
        assert set(bed["strand"]) == {"."}

    def test_bed_scores_clipped(self):
        scores = ResultTableSaver.bed_scores(pd.Series([0.0, 1.0, np.nan, 1e-200]))
        assert list(scores) == [1000, 0, 0, 1000]

    def test_save_bed_track_line(self, tmp_path, regions):
        path = tmp_path / "out" / "regions.bed"
        ResultTableSaver().save_bed(regions, str(path), track_name="chart_regions")

        lines = path.read_text().splitlines()
        assert lines[0].startswith('track name="chart_regions"')
        assert 'itemRgb="On"' in lines[0]
        assert lines[1].split("\t")[:3] == ["chr1", "1000", "1500"]
        assert len(lines) == 3

    def test_save_table_round_trip(self, tmp_path):
        table = pd.DataFrame(
            {"PValue": [0.001, 0.5], "significant": [True, False]},
            index=pd.Index(["g1", "g2"], name="feature_id"),
        )
        path = str(tmp_path / "iut.tsv")
        ResultTableSaver().save_table(table, path)

        loaded = ResultTableLoader().load_result(path)
        assert list(loaded.index) == ["g1", "g2"]
        assert loaded["significant"].tolist() == [True, False]

    def test_save_summary(self, tmp_path):
        path = tmp_path / "summary.txt"
        ResultTableSaver().save_summary({"Features": 5, "Significant": 2}, str(path))
        assert path.read_text() == "Features: 5\nSignificant: 2\n"
