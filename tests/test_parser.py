"""Tests for table reading and writing."""

import gzip

import pandas as pd
import pytest

from BiasCalibrator.exceptions import EmptyInputError, InvalidInputError
from BiasCalibrator.fileutils import detect_delimiter, list_output_files, write_table
from BiasCalibrator.parser import load_error_matrix, read_composition_table


class TestDetectDelimiter:

    @pytest.mark.parametrize("path, expected", [
        ("table.csv", ","),
        ("table.csv.gz", ","),
        ("table.tsv", "\t"),
        ("table.TSV.gzip", "\t"),
        ("table.txt", "\t"),
    ])
    def test_by_extension(self, path, expected):
        assert detect_delimiter(path) == expected


class TestReadCompositionTable:

    def test_reads_csv_with_sample_index(self, tmp_path):
        path = tmp_path / "observed.csv"
        path.write_text("sample,A,B\nS1,1,2\nS2,3,\n")

        table = read_composition_table(str(path))

        assert list(table.index) == ["S1", "S2"]
        assert list(table.columns) == ["A", "B"]
        assert pd.isna(table.loc["S2", "B"])

    def test_reads_gzipped_tsv_with_named_sample_column(self, tmp_path):
        path = tmp_path / "actual.tsv.gz"
        with gzip.open(path, "wt") as f:
            f.write("A\tid\tB\n1\tS1\t0\n")

        table = read_composition_table(str(path), sample_column="id")

        assert list(table.index) == ["S1"]
        assert table.loc["S1", "B"] == 0

    def test_duplicate_samples_raise(self, tmp_path):
        path = tmp_path / "dup.csv"
        path.write_text("sample,A\nS1,1\nS1,2\n")
        with pytest.raises(InvalidInputError):
            read_composition_table(str(path))

    def test_non_numeric_raises(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("sample,A\nS1,lots\n")
        with pytest.raises(InvalidInputError):
            read_composition_table(str(path))

    def test_no_taxa_raises(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("sample\nS1\n")
        with pytest.raises(EmptyInputError):
            read_composition_table(str(path))

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(RuntimeError):
            read_composition_table(str(tmp_path / "nope.csv"))


class TestLoadErrorMatrix:

    def test_builds_error_matrix(self, tmp_path):
        observed = tmp_path / "observed.csv"
        actual = tmp_path / "actual.csv"
        observed.write_text("sample,A,B,C\nS1,10,0,5\nS2,4,4,4\n")
        actual.write_text("sample,A,B,C\nS1,1,1,0\nS2,1,1,1\n")

        error = load_error_matrix(str(observed), str(actual), pseudocount=0.5)

        assert error.samples == ["S1", "S2"]
        assert error.missing.tolist() == [[False, False, True], [False, False, False]]
        assert error.values[1].tolist() == pytest.approx([1.0, 1.0, 1.0])


class TestWriteTable:

    def test_writes_na_and_lists_outputs(self, tmp_path):
        table = pd.DataFrame({"taxon": ["A", "B"], "bias": pd.array([1.5, None], dtype="Float64")})
        out_dir = tmp_path / "results"

        path = write_table(table, str(out_dir), "bias.csv")

        assert path.endswith("bias.csv")
        assert (out_dir / "bias.csv").read_text().splitlines() == ["taxon,bias", "A,1.5", "B,NA"]
        assert list_output_files(str(out_dir)) == [path]

    def test_list_output_files_missing_dir(self, tmp_path):
        assert list_output_files(str(tmp_path / "absent")) == []
