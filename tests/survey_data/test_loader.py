"""Tests for the survey file loader."""

import pandas as pd
import pytest

from src.survey_data.cleaning import clean_survey_table
from src.survey_data.errors import FormatError
from src.survey_data.loader import load_survey_table


class TestLoadSurveyTable:
    def test_reads_every_cell_as_text(self, tmp_path):
        path = tmp_path / "survey.csv"
        path.write_text("Site,Year of Fire,Birds\nA,2010,5\nB,NA,\n")

        df = load_survey_table(path)

        assert list(df.columns) == ["Site", "Year of Fire", "Birds"]
        assert df.loc[0, "Year of Fire"] == "2010"
        # NA and blank are kept verbatim, not parsed
        assert df.loc[1, "Year of Fire"] == "NA"
        assert df.loc[1, "Birds"] == ""

    def test_reads_tab_separated(self, tmp_path):
        path = tmp_path / "survey.tsv"
        path.write_text("a\tb\n1\t2\n")
        df = load_survey_table(path)
        assert list(df.columns) == ["a", "b"]
        assert df.loc[0, "b"] == "2"

    def test_reads_excel(self, tmp_path):
        pytest.importorskip("openpyxl")
        path = tmp_path / "survey.xlsx"
        pd.DataFrame({"Site": ["A", "B"], "Birds": [3, 4]}).to_excel(path, index=False)

        df = load_survey_table(path)

        assert list(df.columns) == ["Site", "Birds"]
        assert df.loc[1, "Birds"] == "4"

    def test_missing_file_raises_oserror(self, tmp_path):
        with pytest.raises(OSError, match="does not exist"):
            load_survey_table(tmp_path / "nope.csv")

    def test_empty_file_raises_format_error(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(FormatError, match="empty.csv"):
            load_survey_table(path)

    def test_numeric_first_row_raises_format_error(self, tmp_path):
        path = tmp_path / "headless.csv"
        path.write_text("1,2,3\n4,5,6\n")
        with pytest.raises(FormatError, match="looks like data"):
            load_survey_table(path)

    def test_blank_header_raises_format_error(self, tmp_path):
        path = tmp_path / "blank_header.csv"
        path.write_text(",,\na,b,c\n")
        with pytest.raises(FormatError, match="blank"):
            load_survey_table(path)


class TestLoadThenClean:
    def test_matches_direct_numeric_read(self, tmp_path, config):
        """Without sentinels, load + clean equals a typed pandas read."""
        path = tmp_path / "numeric.csv"
        path.write_text("alpha,beta,gamma\n1,2.5,3\n4,5.5,6\n7,8.25,9\n")

        cleaned = clean_survey_table(load_survey_table(path), config)
        direct = pd.read_csv(path)

        pd.testing.assert_frame_equal(cleaned, direct, check_dtype=False)
