"""Tests for column constants and raw dtype application."""

import pandas as pd
import pytest

from layoffs_cleaning.schema import (
    BUSINESS_COLUMNS,
    BUSINESS_KEY,
    ROW_NUM,
    apply_raw_dtypes,
    normalize_headers,
    validate_required_columns,
)
from tests.helpers import make_layoffs, make_row


class TestBusinessKey:
    def test_key_covers_all_nine_columns(self) -> None:
        assert len(BUSINESS_KEY) == 9
        assert set(BUSINESS_KEY) == set(BUSINESS_COLUMNS)
        assert ROW_NUM not in BUSINESS_KEY


class TestNormalizeHeaders:
    def test_headers_are_trimmed_lowercased_and_snake_cased(self) -> None:
        df = pd.DataFrame(columns=[" Company ", "Total Laid Off", "FUNDS_RAISED_MILLIONS"])
        result = normalize_headers(df)
        assert list(result.columns) == ["company", "total_laid_off", "funds_raised_millions"]

    def test_colliding_headers_raise(self) -> None:
        df = pd.DataFrame(columns=["Company", "company "])
        with pytest.raises(ValueError, match="Duplicate columns"):
            normalize_headers(df)


class TestRequiredColumns:
    def test_all_present(self) -> None:
        assert validate_required_columns(make_layoffs([make_row()]))

    def test_missing_column_raises(self) -> None:
        df = make_layoffs([make_row()]).drop(columns=["stage"])
        with pytest.raises(ValueError, match="stage"):
            validate_required_columns(df)


class TestApplyRawDtypes:
    def test_text_and_integer_dtypes(self) -> None:
        df = make_layoffs([make_row(total_laid_off=None), make_row()])

        assert df["company"].dtype == "string"
        assert df["percentage_laid_off"].dtype == "string"
        assert df["date"].dtype == "string"
        assert df["total_laid_off"].dtype == "Int64"
        assert df["funds_raised_millions"].dtype == "Int64"
        assert df["total_laid_off"].isna().tolist() == [True, False]

    def test_integer_text_is_parsed(self) -> None:
        raw = pd.DataFrame(
            [make_row(total_laid_off=" 120 ", funds_raised_millions="")],
            columns=BUSINESS_COLUMNS,
            dtype=object,
        )
        df = apply_raw_dtypes(raw)

        assert df.loc[0, "total_laid_off"] == 120
        assert pd.isna(df.loc[0, "funds_raised_millions"])

    def test_non_integer_value_raises(self) -> None:
        raw = pd.DataFrame([make_row(total_laid_off="lots")], columns=BUSINESS_COLUMNS, dtype=object)
        with pytest.raises(ValueError, match="total_laid_off"):
            apply_raw_dtypes(raw)

    def test_fractional_value_raises(self) -> None:
        raw = pd.DataFrame([make_row(funds_raised_millions="2.5")], columns=BUSINESS_COLUMNS, dtype=object)
        with pytest.raises(ValueError, match="funds_raised_millions"):
            apply_raw_dtypes(raw)

    def test_empty_strings_in_text_columns_are_kept(self) -> None:
        df = make_layoffs([make_row(industry="")])
        assert df.loc[0, "industry"] == ""

    def test_input_is_not_modified(self) -> None:
        raw = pd.DataFrame([make_row()], columns=BUSINESS_COLUMNS, dtype=object)
        before = raw.copy()
        apply_raw_dtypes(raw)
        pd.testing.assert_frame_equal(raw, before)
