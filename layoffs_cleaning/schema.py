"""Column names and dtypes for the layoffs table.

This module provides:
- Canonical column constants
- The nine-field business key used for deduplication
- Raw dtype application for freshly loaded tables
"""

import logging
import re

import pandas as pd

logger = logging.getLogger(__name__)

# Business columns
COMPANY = "company"
LOCATION = "location"
INDUSTRY = "industry"
TOTAL_LAID_OFF = "total_laid_off"
PERCENTAGE_LAID_OFF = "percentage_laid_off"
DATE = "date"
STAGE = "stage"
COUNTRY = "country"
FUNDS_RAISED_MILLIONS = "funds_raised_millions"

# Helper columns
ROW_NUM = "row_num"

BUSINESS_COLUMNS = [
    COMPANY,
    LOCATION,
    INDUSTRY,
    TOTAL_LAID_OFF,
    PERCENTAGE_LAID_OFF,
    DATE,
    STAGE,
    COUNTRY,
    FUNDS_RAISED_MILLIONS,
]

# Joint equality on every business column defines "the same event".
BUSINESS_KEY = list(BUSINESS_COLUMNS)

HELPER_COLUMNS = [ROW_NUM]

# Measures of interest; a row missing both is uninformative
MEASURE_COLUMNS = [TOTAL_LAID_OFF, PERCENTAGE_LAID_OFF]

INTEGER_COLUMNS = [TOTAL_LAID_OFF, FUNDS_RAISED_MILLIONS]

# Dtypes of the raw table (date is still text here)
RAW_DTYPES = {
    COMPANY: "string",
    LOCATION: "string",
    INDUSTRY: "string",
    TOTAL_LAID_OFF: "Int64",
    PERCENTAGE_LAID_OFF: "string",
    DATE: "string",
    STAGE: "string",
    COUNTRY: "string",
    FUNDS_RAISED_MILLIONS: "Int64",
}

CLEAN_DTYPES = {**RAW_DTYPES, DATE: "datetime64[ns]"}


def normalize_header(col: str) -> str:
    """Trim, lowercase and snake_case a single header."""
    return re.sub(r"\s+", "_", str(col).strip().lower())


def normalize_headers(df: pd.DataFrame) -> pd.DataFrame:
    """Return ``df`` with normalized column headers.

    Raises:
        ValueError: If two headers collapse to the same normalized name

    """
    normalized = [normalize_header(c) for c in df.columns]
    dupes = sorted({c for c in normalized if normalized.count(c) > 1})
    if dupes:
        raise ValueError(f"Duplicate columns after header normalization: {dupes}")
    return df.set_axis(normalized, axis=1)


def validate_required_columns(df: pd.DataFrame) -> bool:
    """Validate that every business column is present.

    Raises:
        ValueError: If any business column is missing

    """
    missing = [c for c in BUSINESS_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(
            f"Missing required columns: {missing}. Available: {list(df.columns)}"
        )

    extra = [c for c in df.columns if c not in BUSINESS_COLUMNS + HELPER_COLUMNS]
    if extra:
        logger.warning(f"schema | extra_columns_ignored_by_key | columns={extra}")
    return True


def _to_nullable_int(series: pd.Series) -> pd.Series:
    """Cast a text column to ``Int64``, naming the rows that are not integers."""
    text = series.astype("string").str.strip()
    text = text.mask(text.eq("").fillna(False).astype(bool))
    numeric = pd.Series(
        pd.to_numeric(text.fillna("").to_numpy(dtype=object), errors="coerce"),
        index=series.index,
        dtype="Float64",
    )

    # NA remainder means the value did not parse
    not_integral = (numeric % 1).ne(0).fillna(True)
    bad = (text.notna() & not_integral).astype(bool)
    if bad.any():
        sample = series[bad].head(5).to_dict()
        raise ValueError(
            f"Column '{series.name}' has {int(bad.sum())} non-integer values, "
            f"sample={sample}"
        )
    return numeric.astype("Int64")


def apply_raw_dtypes(df: pd.DataFrame) -> pd.DataFrame:
    """Apply the raw table dtypes to a freshly loaded table.

    Text columns become ``string``; integer columns become nullable ``Int64``.
    Empty strings in text columns are kept as-is.

    Raises:
        ValueError: If a business column is missing or an integer column
            holds a non-integer value

    """
    validate_required_columns(df)
    result = df.copy()
    for col, dtype in RAW_DTYPES.items():
        if col in INTEGER_COLUMNS:
            if not pd.api.types.is_integer_dtype(result[col]):
                result[col] = _to_nullable_int(result[col])
            else:
                result[col] = result[col].astype("Int64")
        else:
            result[col] = result[col].astype(dtype)

    logger.debug(f"schema | raw_dtypes_applied | rows={len(result)}")
    return result
