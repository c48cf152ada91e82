"""Standardization of deduplicated layoffs records.

This module handles, in order:
- Blank industry values rewritten to null
- Null industry backfilled from sibling rows of the same company
- Known industry spellings mapped onto one canonical label
- Trailing periods stripped from country names
- Text dates parsed into typed dates (parse-or-fail)

Every function returns a new DataFrame and leaves its input untouched.
"""

import logging
from typing import Any, Optional

import pandas as pd

from layoffs_cleaning.schema import COMPANY, COUNTRY, DATE, INDUSTRY

logger = logging.getLogger(__name__)

BACKFILL_POLICIES = ("most_frequent", "skip_ambiguous")
DATE_ERROR_MODES = ("raise", "quarantine")
DEFAULT_DATE_FORMAT = "%m/%d/%Y"


class DateParseError(ValueError):
    """Raised when date text does not match the expected format.

    Attributes:
        records: The offending rows (index preserved) with their raw date text
        date_format: Format the text was expected to follow

    """

    def __init__(self, records: pd.DataFrame, date_format: str) -> None:
        self.records = records
        self.date_format = date_format
        sample = records[DATE].head(5).tolist()
        super().__init__(
            f"{len(records)} record(s) have dates not matching '{date_format}', "
            f"sample={sample}"
        )


def blank_industry_to_null(df: pd.DataFrame) -> pd.DataFrame:
    """Rewrite empty or whitespace-only ``industry`` values to null."""
    result = df.copy()
    industry = result[INDUSTRY].astype("string")
    blank = industry.str.strip().eq("").fillna(False).astype(bool)
    result[INDUSTRY] = industry.mask(blank)

    logger.info(f"standardize | blank_industry_to_null | rows_changed={int(blank.sum())}")
    return result


def _industry_candidates(df: pd.DataFrame) -> pd.DataFrame:
    """Count non-null industries per company, best candidate first."""
    known = df.loc[df[COMPANY].notna() & df[INDUSTRY].notna(), [COMPANY, INDUSTRY]]
    counts = known.groupby([COMPANY, INDUSTRY]).size().reset_index(name="n")
    return counts.sort_values(
        [COMPANY, "n", INDUSTRY], ascending=[True, False, True], kind="mergesort"
    )


def backfill_industry(
    df: pd.DataFrame, policy: str = "most_frequent"
) -> pd.DataFrame:
    """Fill null ``industry`` from other rows of the same ``company``.

    Only nulls are filled; known values are never overwritten. Rows with a
    null company have no siblings.

    Args:
        df: Records with blank industries already nulled
        policy: ``most_frequent`` picks the company's most common industry,
            ties going to the alphabetically first label. ``skip_ambiguous``
            leaves the null in place when the company has several industries.

    Returns:
        Copy of ``df`` with industries backfilled

    Raises:
        ValueError: If ``policy`` is unknown

    """
    if policy not in BACKFILL_POLICIES:
        raise ValueError(f"Unknown backfill policy '{policy}', expected one of {BACKFILL_POLICIES}")

    result = df.copy()
    candidates = _industry_candidates(result)
    per_company = candidates.groupby(COMPANY).size()
    ambiguous = per_company[per_company > 1].index

    missing = (result[INDUSTRY].isna() & result[COMPANY].notna()).astype(bool)
    affected = set(result.loc[missing, COMPANY]) & set(ambiguous)
    if affected:
        logger.warning(
            f"standardize | backfill_ambiguous | policy={policy} | companies={len(affected)} | "
            f"sample={sorted(affected)[:5]}"
        )

    best = candidates.drop_duplicates(COMPANY, keep="first")
    if policy == "skip_ambiguous":
        best = best[~best[COMPANY].isin(ambiguous)]
    lookup = best.set_index(COMPANY)[INDUSTRY]

    filled = result.loc[missing, COMPANY].map(lookup).astype("string")
    result.loc[missing, INDUSTRY] = filled.array

    logger.info(
        f"standardize | backfill_industry | missing={int(missing.sum())} | "
        f"filled={int(filled.notna().sum())}"
    )
    return result


def canonicalize_industry(df: pd.DataFrame, variants: dict[str, str]) -> pd.DataFrame:
    """Map known industry spellings onto their canonical label.

    Args:
        df: Records to standardize
        variants: Mapping of variant spelling to canonical label

    """
    result = df.copy()
    industry = result[INDUSTRY].astype("string")
    hit = industry.isin(list(variants)).astype(bool)
    result[INDUSTRY] = industry.where(~hit, industry.map(variants).astype("string"))

    logger.info(f"standardize | canonicalize_industry | rows_changed={int(hit.sum())}")
    return result


def strip_country_punctuation(df: pd.DataFrame) -> pd.DataFrame:
    """Remove every trailing ``.`` from ``country``."""
    result = df.copy()
    country = result[COUNTRY].astype("string")
    stripped = country.str.rstrip(".")
    changed = (country != stripped).fillna(False).astype(bool)
    result[COUNTRY] = stripped

    logger.info(f"standardize | strip_country_punctuation | rows_changed={int(changed.sum())}")
    return result


def parse_layoff_dates(
    df: pd.DataFrame,
    date_format: str = DEFAULT_DATE_FORMAT,
    on_error: str = "raise",
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Parse text dates into typed dates.

    Null or blank text becomes a null date. Any other text must match
    ``date_format`` exactly. An already typed date column passes through.

    Args:
        df: Records with a text ``date`` column
        date_format: strptime format of the text dates
        on_error: ``raise`` to fail on unparseable text, ``quarantine`` to
            drop those rows from the result and return them separately

    Returns:
        Tuple of (records with typed dates, rejected records)

    Raises:
        DateParseError: If ``on_error`` is ``raise`` and some text does not parse
        ValueError: If ``on_error`` is unknown

    """
    if on_error not in DATE_ERROR_MODES:
        raise ValueError(f"Unknown date error mode '{on_error}', expected one of {DATE_ERROR_MODES}")

    result = df.copy()
    if pd.api.types.is_datetime64_any_dtype(result[DATE]):
        logger.info("standardize | parse_layoff_dates | already_typed")
        return result, result.iloc[0:0]

    text = result[DATE].astype("string").str.strip()
    text = text.mask(text.eq("").fillna(False).astype(bool))
    parsed = pd.to_datetime(text, format=date_format, errors="coerce")

    failed = (text.notna() & parsed.isna()).astype(bool)
    rejected = df[failed].copy()

    if failed.any():
        logger.error(
            f"standardize | date_parse_failed | count={int(failed.sum())} | format={date_format} | "
            f"sample={rejected[DATE].head(5).tolist()}"
        )
        if on_error == "raise":
            raise DateParseError(rejected, date_format)

    result[DATE] = parsed.astype("datetime64[ns]")
    result = result[~failed]

    logger.info(
        f"standardize | parse_layoff_dates | parsed={int(parsed.notna().sum())} | "
        f"null={int(text.isna().sum())} | quarantined={len(rejected)}"
    )
    return result, rejected


def standardize(
    df: pd.DataFrame,
    settings: Optional[dict[str, Any]] = None,
    variants: Optional[dict[str, str]] = None,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Run every standardization step in order.

    Args:
        df: Deduplicated records
        settings: Pipeline settings (``standardize`` and ``data`` sections)
        variants: Industry variant map (variant -> canonical label)

    Returns:
        Tuple of (standardized records, rejected date records)

    """
    settings = settings or {}
    std_cfg = settings.get("standardize", {})
    date_format = settings.get("data", {}).get("date_format", DEFAULT_DATE_FORMAT)

    result = blank_industry_to_null(df)
    result = backfill_industry(result, std_cfg.get("backfill_policy", "most_frequent"))
    result = canonicalize_industry(result, variants or {})
    result = strip_country_punctuation(result)
    return parse_layoff_dates(
        result, date_format, std_cfg.get("on_date_error", "raise")
    )
