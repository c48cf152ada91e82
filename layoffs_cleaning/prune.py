"""Removal of uninformative rows, repeated keys and helper columns."""

import logging

import pandas as pd

from layoffs_cleaning.dedup import remove_duplicates
from layoffs_cleaning.schema import HELPER_COLUMNS, MEASURE_COLUMNS

logger = logging.getLogger(__name__)


def drop_uninformative_rows(df: pd.DataFrame) -> pd.DataFrame:
    """Drop rows where every measure column is null.

    A layoff event with neither a head count nor a percentage says nothing
    about its size.
    """
    empty = df[MEASURE_COLUMNS].isna().all(axis=1)
    result = df[~empty].copy()
    logger.info(
        f"prune | drop_uninformative_rows | rows_removed={int(empty.sum())} | rows_out={len(result)}"
    )
    return result


def drop_repeated_keys(df: pd.DataFrame) -> pd.DataFrame:
    """Keep the first row of every business key made identical by standardization.

    Rows that differed only in ``United States.`` vs ``United States``, in a
    variant industry spelling or in date padding share one key once
    standardized.
    """
    result = remove_duplicates(df)
    removed = len(df) - len(result)
    if removed:
        logger.warning(f"prune | repeated_keys_after_standardize | rows_removed={removed}")
    return result


def drop_helper_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Drop bookkeeping columns added by earlier stages."""
    present = [c for c in HELPER_COLUMNS if c in df.columns]
    if present:
        logger.info(f"prune | drop_helper_columns | columns={present}")
    return df.drop(columns=present)


def prune(df: pd.DataFrame) -> pd.DataFrame:
    """Drop uninformative rows and repeated keys, then helper columns."""
    return drop_helper_columns(drop_repeated_keys(drop_uninformative_rows(df)))
