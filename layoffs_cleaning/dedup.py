"""Exact duplicate removal for the staged layoffs table.

This module handles:
- Ranking rows within groups of identical business keys
- Inspection of the rows that would be removed
- Keeping the first row of every group

Two rows are duplicates only when all nine business columns match. A
narrower key (company, industry, total, date) merges distinct events that
happen to share those values, so it is not used.
"""

import logging
from typing import Optional, Sequence

import pandas as pd

from layoffs_cleaning.schema import BUSINESS_KEY, ROW_NUM

logger = logging.getLogger(__name__)


def assign_row_numbers(
    df: pd.DataFrame, key: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """Add a ``row_num`` column ranking rows within each key group.

    Ranks start at 1 and follow input order. Nulls compare equal to nulls.

    Args:
        df: Staged records
        key: Columns defining a group (defaults to the nine business columns)

    Returns:
        Copy of ``df`` with ``row_num`` set

    """
    key = list(key or BUSINESS_KEY)
    result = df.copy()
    if result.empty:
        result[ROW_NUM] = pd.Series(dtype="Int64")
        return result

    ranks = result.groupby(key, dropna=False, sort=False).cumcount() + 1
    result[ROW_NUM] = ranks.astype("Int64")
    return result


def find_duplicates(
    df: pd.DataFrame, key: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """Return the rows ranked 2 or higher within their key group."""
    ranked = assign_row_numbers(df, key)
    return ranked[ranked[ROW_NUM] > 1]


def remove_duplicates(df: pd.DataFrame) -> pd.DataFrame:
    """Keep exactly one row per business key group.

    The ``row_num`` helper column stays on the result; pruning drops it.

    Returns:
        Deduplicated copy of ``df``

    """
    ranked = assign_row_numbers(df)
    keep = (ranked[ROW_NUM] == 1).astype(bool)
    result = ranked[keep].copy()

    removed = len(ranked) - len(result)
    logger.info(
        f"dedup | complete | rows_in={len(ranked)} | duplicates_removed={removed} | rows_out={len(result)}"
    )
    return result
