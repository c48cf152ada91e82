"""Staging copy of the raw layoffs table.

All cleaning happens on the staged copy; the raw table is never touched
after this point.
"""

import logging

import pandas as pd

from layoffs_cleaning.schema import validate_required_columns

logger = logging.getLogger(__name__)


def stage_copy(raw: pd.DataFrame) -> pd.DataFrame:
    """Return an independent copy of ``raw`` with identical schema and contents.

    Raises:
        ValueError: If any business column is missing from ``raw``

    """
    validate_required_columns(raw)
    staged = raw.copy(deep=True)
    logger.info(f"staging | copied | rows={len(staged)} | columns={len(staged.columns)}")
    return staged
