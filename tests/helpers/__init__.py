"""Test helper utilities package.

Sample layoffs rows and builders for raw tables.
"""

from .layoffs import INDUSTRY_VARIANTS, RAW_ROWS, make_layoffs, make_row

__all__ = ["INDUSTRY_VARIANTS", "RAW_ROWS", "make_layoffs", "make_row"]
