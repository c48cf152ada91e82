"""Layoffs cleaning pipeline.

Copies a raw layoffs table into staging, deduplicates it, standardizes its
categorical, text and date fields, and prunes uninformative rows.
"""

__version__ = "1.0.0"
