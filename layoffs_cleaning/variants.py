"""Audit of label spellings that may still need a canonical mapping.

Canonicalization only applies the configured map. This audit looks at the
standardized table for distinct labels that read almost the same (for
example "Crypto Currency" next to "CryptoCurrency") and reports them so the
map can be extended. It never changes the data.
"""

import logging
import re
from typing import Sequence

import pandas as pd
from rapidfuzz import fuzz, process

logger = logging.getLogger(__name__)

AUDIT_COLUMNS = ["column", "label_a", "label_b", "score", "count_a", "count_b"]


def _audit_key(label: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    key = re.sub(r"[^\w\s]", "", label.lower())
    return re.sub(r"\s+", " ", key).strip()


def find_similar_labels(
    values: pd.Series, threshold: float = 90
) -> list[tuple[str, str, float]]:
    """Return pairs of distinct labels whose similarity is at least ``threshold``.

    Pairs are ordered (label_a < label_b) and reported once.
    """
    labels = sorted(str(v) for v in values.dropna().unique())
    keys = [_audit_key(label) for label in labels]

    pairs = []
    for i, key in enumerate(keys[:-1]):
        matches = process.extract(
            key,
            keys[i + 1 :],
            scorer=fuzz.token_sort_ratio,
            score_cutoff=threshold,
            limit=None,
        )
        for _, score, j in matches:
            pairs.append((labels[i], labels[i + 1 + j], round(float(score), 2)))
    return pairs


def audit_variants(
    df: pd.DataFrame,
    columns: Sequence[str] = ("industry", "country"),
    threshold: float = 90,
) -> pd.DataFrame:
    """Report near-identical labels in the given text columns.

    Args:
        df: Standardized records
        columns: Text columns to audit
        threshold: Minimum token_sort_ratio (0-100) to report a pair

    Returns:
        DataFrame with columns ``column, label_a, label_b, score, count_a, count_b``
        sorted by descending score

    """
    rows = []
    for col in columns:
        if col not in df.columns:
            logger.warning(f"variant_audit | column_missing | column={col}")
            continue

        counts = df[col].dropna().astype(str).value_counts()
        for label_a, label_b, score in find_similar_labels(df[col], threshold):
            rows.append(
                {
                    "column": col,
                    "label_a": label_a,
                    "label_b": label_b,
                    "score": score,
                    "count_a": int(counts.get(label_a, 0)),
                    "count_b": int(counts.get(label_b, 0)),
                }
            )

    report = pd.DataFrame(rows, columns=AUDIT_COLUMNS)
    if not report.empty:
        report = report.sort_values(
            ["score", "column", "label_a"], ascending=[False, True, True]
        ).reset_index(drop=True)
        for rec in report.head(10).itertuples(index=False):
            logger.warning(
                f"variant_audit | possible_unmapped_variant | column={rec.column} | "
                f"'{rec.label_a}' ~ '{rec.label_b}' | score={rec.score}"
            )

    logger.info(f"variant_audit | complete | pairs={len(report)} | threshold={threshold}")
    return report
