"""IO utilities for settings, input tables and pipeline artifacts."""

import copy
import functools
import importlib.util
from pathlib import Path
from typing import Any, Optional

import pandas as pd
import yaml

from layoffs_cleaning.schema import apply_raw_dtypes, normalize_headers
from layoffs_cleaning.utils.logging_utils import get_logger
from layoffs_cleaning.utils.path_utils import get_config_path

logger = get_logger(__name__)

# The raw export spells missing values as the literal NULL
NULL_TOKENS = ["NULL", "NaN", "None"]

DEFAULTS: dict[str, Any] = {
    "data": {
        "date_format": "%m/%d/%Y",
        "supported_formats": [".csv", ".xlsx"],
        "output_name": "layoffs_cleaned",
    },
    "standardize": {
        "backfill_policy": "most_frequent",
        "industry_map_path": "industry_variants.yaml",
        "on_date_error": "raise",
    },
    "variant_audit": {
        "enable": True,
        "columns": ["industry", "country"],
        "threshold": 90,
    },
    "io": {
        "snapshot_format": "parquet",
        "output_formats": ["csv", "parquet"],
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "file": "pipeline.log",
    },
}


def deep_merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``update`` into ``base`` (in place) and return it."""
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


@functools.lru_cache(maxsize=4)
def _load_settings_cached(path: str) -> dict[str, Any]:
    try:
        with open(path) as f:
            user_config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Settings file not found: {path}. Using defaults.")
        return copy.deepcopy(DEFAULTS)

    if not isinstance(user_config, dict):
        raise ValueError(f"Settings file {path} must contain a mapping at top level")

    logger.debug(f"Settings loaded from {path}")
    return deep_merge(copy.deepcopy(DEFAULTS), user_config)


def load_settings(path: Optional[str] = None) -> dict[str, Any]:
    """Load settings from a YAML file merged over the defaults.

    Parsing is cached per path; callers receive their own copy so they may
    adjust it for a run.

    Args:
        path: Path to settings YAML file (defaults to config/settings.yaml)

    Returns:
        Dictionary with settings (user config merged over defaults)

    """
    if path is None:
        path = str(get_config_path())
    return copy.deepcopy(_load_settings_cached(str(path)))


def reload_settings(path: Optional[str] = None) -> dict[str, Any]:
    """Force reload settings from file (clears cache)."""
    _load_settings_cached.cache_clear()
    return load_settings(path)


def load_industry_map(path: str) -> dict[str, Any]:
    """Load the versioned industry canonicalization map.

    The file holds a ``version`` and a ``canonical`` mapping of canonical
    label to its known variants.

    Returns:
        Dictionary with ``version`` and ``variants`` (variant -> canonical label)

    Raises:
        FileNotFoundError: If the map file does not exist
        ValueError: If a variant is mapped to two canonical labels

    """
    map_path = Path(path)
    if not map_path.is_absolute() and not map_path.exists():
        map_path = get_config_path(str(path))

    with open(map_path) as f:
        raw = yaml.safe_load(f) or {}

    variants: dict[str, str] = {}
    for canonical, spellings in (raw.get("canonical") or {}).items():
        for spelling in spellings or []:
            if spelling in variants and variants[spelling] != canonical:
                raise ValueError(
                    f"Variant '{spelling}' maps to both '{variants[spelling]}' "
                    f"and '{canonical}' in {map_path}"
                )
            if spelling != canonical:
                variants[spelling] = canonical

    version = raw.get("version", "unversioned")
    logger.info(
        f"industry_map | loaded | path={map_path} | version={version} | variants={len(variants)}"
    )
    return {"version": version, "variants": variants}


def detect_file_format(path: str) -> str:
    """Detect file format based on extension.

    Returns:
        File format string: 'csv', 'xlsx', or 'unsupported'

    """
    suffix = Path(path).suffix.lower()
    if suffix == ".csv":
        return "csv"
    if suffix == ".xlsx":
        return "xlsx"
    return "unsupported"


def read_input_file(path: str, *, sheet: Optional[str] = None) -> pd.DataFrame:
    """Read the raw layoffs table with text cells and typed measures.

    Every cell is read as text. ``NULL`` tokens become nulls while empty
    cells stay empty strings, so blank categorical values survive into
    staging exactly as exported.

    Args:
        path: Path to input file
        sheet: Optional Excel sheet name

    Returns:
        DataFrame with normalized headers and raw dtypes applied

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the format is unsupported or required columns are missing
        ImportError: If openpyxl is missing for an .xlsx input

    """
    if not Path(path).exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    fmt = detect_file_format(path)
    if fmt == "csv":
        df = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            na_values=NULL_TOKENS,
        )
    elif fmt == "xlsx":
        if importlib.util.find_spec("openpyxl") is None:
            raise ImportError("openpyxl required to read .xlsx files")
        df = pd.read_excel(
            path,
            dtype=str,
            engine="openpyxl",
            sheet_name=sheet or 0,
            keep_default_na=False,
            na_values=NULL_TOKENS,
        )
    else:
        raise ValueError(f"Unsupported file format for: {path}")

    df = apply_raw_dtypes(normalize_headers(df))
    logger.info(f"Loaded {len(df)} rows, {len(df.columns)} columns from {path}")
    return df


def is_parquet_available() -> bool:
    """Whether pandas can use pyarrow for parquet IO."""
    return importlib.util.find_spec("pyarrow") is not None


def write_artifact(df: pd.DataFrame, base: str, prefer_parquet: bool = True) -> str:
    """Write DataFrame to parquet or CSV with fallback.

    Args:
        df: DataFrame to write
        base: Output path without extension
        prefer_parquet: Try parquet first

    Returns:
        Path of the written file

    """
    Path(base).parent.mkdir(parents=True, exist_ok=True)
    if prefer_parquet and is_parquet_available():
        df.to_parquet(base + ".parquet", index=False)
        return base + ".parquet"
    if prefer_parquet:
        logger.info("artifact | pyarrow_missing | writing CSV instead")
    csv = base + ".csv"
    df.to_csv(csv, index=False)
    logger.info(f"artifact | csv_written | path={csv}")
    return csv


def read_artifact(base: str) -> pd.DataFrame:
    """Read a snapshot written by ``write_artifact``.

    CSV snapshots lose dtypes, so raw dtypes are re-applied and a typed date
    column is restored.

    Raises:
        FileNotFoundError: If neither a parquet nor a CSV snapshot exists
        ImportError: If only a parquet snapshot exists and pyarrow is missing

    """
    parquet = Path(base + ".parquet")
    if parquet.exists():
        if not is_parquet_available():
            raise ImportError(f"pyarrow required to read snapshot {parquet}")
        return pd.read_parquet(parquet)

    csv = Path(base + ".csv")
    if not csv.exists():
        raise FileNotFoundError(f"No snapshot found for {base} (.parquet/.csv)")

    df = pd.read_csv(csv, dtype=str, keep_default_na=False, na_values=[""] + NULL_TOKENS)
    logger.warning(
        f"artifact | csv_snapshot_reloaded | path={csv} | empty strings read as null"
    )
    typed_date = df["date"].dropna().str.fullmatch(r"\d{4}-\d{2}-\d{2}").all()
    df = apply_raw_dtypes(df)
    if typed_date:
        df["date"] = pd.to_datetime(df["date"], format="%Y-%m-%d")
    if "row_num" in df.columns:
        df["row_num"] = pd.to_numeric(df["row_num"]).astype("Int64")
    return df
