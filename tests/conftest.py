from __future__ import annotations

import random
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from hypothesis import HealthCheck, settings

sys.path.insert(0, str(Path(__file__).parent.parent))

from layoffs_cleaning.schema import BUSINESS_COLUMNS
from tests.helpers import INDUSTRY_VARIANTS, RAW_ROWS, make_layoffs

# ---- Deterministic Testing Configuration ---------------------

DETERMINISTIC_SEED = 42


@pytest.fixture(autouse=True)
def set_deterministic_seed():
    """Set deterministic seed for all tests"""
    random.seed(DETERMINISTIC_SEED)
    np.random.seed(DETERMINISTIC_SEED)
    yield
    random.seed()
    np.random.seed()


# Hypothesis settings for all property-based tests
settings.register_profile(
    "deterministic",
    deadline=None,
    max_examples=100,
    derandomize=True,
    database=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.load_profile("deterministic")


@pytest.fixture
def raw_layoffs() -> pd.DataFrame:
    return make_layoffs(RAW_ROWS)


@pytest.fixture
def industry_variants() -> dict[str, str]:
    return dict(INDUSTRY_VARIANTS)


@pytest.fixture
def pipeline_settings() -> dict:
    return {
        "data": {"date_format": "%m/%d/%Y"},
        "standardize": {"backfill_policy": "most_frequent", "on_date_error": "raise"},
    }


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Settings plus industry map in a temporary config directory."""
    cfg = tmp_path / "config"
    cfg.mkdir()
    (cfg / "industry_variants.yaml").write_text(
        "version: 3\n"
        "canonical:\n"
        "  Crypto:\n"
        "    - Crypto Currency\n"
        "    - CryptoCurrency\n"
    )
    (cfg / "settings.yaml").write_text(
        "standardize:\n"
        "  industry_map_path: industry_variants.yaml\n"
        "io:\n"
        "  snapshot_format: parquet\n"
        "  output_formats: [csv]\n"
        "logging:\n"
        "  level: INFO\n"
        "  file: pipeline.log\n"
    )
    return cfg


@pytest.fixture
def raw_csv(tmp_path: Path) -> Path:
    """The sample rows exported the way the raw dataset is: NULL for missing."""
    df = pd.DataFrame(RAW_ROWS, columns=BUSINESS_COLUMNS, dtype=object)
    df = df.where(df.notna(), "NULL")
    path = tmp_path / "layoffs.csv"
    df.to_csv(path, index=False)
    return path
