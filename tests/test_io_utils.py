"""Tests for settings, industry map and table IO."""

from pathlib import Path

import pandas as pd
import pytest

from layoffs_cleaning.utils.io_utils import (
    DEFAULTS,
    deep_merge,
    detect_file_format,
    load_industry_map,
    load_settings,
    read_artifact,
    read_input_file,
    reload_settings,
    write_artifact,
)
from tests.helpers import make_layoffs, make_row


class TestSettings:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        settings = reload_settings(str(tmp_path / "absent.yaml"))
        assert settings == DEFAULTS

    def test_user_values_merged_over_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("standardize:\n  backfill_policy: skip_ambiguous\n")
        settings = reload_settings(str(path))

        assert settings["standardize"]["backfill_policy"] == "skip_ambiguous"
        assert settings["standardize"]["on_date_error"] == "raise"
        assert settings["data"]["date_format"] == "%m/%d/%Y"

    def test_callers_get_independent_copies(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("io:\n  output_formats: [csv]\n")
        first = reload_settings(str(path))
        first["io"]["output_formats"].append("parquet")

        assert load_settings(str(path))["io"]["output_formats"] == ["csv"]

    def test_non_mapping_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="mapping"):
            reload_settings(str(path))

    def test_deep_merge_replaces_leaves(self) -> None:
        base = {"a": {"b": 1, "c": [1, 2]}, "d": 1}
        assert deep_merge(base, {"a": {"c": [3]}}) == {"a": {"b": 1, "c": [3]}, "d": 1}

    def test_repository_settings_load(self) -> None:
        settings = reload_settings(str(Path(__file__).parent.parent / "config" / "settings.yaml"))
        assert settings["standardize"]["industry_map_path"] == "industry_variants.yaml"
        assert settings["variant_audit"]["threshold"] == 90


class TestIndustryMap:
    def test_versioned_map_inverted(self, config_dir: Path) -> None:
        industry_map = load_industry_map(str(config_dir / "industry_variants.yaml"))
        assert industry_map["version"] == 3
        assert industry_map["variants"] == {
            "Crypto Currency": "Crypto",
            "CryptoCurrency": "Crypto",
        }

    def test_variant_with_two_canonicals_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "map.yaml"
        path.write_text("version: 1\ncanonical:\n  Crypto: [Web3]\n  Blockchain: [Web3]\n")
        with pytest.raises(ValueError, match="Web3"):
            load_industry_map(str(path))

    def test_canonical_listed_as_own_variant_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "map.yaml"
        path.write_text("canonical:\n  Crypto: [Crypto, CryptoCurrency]\n")
        industry_map = load_industry_map(str(path))
        assert industry_map["variants"] == {"CryptoCurrency": "Crypto"}
        assert industry_map["version"] == "unversioned"

    def test_repository_map_loads(self) -> None:
        path = Path(__file__).parent.parent / "config" / "industry_variants.yaml"
        variants = load_industry_map(str(path))["variants"]
        assert variants["Crypto Currency"] == "Crypto"
        assert variants["CryptoCurrency"] == "Crypto"

    def test_missing_map_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_industry_map(str(tmp_path / "nope.yaml"))


class TestReadInputFile:
    def test_null_tokens_and_empty_cells(self, raw_csv: Path) -> None:
        df = read_input_file(str(raw_csv))

        assert len(df) == 11
        beyond = df[df["company"] == "Beyond Meat"].iloc[0]
        assert beyond["industry"] == ""
        ballys = df[df["company"] == "Bally's Interactive"].iloc[0]
        assert pd.isna(ballys["industry"])
        assert pd.isna(ballys["total_laid_off"])
        assert df["total_laid_off"].dtype == "Int64"
        assert df["date"].dtype == "string"

    def test_headers_are_normalized(self, tmp_path: Path) -> None:
        path = tmp_path / "raw.csv"
        header = "Company,Location,Industry,Total Laid Off,Percentage Laid Off,Date,Stage,Country,Funds Raised Millions"
        path.write_text(header + "\nAcme,Austin,Retail,10,0.1,1/2/2023,Seed,United States,20\n")
        df = read_input_file(str(path))
        assert df.loc[0, "total_laid_off"] == 10

    def test_xlsx_input(self, tmp_path: Path) -> None:
        pytest.importorskip("openpyxl")
        path = tmp_path / "raw.xlsx"
        make_layoffs([make_row()]).to_excel(path, index=False)
        df = read_input_file(str(path))
        assert df.loc[0, "company"] == "Acme"
        assert df.loc[0, "funds_raised_millions"] == 20

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            read_input_file(str(tmp_path / "missing.csv"))

    def test_unsupported_format_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "raw.json"
        path.write_text("{}")
        with pytest.raises(ValueError, match="Unsupported"):
            read_input_file(str(path))

    @pytest.mark.parametrize(
        "name,expected",
        [("a.csv", "csv"), ("a.CSV", "csv"), ("a.xlsx", "xlsx"), ("a.txt", "unsupported")],
    )
    def test_detect_file_format(self, name: str, expected: str) -> None:
        assert detect_file_format(name) == expected


class TestArtifacts:
    def test_parquet_preserves_dtypes(self, tmp_path: Path, raw_layoffs: pd.DataFrame) -> None:
        pytest.importorskip("pyarrow")
        path = write_artifact(raw_layoffs, str(tmp_path / "snap"))
        assert path.endswith(".parquet")

        restored = read_artifact(str(tmp_path / "snap"))
        pd.testing.assert_frame_equal(restored, raw_layoffs)

    def test_csv_snapshot_restores_typed_dates(self, tmp_path: Path) -> None:
        df = make_layoffs([make_row(), make_row(date=None)])
        df["date"] = pd.to_datetime(df["date"], format="%m/%d/%Y")
        path = write_artifact(df, str(tmp_path / "snap"), prefer_parquet=False)
        assert path.endswith(".csv")

        restored = read_artifact(str(tmp_path / "snap"))
        assert restored.loc[0, "date"] == pd.Timestamp(2023, 1, 2)
        assert pd.isna(restored.loc[1, "date"])
        assert restored["total_laid_off"].dtype == "Int64"

    def test_csv_snapshot_keeps_text_dates(self, tmp_path: Path) -> None:
        write_artifact(make_layoffs([make_row()]), str(tmp_path / "snap"), prefer_parquet=False)
        restored = read_artifact(str(tmp_path / "snap"))
        assert restored.loc[0, "date"] == "1/2/2023"

    def test_missing_snapshot_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            read_artifact(str(tmp_path / "nothing"))
